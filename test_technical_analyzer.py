import asyncio

import pytest

from conftest import GOOD_HEADERS, GOOD_URL, FakeDocumentProvider, FixedPerformanceProvider
from technical_analyzer import TechnicalAnalyzer

SIMPLE_PAGE = "<html><head><title>t</title></head><body><p>hello</p></body></html>"


def analyze(document, robots="", sitemap="", url=GOOD_URL, headers=None):
    documents = FakeDocumentProvider(robots=robots, sitemap=sitemap)
    analyzer = TechnicalAnalyzer(documents, FixedPerformanceProvider())
    return asyncio.run(analyzer.analyze(url, document, headers))


def sitemap(*entries):
    return ('<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            + "".join(entries) + "</urlset>")


def test_good_site_scores_full_marks(good_site, good_document):
    analyzer = TechnicalAnalyzer(good_site, FixedPerformanceProvider())
    findings = asyncio.run(analyzer.analyze(GOOD_URL, good_document, GOOD_HEADERS))

    assert findings.robots_txt.value == 100
    assert findings.sitemap.value == 100
    assert findings.ssl.value == 100
    assert findings.mobile.value == 100
    assert findings.structured_data.value == 100
    assert findings.social_meta.value == 100
    assert findings.page_speed.value == 98
    assert findings.indexability.value == 100
    assert findings.canonical.value == 100
    assert good_site.calls["robots"] == 1
    assert good_site.calls["sitemap"] == 1

    metrics = findings.metrics
    assert metrics.sitemap_type == "urlset"
    assert metrics.sitemap_url_count == 120
    assert metrics.sitemap_has_priority
    assert metrics.sitemap_lastmod_coverage == 1.0
    assert metrics.schema_types == ("Answer", "Article", "FAQPage", "Organization", "Person", "Question", "WebSite")
    assert metrics.schema_errors == ()
    assert not metrics.noindex
    assert metrics.canonical_url == GOOD_URL
    assert metrics.has_open_graph and metrics.has_twitter_card
    assert metrics.performance.performance == 95


def test_missing_robots_scores_zero(make_document):
    findings = analyze(make_document(SIMPLE_PAGE))

    assert findings.robots_txt.value == 0
    assert not findings.metrics.robots_exists


@pytest.mark.parametrize("robots,expected", [
    ("User-agent: *\nDisallow: /private/\n", 85),
    ("Sitemap: https://example.com/sitemap.xml\n", 80),
    ("User-agent: *\nSitemap: /sitemap.xml\n", 85),
    ("User-agent: *\n" + "".join(f"Disallow: /p{i}/\n" for i in range(21))
     + "Sitemap: https://example.com/sitemap.xml\n", 90),
])
def test_robots_deductions(make_document, robots, expected):
    assert analyze(make_document(SIMPLE_PAGE), robots=robots).robots_txt.value == expected


def test_robots_blocking_whole_site_is_catastrophic(make_document):
    robots = "User-agent: *\nDisallow: /\nSitemap: https://example.com/sitemap.xml\n"
    findings = analyze(make_document(SIMPLE_PAGE), robots=robots)

    assert findings.robots_txt.value == 10
    assert findings.metrics.robots_blocks_all
    assert any("blocks the entire site" in issue for issue in findings.robots_txt.issues)


def test_robots_disallowing_a_subpath_does_not_block_site(make_document):
    robots = "User-agent: *\nDisallow: /admin\nSitemap: https://example.com/sitemap.xml\n"
    findings = analyze(make_document(SIMPLE_PAGE), robots=robots)

    assert findings.robots_txt.value == 100
    assert not findings.metrics.robots_blocks_all


def test_missing_sitemap_scores_zero(make_document):
    assert analyze(make_document(SIMPLE_PAGE)).sitemap.value == 0


def test_sitemap_without_lastmod(make_document):
    text = sitemap("<url><loc>https://example.com/a</loc></url>", "<url><loc>https://example.com/b</loc></url>")
    findings = analyze(make_document(SIMPLE_PAGE), sitemap=text)

    # two URLs (-10), no lastmod (-10)
    assert findings.sitemap.value == 80
    assert findings.metrics.sitemap_lastmod_coverage == 0.0


def test_sitemap_partial_lastmod_and_malformed_urls(make_document):
    text = sitemap(
        "<url><loc>https://example.com/a</loc><lastmod>2024-01-01</lastmod></url>",
        "<url><loc>/relative</loc></url>",
        "<url><loc>not a url</loc></url>",
    )
    findings = analyze(make_document(SIMPLE_PAGE), sitemap=text)

    # three URLs (-10), 1/3 lastmod coverage (-5) and two malformed locs (-4)
    assert findings.sitemap.value == 81


def test_empty_sitemap(make_document):
    findings = analyze(make_document(SIMPLE_PAGE), sitemap=sitemap())

    assert findings.sitemap.value == 70
    assert findings.metrics.sitemap_exists


def test_sitemap_index_and_extensions_are_detected(make_document):
    index = ('<?xml version="1.0"?><sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
             '<sitemap><loc>https://example.com/posts.xml</loc><lastmod>2024-01-01</lastmod></sitemap>'
             '</sitemapindex>')
    findings = analyze(make_document(SIMPLE_PAGE), sitemap=index)
    assert findings.metrics.sitemap_type == "sitemapindex"
    assert findings.metrics.sitemap_child_count == 1
    assert findings.metrics.sitemap_url_count == 0
    assert findings.sitemap.value == 100

    images = ('<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9" '
              'xmlns:image="http://www.google.com/schemas/sitemap-image/1.1">'
              '<url><loc>https://example.com/a</loc><lastmod>2024-01-01</lastmod>'
              '<image:image><image:loc>https://example.com/a.jpg</image:loc></image:image></url></urlset>')
    findings = analyze(make_document(SIMPLE_PAGE), sitemap=images)
    assert findings.metrics.sitemap_has_images
    assert findings.metrics.sitemap_url_count == 1
    assert findings.sitemap.value == 90


def test_non_sitemap_xml_scores_zero(make_document):
    assert analyze(make_document(SIMPLE_PAGE), sitemap="<html><body>Not found</body></html>").sitemap.value == 0


def test_ssl_scores(make_document):
    http = analyze(make_document(SIMPLE_PAGE, url="http://example.com/"), url="http://example.com/")
    no_hsts = analyze(make_document(SIMPLE_PAGE))

    assert http.ssl.value == 30
    assert not http.metrics.is_https
    assert no_hsts.ssl.value == 85


@pytest.mark.parametrize("head,expected", [
    ("", 30),
    ('<meta name="viewport" content="width=1024">', 60),
    ('<meta name="viewport" content="width=device-width, initial-scale=1, user-scalable=no">', 85),
    ('<meta name="viewport" content="width=device-width, maximum-scale=1">', 85),
    ('<meta name="viewport" content="width=device-width, maximum-scale=5">', 100),
])
def test_mobile_scores(make_document, head, expected):
    markup = f"<html><head>{head}</head><body><p>hi</p></body></html>"
    assert analyze(make_document(markup)).mobile.value == expected


def test_plugin_content_penalized(make_document):
    markup = ('<html><head><meta name="viewport" content="width=device-width"></head>'
              '<body><object data="movie.swf"></object></body></html>')
    assert analyze(make_document(markup)).mobile.value == 75


def test_structured_data_from_microdata_and_rdfa(make_document):
    markup = ('<html><body><div itemscope itemtype="https://schema.org/Organization"></div>'
              '<div vocab="https://schema.org/" typeof="BreadcrumbList"></div></body></html>')
    findings = analyze(make_document(markup))

    assert findings.metrics.schema_types == ("BreadcrumbList", "Organization")
    assert findings.structured_data.value == 40 + 20 + 10


def test_invalid_json_ld_is_counted(make_document):
    markup = '<html><head><script type="application/ld+json">{not json</script></head><body></body></html>'
    findings = analyze(make_document(markup))

    assert findings.structured_data.value == 0
    assert findings.metrics.invalid_json_ld == 1


def test_missing_social_meta(make_document):
    findings = analyze(make_document(SIMPLE_PAGE))

    assert findings.social_meta.value == 0
    assert not findings.metrics.has_open_graph


def test_page_speed_without_compression_or_caching(make_document):
    findings = analyze(make_document(SIMPLE_PAGE))

    # performance 95, bucket 100 - 20 (no compression) - 15 (no caching)
    assert findings.page_speed.value == 80
    assert not findings.metrics.compressed
    assert not findings.metrics.cached


def test_headers_default_to_document_headers(make_document):
    findings = analyze(make_document(SIMPLE_PAGE, headers=GOOD_HEADERS))

    assert findings.ssl.value == 100
    assert findings.metrics.compressed


def urlset(count, extra=""):
    return sitemap(*(f"<url><loc>https://example.com/p{i}</loc><lastmod>2024-01-01</lastmod>{extra}</url>"
                     for i in range(count)))


@pytest.mark.parametrize("count,expected", [
    (1, 90),
    (10, 90),
    (11, 95),
    (100, 95),
    (101, 100),
    (2000, 100),
])
def test_sitemap_url_count_bands(make_document, count, expected):
    findings = analyze(make_document(SIMPLE_PAGE), sitemap=urlset(count))

    assert findings.metrics.sitemap_url_count == count
    assert findings.sitemap.value == expected


def test_sitemap_priority_and_index_recommendations(make_document):
    bare = analyze(make_document(SIMPLE_PAGE), sitemap=urlset(20)).sitemap
    tagged = analyze(make_document(SIMPLE_PAGE), sitemap=urlset(20, "<priority>0.8</priority>")).sitemap
    large = analyze(make_document(SIMPLE_PAGE), sitemap=urlset(1500, "<changefreq>weekly</changefreq>")).sitemap

    assert "Add <priority> and <changefreq> to sitemap entries" in bare.recommendations
    assert tagged.recommendations == ()
    assert large.recommendations == ("Split the sitemap into smaller files behind a sitemap index",)


def test_structured_data_types_nested_in_other_entities(make_document):
    json_ld = ('{"@context": "https://schema.org", "@type": "WebPage", "name": "Oak care",'
               ' "mainEntity": {"@type": "FAQPage", "mainEntity": []},'
               ' "publisher": {"@type": "Organization", "name": "Acme Wood"}}')
    markup = f'<html><head><script type="application/ld+json">{json_ld}</script></head><body></body></html>'
    findings = analyze(make_document(markup))

    assert findings.metrics.schema_types == ("FAQPage", "Organization", "WebPage")
    # 40 + 30 for three types + 10 for Organization
    assert findings.structured_data.value == 80
    assert findings.metrics.schema_errors == ()


@pytest.mark.parametrize("item,error", [
    ('{"@context": "https://schema.org", "@type": "Article", "headline": "Oak"}',
     "Article is missing required property 'author'"),
    ('{"@context": "https://schema.org", "name": "Acme Wood"}', "JSON-LD item has no @type"),
    ('{"@type": "Organization", "name": "Acme Wood"}', "Organization has no @context"),
    ('{"@context": "https://schema.org", "@type": "Organisation", "name": "Acme Wood"}',
     "Unrecognized schema type 'Organisation'"),
])
def test_structured_data_validation_errors(make_document, item, error):
    markup = f'<html><head><script type="application/ld+json">{item}</script></head><body></body></html>'
    findings = analyze(make_document(markup))

    assert error in findings.metrics.schema_errors
    assert error in findings.structured_data.issues


def test_structured_data_errors_reduce_score(make_document):
    def score(item):
        markup = f'<html><head><script type="application/ld+json">{item}</script></head><body></body></html>'
        return analyze(make_document(markup)).structured_data.value

    complete = score('{"@context": "https://schema.org", "@type": "Organization", "name": "Acme Wood",'
                     ' "logo": "https://example.com/logo.png"}')
    missing_name = score('{"@context": "https://schema.org", "@type": "Organization",'
                         ' "logo": "https://example.com/logo.png"}')
    relative_logo = score('{"@context": "https://schema.org", "@type": "Organization", "name": "Acme Wood",'
                          ' "logo": "/logo.png"}')

    # 40 + 10 for one type + 10 for Organization
    assert complete == 60
    assert missing_name == 45
    assert relative_logo == 55


def indexability_of(make_document, head="", headers=None):
    markup = f"<html><head>{head}</head><body><p>hi</p></body></html>"
    return analyze(make_document(markup, headers=headers))


def test_noindex_meta_scores_zero(make_document):
    findings = indexability_of(make_document, '<meta name="robots" content="noindex, follow">')

    assert findings.indexability.value == 0
    assert findings.metrics.noindex
    assert findings.metrics.robots_directives == ("noindex", "follow")
    assert findings.indexability.issues[0] == \
        "Page is excluded from search results by noindex in the robots meta tag"


def test_noindex_from_x_robots_tag_header(make_document):
    findings = indexability_of(make_document, headers={"X-Robots-Tag": "googlebot: noindex"})

    assert findings.indexability.value == 0
    assert "X-Robots-Tag header" in findings.indexability.issues[0]


@pytest.mark.parametrize("head,expected", [
    ("", 100),
    ('<meta name="robots" content="index, follow">', 100),
    ('<meta name="robots" content="nofollow">', 60),
    ('<meta name="robots" content="index, follow, nofollow">', 30),
    ('<meta name="robots" content="index"><meta name="robots" content="follow">', 80),
    ('<meta name="robots" content="all, max-snippet:50">', 95),
])
def test_indexability_scores(make_document, head, expected):
    findings = indexability_of(make_document, head)

    assert findings.indexability.value == expected
    assert not findings.metrics.noindex


@pytest.mark.parametrize("head,url,expected", [
    ("", GOOD_URL, 60),
    (f'<link rel="canonical" href="{GOOD_URL}">', GOOD_URL, 100),
    (f'<link rel="canonical" href="{GOOD_URL}/">', GOOD_URL, 100),
    ('<link rel="canonical" href="/oak-furniture-guide">', GOOD_URL, 90),
    ('<link rel="canonical" href="http://example.com/oak-furniture-guide">',
     "http://example.com/oak-furniture-guide", 80),
    ('<link rel="canonical" href="https://example.com/">', GOOD_URL, 90),
    (f'<link rel="canonical" href="{GOOD_URL}"><link rel="canonical" href="https://example.com/">', GOOD_URL, 70),
    ('<link rel="canonical" href="javascript:void(0)">', GOOD_URL, 60),
])
def test_canonical_scores(make_document, head, url, expected):
    markup = f"<html><head>{head}</head><body></body></html>"
    findings = analyze(make_document(markup, url=url), url=url)

    assert findings.canonical.value == expected


def test_canonical_metrics(make_document):
    markup = '<html><head><link rel="canonical" href="/oak-furniture-guide"></head><body></body></html>'
    findings = analyze(make_document(markup))

    assert findings.metrics.canonical_count == 1
    assert findings.metrics.canonical_url == GOOD_URL
    assert "Canonical URL is relative" in findings.canonical.issues


def test_hreflang_alternates(make_document):
    canonical = f'<link rel="canonical" href="{GOOD_URL}">'
    complete = (canonical + f'<link rel="alternate" hreflang="en-GB" href="{GOOD_URL}">'
                '<link rel="alternate" hreflang="fr" href="https://example.com/fr/oak-furniture-guide">'
                f'<link rel="alternate" hreflang="x-default" href="{GOOD_URL}">')
    no_default = (canonical + f'<link rel="alternate" hreflang="en" href="{GOOD_URL}">'
                  '<link rel="alternate" hreflang="fr" href="https://example.com/fr/">')
    broken = (canonical + '<link rel="alternate" hreflang="english" href="https://example.com/en/">'
              '<link rel="alternate" hreflang="fr" href="https://example.com/fr/">'
              '<link rel="alternate" hreflang="fr" href="https://example.com/fr-2/">')

    def check(head):
        return analyze(make_document(f"<html><head>{head}</head><body></body></html>"))

    assert check(complete).canonical.value == 100
    assert check(complete).metrics.has_x_default
    assert check(complete).metrics.hreflang_count == 3
    assert check(no_default).canonical.value == 85
    # invalid code (-10), duplicate fr (-25), no x-default (-15), no self reference (-20)
    assert check(broken).canonical.value == 30
