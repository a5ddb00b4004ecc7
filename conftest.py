import asyncio
from collections import Counter

import pytest

from document_provider import placeholder_document
from seo_types import (
    AIOFindings, AuthorityData, FetchedDocument, Headings, OffPageFindings, OnPageFindings, PerformanceMetrics,
    SocialSignals, SubScore, TechnicalFindings, TechnicalMetrics,
)

SITE = "https://example.com"
GOOD_URL = f"{SITE}/oak-furniture-guide"

GOOD_HEADERS = {
    "content-type": "text/html; charset=utf-8",
    "content-encoding": "gzip",
    "cache-control": "public, max-age=3600",
    "strict-transport-security": "max-age=31536000; includeSubDomains",
}

GOOD_ROBOTS = """User-agent: *
Disallow: /admin/
Sitemap: https://example.com/sitemap.xml
"""

SITEMAP_PATHS = ["/", "/oak-furniture-guide"] + [f"/guides/oak-{i}" for i in range(118)]
GOOD_SITEMAP = ('<?xml version="1.0" encoding="UTF-8"?>\n'
                '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
                + "".join(f"  <url><loc>{SITE}{path}</loc><lastmod>2024-05-01</lastmod>"
                          f"<changefreq>monthly</changefreq><priority>0.5</priority></url>\n"
                          for path in SITEMAP_PATHS)
                + "</urlset>\n")

GOOD_TITLE = "10 Best Oak Furniture Ideas for Small Spaces | Acme Wood"
GOOD_DESCRIPTION = ("Discover 10 space-saving oak furniture ideas for small flats, from fold-away tables "
                    "to wall shelving. Free delivery on every order. Learn more today.")

JSON_LD = """{
  "@context": "https://schema.org",
  "@graph": [
    {"@type": "WebSite", "name": "Acme Wood", "url": "https://example.com/"},
    {"@type": "Organization", "name": "Acme Wood"},
    {"@type": "Article", "headline": "Oak furniture ideas", "datePublished": "2024-05-01",
     "dateModified": "2024-05-02", "author": {"@type": "Person", "name": "Jane Carpenter"}},
    {"@type": "FAQPage", "mainEntity": [
      {"@type": "Question", "name": "Why choose oak?",
       "acceptedAnswer": {"@type": "Answer", "text": "Oak is dense and lasts for decades."}}
    ]}
  ]
}"""

# 1600 one-syllable words in sentences of 12
FILLER = " ".join(" ".join(f"term{i}" for i in range(start, min(start + 12, 1600))) + "."
                  for start in range(0, 1600, 12))
KEYWORD_SENTENCE = "Furniture matters: oak furniture with timber shelving suits small flats."


def good_page_markup() -> str:
    nav = "".join(f'<a href="/section-{c}">Section {c}</a>' for c in "abcdefghij")
    external = "".join(f'<a href="{href}">source</a>' for href in (
        "https://www.wikipedia.org/wiki/Oak",
        "https://www.bbc.co.uk/news",
        "https://www.gov.uk/",
        "https://www.nature.com/",
        "https://www.rhs.org.uk/",
    ))
    keyword_block = " ".join([KEYWORD_SENTENCE] * 10)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <title>{GOOD_TITLE}</title>
  <meta name="description" content="{GOOD_DESCRIPTION}">
  <link rel="canonical" href="{GOOD_URL}">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="author" content="Jane Carpenter">
  <meta property="og:title" content="Oak Furniture Ideas for Small Spaces">
  <meta property="og:description" content="{GOOD_DESCRIPTION}">
  <meta property="og:image" content="https://example.com/oak.jpg">
  <meta property="og:url" content="{GOOD_URL}">
  <meta name="twitter:card" content="summary_large_image">
  <meta name="twitter:title" content="Oak Furniture Ideas for Small Spaces">
  <meta name="twitter:description" content="{GOOD_DESCRIPTION}">
  <meta name="twitter:image" content="https://example.com/oak.jpg">
  <script type="application/ld+json">{JSON_LD}</script>
</head>
<body>
  <nav>{nav}</nav>
  <h1>Oak furniture ideas for small spaces</h1>
  <p>Oak furniture makes small rooms feel larger, and this guide shows you how.</p>
  <time datetime="2024-05-01">1 May 2024</time>
  <img src="/table.jpg" alt="Round oak table" width="600" height="400">
  <img src="/shelf.jpg" alt="Wall mounted oak shelf" width="600" height="400">
  <h2>Choosing the right oak finish</h2>
  <h3>Oiled versus lacquered oak</h3>
  <p>{keyword_block}</p>
  <h2>Measuring a small room properly</h2>
  <h3>Allowing space for doors</h3>
  <ol><li>Measure the room</li><li>Pick a finish</li><li>Order samples</li></ol>
  <h2>Frequently asked questions about oak</h2>
  <h3>Caring for oak surfaces</h3>
  <p>What is the best wood for a small flat? Why choose oak? How do I clean it?
     Research and survey data show oak lasts because it is dense; however, for example,
     pine dents easily.</p>
  <ul><li>Dense grain</li><li>Ages well</li><li>Easy to repair</li></ul>
  <p>{FILLER}</p>
  <p>Visit our showroom in London. Contact us on 020 7946 0958.</p>
  <footer>{external}</footer>
</body>
</html>"""


THIN_BODY = ("Welcome to our little website about garden sheds and outdoor storage. We build sturdy "
             "sheds from treated timber and deliver them across the county. Every shed comes with a "
             "ten year guarantee and free fitting by our friendly local team of experienced builders "
             "today. Call us now for a quote.")


def thin_page_markup() -> str:
    return f"""<html><head><title>Home</title></head>
<body><p>{THIN_BODY}</p></body></html>"""


class FakeDocumentProvider:
    """In-memory document provider that counts calls"""

    def __init__(self, pages=None, robots="", sitemap=""):
        self.pages = pages or {}
        self.robots = robots
        self.sitemap = sitemap
        self.calls = Counter()

    async def fetch(self, url):
        self.calls["page"] += 1
        await asyncio.sleep(0)
        return self.pages.get(url) or placeholder_document(url)

    async def fetch_robots(self, url):
        self.calls["robots"] += 1
        await asyncio.sleep(0)
        return self.robots

    async def fetch_sitemap(self, url):
        self.calls["sitemap"] += 1
        await asyncio.sleep(0)
        return self.sitemap


class FixedPerformanceProvider:
    def __init__(self, metrics=None):
        self.metrics = metrics or PerformanceMetrics(
            performance=95, accessibility=100, best_practices=100, seo=100,
            first_contentful_paint=800, largest_contentful_paint=1400,
            cumulative_layout_shift=0.01, total_blocking_time=50, speed_index=1000,
        )

    async def estimate(self, url):
        return self.metrics


class FailingAuthorityProvider:
    async def lookup(self, domain):
        raise RuntimeError("authority service unavailable")


def on_page_findings(value=80, **overrides):
    s = SubScore(value)
    fields = dict(title=s, meta_description=s, headings=Headings(s, s, s), images=s, internal_links=s,
                  external_links=s, keyword_density=s, content_length=s, readability=s)
    fields.update(overrides)
    return OnPageFindings(**fields)


def technical_findings(value=80, https=True, **overrides):
    s = SubScore(value)
    fields = dict(robots_txt=s, sitemap=s, ssl=s, mobile=s, structured_data=s, social_meta=s, page_speed=s,
                  indexability=s, canonical=s, metrics=TechnicalMetrics(is_https=https))
    fields.update(overrides)
    return TechnicalFindings(**fields)


def off_page_findings(value=80, **overrides):
    s = SubScore(value)
    fields = dict(domain_authority=s, page_authority=s, backlinks=s, social_signals=s, mentions=s)
    fields.update(overrides)
    return OffPageFindings(**fields)


def aio_findings(value=80, **overrides):
    s = SubScore(value)
    fields = dict(question_answer=s, content_structure=s, source_credibility=s, semantic_keywords=s,
                  schema_markup=s, local_optimization=s, ai_readiness=s)
    fields.update(overrides)
    return AIOFindings(**fields)


def bundles(value=80, https=True):
    return on_page_findings(value), off_page_findings(value), technical_findings(value, https), aio_findings(value)


@pytest.fixture
def make_document():
    def _make(markup, url=GOOD_URL, headers=None, status=200):
        return FetchedDocument(url=url, markup=markup, headers=dict(headers or {}), status=status)
    return _make


@pytest.fixture
def good_document(make_document):
    return make_document(good_page_markup(), headers=GOOD_HEADERS)


@pytest.fixture
def thin_document(make_document):
    return make_document(thin_page_markup(), url=f"{SITE}/")


@pytest.fixture
def good_site(good_document):
    return FakeDocumentProvider(pages={GOOD_URL: good_document}, robots=GOOD_ROBOTS, sitemap=GOOD_SITEMAP)


@pytest.fixture
def thin_site(thin_document):
    return FakeDocumentProvider(pages={f"{SITE}/": thin_document})


@pytest.fixture
def strong_authority():
    return AuthorityData(
        domain_authority=65, page_authority=55, backlink_count=620,
        social_signals=SocialSignals(facebook=700, twitter=250, linkedin=100),
        mention_count=120, source="fixture",
    )
