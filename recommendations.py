"""Turns findings into ordered, human-readable recommendations.

Every function here is pure: the same findings always produce the same
recommendations, in the same order and with the same text.
"""
from typing import Callable, Dict, List, Optional, Tuple

from scoring import aggregate
from seo_types import (
    AIOFindings, AIOMetrics, Category, OffPageFindings, OffPageMetrics, OnPageFindings,
    OnPageMetrics, Recommendation, Severity, SubScore, TechnicalFindings, TechnicalMetrics,
)

THRESHOLDS = {
    Category.ON_PAGE: 70,
    Category.OFF_PAGE: 50,
    Category.TECHNICAL: 70,
    Category.AIO: 60,
}

CATEGORY_LABELS = {
    Category.ON_PAGE: "On-page",
    Category.OFF_PAGE: "Off-page",
    Category.TECHNICAL: "Technical",
    Category.AIO: "AI optimization",
}

# title, reason, steps, example
Advice = Tuple[str, str, Tuple[str, ...], Optional[str]]


def severity_for(score: SubScore) -> Severity:
    if score.value == 0:
        return Severity.CRITICAL
    if score.value < 50:
        return Severity.IMPORTANT
    return Severity.INFORMATIONAL


def score_band(total: int) -> str:
    if total >= 80:
        return "excellent"
    if total >= 60:
        return "good"
    if total >= 40:
        return "needs improvement"
    return "poor"


# --- On-page advice ----------------------------------------------------------

def _title(score: SubScore, m: OnPageMetrics) -> Advice:
    if not m.title:
        return ("Missing page title", "The page has no <title>, so search engines have to invent one.",
                ("Write a unique title of 50-60 characters", "Put the primary keyword near the start",
                 "Append the brand after a separator"),
                "<title>Handmade Oak Furniture for Small Spaces | Acme Woodworks</title>")
    return ("Improve the page title", f"The title is {m.title_length} characters long and scores {score.value}/100.",
            ("Aim for 50-60 characters", "Use each keyword once", "Add a separator and brand name"), None)


def _meta_description(score: SubScore, m: OnPageMetrics) -> Advice:
    if not m.meta_description:
        return ("Missing meta description", "No meta description was found, so the search snippet is chosen automatically.",
                ("Write a 140-160 character summary of the page", "Include the primary keyword once",
                 "End with a call to action"),
                '<meta name="description" content="Compare our oak tables, chairs and shelving built for '
                'small flats. Free delivery on orders over £100. Learn more today.">')
    return ("Improve the meta description",
            f"The meta description is {m.meta_description_length} characters long and scores {score.value}/100.",
            ("Target 140-160 characters", "Avoid repeating the title word for word", "Add a call to action"), None)


def _h1(score: SubScore, m: OnPageMetrics) -> Advice:
    if m.h1_count == 0:
        return ("Missing H1 heading", "The page has no H1, so its main topic is not stated in the markup.",
                ("Add exactly one H1 near the top of the content", "Make it agree with the title"),
                "<h1>Handmade oak furniture for small spaces</h1>")
    if m.h1_count > 1:
        return ("Multiple H1 headings", f"The page has {m.h1_count} H1 headings; one is expected.",
                ("Keep the H1 that best describes the page", "Demote the others to H2"), None)
    return ("Strengthen the H1 heading", f"The H1 scores {score.value}/100.",
            ("Keep it between 20 and 70 characters", "Share the title's main keywords"), None)


def _h2(score: SubScore, m: OnPageMetrics) -> Advice:
    return ("Improve subheading structure", f"The page has {m.h2_count} H2 headings.",
            ("Use 2-8 descriptive H2s to split the content into sections",), None)


def _h3(score: SubScore, m: OnPageMetrics) -> Advice:
    return ("Add supporting H3 headings", f"The page has {m.h3_count} H3 headings under {m.h2_count} H2s.",
            ("Break long H2 sections into H3 subsections",), None)


def _images(score: SubScore, m: OnPageMetrics) -> Advice:
    if m.image_count == 0:
        return ("No images on the page", "The page has no images to rank in image search or break up text.",
                ("Add relevant images", "Give each one descriptive alt text"), None)
    missing = m.image_count - m.images_with_alt
    return ("Add alt text to images", f"{missing} of {m.image_count} images have no alt text.",
            ("Describe each meaningful image in its alt attribute", "Use empty alt only for decorative images"),
            '<img src="oak-table.jpg" alt="Round oak dining table seating four">')


def _internal_links(score: SubScore, m: OnPageMetrics) -> Advice:
    title = "Missing internal links" if m.internal_link_count == 0 else "Too few internal links"
    return (title, f"The page links to {m.internal_link_count} other pages on the same site.",
            ("Link to at least 5 related pages", "Use descriptive anchor text"), None)


def _external_links(score: SubScore, m: OnPageMetrics) -> Advice:
    title = "Missing external links" if m.external_link_count == 0 else "Too few external links"
    return (title, f"The page links to {m.external_link_count} external pages on "
                   f"{len(m.external_domains)} domains.",
            ("Cite 3 or more authoritative sources", "Spread citations across different domains"), None)


def _keyword_density(score: SubScore, m: OnPageMetrics) -> Advice:
    if not m.primary_keyword:
        return ("No focus keyword", "The page has no indexable text to derive a keyword from.",
                ("Write body copy around one primary topic",), None)
    return ("Adjust keyword density",
            f"The primary keyword '{m.primary_keyword}' makes up {m.keyword_density:.1f}% of the text.",
            ("Keep the primary keyword between 1% and 2.5%", "Use synonyms and related terms"), None)


def _content_length(score: SubScore, m: OnPageMetrics) -> Advice:
    return ("Content too short", f"The page has {m.word_count} words; comprehensive pages usually run past 1,500.",
            ("Expand to at least 300 words", "Answer the questions searchers ask about the topic",
             "Add examples, data and FAQs"), None)


def _readability(score: SubScore, m: OnPageMetrics) -> Advice:
    if not m.sentence_count:
        return ("No readable body text", "The page has no sentences to assess for readability.",
                ("Write the main content as full sentences",), None)
    return ("Make the text easier to read",
            f"Sentences average {m.average_sentence_length:g} words with a Flesch reading ease "
            f"of {m.flesch_reading_ease:g}.",
            ("Keep most sentences between 8 and 20 words", "Swap long words for plain ones",
             "Break dense paragraphs into lists"), None)


ON_PAGE_ADVICE: Dict[str, Callable[[SubScore, OnPageMetrics], Advice]] = {
    "title": _title,
    "meta_description": _meta_description,
    "headings.h1": _h1,
    "headings.h2": _h2,
    "headings.h3": _h3,
    "images": _images,
    "internal_links": _internal_links,
    "external_links": _external_links,
    "keyword_density": _keyword_density,
    "content_length": _content_length,
    "readability": _readability,
}


# --- Off-page advice ---------------------------------------------------------

def _domain_authority(score: SubScore, m: OffPageMetrics) -> Advice:
    return ("Build domain authority", f"Domain authority is {m.domain_authority:g} ({m.domain_authority_level}).",
            ("Earn links from established sites in your niche", "Publish original research others cite"), None)


def _page_authority(score: SubScore, m: OffPageMetrics) -> Advice:
    return ("Build page authority", f"Page authority is {m.page_authority:g} ({m.page_authority_level}).",
            ("Point internal links at this page", "Promote it to earn direct links"), None)


def _backlinks(score: SubScore, m: OffPageMetrics) -> Advice:
    return ("Grow the backlink profile", f"The domain has {m.backlink_count} known backlinks.",
            ("Run outreach for guest posts and resource pages", "Reclaim unlinked brand mentions"), None)


def _social_signals(score: SubScore, m: OffPageMetrics) -> Advice:
    return ("Increase social engagement", f"Content has {m.social_signal_total} social shares.",
            ("Add share buttons", "Post new content to the brand's social channels"), None)


def _mentions(score: SubScore, m: OffPageMetrics) -> Advice:
    return ("Earn more brand mentions", f"The brand has {m.mention_count} recorded mentions.",
            ("Pitch stories to industry publications", "Take part in podcasts and interviews"), None)


OFF_PAGE_ADVICE: Dict[str, Callable[[SubScore, OffPageMetrics], Advice]] = {
    "domain_authority": _domain_authority,
    "page_authority": _page_authority,
    "backlinks": _backlinks,
    "social_signals": _social_signals,
    "mentions": _mentions,
}


# --- Technical advice --------------------------------------------------------

def _robots(score: SubScore, m: TechnicalMetrics) -> Advice:
    if not m.robots_exists:
        return ("Missing robots.txt", "No robots.txt was found at the site root.",
                ("Create /robots.txt with a 'User-agent: *' group", "Reference the sitemap in it"),
                "User-agent: *\nDisallow: /admin/\nSitemap: https://example.com/sitemap.xml")
    if m.robots_blocks_all:
        return ("robots.txt blocks the whole site", "robots.txt disallows '/' for every crawler.",
                ("Remove 'Disallow: /' from the 'User-agent: *' group",), None)
    return ("Fix robots.txt directives", f"robots.txt scores {score.value}/100: {'; '.join(score.issues)}.",
            ("Add a User-agent group", "Add an absolute Sitemap URL"), None)


def _sitemap(score: SubScore, m: TechnicalMetrics) -> Advice:
    if not m.sitemap_exists:
        return ("Missing XML sitemap", "No sitemap.xml was found.",
                ("Generate an XML sitemap of indexable URLs", "Submit it in search console"), None)
    if m.sitemap_type == "sitemapindex":
        return ("Fix the sitemap index",
                f"The sitemap index lists {m.sitemap_child_count} child sitemaps with "
                f"{m.sitemap_lastmod_coverage:.0%} lastmod coverage.",
                ("Add <lastmod> to every child sitemap", "Remove malformed or relative sitemap URLs"), None)
    steps = ("Add <lastmod> to every entry", "Remove malformed or relative URLs")
    if m.sitemap_url_count > 10 and not m.sitemap_has_priority:
        steps += ("Add <priority> and <changefreq> to entries",)
    if m.sitemap_url_count > 1000:
        steps += ("Split the URLs into smaller sitemaps behind a sitemap index",)
    return ("Fix the XML sitemap",
            f"The sitemap lists {m.sitemap_url_count} URLs with {m.sitemap_lastmod_coverage:.0%} lastmod coverage.",
            steps, None)


def _ssl(score: SubScore, m: TechnicalMetrics) -> Advice:
    if not m.is_https:
        return ("Site not served over HTTPS", "The page was requested over plain HTTP.",
                ("Install a TLS certificate", "Redirect all HTTP traffic to HTTPS"), None)
    return ("Add HSTS", "HTTPS is used but no Strict-Transport-Security header is sent.",
            ("Send 'Strict-Transport-Security: max-age=31536000; includeSubDomains'",), None)


def _mobile(score: SubScore, m: TechnicalMetrics) -> Advice:
    return ("Improve mobile friendliness", f"Mobile checks score {score.value}/100: {'; '.join(score.issues)}.",
            ("Add a device-width viewport", "Allow users to zoom", "Replace plugin content"),
            '<meta name="viewport" content="width=device-width, initial-scale=1">')


def _structured_data(score: SubScore, m: TechnicalMetrics) -> Advice:
    found = ", ".join(m.schema_types) or "none"
    if m.schema_errors:
        return ("Fix structured data errors",
                f"Schema types found: {found}. Validation errors: {'; '.join(m.schema_errors)}.",
                ("Give every JSON-LD item an @context and @type", "Fill in each type's required properties"),
                None)
    return ("Add structured data", f"Schema types found: {found}.",
            ("Add WebSite and Organization JSON-LD", "Mark up articles with Article schema"), None)


def _social_meta(score: SubScore, m: TechnicalMetrics) -> Advice:
    return ("Complete social meta tags", f"Social meta scores {score.value}/100.",
            ("Add og:title, og:description, og:image and og:url", "Add a twitter:card tag"), None)


def _page_speed(score: SubScore, m: TechnicalMetrics) -> Advice:
    return ("Improve page speed",
            f"Estimated performance is {m.performance.performance:g}/100 with {m.resource_count} resources "
            f"and about {m.payload_bytes / 1024:.0f} KB of payload.",
            ("Enable compression", "Set caching headers", "Defer non-critical scripts", "Compress images"), None)


def _indexability(score: SubScore, m: TechnicalMetrics) -> Advice:
    directives = ", ".join(m.robots_directives) or "none"
    if m.noindex:
        return ("Page is blocked from indexing",
                f"Robots directives ({directives}) keep this page out of search results.",
                ("Remove noindex from the robots meta tag and the X-Robots-Tag header",
                 "Re-request indexing once the directive is gone"),
                '<meta name="robots" content="index, follow">')
    return ("Fix robots directives", f"Robots directives ({directives}) score {score.value}/100: "
                                     f"{'; '.join(score.issues)}.",
            ("Use a single robots meta tag", "Drop nofollow unless links must not be crawled"), None)


def _canonical(score: SubScore, m: TechnicalMetrics) -> Advice:
    if not m.canonical_count:
        return ("Missing canonical link",
                "The page does not declare its preferred URL, so duplicates can split ranking.",
                ("Add a self-referencing canonical link in the <head>", "Use the absolute HTTPS URL"),
                '<link rel="canonical" href="https://example.com/oak-furniture-guide">')
    if m.canonical_count > 1:
        return ("Multiple canonical links", f"The page declares {m.canonical_count} canonical links; one is expected.",
                ("Keep a single canonical link",), None)
    reason = f"The canonical link scores {score.value}/100: {'; '.join(score.issues)}."
    steps = ("Point the canonical at the absolute HTTPS URL of this page",)
    if m.hreflang_count > 1 and not m.has_x_default:
        steps += ("Add an x-default hreflang alternate",)
    return ("Fix the canonical link", reason, steps, None)


TECHNICAL_ADVICE: Dict[str, Callable[[SubScore, TechnicalMetrics], Advice]] = {
    "robots_txt": _robots,
    "sitemap": _sitemap,
    "ssl": _ssl,
    "mobile": _mobile,
    "structured_data": _structured_data,
    "social_meta": _social_meta,
    "page_speed": _page_speed,
    "indexability": _indexability,
    "canonical": _canonical,
}


# --- AIO advice --------------------------------------------------------------

def _question_answer(score: SubScore, m: AIOMetrics) -> Advice:
    kinds = ", ".join(m.question_types) or "none"
    return ("Answer questions directly", f"Question types covered: {kinds}.",
            ("Add an FAQ section", "Phrase subheadings as questions and answer them right below"), None)


def _content_structure(score: SubScore, m: AIOMetrics) -> Advice:
    return ("Structure content for quick answers", f"Content structure scores {score.value}/100.",
            ("Open with a 1-2 sentence summary", "Use numbered steps and bullet lists"), None)


def _source_credibility(score: SubScore, m: AIOMetrics) -> Advice:
    return ("Show credibility signals", "; ".join(score.issues) or f"Credibility scores {score.value}/100.",
            ("Name the author", "Show publish and updated dates", "Cite sources"), None)


def _semantic_keywords(score: SubScore, m: AIOMetrics) -> Advice:
    return ("Broaden topical vocabulary",
            f"{len(m.related_keywords)} related keywords at {m.semantic_density:.1f}% density.",
            ("Cover related subtopics and synonyms",), None)


def _schema_markup(score: SubScore, m: AIOMetrics) -> Advice:
    return ("Add answer-friendly schema", f"Schema types found: {', '.join(m.schema_types) or 'none'}.",
            ("Add FAQPage or HowTo JSON-LD where it fits",),
            '{"@context": "https://schema.org", "@type": "FAQPage", "mainEntity": []}')


def _local_optimization(score: SubScore, m: AIOMetrics) -> Advice:
    return ("Add local signals", f"Location keywords found: {', '.join(m.location_keywords) or 'none'}.",
            ("Mention the areas served", "Publish address and phone number"), None)


def _ai_readiness(score: SubScore, m: AIOMetrics) -> Advice:
    return ("Make content easier to quote", f"AI readiness scores {score.value}/100.",
            ("Keep the opening paragraph under 160 characters", "Reference data or research"), None)


AIO_ADVICE: Dict[str, Callable[[SubScore, AIOMetrics], Advice]] = {
    "question_answer": _question_answer,
    "content_structure": _content_structure,
    "source_credibility": _source_credibility,
    "semantic_keywords": _semantic_keywords,
    "schema_markup": _schema_markup,
    "local_optimization": _local_optimization,
    "ai_readiness": _ai_readiness,
}


def _lookup(findings, check: str) -> SubScore:
    value = findings
    for part in check.split("."):
        value = getattr(value, part)
    return value


def _category_recommendations(category: Category, findings, advice_table) -> List[Recommendation]:
    if findings.failed:
        label = CATEGORY_LABELS[category]
        return [Recommendation(
            category=category,
            severity=Severity.INFORMATIONAL,
            check="analysis",
            title=f"{label} analysis unavailable",
            reason=f"{label} analysis failed, so its checks were scored as zero.",
            steps=("Re-run the analysis once the site and data sources are reachable",),
        )]

    threshold = THRESHOLDS[category]
    entries = []
    for check, builder in advice_table.items():
        score = _lookup(findings, check)
        if score.value >= threshold:
            continue
        title, reason, steps, example = builder(score, findings.metrics)
        entries.append(Recommendation(
            category=category,
            severity=severity_for(score),
            check=check,
            title=title,
            reason=reason,
            steps=steps,
            example=example,
        ))
    return entries


def generate(on_page: OnPageFindings, off_page: OffPageFindings,
             technical: TechnicalFindings, aio: AIOFindings) -> Tuple[Recommendation, ...]:
    """Recommendations ordered on-page, off-page, technical, AIO, then a summary"""
    entries: List[Recommendation] = []
    entries += _category_recommendations(Category.ON_PAGE, on_page, ON_PAGE_ADVICE)
    entries += _category_recommendations(Category.OFF_PAGE, off_page, OFF_PAGE_ADVICE)
    entries += _category_recommendations(Category.TECHNICAL, technical, TECHNICAL_ADVICE)
    entries += _category_recommendations(Category.AIO, aio, AIO_ADVICE)

    score = aggregate(on_page, off_page, technical, aio)
    critical = [e for e in entries if e.severity == Severity.CRITICAL]
    important = [e for e in entries if e.severity == Severity.IMPORTANT]

    if critical:
        priority = "Fix the critical issues first; they multiply down the whole score."
    elif important:
        priority = "No critical issues; work through the important items next."
    else:
        priority = "No urgent issues; focus on incremental improvements."

    steps = tuple(e.title for e in (critical + important)[:5])
    entries.append(Recommendation(
        category=Category.SUMMARY,
        severity=Severity.INFORMATIONAL,
        check="summary",
        title=f"{len(critical)} critical issue{'' if len(critical) == 1 else 's'} found",
        reason=(f"Overall score is {score.total}/100 ({score_band(score.total)}) with "
                f"{len(critical)} critical and {len(important)} important issues. {priority}"),
        steps=steps,
    ))
    return tuple(entries)
