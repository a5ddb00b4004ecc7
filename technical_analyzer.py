import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urldefrag, urljoin, urlparse
from urllib.robotparser import RobotFileParser

from bs4 import BeautifulSoup

from page_utils import (
    is_absolute_url, json_ld_entities, meta_content, parse_json_ld, parse_markup, schema_types, type_names,
)
from providers import DocumentProvider, PerformanceEstimateProvider, page_weight
from seo_types import FetchedDocument, PerformanceMetrics, SubScore, TechnicalFindings, TechnicalMetrics

logger = logging.getLogger(__name__)

MAX_SITEMAP_URLS = 50_000
MAX_DISALLOW_RULES = 20
SITEMAP_INDEX_THRESHOLD = 1000
# (largest URL count in the band, deduction)
SITEMAP_COUNT_BANDS = ((10, 10), (100, 5))

WEBSITE_TYPES = {"WebSite"}
ORGANIZATION_TYPES = {"Organization", "Corporation", "LocalBusiness", "NGO", "EducationalOrganization"}
ARTICLE_TYPES = {"Article", "NewsArticle", "BlogPosting", "TechArticle", "ScholarlyArticle", "Report"}

SCHEMA_REQUIRED_FIELDS = {
    "Article": ("headline", "author"),
    "BlogPosting": ("headline", "author"),
    "NewsArticle": ("headline", "author"),
    "WebPage": ("name",),
    "WebSite": ("name", "url"),
    "Organization": ("name",),
    "Person": ("name",),
    "Product": ("name",),
    "Review": ("reviewBody", "author"),
    "Event": ("name", "startDate"),
    "Place": ("name",),
    "LocalBusiness": ("name", "address"),
    "BreadcrumbList": ("itemListElement",),
    "FAQPage": ("mainEntity",),
    "HowTo": ("name", "step"),
    "Recipe": ("name", "recipeIngredient"),
    "VideoObject": ("name", "description"),
    "ImageObject": ("url",),
    "SoftwareApplication": ("name", "applicationCategory"),
    "Course": ("name", "provider"),
    "JobPosting": ("title", "description", "hiringOrganization"),
}
KNOWN_SCHEMA_TYPES = set(SCHEMA_REQUIRED_FIELDS) | ARTICLE_TYPES | ORGANIZATION_TYPES | {
    "Thing", "CreativeWork", "CollectionPage", "AboutPage", "ContactPage", "ProfilePage", "QAPage",
    "ItemPage", "SearchResultsPage", "ItemList", "ListItem", "Question", "Answer", "Offer",
    "AggregateRating", "Rating", "Brand", "Service", "Store", "Restaurant", "ProfessionalService",
    "MedicalBusiness", "Hotel", "Book", "Movie", "MusicRecording", "Dataset", "Game", "ClaimReview",
    "SpecialAnnouncement", "SiteNavigationElement", "WPHeader", "WPFooter", "PostalAddress",
    "ContactPoint", "SearchAction", "VideoGame", "Painting", "Photograph", "PodcastEpisode",
}
SCHEMA_URL_FIELDS = ("url", "image", "logo", "sameAs")

TWITTER_CARD_TYPES = {"summary", "summary_large_image", "app", "player"}
COMPRESSION_ENCODINGS = ("gzip", "br", "deflate", "zstd")

ROBOTS_META_NAMES = ("robots", "googlebot")
ROBOTS_VALUE_DIRECTIVES = ("max-snippet", "max-image-preview", "max-video-preview", "unavailable_after")
HREFLANG_RE = re.compile(r"^(?:x-default|[a-z]{2,3}(?:-[a-z]{4})?(?:-(?:[a-z]{2}|\d{3}))?)$", re.I)

ZOOM_DISABLED_RE = re.compile(r"user-scalable\s*=\s*(no|0)|maximum-scale\s*=\s*1(?:\.0+)?(?![\d.])", re.I)


def _is_blank(value: Any) -> bool:
    return value is None or value in ("", [], {})


def _url_values(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return _url_values(value.get("url") or value.get("@id"))
    if isinstance(value, list):
        return [url for entry in value for url in _url_values(entry)]
    return []


def validate_json_ld(documents: List[Any]) -> Tuple[List[str], List[str]]:
    """Check each top-level JSON-LD entity.

    Errors: non-object items, missing @context or @type, unrecognized types and
    missing required properties. Warnings: relative or malformed URL properties.
    """
    errors: List[str] = []
    warnings: List[str] = []
    for entity, has_context in json_ld_entities(documents):
        if not isinstance(entity, dict):
            errors.append("JSON-LD item is not an object")
            continue
        types = type_names(entity.get("@type"))
        label = "/".join(types) or "JSON-LD item"
        if not has_context:
            errors.append(f"{label} has no @context")
        if not types:
            errors.append("JSON-LD item has no @type")
            continue
        for name in types:
            if name not in KNOWN_SCHEMA_TYPES:
                errors.append(f"Unrecognized schema type '{name}'")
            for prop in SCHEMA_REQUIRED_FIELDS.get(name, ()):
                if _is_blank(entity.get(prop)):
                    errors.append(f"{name} is missing required property '{prop}'")
        for prop in SCHEMA_URL_FIELDS:
            bad = [url for url in _url_values(entity.get(prop)) if not is_absolute_url(url)]
            if bad:
                warnings.append(f"{label} has a malformed {prop} URL: {bad[0]}")
    return errors, warnings


def _robots_directives(value: str) -> List[str]:
    """Lower-case directive names from a robots meta or X-Robots-Tag value"""
    directives = []
    for token in value.split(","):
        token = token.strip().lower()
        if ":" in token:
            name, rest = token.split(":", 1)
            # "googlebot: noindex" targets one crawler; "max-snippet: 50" is a directive itself
            token = name.strip() if name.strip() in ROBOTS_VALUE_DIRECTIVES else rest.strip()
        if token:
            directives.append(token)
    return directives


def _same_page(a: str, b: str) -> bool:
    def normalize(url):
        url = urldefrag(url)[0]
        parsed = urlparse(url)
        return parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower(),
                               path=parsed.path.rstrip("/") or "/").geturl()
    return normalize(a) == normalize(b)


class TechnicalAnalyzer:
    """Crawlability, transport, markup and speed checks for one URL"""

    def __init__(self, documents: DocumentProvider, performance: PerformanceEstimateProvider):
        self.documents = documents
        self.performance = performance

    async def analyze(self, url: str, document: FetchedDocument,
                      headers: Optional[Dict[str, str]] = None) -> TechnicalFindings:
        headers = {k.lower(): v for k, v in (headers if headers is not None else document.headers).items()}

        robots_text, sitemap_text, estimate = await asyncio.gather(
            self.documents.fetch_robots(url),
            self.documents.fetch_sitemap(url),
            self.performance.estimate(url),
        )

        soup = parse_markup(document.markup)

        robots, robots_info = self._check_robots_txt(robots_text, url)
        sitemap, sitemap_info = self._check_sitemap(sitemap_text)
        ssl, ssl_info = self._check_ssl(url, headers)
        mobile, mobile_info = self._check_mobile(soup)
        structured, structured_info = self._check_structured_data(soup)
        social, has_og, has_twitter = self._check_social_meta(soup)
        speed, speed_info = self._check_page_speed(soup, document.markup, headers, estimate)
        indexability, indexability_info = self._check_indexability(soup, headers)
        canonical, canonical_info = self._check_canonical(soup, url)

        metrics = TechnicalMetrics(
            has_open_graph=has_og,
            has_twitter_card=has_twitter,
            performance=estimate,
            **robots_info,
            **sitemap_info,
            **ssl_info,
            **mobile_info,
            **structured_info,
            **speed_info,
            **indexability_info,
            **canonical_info,
        )

        return TechnicalFindings(
            robots_txt=robots,
            sitemap=sitemap,
            ssl=ssl,
            mobile=mobile,
            structured_data=structured,
            social_meta=social,
            page_speed=speed,
            indexability=indexability,
            canonical=canonical,
            metrics=metrics,
        )

    def _check_robots_txt(self, text: str, url: str) -> Tuple[SubScore, dict]:
        """Score robots.txt directives"""
        if not text.strip():
            return (SubScore(0, ("robots.txt not found",),
                             ("Publish a robots.txt with a User-agent group and a Sitemap line",)),
                    {"robots_exists": False, "robots_blocks_all": False})

        directives = []
        for line in text.splitlines():
            line = line.split("#", 1)[0].strip()
            if ":" in line:
                key, value = line.split(":", 1)
                directives.append((key.strip().lower(), value.strip()))

        user_agents = [v for k, v in directives if k == "user-agent"]
        sitemaps = [v for k, v in directives if k == "sitemap"]
        disallows = [v for k, v in directives if k == "disallow" and v]

        score = 100
        issues: List[str] = []
        recommendations: List[str] = []

        if not user_agents:
            score -= 20
            issues.append("robots.txt has no User-agent directive")
        if not sitemaps:
            score -= 15
            issues.append("robots.txt does not reference a sitemap")
            recommendations.append("Add a 'Sitemap: https://.../sitemap.xml' line")
        invalid = [s for s in sitemaps if not is_absolute_url(s)]
        if invalid:
            score -= 15 * len(invalid)
            issues.append(f"{len(invalid)} malformed Sitemap URL(s) in robots.txt")
        if len(disallows) > MAX_DISALLOW_RULES:
            score -= 10
            issues.append(f"robots.txt has {len(disallows)} Disallow rules")

        parser = RobotFileParser()
        parser.parse(text.splitlines())
        blocks_all = not parser.can_fetch("*", urljoin(url, "/"))
        if blocks_all:
            score = min(score, 10)
            issues.append("robots.txt blocks the entire site for all crawlers")
            recommendations.append("Remove 'Disallow: /' from the 'User-agent: *' group")

        return (SubScore(score, issues, recommendations),
                {"robots_exists": True, "robots_blocks_all": blocks_all})

    def _check_sitemap(self, text: str) -> Tuple[SubScore, dict]:
        """Score the XML sitemap (urlset or sitemap index)"""
        info = {
            "sitemap_exists": False,
            "sitemap_type": "",
            "sitemap_url_count": 0,
            "sitemap_child_count": 0,
            "sitemap_lastmod_coverage": 0.0,
            "sitemap_has_images": False,
            "sitemap_has_news": False,
            "sitemap_has_priority": False,
        }
        if not text.strip():
            return SubScore(0, ("XML sitemap not found",), ("Generate sitemap.xml and submit it",)), info

        soup = BeautifulSoup(text, "xml")
        urlset = soup.find("urlset")
        index = soup.find("sitemapindex")
        if urlset is None and index is None:
            return SubScore(0, ("Sitemap is not a valid XML sitemap",)), info

        is_index = urlset is None
        entries = index.find_all("sitemap") if is_index else urlset.find_all("url")
        with_lastmod = sum(1 for e in entries if e.find("lastmod", recursive=False) is not None)
        with_priority = sum(1 for e in entries if e.find(["priority", "changefreq"], recursive=False) is not None)
        locs = [e.find("loc", recursive=False) for e in entries]
        invalid = sum(1 for loc in locs if loc is None or not is_absolute_url(loc.get_text(strip=True)))
        coverage = with_lastmod / len(entries) if entries else 0.0
        label = "child sitemaps" if is_index else "URLs"

        info.update({
            "sitemap_exists": True,
            "sitemap_type": "sitemapindex" if is_index else "urlset",
            "sitemap_url_count": 0 if is_index else len(entries),
            "sitemap_child_count": len(entries) if is_index else 0,
            "sitemap_lastmod_coverage": round(coverage, 3),
            "sitemap_has_images": soup.find("image") is not None,
            "sitemap_has_news": soup.find("news") is not None,
            "sitemap_has_priority": with_priority > 0,
        })

        score = 100
        issues: List[str] = []
        recommendations: List[str] = []
        if not entries:
            score -= 30
            issues.append(f"Sitemap contains no {label}")
        elif len(entries) > MAX_SITEMAP_URLS:
            score -= 20
            issues.append(f"Sitemap has {len(entries)} {label}, above the 50,000 limit")
        elif not is_index:
            for ceiling, deduction in SITEMAP_COUNT_BANDS:
                if len(entries) <= ceiling:
                    score -= deduction
                    issues.append(f"Sitemap lists only {len(entries)} URLs")
                    break
        if entries and with_lastmod == 0:
            score -= 10
            issues.append("No sitemap entries carry <lastmod>")
        elif entries and coverage < 0.5:
            score -= 5
            issues.append(f"Only {coverage:.0%} of sitemap entries carry <lastmod>")
        if invalid:
            score -= min(2 * invalid, 20)
            issues.append(f"{invalid} malformed URL(s) in sitemap")

        if not is_index and len(entries) > 10 and not with_priority:
            recommendations.append("Add <priority> and <changefreq> to sitemap entries")
        if not is_index and len(entries) > SITEMAP_INDEX_THRESHOLD:
            recommendations.append("Split the sitemap into smaller files behind a sitemap index")

        return SubScore(score, issues, recommendations), info

    def _check_ssl(self, url: str, headers: Dict[str, str]) -> Tuple[SubScore, dict]:
        is_https = url.lower().startswith("https://")
        has_hsts = "strict-transport-security" in headers
        info = {"is_https": is_https, "has_hsts": has_hsts}
        if not is_https:
            return SubScore(30, ("Site does not use HTTPS",), ("Serve every page over HTTPS",)), info
        if not has_hsts:
            return SubScore(85, ("Strict-Transport-Security header missing",),
                            ("Send a Strict-Transport-Security header",)), info
        return SubScore(100), info

    def _check_mobile(self, soup: BeautifulSoup) -> Tuple[SubScore, dict]:
        viewport = meta_content(soup, name="viewport")
        has_device_width = bool(viewport) and "width=device-width" in viewport.replace(" ", "").lower()
        styles = " ".join(s.get_text() for s in soup.find_all("style"))
        has_media_queries = "@media" in styles or bool(soup.find("link", media=True))
        zoom_disabled = bool(viewport and ZOOM_DISABLED_RE.search(viewport))

        score = 100
        issues: List[str] = []
        if not has_device_width:
            score -= 40
            issues.append("No viewport meta tag with width=device-width")
        if not viewport and not has_media_queries:
            score -= 30
            issues.append("Page shows no responsive design signals")
        if zoom_disabled:
            score -= 15
            issues.append("Viewport disables user zoom")
        if soup.find(["embed", "object"]) is not None:
            score -= 25
            issues.append("Page uses plugin content (embed/object)")

        recommendations = ('Add <meta name="viewport" content="width=device-width, initial-scale=1">',) \
            if not has_device_width else ()
        info = {"has_viewport": bool(viewport), "has_device_width": has_device_width,
                "zoom_disabled": zoom_disabled}
        return SubScore(score, issues, recommendations), info

    def _check_structured_data(self, soup: BeautifulSoup) -> Tuple[SubScore, dict]:
        documents, invalid = parse_json_ld(soup)
        types = schema_types(soup, documents)
        errors, warnings = validate_json_ld(documents)
        info = {"schema_types": types, "invalid_json_ld": invalid, "schema_errors": tuple(errors)}
        if not types:
            issues = ["No structured data found"]
            if invalid:
                issues.append(f"{invalid} JSON-LD block(s) could not be parsed")
            issues.extend(errors)
            return SubScore(0, issues, ("Add JSON-LD for WebSite and Organization",)), info

        found = set(types)
        score = 40 + min(10 * len(types), 30)
        issues: List[str] = []
        for family, label in ((WEBSITE_TYPES, "WebSite"), (ORGANIZATION_TYPES, "Organization"),
                              (ARTICLE_TYPES, "Article")):
            if found & family:
                score += 10
            else:
                issues.append(f"No {label} schema")
        if invalid:
            score -= 10 * invalid
            issues.append(f"{invalid} JSON-LD block(s) could not be parsed")
        score -= 15 * len(errors) + 5 * len(warnings)
        issues.extend(errors)
        issues.extend(warnings)
        recommendations = ("Fill in the required properties of each JSON-LD item",) if errors else ()
        return SubScore(score, issues, recommendations), info

    def _check_social_meta(self, soup: BeautifulSoup) -> Tuple[SubScore, bool, bool]:
        def tag(key: str) -> Optional[str]:
            return meta_content(soup, name=key, prop=key) or None

        issues: List[str] = []
        og_score = 0
        og_title = tag("og:title")
        if og_title:
            og_score += 10 + (5 if 30 <= len(og_title) <= 60 else 0)
        og_description = tag("og:description")
        if og_description:
            og_score += 10 + (5 if 120 <= len(og_description) <= 160 else 0)
        og_image = tag("og:image")
        if og_image:
            og_score += 10 if is_absolute_url(og_image) else 8
        og_url = tag("og:url")
        if og_url:
            og_score += 10 if is_absolute_url(og_url) else 8
        missing_og = [name for name, value in (("og:title", og_title), ("og:description", og_description),
                                               ("og:image", og_image), ("og:url", og_url)) if not value]
        if missing_og:
            issues.append(f"Missing Open Graph tags: {', '.join(missing_og)}")

        twitter_score = 0
        card = tag("twitter:card")
        if card:
            twitter_score += 5 + (5 if card.lower() in TWITTER_CARD_TYPES else 0)
        twitter_title = tag("twitter:title")
        if twitter_title:
            twitter_score += 10 + (5 if 30 <= len(twitter_title) <= 60 else 0)
        twitter_description = tag("twitter:description")
        if twitter_description:
            twitter_score += 10 + (5 if 120 <= len(twitter_description) <= 160 else 0)
        twitter_image = tag("twitter:image")
        if twitter_image:
            twitter_score += 10 if is_absolute_url(twitter_image) else 8
        if not card:
            issues.append("Missing twitter:card tag")

        recommendations = ("Add og:title, og:description, og:image and twitter:card tags",) if issues else ()
        return (SubScore(og_score + twitter_score, issues, recommendations),
                not missing_og, bool(card))

    def _check_page_speed(self, soup: BeautifulSoup, markup: str, headers: Dict[str, str],
                          estimate: PerformanceMetrics) -> Tuple[SubScore, dict]:
        resources, payload = page_weight(soup, markup)
        encoding = headers.get("content-encoding", "").lower()
        compressed = any(e in encoding for e in COMPRESSION_ENCODINGS)
        cache_control = headers.get("cache-control", "").lower()
        cached = "expires" in headers or (bool(cache_control) and "no-store" not in cache_control)

        bucket = 100
        issues: List[str] = []
        if resources > 100:
            bucket -= 25
            issues.append(f"Page loads {resources} resources")
        elif resources > 50:
            bucket -= 15
            issues.append(f"Page loads {resources} resources")
        megabytes = payload / (1024 * 1024)
        if megabytes > 5:
            bucket -= 30
            issues.append(f"Estimated page weight is {megabytes:.1f} MB")
        elif megabytes > 3:
            bucket -= 20
            issues.append(f"Estimated page weight is {megabytes:.1f} MB")
        if not compressed:
            bucket -= 20
            issues.append("Response is not compressed")
        if not cached:
            bucket -= 15
            issues.append("No caching headers")
        if estimate.largest_contentful_paint > 2500:
            issues.append(f"Largest contentful paint is {estimate.largest_contentful_paint / 1000:.1f}s")

        score = 0.5 * estimate.performance + 0.5 * bucket
        recommendations = ("Enable gzip or brotli compression",) if not compressed else ()
        if not cached:
            recommendations += ("Send Cache-Control headers for static assets",)
        info = {"resource_count": resources, "payload_bytes": payload,
                "compressed": compressed, "cached": cached}
        return SubScore(score, issues, recommendations), info

    def _check_indexability(self, soup: BeautifulSoup, headers: Dict[str, str]) -> Tuple[SubScore, dict]:
        """Score robots meta tags and the X-Robots-Tag header"""
        robots_tags = [tag for tag in soup.find_all("meta")
                       if (tag.get("name") or "").strip().lower() in ROBOTS_META_NAMES]
        meta_directives = [d for tag in robots_tags for d in _robots_directives(tag.get("content") or "")]
        header_directives = _robots_directives(headers.get("x-robots-tag", ""))
        directives = list(dict.fromkeys(meta_directives + header_directives))
        found = set(directives)
        noindex = bool(found & {"noindex", "none"})
        nofollow = bool(found & {"nofollow", "none"})
        info = {"robots_directives": tuple(directives), "noindex": noindex, "nofollow": nofollow}

        score = 100
        issues: List[str] = []
        recommendations: List[str] = []
        if nofollow and not noindex:
            score -= 40
            issues.append("Robots directives stop crawlers following links on this page")
            recommendations.append("Drop nofollow unless none of the page's links should be crawled")
        if {"index", "noindex"} <= found or {"follow", "nofollow"} <= found:
            score -= 30
            issues.append(f"Conflicting robots directives: {', '.join(directives)}")
        named_robots = [t for t in robots_tags if (t.get("name") or "").strip().lower() == "robots"]
        if len(named_robots) > 1:
            score -= 20
            issues.append(f"Page has {len(named_robots)} robots meta tags")
            recommendations.append("Merge the robots meta tags into one")
        if "all" in found and len(found) > 1:
            score -= 5
            issues.append("Redundant 'all' robots directive")

        if noindex:
            sources = [name for name, values in (("robots meta tag", meta_directives),
                                                 ("X-Robots-Tag header", header_directives))
                       if {"noindex", "none"} & set(values)]
            score = 0
            issues.insert(0, f"Page is excluded from search results by noindex in the {' and '.join(sources)}")
            recommendations.insert(0, "Remove noindex if this page should appear in search results")
            logger.info(f"Page carries a noindex directive ({', '.join(directives)})")

        return SubScore(score, issues, recommendations), info

    def _check_canonical(self, soup: BeautifulSoup, url: str) -> Tuple[SubScore, dict]:
        """Score the canonical link and any hreflang alternates"""
        def rel_values(tag):
            rel = tag.get("rel") or []
            return [r.lower() for r in (rel.split() if isinstance(rel, str) else rel)]

        links = soup.find_all("link", href=True)
        canonicals = [link for link in links if "canonical" in rel_values(link)]
        alternates = [link for link in links if link.get("hreflang") and "alternate" in rel_values(link)]
        codes = [link["hreflang"].strip().lower() for link in alternates]
        info = {"canonical_url": "", "canonical_count": len(canonicals),
                "hreflang_count": len(alternates), "has_x_default": "x-default" in codes}

        score = 100
        issues: List[str] = []
        recommendations: List[str] = []
        if not canonicals:
            score -= 40
            issues.append("No canonical link")
            recommendations.append(f'Add <link rel="canonical" href="{url}">')
        else:
            if len(canonicals) > 1:
                score -= 30
                issues.append(f"Page declares {len(canonicals)} canonical links")
                recommendations.append("Keep a single canonical link")
            href = canonicals[0]["href"].strip()
            resolved = urljoin(url, href) if href else ""
            info["canonical_url"] = resolved
            if not is_absolute_url(resolved):
                score -= 40
                issues.append(f"Canonical URL is invalid: '{href}'")
            else:
                if not is_absolute_url(href):
                    score -= 10
                    issues.append("Canonical URL is relative")
                if urlparse(resolved).scheme != "https":
                    score -= 20
                    issues.append("Canonical URL does not use HTTPS")
                if not _same_page(resolved, url):
                    score -= 10
                    issues.append(f"Canonical points to another URL: {resolved}")

        if alternates:
            invalid = [code for code in codes if not HREFLANG_RE.match(code)]
            if invalid:
                score -= 10 * len(invalid)
                issues.append(f"Invalid hreflang codes: {', '.join(invalid)}")
            if len(set(codes)) < len(codes):
                score -= 25
                issues.append("Duplicate hreflang codes")
            if len(alternates) > 1 and "x-default" not in codes:
                score -= 15
                issues.append("hreflang set has no x-default")
                recommendations.append('Add <link rel="alternate" hreflang="x-default" href="...">')
            if len(alternates) > 1 and not any(_same_page(urljoin(url, link["href"]), url) for link in alternates):
                score -= 20
                issues.append("hreflang set does not reference this page")

        return SubScore(score, issues, recommendations), info
