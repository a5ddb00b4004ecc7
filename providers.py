"""Contracts for the data sources the analyzers consume, plus default implementations."""
import logging
from typing import Dict, Optional, Protocol, Tuple

from bs4 import BeautifulSoup

from page_utils import parse_markup
from seo_types import AuthorityData, FetchedDocument, PerformanceMetrics

logger = logging.getLogger(__name__)


class DocumentProvider(Protocol):
    async def fetch(self, url: str) -> FetchedDocument: ...

    async def fetch_robots(self, url: str) -> str: ...

    async def fetch_sitemap(self, url: str) -> str: ...


class AuthorityDataProvider(Protocol):
    async def lookup(self, domain: str) -> AuthorityData: ...


class PerformanceEstimateProvider(Protocol):
    async def estimate(self, url: str) -> PerformanceMetrics: ...


class StaticAuthorityProvider:
    """Serves fixed authority numbers, optionally per domain.

    Used when no backlink/authority service is wired in; unknown domains get
    the default record (all zeros unless one is supplied).
    """

    def __init__(self, default: Optional[AuthorityData] = None,
                 per_domain: Optional[Dict[str, AuthorityData]] = None):
        self.default = default or AuthorityData()
        self.per_domain = {k.lower(): v for k, v in (per_domain or {}).items()}

    async def lookup(self, domain: str) -> AuthorityData:
        return self.per_domain.get(domain.lower(), self.default)


# Byte weights used to approximate the page weight from its markup
SCRIPT_BYTES = 25_000
STYLESHEET_BYTES = 15_000
IMAGE_BYTES = 50_000


class MarkupPerformanceEstimator:
    """Deterministic performance estimate derived from the page's own markup.

    The page weight is approximated from the markup size plus a fixed cost per
    script, stylesheet and image; timings are then derived from that weight.
    """

    def __init__(self, documents: DocumentProvider):
        self.documents = documents

    async def estimate(self, url: str) -> PerformanceMetrics:
        document = await self.documents.fetch(url)
        return estimate_from_document(document)


def page_weight(soup: BeautifulSoup, markup: str) -> Tuple[int, int]:
    """Approximate (resource count, payload bytes) of a page from its markup"""
    scripts = len(soup.find_all("script", src=True))
    stylesheets = len([
        link for link in soup.find_all("link", href=True)
        if "stylesheet" in [r.lower() for r in (link.get("rel") or [])]
    ])
    images = len(soup.find_all("img"))
    frames = len(soup.find_all("iframe", src=True))
    payload = (len(markup.encode("utf-8")) + SCRIPT_BYTES * scripts
               + STYLESHEET_BYTES * stylesheets + IMAGE_BYTES * (images + frames))
    return scripts + stylesheets + images + frames, payload


def estimate_from_document(document: FetchedDocument) -> PerformanceMetrics:
    soup = parse_markup(document.markup)

    images = soup.find_all("img")
    unsized_images = sum(1 for img in images if not (img.get("width") and img.get("height")))
    images_without_alt = sum(1 for img in images if not (img.get("alt") or "").strip())
    _, payload = page_weight(soup, document.markup)

    # 2 ms per KB on top of a fixed connection cost
    load_ms = 500 + payload / 1024 * 2
    fcp = load_ms * 0.6
    lcp = load_ms * 1.2
    tbt = load_ms * 0.1
    speed_index = load_ms * 0.9
    cls = min(1.0, 0.05 * unsized_images)

    performance = 100 - max(0.0, lcp - 1000) / 60 - tbt / 20 - cls * 50

    html_tag = soup.find("html")
    accessibility = 100 - min(50, 10 * images_without_alt)
    if html_tag is None or not html_tag.get("lang"):
        accessibility -= 10

    best_practices = 100
    if not document.url.startswith("https://"):
        best_practices -= 20
    if not document.markup.lstrip()[:15].lower().startswith("<!doctype"):
        best_practices -= 10

    seo = 100
    if soup.find("title") is None or not soup.find("title").get_text(strip=True):
        seo -= 25
    if soup.find("meta", attrs={"name": "description"}) is None:
        seo -= 25
    if soup.find("meta", attrs={"name": "viewport"}) is None:
        seo -= 20
    if document.status >= 400 or document.fallback:
        seo -= 30

    metrics = PerformanceMetrics(
        performance=round(max(0.0, min(100.0, performance)), 1),
        accessibility=float(max(0, accessibility)),
        best_practices=float(best_practices),
        seo=float(max(0, seo)),
        first_contentful_paint=round(fcp, 1),
        largest_contentful_paint=round(lcp, 1),
        cumulative_layout_shift=round(cls, 3),
        total_blocking_time=round(tbt, 1),
        speed_index=round(speed_index, 1),
    )
    logger.debug(f"Estimated performance for {document.url}: {metrics}")
    return metrics
