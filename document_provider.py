import asyncio
import aiohttp
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import urljoin

from config import Settings, load_settings
from seo_types import FetchedDocument

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKUP = (
    "<!DOCTYPE html><html><head><title></title></head>"
    "<body><p>Content unavailable.</p></body></html>"
)

SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")


def placeholder_document(url: str) -> FetchedDocument:
    """Stand-in used when every fetch tier failed; identical for identical URLs"""
    return FetchedDocument(url=url, markup=PLACEHOLDER_MARKUP, headers={}, status=0, fallback=True)


class HttpDocumentProvider:
    """Fetches pages, robots.txt and sitemaps over HTTP.

    Network failures never escape: a direct request is tried first, then the
    configured proxy, and finally a fixed placeholder document is returned.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or load_settings()
        self.timeout = self.settings.request_timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.settings.user_agent},
            )
        return self.session

    async def _get(self, url: str, proxy: Optional[str] = None) -> Tuple[int, Dict[str, str], str]:
        session = await self._ensure_session()
        async with session.get(url, proxy=proxy, max_redirects=self.settings.max_redirects) as response:
            text = await response.text(errors="replace")
            headers = {name.lower(): value for name, value in response.headers.items()}
            return response.status, headers, text

    async def _get_with_fallback(self, url: str) -> Optional[Tuple[int, Dict[str, str], str]]:
        tiers = [("direct", None)]
        if self.settings.proxy_url:
            tiers.append(("proxy", self.settings.proxy_url))

        for tier, proxy in tiers:
            try:
                return await self._get(url, proxy)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error(f"Error fetching {url} via {tier} request: {e!r}")
        return None

    async def fetch(self, url: str) -> FetchedDocument:
        result = await self._get_with_fallback(url)
        if result is None:
            logger.warning(f"All fetch attempts failed for {url}, using placeholder document")
            return placeholder_document(url)

        status, headers, markup = result
        if status >= 400:
            logger.warning(f"{url} returned HTTP status {status}")
        return FetchedDocument(url=url, markup=markup, headers=headers, status=status)

    async def _fetch_text(self, url: str) -> str:
        result = await self._get_with_fallback(url)
        if result is None:
            return ""
        status, _, text = result
        if status != 200:
            logger.debug(f"{url} returned HTTP status {status}")
            return ""
        return text

    async def fetch_robots(self, url: str) -> str:
        """Body of the site's robots.txt, or an empty string when unavailable"""
        return await self._fetch_text(urljoin(url, "/robots.txt"))

    async def fetch_sitemap(self, url: str) -> str:
        """Body of the first sitemap found at a conventional location, or an empty string"""
        for path in SITEMAP_PATHS:
            text = await self._fetch_text(urljoin(url, path))
            if text.strip():
                return text
        return ""


class MemoizedDocumentProvider:
    """Per-analysis wrapper that shares one in-flight fetch per (kind, url)"""

    def __init__(self, inner):
        self._inner = inner
        self._tasks: Dict[Tuple[str, str], asyncio.Future] = {}

    def _memo(self, kind: str, url: str, factory: Callable[[str], Awaitable]) -> asyncio.Future:
        key = (kind, url)
        if key not in self._tasks:
            self._tasks[key] = asyncio.ensure_future(factory(url))
        return self._tasks[key]

    async def fetch(self, url: str) -> FetchedDocument:
        return await self._memo("page", url, self._inner.fetch)

    async def fetch_robots(self, url: str) -> str:
        return await self._memo("robots", url, self._inner.fetch_robots)

    async def fetch_sitemap(self, url: str) -> str:
        return await self._memo("sitemap", url, self._inner.fetch_sitemap)

    async def drain(self) -> None:
        """Wait for fetches still in flight, e.g. ones orphaned by a failed branch"""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
