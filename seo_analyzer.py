import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

from aio_analyzer import AIOAnalyzer
from config import Settings, load_settings
from document_provider import HttpDocumentProvider, MemoizedDocumentProvider
from offpage_analyzer import OffPageAnalyzer
from onpage_analyzer import OnPageAnalyzer
from providers import (
    AuthorityDataProvider, DocumentProvider, MarkupPerformanceEstimator,
    PerformanceEstimateProvider, StaticAuthorityProvider,
)
from recommendations import generate
from scoring import aggregate
from seo_types import (
    AIOFindings, AnalysisResult, OffPageFindings, OnPageFindings, TechnicalFindings,
)
from technical_analyzer import TechnicalAnalyzer

logger = logging.getLogger("seo_analyzer")


class InvalidURLError(ValueError):
    """Raised for URLs that are not absolute http(s) URLs with a host"""


def normalize_url(url: str) -> str:
    """Validate an analysis URL and return it with a lower-case scheme"""
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("URL must be a non-empty string")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https"):
        raise InvalidURLError(f"URL must use http or https: {url!r}")
    if not parsed.hostname:
        raise InvalidURLError(f"URL has no host: {url!r}")
    try:
        parsed.port
    except ValueError as e:
        raise InvalidURLError(f"URL has an invalid port: {url!r}") from e
    return parsed._replace(scheme=parsed.scheme.lower()).geturl()


def new_session_id() -> str:
    return str(uuid.uuid4())


class SEOAnalyzer:
    """Runs the four analyzers concurrently and combines their findings.

    Providers are injectable; by default pages are fetched over HTTP, authority
    data comes from a static provider and performance is estimated from markup.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 documents: Optional[DocumentProvider] = None,
                 authority_provider: Optional[AuthorityDataProvider] = None,
                 performance_provider: Optional[PerformanceEstimateProvider] = None):
        self.settings = settings or load_settings()
        self.documents = documents
        self._owns_documents = documents is None
        self.performance_provider = performance_provider
        self.on_page = OnPageAnalyzer()
        self.off_page = OffPageAnalyzer(authority_provider or StaticAuthorityProvider())
        self.aio = AIOAnalyzer(self.settings.location_keywords)

    async def __aenter__(self):
        self._ensure_documents()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_documents and self.documents is not None:
            await self.documents.close()
            self.documents = None

    def _ensure_documents(self) -> DocumentProvider:
        if self.documents is None:
            self.documents = HttpDocumentProvider(self.settings)
            self._owns_documents = True
        return self.documents

    async def analyze(self, url: str, session_id: Optional[str] = None) -> AnalysisResult:
        """Analyze one URL; branch failures degrade the score instead of raising"""
        normalized_url = normalize_url(url)
        session_id = session_id or new_session_id()
        start_time = time.time()
        logger.info(f"Starting SEO analysis for {normalized_url} (session {session_id})")

        # Shared by all branches of this call only
        documents = MemoizedDocumentProvider(self._ensure_documents())
        performance = self.performance_provider or MarkupPerformanceEstimator(documents)

        outcomes = await asyncio.gather(
            self._on_page_branch(documents, normalized_url),
            self._off_page_branch(normalized_url),
            self._technical_branch(documents, performance, normalized_url),
            self._aio_branch(documents, normalized_url),
            return_exceptions=True,
        )
        await documents.drain()
        on_page = self._settle("On-page", outcomes[0], OnPageFindings)
        off_page = self._settle("Off-page", outcomes[1], OffPageFindings)
        technical = self._settle("Technical", outcomes[2], TechnicalFindings)
        aio = self._settle("AIO", outcomes[3], AIOFindings)

        score = aggregate(on_page, off_page, technical, aio)
        result = AnalysisResult(
            url=normalized_url,
            timestamp=datetime.now(timezone.utc).isoformat(),
            score=score,
            on_page=on_page,
            off_page=off_page,
            technical=technical,
            aio=aio,
            recommendations=generate(on_page, off_page, technical, aio),
            session_id=session_id,
        )

        logger.info(f"Completed SEO analysis for {normalized_url} in {time.time() - start_time:.2f} seconds "
                    f"(score {score.total}/100)")
        return result

    def _settle(self, name: str, outcome, findings_cls):
        if isinstance(outcome, Exception):
            logger.error(f"{name} analysis failed, using default findings: {outcome!r}")
            return findings_cls.default()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def _on_page_branch(self, documents: DocumentProvider, url: str) -> OnPageFindings:
        document = await documents.fetch(url)
        return self.on_page.analyze(document)

    async def _off_page_branch(self, url: str) -> OffPageFindings:
        return await self.off_page.analyze(url)

    async def _technical_branch(self, documents: DocumentProvider, performance: PerformanceEstimateProvider,
                                url: str) -> TechnicalFindings:
        document = await documents.fetch(url)
        return await TechnicalAnalyzer(documents, performance).analyze(url, document, document.headers)

    async def _aio_branch(self, documents: DocumentProvider, url: str) -> AIOFindings:
        document = await documents.fetch(url)
        return self.aio.analyze(url, document)


async def analyze(url: str, session_id: Optional[str] = None, *,
                  settings: Optional[Settings] = None,
                  documents: Optional[DocumentProvider] = None,
                  authority_provider: Optional[AuthorityDataProvider] = None,
                  performance_provider: Optional[PerformanceEstimateProvider] = None) -> AnalysisResult:
    """Analyze a URL and return its score, findings and recommendations.

    Raises InvalidURLError for malformed URLs before any request is made.
    """
    normalize_url(url)
    async with SEOAnalyzer(settings=settings, documents=documents,
                           authority_provider=authority_provider,
                           performance_provider=performance_provider) as analyzer:
        return await analyzer.analyze(url, session_id)
