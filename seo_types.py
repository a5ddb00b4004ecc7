import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple

ANALYSIS_FAILED = "Analysis failed"


def clamp_score(value: Any) -> int:
    """Round a raw score and clamp it to 0-100; non-finite values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, min(100, int(round(number))))


@dataclass(frozen=True)
class SubScore:
    """Graded result of a single check"""
    value: int = 0
    issues: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "value", clamp_score(self.value))
        object.__setattr__(self, "issues", tuple(self.issues))
        object.__setattr__(self, "recommendations", tuple(self.recommendations))

    @classmethod
    def failed(cls) -> "SubScore":
        return cls(0, (ANALYSIS_FAILED,))


# --- On-page -----------------------------------------------------------------

@dataclass(frozen=True)
class Headings:
    h1: SubScore = field(default_factory=SubScore)
    h2: SubScore = field(default_factory=SubScore)
    h3: SubScore = field(default_factory=SubScore)


@dataclass(frozen=True)
class OnPageMetrics:
    title: str = ""
    title_length: int = 0
    meta_description: str = ""
    meta_description_length: int = 0
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    image_count: int = 0
    images_with_alt: int = 0
    internal_link_count: int = 0
    external_link_count: int = 0
    external_domains: Tuple[str, ...] = ()
    primary_keyword: str = ""
    keyword_occurrences: int = 0
    keyword_density: float = 0.0
    word_count: int = 0
    sentence_count: int = 0
    average_sentence_length: float = 0.0
    flesch_reading_ease: float = 0.0


@dataclass(frozen=True)
class OnPageFindings:
    title: SubScore
    meta_description: SubScore
    headings: Headings
    images: SubScore
    internal_links: SubScore
    external_links: SubScore
    keyword_density: SubScore
    content_length: SubScore
    readability: SubScore
    metrics: OnPageMetrics = field(default_factory=OnPageMetrics)
    failed: bool = False

    @classmethod
    def default(cls) -> "OnPageFindings":
        failed = SubScore.failed()
        return cls(
            title=failed,
            meta_description=failed,
            headings=Headings(h1=failed, h2=failed, h3=failed),
            images=failed,
            internal_links=failed,
            external_links=failed,
            keyword_density=failed,
            content_length=failed,
            readability=failed,
            failed=True,
        )


# --- Technical ---------------------------------------------------------------

@dataclass(frozen=True)
class PerformanceMetrics:
    """Lab-style performance estimate; scores are 0-100, timings in milliseconds"""
    performance: float = 0.0
    accessibility: float = 0.0
    best_practices: float = 0.0
    seo: float = 0.0
    first_contentful_paint: float = 0.0
    largest_contentful_paint: float = 0.0
    cumulative_layout_shift: float = 0.0
    total_blocking_time: float = 0.0
    speed_index: float = 0.0


@dataclass(frozen=True)
class TechnicalMetrics:
    robots_exists: bool = False
    robots_blocks_all: bool = False
    sitemap_exists: bool = False
    sitemap_type: str = ""
    sitemap_url_count: int = 0
    sitemap_child_count: int = 0
    sitemap_lastmod_coverage: float = 0.0
    sitemap_has_images: bool = False
    sitemap_has_news: bool = False
    sitemap_has_priority: bool = False
    is_https: bool = False
    has_hsts: bool = False
    has_viewport: bool = False
    has_device_width: bool = False
    zoom_disabled: bool = False
    schema_types: Tuple[str, ...] = ()
    invalid_json_ld: int = 0
    schema_errors: Tuple[str, ...] = ()
    has_open_graph: bool = False
    has_twitter_card: bool = False
    resource_count: int = 0
    payload_bytes: int = 0
    compressed: bool = False
    cached: bool = False
    robots_directives: Tuple[str, ...] = ()
    noindex: bool = False
    nofollow: bool = False
    canonical_url: str = ""
    canonical_count: int = 0
    hreflang_count: int = 0
    has_x_default: bool = False
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)


@dataclass(frozen=True)
class TechnicalFindings:
    robots_txt: SubScore
    sitemap: SubScore
    ssl: SubScore
    mobile: SubScore
    structured_data: SubScore
    social_meta: SubScore
    page_speed: SubScore
    indexability: SubScore
    canonical: SubScore
    metrics: TechnicalMetrics = field(default_factory=TechnicalMetrics)
    failed: bool = False

    @classmethod
    def default(cls) -> "TechnicalFindings":
        failed = SubScore.failed()
        return cls(
            robots_txt=failed,
            sitemap=failed,
            ssl=failed,
            mobile=failed,
            structured_data=failed,
            social_meta=failed,
            page_speed=failed,
            indexability=failed,
            canonical=failed,
            failed=True,
        )


# --- Off-page ----------------------------------------------------------------

@dataclass(frozen=True)
class SocialSignals:
    facebook: int = 0
    twitter: int = 0
    linkedin: int = 0

    @property
    def total(self) -> int:
        return self.facebook + self.twitter + self.linkedin


@dataclass(frozen=True)
class AuthorityData:
    """Numbers returned by an authority data provider for one domain"""
    domain_authority: float = 0.0
    page_authority: float = 0.0
    backlink_count: int = 0
    social_signals: SocialSignals = field(default_factory=SocialSignals)
    mention_count: int = 0
    source: str = "static"


@dataclass(frozen=True)
class OffPageMetrics:
    domain: str = ""
    domain_authority: float = 0.0
    page_authority: float = 0.0
    backlink_count: int = 0
    social_signal_total: int = 0
    mention_count: int = 0
    domain_authority_level: str = ""
    page_authority_level: str = ""
    source: str = ""


@dataclass(frozen=True)
class OffPageFindings:
    domain_authority: SubScore
    page_authority: SubScore
    backlinks: SubScore
    social_signals: SubScore
    mentions: SubScore
    metrics: OffPageMetrics = field(default_factory=OffPageMetrics)
    failed: bool = False

    @classmethod
    def default(cls) -> "OffPageFindings":
        failed = SubScore.failed()
        return cls(
            domain_authority=failed,
            page_authority=failed,
            backlinks=failed,
            social_signals=failed,
            mentions=failed,
            failed=True,
        )


# --- AIO ---------------------------------------------------------------------

@dataclass(frozen=True)
class AIOMetrics:
    question_types: Tuple[str, ...] = ()
    question_marks: int = 0
    has_summary: bool = False
    section_count: int = 0
    has_numbered_list: bool = False
    has_bulleted_list: bool = False
    has_citations: bool = False
    has_author: bool = False
    has_publish_date: bool = False
    has_update_date: bool = False
    primary_keyword: str = ""
    related_keywords: Tuple[str, ...] = ()
    semantic_density: float = 0.0
    schema_types: Tuple[str, ...] = ()
    location_keywords: Tuple[str, ...] = ()
    has_business_info: bool = False
    has_contact_pattern: bool = False
    has_snippet_lead: bool = False
    has_conversational_tone: bool = False
    list_item_count: int = 0
    has_factual_cues: bool = False


@dataclass(frozen=True)
class AIOFindings:
    question_answer: SubScore
    content_structure: SubScore
    source_credibility: SubScore
    semantic_keywords: SubScore
    schema_markup: SubScore
    local_optimization: SubScore
    ai_readiness: SubScore
    metrics: AIOMetrics = field(default_factory=AIOMetrics)
    failed: bool = False

    @classmethod
    def default(cls) -> "AIOFindings":
        failed = SubScore.failed()
        return cls(
            question_answer=failed,
            content_structure=failed,
            source_credibility=failed,
            semantic_keywords=failed,
            schema_markup=failed,
            local_optimization=failed,
            ai_readiness=failed,
            failed=True,
        )


# --- Results -----------------------------------------------------------------

@dataclass(frozen=True)
class OverallScore:
    total: int
    on_page: int
    off_page: int
    technical: int
    aio: int
    performance: int
    content: int

    def __post_init__(self):
        for name in ("total", "on_page", "off_page", "technical", "aio", "performance", "content"):
            object.__setattr__(self, name, clamp_score(getattr(self, name)))


class Category(str, Enum):
    ON_PAGE = "on_page"
    OFF_PAGE = "off_page"
    TECHNICAL = "technical"
    AIO = "aio"
    SUMMARY = "summary"


class Severity(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    INFORMATIONAL = "informational"


@dataclass(frozen=True)
class Recommendation:
    category: Category
    severity: Severity
    check: str
    title: str
    reason: str
    steps: Tuple[str, ...] = ()
    example: Optional[str] = None

    def lines(self) -> Tuple[str, ...]:
        """Render as plain text lines: header, reason, numbered steps, example."""
        rendered = [f"[{self.severity.value.upper()}] {self.title}", f"Why: {self.reason}"]
        if self.steps:
            rendered.append("How to fix:")
            rendered.extend(f"{i}. {step}" for i, step in enumerate(self.steps, 1))
        if self.example:
            rendered.append(f"Example: {self.example}")
        return tuple(rendered)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "check": self.check,
            "title": self.title,
            "reason": self.reason,
            "steps": list(self.steps),
            "example": self.example,
        }


@dataclass(frozen=True)
class FetchedDocument:
    """Markup and response metadata for one URL; header names are lower-case"""
    url: str
    markup: str
    headers: Dict[str, str] = field(default_factory=dict)
    status: int = 200
    fallback: bool = False


@dataclass(frozen=True)
class AnalysisResult:
    url: str
    timestamp: str
    score: OverallScore
    on_page: OnPageFindings
    off_page: OffPageFindings
    technical: TechnicalFindings
    aio: AIOFindings
    recommendations: Tuple[Recommendation, ...]
    session_id: str

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable form of the result"""
        data = asdict(self)
        data["recommendations"] = [rec.to_dict() for rec in self.recommendations]
        return data
