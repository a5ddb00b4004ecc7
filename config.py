import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SEOQualityScorer/1.0; +https://example.com/bot)"

# Locations checked by the local optimization signal when none are configured
DEFAULT_LOCATION_KEYWORDS = (
    "london", "manchester", "birmingham", "new york", "los angeles", "chicago",
    "toronto", "sydney", "melbourne", "dublin", "berlin", "paris",
)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the analysis pipeline"""
    request_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    proxy_url: Optional[str] = None
    max_redirects: int = 5
    log_level: str = "INFO"
    location_keywords: Tuple[str, ...] = field(default=DEFAULT_LOCATION_KEYWORDS)
    results_dir: str = "results"


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Build a Settings object from the environment (and .env, if present)."""
    keywords = os.environ.get("SEO_LOCATION_KEYWORDS")
    if keywords:
        location_keywords = tuple(k.strip().lower() for k in keywords.split(",") if k.strip())
    else:
        location_keywords = DEFAULT_LOCATION_KEYWORDS

    return Settings(
        request_timeout=_env_number("SEO_REQUEST_TIMEOUT", 10.0, float),
        user_agent=os.environ.get("SEO_USER_AGENT") or DEFAULT_USER_AGENT,
        proxy_url=os.environ.get("SEO_HTTP_PROXY") or None,
        max_redirects=_env_number("SEO_MAX_REDIRECTS", 5, int),
        log_level=(os.environ.get("SEO_LOG_LEVEL") or "INFO").upper(),
        location_keywords=location_keywords,
        results_dir=os.environ.get("SEO_RESULTS_DIR") or "results",
    )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging the same way for every entry point."""
    level_name = (settings or load_settings()).log_level
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        logger.warning(f"Unknown log level {level_name}, falling back to INFO")
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
