import logging
from typing import Sequence, Tuple

from page_utils import host_of
from providers import AuthorityDataProvider
from seo_types import OffPageFindings, OffPageMetrics, SubScore

logger = logging.getLogger(__name__)

# (threshold, score) bands, checked top-down; values above zero but below the
# last threshold fall through to the final band
DOMAIN_AUTHORITY_BANDS = ((80, 100), (60, 80), (40, 60), (20, 35))
PAGE_AUTHORITY_BANDS = ((70, 100), (50, 80), (30, 60), (10, 30))
BACKLINK_BANDS = ((500, 100), (100, 90), (50, 80), (25, 70), (10, 60), (5, 50), (3, 40), (2, 30), (1, 20))
SOCIAL_BANDS = ((1000, 100), (500, 80), (100, 60), (10, 30))
MENTION_BANDS = ((100, 100), (50, 80), (20, 60), (5, 40))

AUTHORITY_LEVELS = ((80, "Very High"), (60, "High"), (40, "Medium"), (20, "Low"))


def band_score(value: float, bands: Sequence[Tuple[float, int]], floor: int = 0) -> int:
    """Score of the first band whose threshold value reaches; floor for anything above zero"""
    for threshold, score in bands:
        if value >= threshold:
            return score
    return floor if value > 0 else 0


def authority_level(value: float) -> str:
    for threshold, label in AUTHORITY_LEVELS:
        if value >= threshold:
            return label
    return "Very Low"


class OffPageAnalyzer:
    """Maps authority provider numbers onto scores; does no data gathering of its own"""

    def __init__(self, provider: AuthorityDataProvider):
        self.provider = provider

    async def analyze(self, url: str) -> OffPageFindings:
        domain = host_of(url)
        data = await self.provider.lookup(domain)
        social_total = data.social_signals.total

        da = band_score(data.domain_authority, DOMAIN_AUTHORITY_BANDS, floor=15)
        pa = band_score(data.page_authority, PAGE_AUTHORITY_BANDS, floor=10)
        backlinks = band_score(data.backlink_count, BACKLINK_BANDS)
        social = band_score(social_total, SOCIAL_BANDS, floor=10)
        mentions = band_score(data.mention_count, MENTION_BANDS, floor=20)

        da_level = authority_level(data.domain_authority)
        pa_level = authority_level(data.page_authority)

        findings = OffPageFindings(
            domain_authority=SubScore(
                da,
                () if da >= 60 else (f"Domain authority is {data.domain_authority:g} ({da_level})",),
                () if da >= 60 else ("Earn links from established sites in your niche",),
            ),
            page_authority=SubScore(
                pa,
                () if pa >= 60 else (f"Page authority is {data.page_authority:g} ({pa_level})",),
            ),
            backlinks=SubScore(
                backlinks,
                () if backlinks >= 60 else (f"Only {data.backlink_count} backlinks",),
                () if backlinks >= 60 else ("Publish linkable assets and pursue outreach",),
            ),
            social_signals=SubScore(
                social,
                () if social >= 60 else (f"Low social engagement ({social_total} shares)",),
            ),
            mentions=SubScore(
                mentions,
                () if mentions >= 60 else (f"Few brand mentions ({data.mention_count})",),
            ),
            metrics=OffPageMetrics(
                domain=domain,
                domain_authority=data.domain_authority,
                page_authority=data.page_authority,
                backlink_count=data.backlink_count,
                social_signal_total=social_total,
                mention_count=data.mention_count,
                domain_authority_level=da_level,
                page_authority_level=pa_level,
                source=data.source,
            ),
        )
        logger.debug(f"Off-page analysis for {domain}: DA {data.domain_authority}, {data.backlink_count} backlinks")
        return findings
