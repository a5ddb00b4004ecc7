"""Combines the four findings bundles into a single 0-100 score."""
from typing import Tuple

from seo_types import (
    AIOFindings, OffPageFindings, OnPageFindings, OverallScore, TechnicalFindings, clamp_score,
)

CATEGORY_WEIGHTS = {
    "on_page": 0.35,
    "technical": 0.25,
    "performance": 0.20,
    "off_page": 0.12,
    "aio": 0.08,
}

ON_PAGE_WEIGHTS = {
    "title": 0.25,
    "meta_description": 0.20,
    "h1": 0.20,
    "heading_structure": 0.15,
    "keyword_density": 0.10,
    "content_quality": 0.10,
}

TECHNICAL_WEIGHTS = {
    "robots_txt": 0.15,
    "sitemap": 0.15,
    "ssl": 0.15,
    "indexability": 0.15,
    "canonical": 0.10,
    "mobile": 0.12,
    "structured_data": 0.09,
    "social_meta": 0.09,
}

OFF_PAGE_WEIGHTS = {
    "domain_authority": 0.35,
    "backlinks": 0.30,
    "page_authority": 0.20,
    "social_signals": 0.10,
    "mentions": 0.05,
}

AIO_WEIGHTS = {
    "question_answer": 0.20,
    "content_structure": 0.18,
    "source_credibility": 0.17,
    "semantic_keywords": 0.15,
    "schema_markup": 0.12,
    "local_optimization": 0.10,
    "ai_readiness": 0.08,
}


def on_page_composite(on_page: OnPageFindings) -> float:
    headings = on_page.headings
    heading_structure = headings.h2.value * 0.6 + headings.h3.value * 0.4
    content_quality = (on_page.content_length.value * 0.35 + on_page.readability.value * 0.15
                       + on_page.internal_links.value * 0.25 + on_page.external_links.value * 0.15
                       + on_page.images.value * 0.1)
    parts = {
        "title": on_page.title.value,
        "meta_description": on_page.meta_description.value,
        "h1": headings.h1.value,
        "heading_structure": heading_structure,
        "keyword_density": on_page.keyword_density.value,
        "content_quality": content_quality,
    }
    return sum(parts[name] * weight for name, weight in ON_PAGE_WEIGHTS.items())


def _weighted(findings, weights) -> float:
    return sum(getattr(findings, name).value * weight for name, weight in weights.items())


def technical_composite(technical: TechnicalFindings) -> float:
    return _weighted(technical, TECHNICAL_WEIGHTS)


def off_page_composite(off_page: OffPageFindings) -> float:
    return _weighted(off_page, OFF_PAGE_WEIGHTS)


def aio_composite(aio: AIOFindings) -> float:
    return _weighted(aio, AIO_WEIGHTS)


def penalty_multiplier(on_page: OnPageFindings, technical: TechnicalFindings, performance: int) -> float:
    """Compounding multiplier for missing critical signals"""
    multiplier = 1.0
    if on_page.title.value == 0:
        multiplier *= 0.7
    if on_page.meta_description.value == 0:
        multiplier *= 0.9
    if on_page.headings.h1.value == 0:
        multiplier *= 0.8
    if not technical.metrics.is_https:
        multiplier *= 0.85
    if technical.metrics.noindex:
        multiplier *= 0.5
    if performance < 30:
        multiplier *= 0.8
    elif performance < 50:
        multiplier *= 0.9
    return multiplier


def excellence_bonus(on_page: int, technical: int, performance: int, off_page: int) -> int:
    bonus = 0
    if on_page >= 90 and technical >= 85:
        bonus += 3
    if performance >= 90:
        bonus += 2
    if off_page >= 80:
        bonus += 2
    return bonus


def category_scores(on_page: OnPageFindings, off_page: OffPageFindings,
                    technical: TechnicalFindings, aio: AIOFindings) -> Tuple[int, int, int, int, int, int]:
    """(on_page, off_page, technical, aio, performance, content) composites, each 0-100"""
    return (
        clamp_score(on_page_composite(on_page)),
        clamp_score(off_page_composite(off_page)),
        clamp_score(technical_composite(technical)),
        clamp_score(aio_composite(aio)),
        clamp_score(technical.page_speed.value),
        clamp_score((on_page.content_length.value + on_page.keyword_density.value) / 2),
    )


def aggregate(on_page: OnPageFindings, off_page: OffPageFindings,
              technical: TechnicalFindings, aio: AIOFindings) -> OverallScore:
    """Weighted total with penalty multipliers and an additive bonus, clamped to 0-100.

    Pure: depends only on the four findings bundles.
    """
    on_page_score, off_page_score, technical_score, aio_score, performance, content = \
        category_scores(on_page, off_page, technical, aio)

    weighted = (on_page_score * CATEGORY_WEIGHTS["on_page"]
                + technical_score * CATEGORY_WEIGHTS["technical"]
                + performance * CATEGORY_WEIGHTS["performance"]
                + off_page_score * CATEGORY_WEIGHTS["off_page"]
                + aio_score * CATEGORY_WEIGHTS["aio"])

    penalized = round(weighted * penalty_multiplier(on_page, technical, performance))
    bonus = excellence_bonus(on_page_score, technical_score, performance, off_page_score)

    return OverallScore(
        total=clamp_score(penalized + bonus),
        on_page=on_page_score,
        off_page=off_page_score,
        technical=technical_score,
        aio=aio_score,
        performance=performance,
        content=content,
    )
