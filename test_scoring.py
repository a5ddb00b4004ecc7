import dataclasses
import math

import pytest

from conftest import aio_findings, bundles, off_page_findings, on_page_findings, technical_findings
from scoring import aggregate, on_page_composite, technical_composite, off_page_composite, aio_composite
from seo_types import (
    AIOFindings, Headings, OffPageFindings, OnPageFindings, SubScore, TechnicalFindings, TechnicalMetrics, clamp_score,
)


@pytest.mark.parametrize("raw,expected", [
    (150, 100), (-20, 0), (49.5, 50), (float("nan"), 0), (float("inf"), 0), (None, 0), ("abc", 0),
])
def test_clamp_score(raw, expected):
    assert clamp_score(raw) == expected


def test_sub_score_is_clamped_on_construction():
    assert SubScore(140).value == 100
    assert SubScore(-5).value == 0
    assert SubScore(math.nan).value == 0


def test_all_default_findings_score_zero():
    score = aggregate(OnPageFindings.default(), OffPageFindings.default(),
                      TechnicalFindings.default(), AIOFindings.default())

    assert score.total == 0
    assert score.on_page == score.off_page == score.technical == score.aio == 0


def test_all_perfect_findings_are_capped_at_100():
    score = aggregate(*bundles(100))

    assert score.total == 100
    assert score.on_page == score.technical == score.performance == 100


def test_uniform_findings():
    score = aggregate(*bundles(80))

    # weighted 80, off-page bonus +2
    assert score.total == 82
    assert score.content == 80


def test_missing_title_multiplies_down_the_total():
    on_page, off_page, technical, aio = bundles(80)
    no_title = dataclasses.replace(on_page, title=SubScore(0))

    # on-page drops to 60, weighted 73, x0.7 = 51, +2 bonus
    assert aggregate(no_title, off_page, technical, aio).total == 53


def test_critical_omissions_compound():
    on_page, off_page, technical, aio = bundles(80)
    missing = dataclasses.replace(on_page, title=SubScore(0), meta_description=SubScore(0),
                                  headings=Headings(SubScore(0), SubScore(80), SubScore(80)))

    assert aggregate(missing, off_page, technical, aio).total == 33


def test_critical_omission_scenario():
    """No title or H1 but an optimal description over HTTPS scores below the same page with a title"""
    _, off_page, technical, aio = bundles(80)
    headings = Headings(SubScore(0), SubScore(80), SubScore(80))
    without_title = on_page_findings(80, title=SubScore(0), meta_description=SubScore(100), headings=headings)
    with_title = on_page_findings(80, title=SubScore(100), meta_description=SubScore(100), headings=headings)

    assert aggregate(without_title, off_page, technical, aio).total < aggregate(with_title, off_page, technical, aio).total


def test_missing_https_penalty():
    assert aggregate(*bundles(80, https=False)).total == 70


def test_noindex_halves_the_total():
    on_page, off_page, _, aio = bundles(60)
    noindex = technical_findings(60, indexability=SubScore(0), metrics=TechnicalMetrics(is_https=True, noindex=True))
    indexable = technical_findings(60)

    # technical drops to 51, weighted 57.75, x0.5 = 29
    assert aggregate(on_page, off_page, noindex, aio).total == 29
    assert aggregate(on_page, off_page, indexable, aio).total == 60


@pytest.mark.parametrize("speed,expected", [(20, 56), (40, 67), (80, 82)])
def test_slow_page_penalty(speed, expected):
    on_page, off_page, _, aio = bundles(80)
    technical = technical_findings(80, page_speed=SubScore(speed))

    assert aggregate(on_page, off_page, technical, aio).total == expected


def test_excellence_bonus():
    on_page = on_page_findings(95)
    technical = technical_findings(90, page_speed=SubScore(95))
    score = aggregate(on_page, off_page_findings(0), technical, aio_findings(0))

    # 95*.35 + 90*.25 + 95*.2 = 74.75 -> 75, +3 on-page/technical, +2 speed
    assert score.total == 80


def test_aggregate_is_idempotent():
    findings = (on_page_findings(63, title=SubScore(0)), off_page_findings(12),
                technical_findings(47, https=False), aio_findings(88))

    assert aggregate(*findings) == aggregate(*findings)


ON_PAGE_CHECKS = ["title", "meta_description", "images", "internal_links", "external_links",
                  "keyword_density", "content_length", "readability"]


@pytest.mark.parametrize("check", ON_PAGE_CHECKS + ["h1", "h2", "h3"])
def test_on_page_composite_is_monotone(check):
    def build(value):
        if check in ("h1", "h2", "h3"):
            scores = {"h1": SubScore(50), "h2": SubScore(50), "h3": SubScore(50)}
            scores[check] = SubScore(value)
            return on_page_findings(50, headings=Headings(**scores))
        return on_page_findings(50, **{check: SubScore(value)})

    previous = -1.0
    for value in range(0, 101, 10):
        current = on_page_composite(build(value))
        assert current >= previous
        previous = current


@pytest.mark.parametrize("factory,composite,checks", [
    (technical_findings, technical_composite,
     ["robots_txt", "sitemap", "ssl", "indexability", "canonical", "mobile", "structured_data", "social_meta"]),
    (off_page_findings, off_page_composite,
     ["domain_authority", "page_authority", "backlinks", "social_signals", "mentions"]),
    (aio_findings, aio_composite,
     ["question_answer", "content_structure", "source_credibility", "semantic_keywords",
      "schema_markup", "local_optimization", "ai_readiness"]),
])
def test_category_composites_are_monotone(factory, composite, checks):
    for check in checks:
        values = [composite(factory(50, **{check: SubScore(v)})) for v in range(0, 101, 10)]
        assert values == sorted(values)
        assert all(0 <= v <= 100 for v in values)
