"""Tests for complexity analysis, tier selection and pricing."""

from __future__ import annotations

import pytest

from augment_engine.config.settings import DEFAULT_TIER_PRICING, TierPricing
from augment_engine.models.domain import Tier
from augment_engine.routing.pricing import PriceTable, calculate_cost, estimate_tokens
from augment_engine.routing.tier_selector import (
    TierSelector,
    analyze_complexity,
    has_multi_step_connective,
    has_proper_noun,
)

ANALYTICAL_QUERY = (
    "compare and evaluate the pros and cons of renewable energy subsidies "
    "versus carbon taxes for small economies"
)


def test_simple_query_uses_cheap_tier():
    selection = TierSelector().select("Tesla stock price 2025")
    assert selection.tier == Tier.CHEAP
    assert selection.complexity_score < 0.6
    assert "Simple query" in selection.reasoning


def test_analytical_query_uses_premium_tier():
    selection = TierSelector().select(ANALYTICAL_QUERY)
    assert selection.tier == Tier.PREMIUM
    assert selection.complexity_score > 0.6


def test_multi_step_connective_uses_reasoning_tier():
    selection = TierSelector().select("First gather sales data, then build a forecast")
    assert selection.tier == Tier.REASONING


def test_multi_step_in_request_text_counts():
    selection = TierSelector().select("sales forecast", "first collect the data then chart it")
    assert selection.tier == Tier.REASONING


def test_premium_threshold_is_configurable():
    selection = TierSelector(premium_threshold=0.05).select("weather forecast models")
    assert selection.tier == Tier.PREMIUM


def test_estimated_cost_matches_price_table():
    query = "Tesla stock price 2025"
    selection = TierSelector().select(query)
    assert selection.estimated_cost_usd == pytest.approx(
        PriceTable().estimate(Tier.CHEAP, query, 500)
    )


def test_tier_costs_are_monotonic():
    table = PriceTable()
    text = "largest semiconductor companies by revenue"
    cheap = table.estimate(Tier.CHEAP, text)
    reasoning = table.estimate(Tier.REASONING, text)
    premium = table.estimate(Tier.PREMIUM, text)
    assert cheap < reasoning < premium


def test_analytical_factor_is_capped():
    analysis = analyze_complexity(ANALYTICAL_QUERY)
    assert analysis.analytical == pytest.approx(0.4)
    assert analysis.specificity == pytest.approx(0.1)
    assert 0.0 <= analysis.score <= 1.0


def test_length_factor_is_capped():
    analysis = analyze_complexity("word " * 200)
    assert analysis.length == pytest.approx(0.3)


def test_specific_query_has_no_generality_bonus():
    assert analyze_complexity("GDP of 2023").specificity == 0.0
    assert analyze_complexity('prices of "widget x"').specificity == 0.0
    assert analyze_complexity("population", "chart the population of Japan").specificity == 0.0


def test_multi_step_detection():
    assert has_multi_step_connective("then sort, and finally plot")
    assert has_multi_step_connective("walk me through it step by step")
    assert not has_multi_step_connective("then again, maybe not")


def test_proper_noun_detection():
    assert has_proper_noun("the market in Japan")
    assert not has_proper_noun("Markets rose sharply")


def test_calculate_cost():
    sonar = DEFAULT_TIER_PRICING[Tier.CHEAP]
    # 1000 tokens at $1/M plus the $0.005 request fee
    assert calculate_cost(sonar, 500, 500) == pytest.approx(0.006)
    pro = DEFAULT_TIER_PRICING[Tier.PREMIUM]
    assert calculate_cost(pro, 1_000_000, 0) == pytest.approx(3.006)


def test_estimate_tokens():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_missing_tier_price_raises():
    table = PriceTable(
        {
            Tier.CHEAP: TierPricing(
                model="m", input_per_million=1, output_per_million=1, request_fee_usd=0
            )
        }
    )
    with pytest.raises(ValueError):
        table.actual(Tier.PREMIUM, 10, 10)
