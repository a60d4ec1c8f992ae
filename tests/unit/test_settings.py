"""Tests for configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from augment_engine.config.settings import Settings, TierPricing
from augment_engine.models.domain import Tier


def test_defaults():
    s = Settings()
    assert s.rate_limit_window_seconds == 60.0
    assert s.rate_limit_max_requests == 60
    assert s.daily_budget_usd == 10.0
    assert s.augmentation_timeout_ms == 3000
    assert s.trigger_confidence_threshold == 0.7
    assert s.fallback_chain == ["gpt-5", "o3-mini", "gpt-4o"]
    assert set(s.tier_pricing) == set(Tier)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("AUGMENT_DAILY_BUDGET_USD", "2.5")
    monkeypatch.setenv("AUGMENT_FALLBACK_CHAIN", '["a", "b"]')
    monkeypatch.setenv("AUGMENT_AUGMENTATION_API_KEY", "secret")
    s = Settings()
    assert s.daily_budget_usd == 2.5
    assert s.fallback_chain == ["a", "b"]
    assert s.augmentation_configured is True


def test_augmentation_needs_key_and_switch():
    assert Settings(augmentation_api_key="").augmentation_configured is False
    assert (
        Settings(augmentation_api_key="k", augmentation_enabled=False).augmentation_configured
        is False
    )


@pytest.mark.parametrize(
    "field,value",
    [
        ("trigger_confidence_threshold", 1.5),
        ("premium_complexity_threshold", -0.1),
        ("rate_limit_max_requests", 0),
        ("rate_limit_window_seconds", 0),
        ("augmentation_timeout_ms", -1),
        ("daily_budget_usd", -1.0),
        ("fallback_chain", []),
        ("tier_pricing", {}),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


@pytest.mark.parametrize("field", ["input_per_million", "output_per_million", "request_fee_usd"])
def test_negative_prices_rejected(field):
    prices = {"model": "m", "input_per_million": 1.0, "output_per_million": 1.0, "request_fee_usd": 0.005}
    prices[field] = -0.01
    with pytest.raises(ValidationError):
        TierPricing(**prices)


def test_generation_ledger_capacity_must_be_positive():
    assert Settings().generation_usage_capacity == 1000
    with pytest.raises(ValidationError):
        Settings(generation_usage_capacity=0)
