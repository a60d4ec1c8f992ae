"""Cost calculations for augmentation tiers."""

from __future__ import annotations

import math
from decimal import Decimal

from augment_engine.config.settings import DEFAULT_TIER_PRICING, TierPricing
from augment_engine.models.domain import Tier

_PER_MILLION = Decimal("1000000")


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def calculate_cost(pricing: TierPricing, tokens_in: int, tokens_out: int) -> float:
    token_cost = (
        Decimal(tokens_in) * Decimal(str(pricing.input_per_million))
        + Decimal(tokens_out) * Decimal(str(pricing.output_per_million))
    ) / _PER_MILLION
    return float(token_cost + Decimal(str(pricing.request_fee_usd)))


class PriceTable:
    def __init__(self, prices: dict[Tier, TierPricing] | None = None) -> None:
        self._prices = dict(prices or DEFAULT_TIER_PRICING)

    def get_pricing(self, tier: Tier) -> TierPricing:
        try:
            return self._prices[tier]
        except KeyError:
            raise ValueError(f"No pricing configured for tier: {tier.value}") from None

    def estimate(self, tier: Tier, text: str, assumed_output_tokens: int = 500) -> float:
        return calculate_cost(self.get_pricing(tier), estimate_tokens(text), assumed_output_tokens)

    def actual(self, tier: Tier, tokens_in: int, tokens_out: int) -> float:
        return calculate_cost(self.get_pricing(tier), tokens_in, tokens_out)
