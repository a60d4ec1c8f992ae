"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from augment_engine.models.domain import Tier


class TierPricing(BaseModel):
    """Provider model and prices for one tier. Token rates are USD per 1M tokens."""

    model: str
    input_per_million: float = Field(ge=0)
    output_per_million: float = Field(ge=0)
    request_fee_usd: float = Field(ge=0)


DEFAULT_TIER_PRICING: dict[Tier, TierPricing] = {
    Tier.CHEAP: TierPricing(
        model="sonar", input_per_million=1.0, output_per_million=1.0, request_fee_usd=0.005
    ),
    Tier.REASONING: TierPricing(
        model="sonar-reasoning",
        input_per_million=1.0,
        output_per_million=5.0,
        request_fee_usd=0.006,
    ),
    Tier.PREMIUM: TierPricing(
        model="sonar-pro", input_per_million=3.0, output_per_million=15.0, request_fee_usd=0.006
    ),
}


class Settings(BaseSettings):
    # Augmentation provider credentials
    augmentation_api_key: str = ""
    augmentation_enabled: bool = True

    # Trigger analysis / query building
    trigger_confidence_threshold: float = 0.7
    query_max_length: int = 200

    # Rate limiting
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 60

    # Daily budget (UTC)
    daily_budget_usd: float = 10.0
    budget_warning_ratios: list[float] = [0.8, 0.9]

    # Augmentation client
    augmentation_timeout_ms: int = 3000
    augmentation_max_retries: int = 1
    timeout_retry_backoff_s: float = 1.0
    server_error_retry_backoff_s: float = 2.0

    # Tier selection and pricing
    premium_complexity_threshold: float = 0.6
    assumed_output_tokens: int = 500
    tier_pricing: dict[Tier, TierPricing] = DEFAULT_TIER_PRICING

    # Generation fallback chain
    fallback_chain: list[str] = ["gpt-5", "o3-mini", "gpt-4o"]
    generation_timeout_ms: int = 60000

    # Usage ledger
    usage_capacity: int = 10000
    generation_usage_capacity: int = 1000

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    # "package.module:function" returning (provider, backends) for the server entrypoint
    components_factory: str = ""

    model_config = {"env_file": ".env", "env_prefix": "AUGMENT_"}

    @field_validator("trigger_confidence_threshold", "premium_complexity_threshold")
    @classmethod
    def _unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("must be between 0 and 1")
        return v

    @field_validator(
        "rate_limit_window_seconds",
        "rate_limit_max_requests",
        "augmentation_timeout_ms",
        "usage_capacity",
        "generation_usage_capacity",
        "query_max_length",
    )
    @classmethod
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("daily_budget_usd")
    @classmethod
    def _non_negative_budget(cls, v: float) -> float:
        if v < 0:
            raise ValueError("daily budget must be >= 0")
        return v

    @field_validator("tier_pricing")
    @classmethod
    def _every_tier_priced(cls, v: dict[Tier, TierPricing]) -> dict[Tier, TierPricing]:
        missing = [t.value for t in Tier if t not in v]
        if missing:
            raise ValueError(f"missing pricing for tiers: {', '.join(missing)}")
        return v

    @field_validator("fallback_chain")
    @classmethod
    def _non_empty_chain(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("fallback_chain needs at least one backend")
        return v

    @property
    def augmentation_configured(self) -> bool:
        """True when augmentation is switched on and credentials are present."""
        return self.augmentation_enabled and bool(self.augmentation_api_key)
