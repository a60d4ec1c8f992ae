"""Core domain objects used throughout the system."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Tier(str, Enum):
    """Augmentation provider tiers, cheapest first."""

    CHEAP = "cheap"
    REASONING = "reasoning"
    PREMIUM = "premium"


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    BUDGET_EXCEEDED = "budget_exceeded"
    AUTH_INVALID = "auth_invalid"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset({ErrorKind.TIMEOUT, ErrorKind.SERVER_ERROR})

# Generic, provider-agnostic descriptions. These are the only error texts
# that reach a caller.
ERROR_DESCRIPTIONS: dict[ErrorKind, str] = {
    ErrorKind.RATE_LIMITED: "The service is receiving too many requests. Try again shortly.",
    ErrorKind.BUDGET_EXCEEDED: "The daily usage budget has been reached.",
    ErrorKind.AUTH_INVALID: "The service is not authorised to call an upstream provider.",
    ErrorKind.TIMEOUT: "An upstream provider did not respond in time.",
    ErrorKind.SERVER_ERROR: "An upstream provider is temporarily unavailable.",
    ErrorKind.NETWORK_ERROR: "An upstream provider could not be reached.",
    ErrorKind.INVALID_REQUEST: "The request could not be processed.",
    ErrorKind.UNKNOWN: "An unexpected error occurred.",
}


def describe_error(kind: ErrorKind) -> str:
    return ERROR_DESCRIPTIONS[kind]


class AbsentReason(str, Enum):
    NOT_TRIGGERED = "not_triggered"
    RATE_LIMITED = "rate_limited"
    BUDGET_EXCEEDED = "budget_exceeded"
    AUTH_INVALID = "auth_invalid"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"

    @classmethod
    def from_error(cls, kind: ErrorKind) -> AbsentReason:
        return cls(kind.value)


class AugmentationOverride(str, Enum):
    FORCE_ON = "force_on"
    FORCE_OFF = "force_off"


@dataclass(frozen=True)
class AugmentationRequest:
    text: str
    explicit_prefix: str | None = None
    override: AugmentationOverride | None = None


@dataclass(frozen=True)
class TriggerAnalysis:
    needs_augmentation: bool
    confidence: float
    triggers: tuple[str, ...]
    derived_query: str
    reasoning: str = ""


@dataclass(frozen=True)
class ComplexityAnalysis:
    score: float
    length: float
    analytical: float
    multi_step: float
    specificity: float
    indicators: tuple[str, ...]
    has_multi_step_connective: bool


@dataclass(frozen=True)
class TierSelection:
    tier: Tier
    reasoning: str
    estimated_cost_usd: float
    complexity_score: float = 0.0


@dataclass(frozen=True)
class Citation:
    url: str
    title: str


@dataclass(frozen=True)
class ProviderResponse:
    """Successful reply from the augmentation provider."""

    answer: str
    citations: list[Citation]
    tokens_in: int
    tokens_out: int
    latency_ms: float


@dataclass(frozen=True)
class ProviderError:
    """Classified failure reported by the augmentation provider."""

    kind: ErrorKind


@dataclass(frozen=True)
class AugmentationFailure:
    """Terminal failure of the augmentation client after its retry policy."""

    kind: ErrorKind
    attempts: int = 1
    latency_ms: float = 0.0

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def message(self) -> str:
        return describe_error(self.kind)


@dataclass(frozen=True)
class AugmentationPresent:
    answer: str
    citations: list[Citation]
    tier: Tier
    cost_usd: float


@dataclass(frozen=True)
class AugmentationAbsent:
    reason: AbsentReason
    detail: str = ""


AugmentationResult = AugmentationPresent | AugmentationAbsent


@dataclass(frozen=True)
class UsageRecord:
    query: str
    tier: Tier
    tokens_in: int
    tokens_out: int
    cost_usd: float
    success: bool
    latency_ms: float
    error_kind: ErrorKind | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_tokens(self) -> int:
        return self.tokens_in + self.tokens_out


@dataclass
class UsageStats:
    total_requests: int = 0
    successful_requests: int = 0
    success_rate: float = 0.0
    total_cost_usd: float = 0.0
    avg_cost_usd: float = 0.0
    avg_tokens: float = 0.0
    avg_latency_ms: float = 0.0
    requests_today: int = 0
    spend_today_usd: float = 0.0
    tier_distribution: dict[str, int] = field(default_factory=dict)
    error_distribution: dict[str, int] = field(default_factory=dict)
    generation: GenerationStats = field(default_factory=lambda: GenerationStats())


@dataclass(frozen=True)
class GenerationSuccess:
    artifact: str
    tokens_used: int = 0
    cost_usd: float = 0.0


@dataclass(frozen=True)
class GenerationFailure:
    kind: ErrorKind


@dataclass(frozen=True)
class GenerationAttempt:
    backend_id: str
    error_kind: ErrorKind | None = None
    latency_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None


@dataclass
class GenerationOutcome:
    succeeded_with: str
    artifact: str
    attempts: list[GenerationAttempt]
    tokens_used: int = 0
    cost_usd: float = 0.0

    @property
    def fallback_used(self) -> bool:
        return len(self.attempts) > 1


@dataclass(frozen=True)
class GenerationRecord:
    """One generation request as seen by the fallback chain."""

    backend_id: str
    success: bool
    attempts: int
    fallback_used: bool
    tokens_used: int
    cost_usd: float
    latency_ms: float
    error_kind: ErrorKind | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class GenerationStats:
    total_requests: int = 0
    successful_requests: int = 0
    success_rate: float = 0.0
    fallback_rate: float = 0.0
    total_cost_usd: float = 0.0
    avg_cost_usd: float = 0.0
    avg_tokens: float = 0.0
    avg_latency_ms: float = 0.0
    backend_distribution: dict[str, int] = field(default_factory=dict)
    error_distribution: dict[str, int] = field(default_factory=dict)


@dataclass
class OrchestrationResult:
    artifact: str
    augmentation: AugmentationResult
    trigger: TriggerAnalysis | None
    tier_selection: TierSelection | None
    generation: GenerationOutcome
    trace_id: str
    latency_ms: float
    stages: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class AugmentationReport:
    """Outcome of the augmentation steps for one request."""

    result: AugmentationResult
    trigger: TriggerAnalysis | None = None
    tier_selection: TierSelection | None = None
