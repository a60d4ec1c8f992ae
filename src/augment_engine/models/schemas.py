"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from dataclasses import asdict
from typing import Literal

from pydantic import BaseModel, Field

from augment_engine.models.domain import (
    AugmentationOverride,
    AugmentationPresent,
    AugmentationRequest,
    OrchestrationResult,
    UsageStats,
)


class GenerateRequest(BaseModel):
    text: str = Field(min_length=1)
    enable_augmentation: bool = True
    force_augmentation: bool = False
    explicit_prefix: str | None = None

    def to_augmentation_request(self) -> AugmentationRequest:
        override = None
        if not self.enable_augmentation:
            override = AugmentationOverride.FORCE_OFF
        elif self.force_augmentation:
            override = AugmentationOverride.FORCE_ON
        return AugmentationRequest(
            text=self.text,
            explicit_prefix=self.explicit_prefix,
            override=override,
        )


class CitationInfo(BaseModel):
    url: str
    title: str


class AugmentationInfo(BaseModel):
    status: Literal["present", "absent"]
    reason: str | None = None
    detail: str | None = None
    answer: str | None = None
    citations: list[CitationInfo] = Field(default_factory=list)
    tier: str | None = None
    cost_usd: float = 0.0
    query: str | None = None
    confidence: float = 0.0
    triggers: list[str] = Field(default_factory=list)


class AttemptInfo(BaseModel):
    backend_id: str
    error_kind: str | None = None
    latency_ms: float


class GenerationInfo(BaseModel):
    backend_id: str
    fallback_used: bool
    attempts: list[AttemptInfo]


class DebugInfo(BaseModel):
    trace_id: str
    latency_ms: float
    stages: list[dict] = Field(default_factory=list)


class GenerateResponse(BaseModel):
    artifact: str
    augmentation: AugmentationInfo
    generation: GenerationInfo
    debug: DebugInfo

    @classmethod
    def from_result(cls, result: OrchestrationResult) -> GenerateResponse:
        aug = result.augmentation
        trigger = result.trigger
        common = {
            "query": (trigger.derived_query or None) if trigger else None,
            "confidence": trigger.confidence if trigger else 0.0,
            "triggers": list(trigger.triggers) if trigger else [],
        }
        if isinstance(aug, AugmentationPresent):
            augmentation = AugmentationInfo(
                status="present",
                answer=aug.answer,
                citations=[CitationInfo(url=c.url, title=c.title) for c in aug.citations],
                tier=aug.tier.value,
                cost_usd=round(aug.cost_usd, 6),
                **common,
            )
        else:
            augmentation = AugmentationInfo(
                status="absent",
                reason=aug.reason.value,
                detail=aug.detail or None,
                tier=result.tier_selection.tier.value if result.tier_selection else None,
                **common,
            )

        gen = result.generation
        return cls(
            artifact=result.artifact,
            augmentation=augmentation,
            generation=GenerationInfo(
                backend_id=gen.succeeded_with,
                fallback_used=gen.fallback_used,
                attempts=[
                    AttemptInfo(
                        backend_id=a.backend_id,
                        error_kind=a.error_kind.value if a.error_kind else None,
                        latency_ms=round(a.latency_ms, 2),
                    )
                    for a in gen.attempts
                ],
            ),
            debug=DebugInfo(
                trace_id=result.trace_id,
                latency_ms=round(result.latency_ms, 2),
                stages=result.stages,
            ),
        )


class ErrorResponse(BaseModel):
    error_kind: str
    message: str


class GenerationStatsResponse(BaseModel):
    total_requests: int
    successful_requests: int
    success_rate: float
    fallback_rate: float
    total_cost_usd: float
    avg_cost_usd: float
    avg_tokens: float
    avg_latency_ms: float
    backend_distribution: dict[str, int]
    error_distribution: dict[str, int]


class UsageStatsResponse(BaseModel):
    total_requests: int
    successful_requests: int
    success_rate: float
    total_cost_usd: float
    avg_cost_usd: float
    avg_tokens: float
    avg_latency_ms: float
    requests_today: int
    spend_today_usd: float
    tier_distribution: dict[str, int]
    error_distribution: dict[str, int]
    generation: GenerationStatsResponse

    @classmethod
    def from_stats(cls, stats: UsageStats) -> UsageStatsResponse:
        return cls(**asdict(stats))


class LimitsResponse(BaseModel):
    augmentation_available: bool
    rate_limit: dict
    budget: dict


class HealthResponse(BaseModel):
    status: str
    augmentation_available: bool
    fallback_chain: list[str]
