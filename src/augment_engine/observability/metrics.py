"""Metric recording helpers for traces."""

from __future__ import annotations

from augment_engine.observability.logger import get_logger

logger = get_logger("metrics")


def log_augmentation_metrics(
    trace_id: str,
    outcome: str,
    tier: str | None,
    cost_usd: float,
    latency_ms: float,
    attempts: int,
) -> None:
    logger.info(
        "augmentation_metrics",
        trace_id=trace_id,
        outcome=outcome,
        tier=tier,
        cost_usd=round(cost_usd, 6),
        latency_ms=round(latency_ms, 2),
        attempts=attempts,
    )


def log_admission_metrics(
    trace_id: str,
    rate_remaining: int,
    budget_remaining_usd: float,
) -> None:
    logger.info(
        "admission_metrics",
        trace_id=trace_id,
        rate_remaining=rate_remaining,
        budget_remaining_usd=round(budget_remaining_usd, 6),
    )


def log_generation_metrics(
    trace_id: str,
    backend_id: str,
    attempts: int,
    fallback_used: bool,
) -> None:
    logger.info(
        "generation_metrics",
        trace_id=trace_id,
        backend_id=backend_id,
        attempts=attempts,
        fallback_used=fallback_used,
    )


def log_latency(trace_id: str, stage: str, duration_ms: float) -> None:
    logger.info(
        "latency",
        trace_id=trace_id,
        stage=stage,
        duration_ms=round(duration_ms, 2),
    )
