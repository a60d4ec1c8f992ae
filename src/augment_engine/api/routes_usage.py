"""Read-only usage and limit endpoints for dashboards."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from augment_engine.api.dependencies import get_orchestrator
from augment_engine.models.schemas import LimitsResponse, UsageStatsResponse
from augment_engine.pipeline.orchestrator import AugmentationOrchestrator

router = APIRouter(prefix="/usage")


@router.get("/stats", response_model=UsageStatsResponse)
async def usage_stats(
    since: datetime | None = Query(default=None),
    orchestrator: AugmentationOrchestrator = Depends(get_orchestrator),
) -> UsageStatsResponse:
    return UsageStatsResponse.from_stats(orchestrator.get_usage_stats(since))


@router.get("/limits", response_model=LimitsResponse)
async def limits(
    orchestrator: AugmentationOrchestrator = Depends(get_orchestrator),
) -> LimitsResponse:
    return LimitsResponse(**orchestrator.limits())
