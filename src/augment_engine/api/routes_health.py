"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from augment_engine.api.dependencies import get_orchestrator
from augment_engine.models.schemas import HealthResponse
from augment_engine.pipeline.orchestrator import AugmentationOrchestrator

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    orchestrator: AugmentationOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        augmentation_available=orchestrator.augmentation_available,
        fallback_chain=orchestrator.fallback_chain,
    )
