"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from augment_engine.pipeline.orchestrator import AugmentationOrchestrator


def get_orchestrator(request: Request) -> AugmentationOrchestrator:
    return request.app.state.orchestrator
