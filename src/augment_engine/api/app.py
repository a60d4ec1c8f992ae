"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from augment_engine.admission.budget import BudgetTracker
from augment_engine.admission.rate_limiter import SlidingWindowRateLimiter
from augment_engine.api.middleware import RequestTimingMiddleware
from augment_engine.api.routes_generate import router as generate_router
from augment_engine.api.routes_health import router as health_router
from augment_engine.api.routes_usage import router as usage_router
from augment_engine.config.settings import Settings
from augment_engine.observability.logger import get_logger, setup_logging
from augment_engine.pipeline.orchestrator import build_orchestrator
from augment_engine.protocols.augmentation import AugmentationProvider
from augment_engine.protocols.generation import GenerationBackend
from augment_engine.usage.recorder import GenerationRecorder, UsageRecorder

logger = get_logger("app")


def create_app(
    provider: AugmentationProvider,
    backends: dict[str, GenerationBackend],
    settings: Settings | None = None,
    *,
    rate_limiter: SlidingWindowRateLimiter | None = None,
    budget_tracker: BudgetTracker | None = None,
    usage_recorder: UsageRecorder | None = None,
    generation_recorder: GenerationRecorder | None = None,
) -> FastAPI:
    """Build the service around a concrete provider and generation backends.

    The provider and backends are supplied by the host; this package only
    orchestrates them.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_json)

        orchestrator = build_orchestrator(
            settings,
            provider,
            backends,
            rate_limiter=rate_limiter,
            budget_tracker=budget_tracker,
            usage_recorder=usage_recorder,
            generation_recorder=generation_recorder,
        )

        # Attach to app state
        app.state.orchestrator = orchestrator
        app.state.settings = settings

        logger.info(
            "startup_complete",
            augmentation_available=orchestrator.augmentation_available,
            fallback_chain=orchestrator.fallback_chain,
            daily_budget_usd=settings.daily_budget_usd,
        )

        yield

        stats = orchestrator.get_usage_stats()
        logger.info(
            "shutdown_complete",
            total_requests=stats.total_requests,
            total_cost_usd=stats.total_cost_usd,
            generation_requests=stats.generation.total_requests,
        )

    app = FastAPI(
        title="Augmentation Orchestrator",
        version="1.0.0",
        description="Fail-open web augmentation with budgeted admission and generation fallback",
        lifespan=lifespan,
    )
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(generate_router, tags=["generate"])
    app.include_router(usage_router, tags=["usage"])
    return app
