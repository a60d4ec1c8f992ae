"""Augmentation & fallback orchestrator: the end-to-end generation path.

Steps 1-6 (trigger analysis, query/tier selection, admission, lookup and
context merge) are fail-open: whatever goes wrong there becomes an
``AugmentationAbsent`` and generation proceeds. Only an exhausted
generation fallback chain fails the request.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime

from augment_engine.admission.budget import BudgetTracker
from augment_engine.admission.rate_limiter import SlidingWindowRateLimiter
from augment_engine.augmentation.client import AugmentationClient
from augment_engine.config.settings import Settings
from augment_engine.exceptions import FallbackExhaustedError
from augment_engine.generation.fallback_chain import FallbackChainController
from augment_engine.models.domain import (
    AbsentReason,
    AugmentationAbsent,
    AugmentationOverride,
    AugmentationPresent,
    AugmentationReport,
    AugmentationRequest,
    ErrorKind,
    GenerationOutcome,
    GenerationRecord,
    OrchestrationResult,
    ProviderResponse,
    UsageRecord,
    UsageStats,
)
from augment_engine.models.schemas import GenerateRequest
from augment_engine.observability.logger import get_logger
from augment_engine.observability.metrics import (
    log_admission_metrics,
    log_augmentation_metrics,
    log_generation_metrics,
    log_latency,
)
from augment_engine.observability.tracing import TraceContext
from augment_engine.protocols.augmentation import AugmentationProvider
from augment_engine.protocols.generation import GenerationBackend
from augment_engine.query.builder import QueryBuilder
from augment_engine.query.trigger import TriggerAnalyzer
from augment_engine.routing.pricing import PriceTable
from augment_engine.routing.tier_selector import TierSelector
from augment_engine.usage.recorder import GenerationRecorder, UsageRecorder

logger = get_logger("orchestrator")


class AugmentationOrchestrator:
    def __init__(
        self,
        trigger_analyzer: TriggerAnalyzer,
        tier_selector: TierSelector,
        rate_limiter: SlidingWindowRateLimiter,
        budget_tracker: BudgetTracker,
        augmentation_client: AugmentationClient,
        usage_recorder: UsageRecorder,
        fallback_controller: FallbackChainController,
        price_table: PriceTable,
        augmentation_enabled: bool = True,
        augmentation_timeout_ms: int = 3000,
        generation_recorder: GenerationRecorder | None = None,
    ) -> None:
        self._analyzer = trigger_analyzer
        self._tiers = tier_selector
        self._rate_limiter = rate_limiter
        self._budget = budget_tracker
        self._client = augmentation_client
        self._usage = usage_recorder
        self._fallback = fallback_controller
        self._prices = price_table
        self._enabled = augmentation_enabled
        self._timeout_ms = augmentation_timeout_ms
        if generation_recorder is None:
            generation_recorder = GenerationRecorder()
        self._generations = generation_recorder
        self._credentials_rejected = False

    @property
    def augmentation_available(self) -> bool:
        return self._enabled and not self._credentials_rejected

    def reset_credentials(self) -> None:
        """Re-arm augmentation after the provider credentials were corrected."""
        if self._credentials_rejected:
            logger.info("augmentation_credentials_reset")
        self._credentials_rejected = False

    async def execute(self, request: GenerateRequest) -> OrchestrationResult:
        trace = TraceContext()

        with trace.span("augmentation") as span:
            report = await self._augment_safely(request.to_augmentation_request(), trace)
            span.metadata["outcome"] = _outcome_label(report)

        # FallbackExhaustedError is the one failure that propagates.
        with trace.span("generation"):
            try:
                outcome = await self._fallback.run(request.text, report.result)
            except FallbackExhaustedError as e:
                self._record_exhaustion(e)
                raise
        self._record_generation(outcome)

        log_generation_metrics(
            trace.trace_id,
            outcome.succeeded_with,
            len(outcome.attempts),
            outcome.fallback_used,
        )
        for s in trace.spans:
            log_latency(trace.trace_id, s.name, s.duration_ms)

        return OrchestrationResult(
            artifact=outcome.artifact,
            augmentation=report.result,
            trigger=report.trigger,
            tier_selection=report.tier_selection,
            generation=outcome,
            trace_id=trace.trace_id,
            latency_ms=trace.elapsed_ms,
            stages=trace.span_summary(),
        )

    async def augment(self, request: AugmentationRequest) -> AugmentationReport:
        """Run only the augmentation steps. Never raises."""
        return await self._augment_safely(request, TraceContext())

    async def _augment_safely(
        self, request: AugmentationRequest, trace: TraceContext
    ) -> AugmentationReport:
        try:
            return await self._augment(request, trace)
        except Exception as e:
            logger.exception("augmentation_pipeline_error", error_type=type(e).__name__)
            return AugmentationReport(
                result=AugmentationAbsent(reason=AbsentReason.UNKNOWN, detail="internal_error")
            )

    async def _augment(
        self, request: AugmentationRequest, trace: TraceContext
    ) -> AugmentationReport:
        # STEP 1: Trigger analysis (or short-circuit)
        if request.override is AugmentationOverride.FORCE_OFF:
            return _absent(AbsentReason.NOT_TRIGGERED, "caller_disabled")
        if not self._enabled:
            return _absent(AbsentReason.NOT_TRIGGERED, "feature_disabled")
        if self._credentials_rejected:
            return _absent(AbsentReason.AUTH_INVALID, "credentials_rejected")

        analysis = self._analyzer.analyze(request.text, request.explicit_prefix)
        if not analysis.needs_augmentation:
            if request.override is not AugmentationOverride.FORCE_ON:
                logger.info("augmentation_not_triggered", confidence=analysis.confidence)
                return _absent(AbsentReason.NOT_TRIGGERED, "below_threshold", analysis)
            analysis = replace(
                analysis,
                derived_query=self._analyzer.build_query(request.text, request.explicit_prefix),
            )

        # STEP 2: Query + tier
        query = analysis.derived_query
        selection = self._tiers.select(query, request.text)

        # STEP 3: Rate limit
        admission = self._rate_limiter.check_and_admit()
        if not admission.allowed:
            log_augmentation_metrics(trace.trace_id, "rate_limited", selection.tier.value, 0.0, 0.0, 0)
            return AugmentationReport(
                result=AugmentationAbsent(reason=AbsentReason.RATE_LIMITED),
                trigger=analysis,
                tier_selection=selection,
            )

        # STEP 4: Budget
        try:
            budget = self._budget.check_and_reserve(selection.estimated_cost_usd)
        except BaseException:
            self._rate_limiter.release(admission.ticket)
            raise
        if not budget.allowed:
            self._rate_limiter.release(admission.ticket)
            log_augmentation_metrics(
                trace.trace_id, "budget_exceeded", selection.tier.value, 0.0, 0.0, 0
            )
            return AugmentationReport(
                result=AugmentationAbsent(reason=AbsentReason.BUDGET_EXCEEDED),
                trigger=analysis,
                tier_selection=selection,
            )

        log_admission_metrics(trace.trace_id, admission.remaining, budget.remaining)

        # STEP 5: External call
        start = time.monotonic()
        try:
            outcome = await self._client.call(query, selection.tier, self._timeout_ms)
        except BaseException:
            # Only cancellation gets here; give the held slot and reservation back.
            self._budget.release(budget.reservation)
            self._rate_limiter.release(admission.ticket)
            raise
        latency_ms = (time.monotonic() - start) * 1000

        if isinstance(outcome, ProviderResponse):
            cost = self._prices.actual(selection.tier, outcome.tokens_in, outcome.tokens_out)
            self._budget.commit(budget.reservation, cost)
            self._rate_limiter.record_admission(admission.ticket)
            self._usage.record(
                UsageRecord(
                    query=query,
                    tier=selection.tier,
                    tokens_in=outcome.tokens_in,
                    tokens_out=outcome.tokens_out,
                    cost_usd=cost,
                    success=True,
                    latency_ms=latency_ms,
                )
            )
            log_augmentation_metrics(
                trace.trace_id, "present", selection.tier.value, cost, latency_ms, 1
            )
            return AugmentationReport(
                result=AugmentationPresent(
                    answer=outcome.answer,
                    citations=list(outcome.citations),
                    tier=selection.tier,
                    cost_usd=cost,
                ),
                trigger=analysis,
                tier_selection=selection,
            )

        self._budget.release(budget.reservation)
        self._rate_limiter.release(admission.ticket)
        self._usage.record(
            UsageRecord(
                query=query,
                tier=selection.tier,
                tokens_in=0,
                tokens_out=0,
                cost_usd=0.0,
                success=False,
                latency_ms=latency_ms,
                error_kind=outcome.kind,
            )
        )
        if outcome.kind is ErrorKind.AUTH_INVALID:
            self._credentials_rejected = True
            logger.critical(
                "augmentation_credentials_rejected",
                detail="augmentation disabled until credentials are corrected",
            )
        log_augmentation_metrics(
            trace.trace_id,
            outcome.kind.value,
            selection.tier.value,
            0.0,
            latency_ms,
            outcome.attempts,
        )
        return AugmentationReport(
            result=AugmentationAbsent(reason=AbsentReason.from_error(outcome.kind)),
            trigger=analysis,
            tier_selection=selection,
        )

    def _record_generation(self, outcome: GenerationOutcome) -> None:
        self._generations.record(
            GenerationRecord(
                backend_id=outcome.succeeded_with,
                success=True,
                attempts=len(outcome.attempts),
                fallback_used=outcome.fallback_used,
                tokens_used=outcome.tokens_used,
                cost_usd=outcome.cost_usd,
                latency_ms=sum(a.latency_ms for a in outcome.attempts),
            )
        )

    def _record_exhaustion(self, error: FallbackExhaustedError) -> None:
        attempts = error.attempts
        self._generations.record(
            GenerationRecord(
                backend_id=attempts[-1].backend_id if attempts else "",
                success=False,
                attempts=len(attempts),
                fallback_used=len(attempts) > 1,
                tokens_used=0,
                cost_usd=0.0,
                latency_ms=sum(a.latency_ms for a in attempts),
                error_kind=error.kind,
            )
        )

    def get_usage_stats(self, since: datetime | None = None) -> UsageStats:
        """Augmentation usage, with the generation ledger nested under ``generation``."""
        return replace(self._usage.stats(since), generation=self._generations.stats(since))

    def limits(self) -> dict:
        return {
            "augmentation_available": self.augmentation_available,
            "rate_limit": self._rate_limiter.stats(),
            "budget": self._budget.stats(),
        }

    @property
    def fallback_chain(self) -> list[str]:
        return self._fallback.chain


def _absent(reason: AbsentReason, detail: str = "", trigger=None) -> AugmentationReport:
    return AugmentationReport(result=AugmentationAbsent(reason=reason, detail=detail), trigger=trigger)


def _outcome_label(report: AugmentationReport) -> str:
    if isinstance(report.result, AugmentationPresent):
        return "present"
    return report.result.reason.value


def build_orchestrator(
    settings: Settings,
    provider: AugmentationProvider,
    backends: dict[str, GenerationBackend],
    *,
    rate_limiter: SlidingWindowRateLimiter | None = None,
    budget_tracker: BudgetTracker | None = None,
    usage_recorder: UsageRecorder | None = None,
    generation_recorder: GenerationRecorder | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AugmentationOrchestrator:
    """Wire an orchestrator from settings.

    Pass the process-wide limiter, budget tracker and recorders to share them
    between orchestrators; otherwise fresh ones are created.
    """
    price_table = PriceTable(settings.tier_pricing)
    analyzer = TriggerAnalyzer(
        threshold=settings.trigger_confidence_threshold,
        query_builder=QueryBuilder(max_length=settings.query_max_length),
    )
    tier_selector = TierSelector(
        price_table=price_table,
        premium_threshold=settings.premium_complexity_threshold,
        assumed_output_tokens=settings.assumed_output_tokens,
    )
    client = AugmentationClient(
        provider,
        timeout_ms=settings.augmentation_timeout_ms,
        max_retries=settings.augmentation_max_retries,
        backoff_s={
            ErrorKind.TIMEOUT: settings.timeout_retry_backoff_s,
            ErrorKind.SERVER_ERROR: settings.server_error_retry_backoff_s,
        },
        sleep=sleep,
    )
    fallback = FallbackChainController(
        backends=backends,
        chain=settings.fallback_chain,
        timeout_ms=settings.generation_timeout_ms,
    )

    if rate_limiter is None:
        rate_limiter = SlidingWindowRateLimiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    if budget_tracker is None:
        budget_tracker = BudgetTracker(
            daily_budget_usd=settings.daily_budget_usd,
            warning_ratios=settings.budget_warning_ratios,
        )
    if usage_recorder is None:
        usage_recorder = UsageRecorder(capacity=settings.usage_capacity)
    if generation_recorder is None:
        generation_recorder = GenerationRecorder(capacity=settings.generation_usage_capacity)

    if not settings.augmentation_configured:
        logger.warning("augmentation_disabled", reason="no credentials configured")

    return AugmentationOrchestrator(
        trigger_analyzer=analyzer,
        tier_selector=tier_selector,
        rate_limiter=rate_limiter,
        budget_tracker=budget_tracker,
        augmentation_client=client,
        usage_recorder=usage_recorder,
        fallback_controller=fallback,
        price_table=price_table,
        augmentation_enabled=settings.augmentation_configured,
        augmentation_timeout_ms=settings.augmentation_timeout_ms,
        generation_recorder=generation_recorder,
    )
