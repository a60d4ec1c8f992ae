"""Deadline-bounded augmentation calls with a fixed retry policy.

The client never raises past ``call``: every failure comes back as an
``AugmentationFailure`` carrying its ``ErrorKind``.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

from augment_engine.models.domain import (
    AugmentationFailure,
    ErrorKind,
    ProviderError,
    ProviderResponse,
    Tier,
)
from augment_engine.observability.logger import get_logger
from augment_engine.protocols.augmentation import AugmentationProvider

logger = get_logger("augmentation_client")

DEFAULT_BACKOFF_S: dict[ErrorKind, float] = {
    ErrorKind.TIMEOUT: 1.0,
    ErrorKind.SERVER_ERROR: 2.0,
}


def classify_exception(exc: BaseException) -> ErrorKind:
    # asyncio.TimeoutError subclasses OSError on recent interpreters; check it first.
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, (ConnectionError, OSError)):
        return ErrorKind.NETWORK_ERROR
    return ErrorKind.UNKNOWN


class AugmentationClient:
    def __init__(
        self,
        provider: AugmentationProvider,
        timeout_ms: int = 3000,
        max_retries: int = 1,
        backoff_s: dict[ErrorKind, float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._timeout_ms = timeout_ms
        self._max_retries = max_retries
        self._backoff = {**DEFAULT_BACKOFF_S, **(backoff_s or {})}
        self._sleep = sleep

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    async def call(
        self,
        query: str,
        tier: Tier,
        timeout_ms: int | None = None,
    ) -> ProviderResponse | AugmentationFailure:
        deadline_ms = timeout_ms or self._timeout_ms
        start = time.monotonic()
        # Backoff and retries share one overall deadline of deadline * (1 + retries).
        give_up_at = start + deadline_ms * (1 + self._max_retries) / 1000

        if not query.strip():
            logger.info("augmentation_invalid_request", reason="empty_query")
            return AugmentationFailure(kind=ErrorKind.INVALID_REQUEST, attempts=0)

        attempt = 0
        attempt_ms = float(deadline_ms)
        while True:
            attempt += 1
            outcome = await self._attempt(query, tier, attempt_ms)

            if isinstance(outcome, ProviderResponse):
                if attempt > 1:
                    logger.info("augmentation_recovered", tier=tier.value, attempts=attempt)
                return outcome

            kind = outcome.kind
            backoff = self._backoff.get(kind, 1.0)
            left_ms = (give_up_at - time.monotonic() - backoff) * 1000
            if not kind.retryable or attempt > self._max_retries or left_ms <= 0:
                latency_ms = (time.monotonic() - start) * 1000
                logger.warning(
                    "augmentation_failed",
                    kind=kind.value,
                    tier=tier.value,
                    attempts=attempt,
                    latency_ms=round(latency_ms, 2),
                )
                return AugmentationFailure(kind=kind, attempts=attempt, latency_ms=latency_ms)

            logger.warning(
                "augmentation_retry",
                kind=kind.value,
                tier=tier.value,
                attempt=attempt + 1,
                backoff_s=backoff,
            )
            await self._sleep(backoff)
            attempt_ms = min(float(deadline_ms), left_ms)

    async def _attempt(
        self, query: str, tier: Tier, timeout_ms: float
    ) -> ProviderResponse | ProviderError:
        try:
            result = await asyncio.wait_for(
                self._provider.call(query, tier, int(timeout_ms)),
                timeout=timeout_ms / 1000,
            )
        except Exception as e:
            kind = classify_exception(e)
            if kind is ErrorKind.UNKNOWN:
                logger.error(
                    "augmentation_provider_exception",
                    error_type=type(e).__name__,
                    tier=tier.value,
                )
            return ProviderError(kind=kind)

        if isinstance(result, (ProviderResponse, ProviderError)):
            return result
        logger.error("augmentation_unexpected_result", result_type=type(result).__name__)
        return ProviderError(kind=ErrorKind.UNKNOWN)
