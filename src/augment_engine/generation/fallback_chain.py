"""Walk an ordered chain of generation backends until one succeeds.

States: ``Attempting(i)`` -> ``Succeeded(i)`` (terminal), ``Attempting(i + 1)``
on a cursor-advancing failure while candidates remain, or ``Exhausted``
(terminal). Only rate-limit, server and timeout failures advance the cursor;
any other failure is tied to the request itself and ends the walk.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from augment_engine.augmentation.client import classify_exception
from augment_engine.exceptions import ConfigurationError, FallbackExhaustedError
from augment_engine.models.domain import (
    AugmentationResult,
    ErrorKind,
    GenerationAttempt,
    GenerationFailure,
    GenerationOutcome,
    GenerationSuccess,
)
from augment_engine.observability.logger import get_logger
from augment_engine.protocols.generation import GenerationBackend

logger = get_logger("fallback_chain")

ADVANCING_KINDS = frozenset(
    {ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR, ErrorKind.TIMEOUT}
)


@dataclass(frozen=True)
class Attempting:
    index: int


@dataclass(frozen=True)
class Succeeded:
    index: int


@dataclass(frozen=True)
class Exhausted:
    last_error: ErrorKind


ChainState = Attempting | Succeeded | Exhausted


class FallbackChain:
    """Ordered backend ids with a cursor. One instance per request."""

    def __init__(self, backend_ids: list[str]) -> None:
        if not backend_ids:
            raise ConfigurationError("Fallback chain needs at least one backend")
        self._ids = list(backend_ids)
        self.state: ChainState = Attempting(0)

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def current(self) -> str:
        if not isinstance(self.state, Attempting):
            raise RuntimeError(f"Chain is not attempting a backend: {self.state}")
        return self._ids[self.state.index]

    def succeed(self) -> ChainState:
        self.state = Succeeded(self.state.index)
        return self.state

    def fail(self, kind: ErrorKind) -> ChainState:
        index = self.state.index
        if kind in ADVANCING_KINDS and index + 1 < len(self._ids):
            self.state = Attempting(index + 1)
        else:
            self.state = Exhausted(kind)
        return self.state


class FallbackChainController:
    def __init__(
        self,
        backends: dict[str, GenerationBackend],
        chain: list[str],
        timeout_ms: int | None = None,
    ) -> None:
        missing = [b for b in chain if b not in backends]
        if missing:
            raise ConfigurationError(f"No backend registered for: {', '.join(missing)}")
        FallbackChain(chain)  # validates non-empty
        self._backends = backends
        self._chain = list(chain)
        self._timeout_ms = timeout_ms

    @property
    def chain(self) -> list[str]:
        return list(self._chain)

    async def run(self, prompt: str, context: AugmentationResult) -> GenerationOutcome:
        chain = FallbackChain(self._chain)
        attempts: list[GenerationAttempt] = []

        while isinstance(chain.state, Attempting):
            backend_id = chain.current
            start = time.monotonic()
            result = await self._invoke(self._backends[backend_id], prompt, context)
            latency_ms = (time.monotonic() - start) * 1000

            if isinstance(result, GenerationSuccess):
                attempts.append(GenerationAttempt(backend_id=backend_id, latency_ms=latency_ms))
                chain.succeed()
                if len(attempts) > 1:
                    logger.info(
                        "generation_fallback_succeeded",
                        backend_id=backend_id,
                        attempts=len(attempts),
                    )
                return GenerationOutcome(
                    succeeded_with=backend_id,
                    artifact=result.artifact,
                    attempts=attempts,
                    tokens_used=result.tokens_used,
                    cost_usd=result.cost_usd,
                )

            attempts.append(
                GenerationAttempt(
                    backend_id=backend_id, error_kind=result.kind, latency_ms=latency_ms
                )
            )
            state = chain.fail(result.kind)
            if isinstance(state, Attempting):
                logger.warning(
                    "generation_backend_failed",
                    backend_id=backend_id,
                    kind=result.kind.value,
                    next_backend=chain.current,
                )

        logger.error(
            "generation_exhausted",
            last_error=chain.state.last_error.value,
            attempts=[a.backend_id for a in attempts],
        )
        raise FallbackExhaustedError(chain.state.last_error, attempts)

    async def _invoke(
        self,
        backend: GenerationBackend,
        prompt: str,
        context: AugmentationResult,
    ) -> GenerationSuccess | GenerationFailure:
        try:
            call = backend.generate(prompt, context)
            if self._timeout_ms:
                result = await asyncio.wait_for(call, timeout=self._timeout_ms / 1000)
            else:
                result = await call
        except Exception as e:
            kind = classify_exception(e)
            logger.error(
                "generation_backend_exception",
                backend_id=backend.backend_id,
                error_type=type(e).__name__,
                kind=kind.value,
            )
            return GenerationFailure(kind=kind)

        if isinstance(result, (GenerationSuccess, GenerationFailure)):
            return result
        logger.error("generation_unexpected_result", result_type=type(result).__name__)
        return GenerationFailure(kind=ErrorKind.UNKNOWN)
