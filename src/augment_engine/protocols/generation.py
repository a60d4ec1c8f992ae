"""Protocol for generation backends (one per fallback-chain candidate)."""

from __future__ import annotations

from typing import Protocol

from augment_engine.models.domain import (
    AugmentationResult,
    GenerationFailure,
    GenerationSuccess,
)


class GenerationBackend(Protocol):
    @property
    def backend_id(self) -> str: ...

    async def generate(
        self,
        prompt: str,
        context: AugmentationResult,
    ) -> GenerationSuccess | GenerationFailure: ...
