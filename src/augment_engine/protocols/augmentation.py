"""Protocol for augmentation (live lookup) providers."""

from __future__ import annotations

from typing import Protocol

from augment_engine.models.domain import ProviderError, ProviderResponse, Tier


class AugmentationProvider(Protocol):
    async def call(
        self,
        query: str,
        tier: Tier,
        timeout_ms: int,
    ) -> ProviderResponse | ProviderError: ...
