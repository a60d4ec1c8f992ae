"""Shared test fixtures and fakes."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from augment_engine.config.settings import Settings
from augment_engine.models.domain import (
    Citation,
    ErrorKind,
    GenerationFailure,
    GenerationSuccess,
    ProviderError,
    ProviderResponse,
)


class FakeProvider:
    """Augmentation provider that replays scripted outcomes.

    Each item is a ``ProviderResponse``, an ``ErrorKind`` (returned as a
    ``ProviderError``), an exception instance (raised) or the string
    ``"hang"`` (sleeps past any deadline). The last item repeats.
    """

    def __init__(self, *outcomes) -> None:
        self._outcomes = list(outcomes) or [make_response()]
        self.calls: list[tuple[str, str, int]] = []

    async def call(self, query, tier, timeout_ms):
        self.calls.append((query, tier.value, timeout_ms))
        index = min(len(self.calls), len(self._outcomes)) - 1
        outcome = self._outcomes[index]
        if outcome == "hang":
            await asyncio.sleep(3600)
        if isinstance(outcome, ErrorKind):
            return ProviderError(kind=outcome)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeBackend:
    """Generation backend that replays scripted outcomes.

    Same rules as ``FakeProvider``; a plain string becomes the artifact and
    a ``GenerationSuccess`` is returned as is.
    """

    def __init__(self, backend_id: str, *outcomes) -> None:
        self._id = backend_id
        self._outcomes = list(outcomes) or [f"artifact from {backend_id}"]
        self.calls: list[tuple[str, object]] = []

    @property
    def backend_id(self) -> str:
        return self._id

    async def generate(self, prompt, context):
        self.calls.append((prompt, context))
        index = min(len(self.calls), len(self._outcomes)) - 1
        outcome = self._outcomes[index]
        if isinstance(outcome, ErrorKind):
            return GenerationFailure(kind=outcome)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, GenerationSuccess):
            return outcome
        return GenerationSuccess(artifact=outcome)


class ManualClock:
    """Monotonic clock in seconds, advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualDateClock:
    """UTC wall clock, advanced by hand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_response(
    answer: str = "Nvidia, Microsoft and Apple lead by market cap.",
    tokens_in: int = 500,
    tokens_out: int = 500,
) -> ProviderResponse:
    return ProviderResponse(
        answer=answer,
        citations=[Citation(url="https://example.com/markets", title="Markets today")],
        tokens_in=tokens_in,
        tokens_out=tokens_out,
        latency_ms=120.0,
    )


@pytest.fixture
def settings():
    """Test settings with credentials and zero retry backoff."""
    return Settings(
        augmentation_api_key="test-key",
        timeout_retry_backoff_s=0.0,
        server_error_retry_backoff_s=0.0,
        fallback_chain=["primary", "secondary", "tertiary"],
        log_json=False,
    )


@pytest.fixture
def backends():
    return {name: FakeBackend(name) for name in ("primary", "secondary", "tertiary")}


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def date_clock():
    return ManualDateClock()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


def fake_components(settings):
    """Components factory in the shape the server entrypoint loads."""
    backends = {name: FakeBackend(name) for name in settings.fallback_chain}
    return FakeProvider(), backends
