"""In-memory, append-only ledgers of augmentation and generation requests.

Writers append under a lock in O(1); readers take a bounded copy of the
ledger under the same lock and aggregate outside it, so ``stats`` never
holds writers up for longer than one copy.
"""

from __future__ import annotations

import threading
from collections import Counter, deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Generic, TypeVar

from augment_engine.models.domain import (
    GenerationRecord,
    GenerationStats,
    UsageRecord,
    UsageStats,
)
from augment_engine.observability.logger import get_logger

logger = get_logger("usage_recorder")

R = TypeVar("R", UsageRecord, GenerationRecord)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)


class _BoundedLedger(Generic[R]):
    """FIFO-evicting record buffer shared by both recorders."""

    def __init__(
        self,
        capacity: int,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._records: deque[R] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._clock = clock
        self._capacity = capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def record(self, record: R) -> None:
        with self._lock:
            self._records.append(record)
        self._log(record)

    def _log(self, record: R) -> None:
        pass

    def _snapshot(self, since: datetime | None = None) -> list[R]:
        with self._lock:
            records = list(self._records)
        if since is not None:
            since = _as_utc(since)
            records = [r for r in records if r.timestamp >= since]
        return records

    def recent(self, count: int = 10) -> list[R]:
        if count <= 0:
            return []
        return self._snapshot()[-count:]

    def records_between(self, start: datetime, end: datetime) -> list[R]:
        start, end = _as_utc(start), _as_utc(end)
        return [r for r in self._snapshot() if start <= r.timestamp <= end]

    def reset(self) -> None:
        with self._lock:
            self._records.clear()


class UsageRecorder(_BoundedLedger[UsageRecord]):
    def __init__(
        self,
        capacity: int = 10000,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(capacity, clock)

    def _log(self, record: UsageRecord) -> None:
        logger.debug(
            "usage_recorded",
            tier=record.tier.value,
            success=record.success,
            cost_usd=round(record.cost_usd, 6),
            tokens=record.total_tokens,
            error_kind=record.error_kind.value if record.error_kind else None,
        )

    def stats(self, since: datetime | None = None) -> UsageStats:
        """Aggregate the ledger, optionally only records at or after ``since``."""
        records = self._snapshot(since)
        if not records:
            return UsageStats()

        today = self._clock().date()
        total = len(records)
        successful = sum(1 for r in records if r.success)
        total_cost = sum(r.cost_usd for r in records)
        todays = [r for r in records if r.timestamp.astimezone(timezone.utc).date() == today]

        return UsageStats(
            total_requests=total,
            successful_requests=successful,
            success_rate=successful / total,
            total_cost_usd=total_cost,
            avg_cost_usd=total_cost / total,
            avg_tokens=sum(r.total_tokens for r in records) / total,
            avg_latency_ms=sum(r.latency_ms for r in records) / total,
            requests_today=len(todays),
            spend_today_usd=sum(r.cost_usd for r in todays),
            tier_distribution=dict(Counter(r.tier.value for r in records)),
            error_distribution=dict(
                Counter(r.error_kind.value for r in records if r.error_kind is not None)
            ),
        )


class GenerationRecorder(_BoundedLedger[GenerationRecord]):
    """Per-request ledger of which backend produced the artifact and at what cost."""

    def __init__(
        self,
        capacity: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(capacity, clock)

    def _log(self, record: GenerationRecord) -> None:
        logger.debug(
            "generation_recorded",
            backend_id=record.backend_id,
            success=record.success,
            attempts=record.attempts,
            fallback_used=record.fallback_used,
            tokens=record.tokens_used,
            cost_usd=round(record.cost_usd, 6),
        )

    def stats(self, since: datetime | None = None) -> GenerationStats:
        records = self._snapshot(since)
        if not records:
            return GenerationStats()

        total = len(records)
        successful = sum(1 for r in records if r.success)
        total_cost = sum(r.cost_usd for r in records)
        return GenerationStats(
            total_requests=total,
            successful_requests=successful,
            success_rate=successful / total,
            fallback_rate=sum(1 for r in records if r.fallback_used) / total,
            total_cost_usd=total_cost,
            avg_cost_usd=total_cost / total,
            avg_tokens=sum(r.tokens_used for r in records) / total,
            avg_latency_ms=sum(r.latency_ms for r in records) / total,
            backend_distribution=dict(
                Counter(r.backend_id for r in records if r.success)
            ),
            error_distribution=dict(
                Counter(r.error_kind.value for r in records if r.error_kind is not None)
            ),
        )
