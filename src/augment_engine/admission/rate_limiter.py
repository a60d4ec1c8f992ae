"""In-memory sliding window rate limiter shared by all augmentation calls.

``check_and_admit`` and ``record_admission`` are separate calls, but an
allowed check hands out a ticket that occupies a slot until it is recorded
or released. A concurrent caller therefore never sees a slot that another
caller has already been promised.
"""

from __future__ import annotations

import bisect
import itertools
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from augment_engine.observability.logger import get_logger

logger = get_logger("rate_limiter")


@dataclass(frozen=True)
class AdmissionTicket:
    ticket_id: int
    issued_at: float


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    remaining: int
    reset_in_ms: int
    ticket: AdmissionTicket | None = None


class SlidingWindowRateLimiter:
    """Sliding window over admission timestamps (seconds on ``clock``)."""

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be > 0")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._timestamps: list[float] = []
        self._pending: dict[int, AdmissionTicket] = {}
        self._ids = itertools.count(1)

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window

    def _prune(self, now: float) -> None:
        # Must hold self._lock.
        cutoff = now - self._window
        drop = bisect.bisect_right(self._timestamps, cutoff)
        if drop:
            del self._timestamps[:drop]
        expired = [tid for tid, t in self._pending.items() if t.issued_at <= cutoff]
        for tid in expired:
            del self._pending[tid]
        if expired:
            logger.warning("admission_tickets_expired", count=len(expired))

    def _reset_in_ms(self, now: float) -> int:
        # Must hold self._lock.
        oldest = [t.issued_at for t in self._pending.values()]
        if self._timestamps:
            oldest.append(self._timestamps[0])
        if not oldest:
            return 0
        return max(0, math.ceil((min(oldest) + self._window - now) * 1000))

    def check_and_admit(self) -> AdmissionDecision:
        """Prune, count and, if a slot is free, hold it with a ticket."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            remaining = self._max_requests - len(self._timestamps) - len(self._pending)
            if remaining <= 0:
                reset_in_ms = self._reset_in_ms(now)
                logger.warning(
                    "rate_limited",
                    limit=self._max_requests,
                    reset_in_ms=reset_in_ms,
                )
                return AdmissionDecision(allowed=False, remaining=0, reset_in_ms=reset_in_ms)

            ticket = AdmissionTicket(ticket_id=next(self._ids), issued_at=now)
            self._pending[ticket.ticket_id] = ticket
            return AdmissionDecision(
                allowed=True,
                remaining=remaining,
                reset_in_ms=self._reset_in_ms(now),
                ticket=ticket,
            )

    def record_admission(self, ticket: AdmissionTicket) -> bool:
        """Turn a held slot into a recorded admission at the ticket's check time.

        Returns False when the ticket was already resolved or has aged out.
        """
        with self._lock:
            if self._pending.pop(ticket.ticket_id, None) is None:
                logger.warning("admission_ticket_unknown", ticket_id=ticket.ticket_id)
                return False
            bisect.insort(self._timestamps, ticket.issued_at)
            return True

    def release(self, ticket: AdmissionTicket) -> None:
        """Give a held slot back without touching the window."""
        with self._lock:
            self._pending.pop(ticket.ticket_id, None)

    def remaining(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return max(0, self._max_requests - len(self._timestamps) - len(self._pending))

    def stats(self) -> dict:
        with self._lock:
            now = self._clock()
            self._prune(now)
            in_window = len(self._timestamps)
            pending = len(self._pending)
            return {
                "requests_in_window": in_window,
                "pending_admissions": pending,
                "remaining_requests": max(0, self._max_requests - in_window - pending),
                "max_requests": self._max_requests,
                "window_seconds": self._window,
                "reset_in_ms": self._reset_in_ms(now),
            }

    def reset(self) -> None:
        with self._lock:
            self._timestamps.clear()
            self._pending.clear()
