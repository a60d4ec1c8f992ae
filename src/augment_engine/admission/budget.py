"""Daily (UTC) spend ledger with a hard ceiling.

Callers reserve an estimate before a paid call and then either commit the
actual cost or release the reservation. The UTC day rollover is checked
inside the same critical section as every balance check.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from augment_engine.observability.logger import get_logger

logger = get_logger("budget")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _usd(amount: float) -> Decimal:
    return Decimal(str(amount))


@dataclass(frozen=True)
class BudgetReservation:
    reservation_id: int
    amount_usd: float
    ledger_date: date


@dataclass(frozen=True)
class BudgetDecision:
    allowed: bool
    remaining: float
    reservation: BudgetReservation | None = None


class BudgetTracker:
    def __init__(
        self,
        daily_budget_usd: float = 10.0,
        warning_ratios: list[float] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if daily_budget_usd < 0:
            raise ValueError("daily_budget_usd must be >= 0")
        self._ceiling = _usd(daily_budget_usd)
        self._warning_ratios = sorted(warning_ratios if warning_ratios is not None else [0.8, 0.9])
        self._clock = clock
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._ledger_date = self._today()
        self._spent = Decimal("0")
        self._overrun = Decimal("0")
        self._reserved: dict[int, Decimal] = {}
        self._warned: set[float] = set()
        self._hard_stop_logged = False

    @property
    def daily_budget_usd(self) -> float:
        return float(self._ceiling)

    def _today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    def _roll_over(self) -> None:
        # Must hold self._lock.
        today = self._today()
        if today == self._ledger_date:
            return
        logger.info(
            "budget_day_rollover",
            previous_date=self._ledger_date.isoformat(),
            previous_spend_usd=float(self._spent),
            dropped_reservations=len(self._reserved),
        )
        self._ledger_date = today
        self._spent = Decimal("0")
        self._overrun = Decimal("0")
        self._reserved.clear()
        self._warned.clear()
        self._hard_stop_logged = False

    def _remaining(self) -> Decimal:
        # Must hold self._lock.
        committed = self._spent + sum(self._reserved.values(), Decimal("0"))
        return max(Decimal("0"), self._ceiling - committed)

    def check_and_reserve(self, estimated_cost_usd: float) -> BudgetDecision:
        if estimated_cost_usd < 0:
            raise ValueError("estimated_cost_usd must be >= 0")
        estimate = _usd(estimated_cost_usd)
        with self._lock:
            self._roll_over()
            remaining = self._remaining()
            if estimate > remaining:
                logger.warning(
                    "budget_exceeded",
                    estimate_usd=estimated_cost_usd,
                    remaining_usd=float(remaining),
                    daily_budget_usd=float(self._ceiling),
                )
                return BudgetDecision(allowed=False, remaining=float(remaining))

            reservation = BudgetReservation(
                reservation_id=next(self._ids),
                amount_usd=estimated_cost_usd,
                ledger_date=self._ledger_date,
            )
            self._reserved[reservation.reservation_id] = estimate
            return BudgetDecision(
                allowed=True,
                remaining=float(remaining - estimate),
                reservation=reservation,
            )

    def commit(self, reservation: BudgetReservation, actual_cost_usd: float) -> float:
        """Charge a completed call and drop its reservation. Returns the amount charged.

        The charge is capped at the headroom left under the ceiling after the
        other open reservations, so the ledger never exceeds the ceiling. Any
        excess is kept as unbilled overrun for the day.
        """
        if actual_cost_usd < 0:
            raise ValueError("actual_cost_usd must be >= 0")
        actual = _usd(actual_cost_usd)
        with self._lock:
            self._roll_over()
            self._reserved.pop(reservation.reservation_id, None)
            headroom = self._remaining()
            charged = min(actual, headroom)
            overrun = actual - charged
            self._spent += charged
            self._overrun += overrun
            spent = self._spent
            crossed = self._crossed_thresholds()

        if overrun > 0:
            logger.warning(
                "budget_overrun_clamped",
                reserved_usd=reservation.amount_usd,
                actual_usd=actual_cost_usd,
                charged_usd=float(charged),
                unbilled_usd=float(overrun),
            )
        elif actual_cost_usd > reservation.amount_usd:
            logger.info(
                "budget_reservation_overrun",
                reserved_usd=reservation.amount_usd,
                actual_usd=actual_cost_usd,
            )
        for ratio in crossed:
            if ratio >= 1.0:
                logger.error(
                    "budget_hard_stop",
                    spent_usd=float(spent),
                    daily_budget_usd=float(self._ceiling),
                )
            else:
                logger.warning(
                    "budget_threshold_crossed",
                    threshold_pct=round(ratio * 100),
                    spent_usd=float(spent),
                    daily_budget_usd=float(self._ceiling),
                )
        return float(charged)

    def _crossed_thresholds(self) -> list[float]:
        # Must hold self._lock. Each threshold is reported once per day.
        if self._ceiling == 0:
            return []
        used = self._spent / self._ceiling
        crossed = []
        for ratio in self._warning_ratios:
            if used >= _usd(ratio) and ratio not in self._warned:
                self._warned.add(ratio)
                crossed.append(ratio)
        if used >= 1 and not self._hard_stop_logged:
            self._hard_stop_logged = True
            crossed.append(1.0)
        return crossed

    def release(self, reservation: BudgetReservation) -> None:
        """Drop a reservation without charging anything."""
        with self._lock:
            self._roll_over()
            self._reserved.pop(reservation.reservation_id, None)

    def spent_today(self) -> float:
        with self._lock:
            self._roll_over()
            return float(self._spent)

    def remaining(self) -> float:
        with self._lock:
            self._roll_over()
            return float(self._remaining())

    def stats(self) -> dict:
        with self._lock:
            self._roll_over()
            spent = self._spent
            reserved = sum(self._reserved.values(), Decimal("0"))
            return {
                "ledger_date": self._ledger_date.isoformat(),
                "daily_budget_usd": float(self._ceiling),
                "spent_today_usd": float(spent),
                "reserved_usd": float(reserved),
                "remaining_usd": float(self._remaining()),
                "percent_used": float(spent / self._ceiling * 100) if self._ceiling else 100.0,
                "thresholds_crossed": sorted(self._warned),
                "hard_stop": self._hard_stop_logged,
                "unbilled_overrun_usd": float(self._overrun),
            }

    def reset(self) -> None:
        with self._lock:
            self._ledger_date = self._today()
            self._spent = Decimal("0")
            self._overrun = Decimal("0")
            self._reserved.clear()
            self._warned.clear()
            self._hard_stop_logged = False
