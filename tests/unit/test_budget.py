"""Tests for the daily budget tracker."""

from __future__ import annotations

import threading

import pytest
from hypothesis import given
from hypothesis import strategies as st

from augment_engine.admission.budget import BudgetTracker
from conftest import ManualDateClock


def test_second_search_rejected_at_ceiling(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)

    first = tracker.check_and_reserve(0.006)
    assert first.allowed
    tracker.commit(first.reservation, 0.006)
    assert tracker.spent_today() == pytest.approx(0.006)

    second = tracker.check_and_reserve(0.006)
    assert second.allowed is False
    assert second.reservation is None
    assert second.remaining == pytest.approx(0.004)
    assert tracker.spent_today() == pytest.approx(0.006)


def test_exact_fit_is_allowed(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)
    decision = tracker.check_and_reserve(0.01)
    assert decision.allowed
    assert decision.remaining == 0.0


def test_open_reservations_count_against_ceiling(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)
    assert tracker.check_and_reserve(0.006).allowed
    assert tracker.check_and_reserve(0.006).allowed is False
    assert tracker.spent_today() == 0.0


def test_release_returns_the_reservation(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)
    decision = tracker.check_and_reserve(0.006)
    tracker.release(decision.reservation)
    assert tracker.remaining() == pytest.approx(0.01)
    assert tracker.check_and_reserve(0.006).allowed


def test_commit_charges_actual_cost(date_clock):
    tracker = BudgetTracker(daily_budget_usd=1.0, clock=date_clock)
    decision = tracker.check_and_reserve(0.05)
    tracker.commit(decision.reservation, 0.02)
    stats = tracker.stats()
    assert stats["spent_today_usd"] == pytest.approx(0.02)
    assert stats["reserved_usd"] == 0.0
    assert stats["remaining_usd"] == pytest.approx(0.98)


def test_zero_budget_refuses_paid_calls(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.0, clock=date_clock)
    assert tracker.check_and_reserve(0.001).allowed is False
    assert tracker.check_and_reserve(0.0).allowed is True


def test_negative_amounts_rejected(date_clock):
    tracker = BudgetTracker(daily_budget_usd=1.0, clock=date_clock)
    with pytest.raises(ValueError):
        tracker.check_and_reserve(-0.01)
    reservation = tracker.check_and_reserve(0.01).reservation
    with pytest.raises(ValueError):
        tracker.commit(reservation, -1.0)
    with pytest.raises(ValueError):
        BudgetTracker(daily_budget_usd=-1.0)


def test_ledger_resets_at_utc_midnight(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)
    tracker.commit(tracker.check_and_reserve(0.01).reservation, 0.01)
    assert tracker.check_and_reserve(0.001).allowed is False

    date_clock.advance(hours=12)
    assert tracker.spent_today() == 0.0
    assert tracker.check_and_reserve(0.006).allowed
    assert tracker.stats()["ledger_date"] == "2025-03-15"


def test_thresholds_reported_once_per_day(date_clock):
    tracker = BudgetTracker(daily_budget_usd=1.0, clock=date_clock)
    tracker.commit(tracker.check_and_reserve(0.85).reservation, 0.85)
    assert tracker.stats()["thresholds_crossed"] == [0.8]

    tracker.commit(tracker.check_and_reserve(0.1).reservation, 0.1)
    assert tracker.stats()["thresholds_crossed"] == [0.8, 0.9]
    assert tracker.stats()["hard_stop"] is False

    tracker.commit(tracker.check_and_reserve(0.05).reservation, 0.05)
    assert tracker.stats()["hard_stop"] is True

    date_clock.advance(days=1)
    assert tracker.stats()["thresholds_crossed"] == []


def test_overrun_is_clamped_to_the_ceiling(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)
    decision = tracker.check_and_reserve(0.005)
    charged = tracker.commit(decision.reservation, 0.012)
    assert charged == pytest.approx(0.01)
    assert tracker.spent_today() == pytest.approx(0.01)
    assert tracker.remaining() == 0.0
    assert tracker.stats()["unbilled_overrun_usd"] == pytest.approx(0.002)
    assert tracker.stats()["hard_stop"] is True
    assert tracker.check_and_reserve(0.0001).allowed is False


def test_overrun_does_not_eat_other_reservations(date_clock):
    tracker = BudgetTracker(daily_budget_usd=0.01, clock=date_clock)
    first = tracker.check_and_reserve(0.004)
    second = tracker.check_and_reserve(0.004)
    assert tracker.commit(first.reservation, 0.009) == pytest.approx(0.006)
    # The second call still has its reserved share of the ceiling.
    assert tracker.commit(second.reservation, 0.004) == pytest.approx(0.004)
    assert tracker.spent_today() == pytest.approx(0.01)


def test_overrun_within_headroom_is_charged_in_full(date_clock):
    tracker = BudgetTracker(daily_budget_usd=1.0, clock=date_clock)
    decision = tracker.check_and_reserve(0.005)
    assert tracker.commit(decision.reservation, 0.012) == pytest.approx(0.012)
    assert tracker.stats()["unbilled_overrun_usd"] == 0.0


def test_reset_clears_ledger(date_clock):
    tracker = BudgetTracker(daily_budget_usd=1.0, clock=date_clock)
    tracker.commit(tracker.check_and_reserve(0.5).reservation, 0.5)
    tracker.check_and_reserve(0.2)
    tracker.reset()
    assert tracker.remaining() == 1.0


def test_concurrent_spend_never_exceeds_ceiling():
    tracker = BudgetTracker(daily_budget_usd=0.1)
    barrier = threading.Barrier(40)
    charged = []

    def worker():
        barrier.wait()
        decision = tracker.check_and_reserve(0.006)
        if decision.allowed:
            tracker.commit(decision.reservation, 0.006)
            charged.append(1)

    threads = [threading.Thread(target=worker) for _ in range(40)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(charged) == 16
    assert tracker.spent_today() <= 0.1


@given(
    ceiling=st.decimals(min_value="0", max_value="1", places=3).map(float),
    operations=st.lists(
        st.tuples(
            st.decimals(min_value="0", max_value="0.2", places=4).map(float),
            st.sampled_from(["commit", "release", "hold"]),
            st.floats(min_value=0.0, max_value=5.0),
        ),
        max_size=40,
    ),
)
def test_spend_never_exceeds_ceiling(ceiling, operations):
    tracker = BudgetTracker(daily_budget_usd=ceiling, clock=ManualDateClock())
    for estimate, action, multiplier in operations:
        decision = tracker.check_and_reserve(estimate)
        if not decision.allowed:
            continue
        if action == "commit":
            tracker.commit(decision.reservation, round(estimate * multiplier, 6))
        elif action == "release":
            tracker.release(decision.reservation)
        assert tracker.spent_today() <= ceiling
