"""Tests for stage tracing."""

from __future__ import annotations

import pytest

from augment_engine.observability.tracing import TraceContext


def test_spans_recorded_in_order():
    trace = TraceContext()
    with trace.span("augmentation", tier="cheap"):
        pass
    with trace.span("generation") as s:
        s.metadata["backend_id"] = "primary"

    summary = trace.span_summary()
    assert [e["name"] for e in summary] == ["augmentation", "generation"]
    assert summary[0]["tier"] == "cheap"
    assert summary[1]["backend_id"] == "primary"
    assert all(e["duration_ms"] >= 0 for e in summary)
    assert trace.elapsed_ms >= 0


def test_failed_span_is_marked_and_reraised():
    trace = TraceContext(trace_id="t-1")
    with pytest.raises(RuntimeError):
        with trace.span("generation"):
            raise RuntimeError("boom")
    (entry,) = trace.span_summary()
    assert entry["failed"] is True
    assert entry["error_type"] == "RuntimeError"
    assert trace.trace_id == "t-1"
