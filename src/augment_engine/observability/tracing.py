"""Per-request stage timing for the orchestration pipeline."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import uuid4


@dataclass
class Span:
    name: str
    start_ms: float
    end_ms: float = 0.0
    failed: bool = False
    metadata: dict = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


class TraceContext:
    """Collects one span per pipeline stage; ``trace_id`` ties the stage logs together."""

    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or uuid4().hex
        self.spans: list[Span] = []
        self._origin = time.monotonic()

    def _now_ms(self) -> float:
        return (time.monotonic() - self._origin) * 1000

    @contextmanager
    def span(self, name: str, **metadata):
        s = Span(name=name, start_ms=self._now_ms(), metadata=metadata)
        try:
            yield s
        except BaseException as e:
            s.failed = True
            s.metadata.setdefault("error_type", type(e).__name__)
            raise
        finally:
            s.end_ms = self._now_ms()
            self.spans.append(s)

    @property
    def elapsed_ms(self) -> float:
        return self._now_ms()

    def span_summary(self) -> list[dict]:
        summary = []
        for s in self.spans:
            entry = {"name": s.name, "duration_ms": round(s.duration_ms, 2), **s.metadata}
            if s.failed:
                entry["failed"] = True
            summary.append(entry)
        return summary
