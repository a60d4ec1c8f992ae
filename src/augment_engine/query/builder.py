"""Turn a free-text generation request into a compact lookup query."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timezone

EXPLICIT_PREFIXES = ("search:", "look up:", "find:", "research:", "get data on:")

_PREFIX_RE = re.compile(r"^\s*(search|look up|find|research|get data on)\s*:\s*", re.I)

# Artifact-construction phrasing carries no information for a lookup.
_ARTIFACT_PATTERNS = [
    re.compile(
        r"\b(?:create|make|build|generate|design|draw)\s+(?:a\s+|an\s+|the\s+)?"
        r"(?:bar\s+chart|pie\s+chart|line\s+chart|chart|graph|diagram|flowchart|"
        r"table|infographic|illustration|slide)s?\b",
        re.I,
    ),
    re.compile(r"\b(?:create|generate|make|design)\s+(?:a\s+|an\s+)?", re.I),
    re.compile(r"\bshow(?:ing)?\s+(?:me\s+)?", re.I),
    re.compile(r"\bdisplay(?:ing)?\s+", re.I),
    re.compile(r"\bvisuali[sz]e\s+", re.I),
    re.compile(r"\billustrate\s+", re.I),
]

_STOP_WORDS_RE = re.compile(r"\b(?:the|a|an|of|for|with|using|by|in|on|at)\b", re.I)
_YEAR_RE = re.compile(r"\b(20[0-9]{2})\b")
_RECENCY_RE = re.compile(r"\b(?:current|latest|now|today)\b|\bthis\s+(?:year|month)\b", re.I)

ELLIPSIS = "..."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def strip_explicit_prefix(text: str, explicit_prefix: str | None = None) -> str:
    if explicit_prefix:
        stripped = text.lstrip()
        if stripped.lower().startswith(explicit_prefix.lower()):
            return stripped[len(explicit_prefix):].lstrip()
    return _PREFIX_RE.sub("", text, count=1)


class QueryBuilder:
    def __init__(
        self,
        max_length: int = 200,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_length <= len(ELLIPSIS):
            raise ValueError("max_length is too small")
        self._max_length = max_length
        self._clock = clock

    def build(self, text: str, explicit_prefix: str | None = None) -> str:
        base = strip_explicit_prefix(text, explicit_prefix)

        query = base
        for pattern in _ARTIFACT_PATTERNS:
            query = pattern.sub(" ", query)
        query = _STOP_WORDS_RE.sub(" ", query)
        query = self._normalize(query)
        if not query:
            # Nothing left after stripping; look up the request as written.
            query = self._normalize(base)

        temporal = self.temporal_context(text)
        if temporal and temporal not in query:
            query = f"{query} {temporal}".strip()

        if len(query) > self._max_length:
            query = query[: self._max_length - len(ELLIPSIS)] + ELLIPSIS
        return query

    def temporal_context(self, text: str) -> str | None:
        """Year the request refers to: explicit, or the current one if it implies recency."""
        match = _YEAR_RE.search(text)
        if match:
            return match.group(1)
        if _RECENCY_RE.search(text):
            return str(self._clock().year)
        return None

    @staticmethod
    def _normalize(text: str) -> str:
        text = re.sub(r"\s+", " ", text).strip()
        return text.strip(" ,;:-")
