"""Decide whether a request benefits from a live lookup."""

from __future__ import annotations

import re

from augment_engine.models.domain import TriggerAnalysis
from augment_engine.query.builder import EXPLICIT_PREFIXES, QueryBuilder

TEMPORAL_KEYWORDS = (
    "current",
    "latest",
    "recent",
    "today",
    "this year",
    "this month",
    "this week",
    "now",
    "up-to-date",
    "real-time",
)

DATA_KEYWORDS = (
    "market cap",
    "market capitalization",
    "stock price",
    "statistics",
    "data on",
    "numbers for",
    "best",
    "fastest",
    "largest",
    "ranking",
    "comparison",
)

EXPLICIT_CONFIDENCE = 1.0
TEMPORAL_WEIGHT = 0.4
DATA_WEIGHT = 0.3
QUESTION_CONTEXT_WEIGHT = 0.2


def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", re.I)


_TEMPORAL_PATTERNS = [(k, _keyword_pattern(k)) for k in TEMPORAL_KEYWORDS]
_DATA_PATTERNS = [(k, _keyword_pattern(k)) for k in DATA_KEYWORDS]
_YEAR_RE = re.compile(r"\b(20[0-9]{2})\b")
_TOP_N_RE = re.compile(r"\btop\s+(\d+)\b", re.I)
_QUESTION_RE = re.compile(r"\b(?:what|which|who|how many)\b", re.I)
_ENTITY_CONTEXT_RE = re.compile(
    r"\b(?:company|companies|country|countries|people|person|city|cities)\b", re.I
)


class TriggerAnalyzer:
    """Scores a request for augmentation. Deterministic and free of shared state."""

    def __init__(
        self,
        threshold: float = 0.7,
        query_builder: QueryBuilder | None = None,
    ) -> None:
        self._threshold = threshold
        self._builder = query_builder or QueryBuilder()

    @property
    def threshold(self) -> float:
        return self._threshold

    def analyze(self, text: str, explicit_prefix: str | None = None) -> TriggerAnalysis:
        triggers: list[str] = []
        confidence = 0.0
        lowered = text.lower().lstrip()

        # 1. Explicit prefix, in the text or supplied by the caller
        if explicit_prefix:
            triggers.append(f"explicit:{explicit_prefix.lower()}")
            confidence = EXPLICIT_CONFIDENCE
        else:
            for prefix in EXPLICIT_PREFIXES:
                if lowered.startswith(prefix):
                    triggers.append(f"explicit:{prefix}")
                    confidence = EXPLICIT_CONFIDENCE
                    break

        # 2. Temporal / recency
        temporal = [k for k, p in _TEMPORAL_PATTERNS if p.search(text)]
        temporal.extend(y for y in _YEAR_RE.findall(text) if y not in temporal)
        if temporal:
            triggers.extend(f"temporal:{k}" for k in temporal)
            confidence += TEMPORAL_WEIGHT

        # 3. Data / ranking
        data = [k for k, p in _DATA_PATTERNS if p.search(text)]
        data.extend(f"top {n}" for n in _TOP_N_RE.findall(text))
        if data:
            triggers.extend(f"data:{k}" for k in data)
            confidence += DATA_WEIGHT

        # 4. Question word about named entities
        if _QUESTION_RE.search(text) and _ENTITY_CONTEXT_RE.search(text):
            triggers.append("question+context")
            confidence += QUESTION_CONTEXT_WEIGHT

        confidence = round(min(confidence, 1.0), 4)
        needs = confidence >= self._threshold
        triggers = list(dict.fromkeys(triggers))

        if needs:
            reasoning = (
                f"Detected {len(triggers)} trigger(s) with {confidence * 100:.0f}% confidence"
            )
        else:
            reasoning = f"No strong lookup triggers detected ({confidence * 100:.0f}% confidence)"

        return TriggerAnalysis(
            needs_augmentation=needs,
            confidence=confidence,
            triggers=tuple(triggers),
            derived_query=self._builder.build(text, explicit_prefix) if needs else "",
            reasoning=reasoning,
        )

    def build_query(self, text: str, explicit_prefix: str | None = None) -> str:
        return self._builder.build(text, explicit_prefix)
