"""Pick the provider tier for a lookup from a complexity heuristic."""

from __future__ import annotations

import re

from augment_engine.models.domain import ComplexityAnalysis, Tier, TierSelection
from augment_engine.observability.logger import get_logger
from augment_engine.routing.pricing import PriceTable

logger = get_logger("tier_selector")

ANALYTICAL_PHRASES = (
    "analyze",
    "analyse",
    "compare",
    "contrast",
    "evaluate",
    "assess",
    "explain why",
    "pros and cons",
    "advantages",
    "disadvantages",
    "trade-offs",
    "implications",
    "consequences",
)

_ANALYTICAL_PATTERNS = [
    (p, re.compile(r"(?<!\w)" + re.escape(p) + r"(?!\w)", re.I)) for p in ANALYTICAL_PHRASES
]

_MULTI_STEP_PATTERNS = [
    re.compile(r"\bfirst\b.*\bthen\b", re.I | re.S),
    re.compile(r"\bthen\b.*\bfinally\b", re.I | re.S),
    re.compile(r"\bstep[\s-]+by[\s-]+step\b", re.I),
]

_NUMERAL_RE = re.compile(r"\d")
_QUOTED_RE = re.compile(r"\"[^\"]+\"")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?:;]\s+")

# Factor caps; they sum to 1.0.
LENGTH_CAP = 0.3
ANALYTICAL_STEP = 0.2
ANALYTICAL_CAP = 0.4
MULTI_STEP_WEIGHT = 0.2
GENERALITY_WEIGHT = 0.1


def has_multi_step_connective(text: str) -> bool:
    return any(p.search(text) for p in _MULTI_STEP_PATTERNS)


def has_proper_noun(text: str) -> bool:
    """Capitalised word that does not open a sentence."""
    for sentence in _SENTENCE_SPLIT_RE.split(text):
        words = [w.strip("\"'(),") for w in sentence.split()]
        if any(w[:1].isupper() and w[1:2].islower() for w in words[1:]):
            return True
    return False


def analyze_complexity(query: str, request_text: str = "") -> ComplexityAnalysis:
    indicators: list[str] = []
    combined = f"{query}\n{request_text}"

    length = min(len(query) / 300, LENGTH_CAP)
    if len(query) > 100:
        indicators.append(f"long query ({len(query)} chars)")

    analytical_matches = [p for p, rx in _ANALYTICAL_PATTERNS if rx.search(query)]
    analytical = min(len(analytical_matches) * ANALYTICAL_STEP, ANALYTICAL_CAP)
    if analytical_matches:
        indicators.append(f"analytical: {', '.join(analytical_matches)}")

    multi_step_present = has_multi_step_connective(combined)
    multi_step = MULTI_STEP_WEIGHT if multi_step_present else 0.0
    if multi_step_present:
        indicators.append("multi-step connectives")

    specific = bool(
        _NUMERAL_RE.search(query)
        or _QUOTED_RE.search(combined)
        or has_proper_noun(request_text or query)
    )
    specificity = 0.0 if specific else GENERALITY_WEIGHT
    if not specific:
        indicators.append("general query")

    score = min(length + analytical + multi_step + specificity, 1.0)
    return ComplexityAnalysis(
        score=round(score, 4),
        length=length,
        analytical=analytical,
        multi_step=multi_step,
        specificity=specificity,
        indicators=tuple(indicators) or ("simple query",),
        has_multi_step_connective=multi_step_present,
    )


class TierSelector:
    def __init__(
        self,
        price_table: PriceTable | None = None,
        premium_threshold: float = 0.6,
        assumed_output_tokens: int = 500,
    ) -> None:
        self._prices = price_table or PriceTable()
        self._premium_threshold = premium_threshold
        self._assumed_output_tokens = assumed_output_tokens

    def select(self, query: str, request_text: str = "") -> TierSelection:
        analysis = analyze_complexity(query, request_text)
        pct = f"{analysis.score * 100:.0f}%"

        if analysis.has_multi_step_connective:
            tier = Tier.REASONING
            reasoning = f"Multi-step request ({pct}): {', '.join(analysis.indicators)}"
        elif analysis.score > self._premium_threshold:
            tier = Tier.PREMIUM
            reasoning = f"High complexity query ({pct}): {', '.join(analysis.indicators)}"
        else:
            tier = Tier.CHEAP
            reasoning = f"Simple query ({pct}): standard lookup sufficient"

        selection = TierSelection(
            tier=tier,
            reasoning=reasoning,
            estimated_cost_usd=self._prices.estimate(tier, query, self._assumed_output_tokens),
            complexity_score=analysis.score,
        )
        logger.debug(
            "tier_selected",
            tier=tier.value,
            score=analysis.score,
            estimated_cost_usd=round(selection.estimated_cost_usd, 6),
        )
        return selection
