"""
Scheduling-intent heuristics over the user's original request.

The composite confidence is a weighted average of independent signals; the
model's own confidence is only one of them. Weights come from the policy.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass

from ..policy import CompositeWeights

SCHEDULING_KEYWORDS = (
    "schedule",
    "book",
    "add",
    "create",
    "plan",
    "set up",
    "arrange",
    "put in",
    "block",
    "reserve",
    "calendar",
    "time for",
    "remind me",
)

URGENCY_WORDS = ("urgent", "asap", "immediately", "now", "quickly", "soon", "today")

TIME_PATTERNS = (
    r"\bat\s+\d",
    r"@\s*\d",
    r"\d{1,2}:\d{2}",
    r"\b\d{1,2}\s*(?:am|pm)\b",
    r"\b(?:tomorrow|today|tonight|now)\b",
    r"\bin\s+\d+\s*(?:min|minute|minutes|mins|hour|hours|hr|hrs)\b",
)


def _phrase_pattern(phrases: Iterable[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(p).replace(r"\ ", r"\s+") for p in phrases)
    return re.compile(rf"\b(?:{alternatives})\b", re.IGNORECASE)


_SCHEDULING_RE = _phrase_pattern(SCHEDULING_KEYWORDS)
_URGENCY_RE = _phrase_pattern(URGENCY_WORDS)
_TIME_RES = [re.compile(p, re.IGNORECASE) for p in TIME_PATTERNS]


def has_scheduling_intent(message: str) -> bool:
    return bool(_SCHEDULING_RE.search(message))


def has_urgency(message: str) -> bool:
    return bool(_URGENCY_RE.search(message))


def has_explicit_time(message: str) -> bool:
    return any(p.search(message) for p in _TIME_RES)


@dataclass(frozen=True)
class IntentSignals:
    confidence: float
    intent: bool = False
    explicit_time: bool = False
    urgency: bool = False
    single_suggestion: bool = False
    recent_confident: bool = False

    def composite(self, weights: CompositeWeights) -> float:
        """Weighted average of the signals, in [0, 1]."""
        score = (
            weights.confidence * self.confidence
            + weights.intent * self.intent
            + weights.explicit_time * self.explicit_time
            + weights.urgency * self.urgency
            + weights.single_suggestion * self.single_suggestion
            + weights.recent_confident * self.recent_confident
        )
        return min(1.0, max(0.0, score / weights.total))


def analyze_message(
    message: str,
    confidence: float,
    suggestion_count: int,
    recent_confidences: Iterable[float] = (),
    weights: CompositeWeights | None = None,
) -> IntentSignals:
    weights = weights or CompositeWeights()
    return IntentSignals(
        confidence=confidence,
        intent=has_scheduling_intent(message),
        explicit_time=has_explicit_time(message),
        urgency=has_urgency(message),
        single_suggestion=suggestion_count == 1,
        recent_confident=any(c > weights.recent_threshold for c in recent_confidences),
    )
