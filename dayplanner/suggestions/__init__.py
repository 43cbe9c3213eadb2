"""
Suggestions - the boundary to the AI collaborator.

- parser: validates collaborator output and extracts requested times
- intent: request heuristics and the composite confidence
- resolver: ask / stage / apply decisions and their mutations
"""

from .intent import IntentSignals, analyze_message, has_explicit_time, has_scheduling_intent, has_urgency
from .parser import (
    AIResponse,
    CreatedItem,
    extract_requested_time,
    parse_ai_response,
    parse_chain_payload,
    parse_goal_payload,
    parse_pillar_payload,
    review_pillar,
)
from .resolver import AIService, Decision, DecisionKind, PendingStatus, PendingSuggestion, SuggestionResolver

__all__ = [
    "AIResponse",
    "AIService",
    "CreatedItem",
    "Decision",
    "DecisionKind",
    "IntentSignals",
    "PendingStatus",
    "PendingSuggestion",
    "SuggestionResolver",
    "analyze_message",
    "extract_requested_time",
    "has_explicit_time",
    "has_scheduling_intent",
    "has_urgency",
    "parse_ai_response",
    "parse_chain_payload",
    "parse_goal_payload",
    "parse_pillar_payload",
    "review_pillar",
]
