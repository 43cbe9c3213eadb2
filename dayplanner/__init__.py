# Day Planner - scheduling core
"""
Placement engine for a day of time blocks, chains, pillars and AI suggestions.

Exports for the CLI and other consumers.
"""

from .library import PlannerLibrary
from .models import (
    ActionType,
    BlockOrigin,
    Cadence,
    Chain,
    ChainStep,
    EnergyType,
    FlowPattern,
    GlassState,
    Goal,
    GoalState,
    Pillar,
    Routine,
    Suggestion,
    TimeBlock,
    TimePeriod,
    TimeWindow,
)
from .policy import DEFAULT_POLICY, SchedulingPolicy, load_policy
from .suggestions import Decision, DecisionKind, SuggestionResolver, parse_ai_response
from .time_truth import (
    BackfillReconstructor,
    ChainPlacer,
    DayTimeline,
    GapFinder,
    PillarTracker,
    TimelineHistory,
)

__version__ = "0.1.0"

__all__ = [
    "ActionType",
    "BackfillReconstructor",
    "BlockOrigin",
    "Cadence",
    "Chain",
    "ChainPlacer",
    "ChainStep",
    "DEFAULT_POLICY",
    "DayTimeline",
    "Decision",
    "DecisionKind",
    "EnergyType",
    "FlowPattern",
    "GapFinder",
    "GlassState",
    "Goal",
    "GoalState",
    "Pillar",
    "PillarTracker",
    "PlannerLibrary",
    "Routine",
    "SchedulingPolicy",
    "Suggestion",
    "SuggestionResolver",
    "TimeBlock",
    "TimePeriod",
    "TimeWindow",
    "TimelineHistory",
    "load_policy",
    "parse_ai_response",
]
