"""
Time Truth - placement engine for a single day.

Components:
- DayTimeline: the day's non-overlapping blocks
- GapFinder: free time around a block or across the day
- ChainPlacer: atomic multi-step chain placement
- PillarTracker: due checks and slot finding for recurring pillars
- BackfillReconstructor: plausible reconstruction of unrecorded time

All placement routines are synchronous, perform no I/O, and either mutate
the timeline completely or not at all.
"""

from .backfill import BackfillReconstructor
from .chains import ChainPlacer, FailureKind, PlacementFailure, PlacementResult
from .gaps import GapCheck, GapFinder, GapStatus, TimeSlot
from .pillars import PillarAnalysis, PillarTracker, is_due_after, round_up
from .timeline import Conflict, DayTimeline, TimelineHistory

__all__ = [
    "BackfillReconstructor",
    "ChainPlacer",
    "Conflict",
    "DayTimeline",
    "FailureKind",
    "GapCheck",
    "GapFinder",
    "GapStatus",
    "PillarAnalysis",
    "PillarTracker",
    "PlacementFailure",
    "PlacementResult",
    "TimeSlot",
    "TimelineHistory",
    "is_due_after",
    "round_up",
]
