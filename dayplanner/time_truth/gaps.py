"""
Gap Finder - free time around a block or across a day.

All functions are pure reads of a DayTimeline. Obstacles are synthetic
(start, end) intervals, such as a pillar's quiet hours, that block placement
without being real blocks.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import Enum

from ..models import TimeBlock
from ..policy import DEFAULT_POLICY, SchedulingPolicy
from .timeline import DayTimeline

logger = logging.getLogger(__name__)

Interval = tuple[datetime, datetime]

END_OF_DAY = time(23, 59, 59)


def _minutes(value: timedelta) -> int:
    return int(value.total_seconds() // 60)


@dataclass
class TimeSlot:
    """A free interval [start, end)."""

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return _minutes(self.duration)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end

    def fits(self, duration: timedelta) -> bool:
        return duration <= self.duration

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_minutes": self.duration_minutes,
        }


class GapStatus(Enum):
    OK = "ok"
    OVERLAP_CONFLICT = "overlap_conflict"
    INSUFFICIENT_GAP = "insufficient_gap"


@dataclass
class GapCheck:
    """Outcome of checking the room next to a proposed block."""

    status: GapStatus
    required: timedelta
    available: timedelta | None = None
    conflicting_ids: list[str] = field(default_factory=list)
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is GapStatus.OK

    @property
    def shortfall(self) -> timedelta:
        """How much more room is needed (zero unless the gap is insufficient)."""
        if self.status is not GapStatus.INSUFFICIENT_GAP or self.available is None:
            return timedelta(0)
        return self.required - self.available


class GapFinder:
    """Computes free intervals in a day given its existing blocks."""

    def __init__(self, policy: SchedulingPolicy | None = None):
        self.policy = policy or DEFAULT_POLICY

    # -------------------------------------------------------------------------
    # Around a block
    # -------------------------------------------------------------------------

    def gap_before(self, block: TimeBlock, timeline: DayTimeline) -> timedelta:
        """Time between the latest block ending at or before `block` and its start (or midnight)."""
        boundary = datetime.combine(block.start.date(), time.min)
        previous_ends = [
            b.end for b in timeline.blocks if b.id != block.id and b.end <= block.start
        ]
        return block.start - max(previous_ends, default=boundary)

    def gap_after(self, block: TimeBlock, timeline: DayTimeline) -> timedelta:
        """Time between the end of `block` and the next block's start (or 23:59:59)."""
        boundary = datetime.combine(block.start.date(), END_OF_DAY)
        next_starts = [
            b.start for b in timeline.blocks if b.id != block.id and b.start >= block.end
        ]
        gap = min(next_starts, default=boundary) - block.end
        return max(gap, timedelta(0))

    def check_gap_before(
        self, block: TimeBlock, timeline: DayTimeline, minimum: timedelta | None = None
    ) -> GapCheck:
        return self._check_gap(block, timeline, minimum, self.gap_before)

    def check_gap_after(
        self, block: TimeBlock, timeline: DayTimeline, minimum: timedelta | None = None
    ) -> GapCheck:
        return self._check_gap(block, timeline, minimum, self.gap_after)

    def _check_gap(self, block, timeline, minimum, measure) -> GapCheck:
        required = self.policy.min_chain_gap if minimum is None else minimum

        # A point inside an existing block has no gap to speak of
        conflicts = timeline.conflicts_for(block.start, block.end, exclude_id=block.id)
        if conflicts:
            return GapCheck(
                status=GapStatus.OVERLAP_CONFLICT,
                required=required,
                conflicting_ids=[b.id for b in conflicts],
                message=f"Overlaps with '{conflicts[0].title}'",
            )

        available = measure(block, timeline)
        if available < required:
            return GapCheck(
                status=GapStatus.INSUFFICIENT_GAP,
                required=required,
                available=available,
                message=f"Need {_minutes(required)} min gap ({_minutes(available)} min available)",
            )
        return GapCheck(
            status=GapStatus.OK,
            required=required,
            available=available,
            message=f"{_minutes(available)} min available",
        )

    # -------------------------------------------------------------------------
    # Across the day
    # -------------------------------------------------------------------------

    def free_intervals(
        self,
        timeline: DayTimeline,
        day_start: datetime | None = None,
        day_end: datetime | None = None,
        min_slot: timedelta | None = None,
        obstacles: Iterable[Interval] = (),
    ) -> list[TimeSlot]:
        """
        Walk the day's blocks in start order and collect the openings between them.

        Defaults: the policy day (06:00-22:00) and minimum slot (30 min).
        """
        default_start, default_end = self.policy.day_bounds(timeline.day)
        day_start = day_start or default_start
        day_end = day_end or default_end
        min_slot = self.policy.min_free_slot if min_slot is None else min_slot

        busy = [(b.start, b.end) for b in timeline.blocks] + list(obstacles)
        busy.sort()

        slots = []
        current = day_start
        for start, end in busy:
            if current >= day_end:
                break
            if start > current:
                slots.append(TimeSlot(current, min(start, day_end)))
            current = max(current, end)

        if current < day_end:
            slots.append(TimeSlot(current, day_end))

        return [s for s in slots if s.duration >= min_slot]

    def is_slot_available(
        self,
        timeline: DayTimeline,
        start: datetime,
        duration: timedelta,
        obstacles: Iterable[Interval] = (),
    ) -> bool:
        end = start + duration
        if not timeline.is_free(start, end):
            return False
        return not any(o_start < end and start < o_end for o_start, o_end in obstacles)

    def next_available_start(
        self,
        timeline: DayTimeline,
        near: datetime,
        duration: timedelta,
        obstacles: Iterable[Interval] = (),
        latest_end: datetime | None = None,
    ) -> datetime | None:
        """
        First start at or after `near` whose interval clears every block.

        Slides past each conflict in turn. Returns None when the search runs
        past `latest_end` (default 23:59:59 of `near`'s day).
        """
        latest_end = latest_end or datetime.combine(near.date(), END_OF_DAY)
        obstacles = list(obstacles)
        candidate = near
        while candidate + duration <= latest_end:
            end = candidate + duration
            blocking = [b.end for b in timeline.conflicts_for(candidate, end)]
            blocking += [o_end for o_start, o_end in obstacles if o_start < end and candidate < o_end]
            if not blocking:
                return candidate
            candidate = max(blocking)
        logger.debug(f"No room for {_minutes(duration)} min after {near:%H:%M}")
        return None
