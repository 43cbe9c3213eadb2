"""
Timeline Store - the blocks of one calendar day.

Enforces invariants:
- No two blocks overlap ([start, end) intervals, touching edges allowed)
- Every block starts on the timeline's date
- Multi-block writes are all-or-nothing

Mutations return (success, message) and never leave the timeline in an
overlapping state. Conflicts are refused, not auto-shifted.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from ..models import TimeBlock

logger = logging.getLogger(__name__)


@dataclass
class Conflict:
    block_a_id: str
    block_b_id: str
    overlap_start: datetime
    overlap_end: datetime


class DayTimeline:
    """
    The ordered, non-overlapping set of blocks anchored to one date.

    Single-writer: callers serialize mutations on one logical thread.
    """

    def __init__(self, day: date, blocks: Iterable[TimeBlock] = ()):
        self.day = day
        self._blocks: dict[str, TimeBlock] = {}
        ok, message = self.add_all(list(blocks))
        if not ok:
            raise ValueError(f"Invalid timeline for {day}: {message}")

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[TimeBlock]:
        return iter(self.blocks)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._blocks

    def __repr__(self) -> str:
        return f"DayTimeline({self.day.isoformat()}, {len(self)} blocks)"

    @property
    def blocks(self) -> list[TimeBlock]:
        """All blocks sorted by start time."""
        return sorted(self._blocks.values(), key=lambda b: (b.start, b.id))

    def get(self, block_id: str) -> TimeBlock | None:
        return self._blocks.get(block_id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def conflicts_for(
        self, start: datetime, end: datetime, exclude_id: str | None = None
    ) -> list[TimeBlock]:
        """Blocks whose interval intersects [start, end)."""
        return [
            block
            for block in self.blocks
            if block.id != exclude_id and block.overlaps(start, end)
        ]

    def is_free(self, start: datetime, end: datetime, exclude_id: str | None = None) -> bool:
        return not self.conflicts_for(start, end, exclude_id)

    def blocks_for_pillar(self, pillar_id: str) -> list[TimeBlock]:
        return [b for b in self.blocks if b.related_pillar_id == pillar_id]

    def get_conflicts(self) -> list[Conflict]:
        """
        Detect overlapping blocks (should never happen if invariants hold).

        Returns list of conflicts found.
        """
        blocks = self.blocks
        conflicts = []
        for i, a in enumerate(blocks):
            for b in blocks[i + 1 :]:
                if b.start >= a.end:
                    break
                conflicts.append(
                    Conflict(
                        block_a_id=a.id,
                        block_b_id=b.id,
                        overlap_start=max(a.start, b.start),
                        overlap_end=min(a.end, b.end),
                    )
                )
        return conflicts

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _validate(self, block: TimeBlock, exclude_id: str | None = None) -> tuple[bool, str]:
        if block.start.date() != self.day:
            return False, f"Block starts on {block.start.date().isoformat()}, not {self.day.isoformat()}"
        conflicts = self.conflicts_for(block.start, block.end, exclude_id)
        if conflicts:
            return False, f"Overlaps with existing block: {conflicts[0].id}"
        return True, "ok"

    def add(self, block: TimeBlock) -> tuple[bool, str]:
        """
        Add a block.

        Returns:
            (success, message)
        """
        if block.id in self._blocks:
            return False, f"Block {block.id} already exists"
        ok, message = self._validate(block)
        if not ok:
            logger.debug(f"Refused block '{block.title}': {message}")
            return False, message
        self._blocks[block.id] = block
        return True, f"Added block {block.id}"

    def add_all(self, blocks: list[TimeBlock]) -> tuple[bool, str]:
        """
        Add several blocks atomically: either every block is added or none.

        Blocks are checked against the timeline and against each other.
        """
        staged = DayTimeline.__new__(DayTimeline)
        staged.day = self.day
        staged._blocks = dict(self._blocks)
        for block in blocks:
            ok, message = staged.add(block)
            if not ok:
                return False, message
        self._blocks = staged._blocks
        return True, f"Added {len(blocks)} blocks"

    def update(self, block: TimeBlock) -> tuple[bool, str]:
        """Replace the block with the same id, re-checking overlap."""
        if block.id not in self._blocks:
            return False, f"Block {block.id} not found"
        ok, message = self._validate(block, exclude_id=block.id)
        if not ok:
            return False, message
        self._blocks[block.id] = block
        return True, f"Updated block {block.id}"

    def move(self, block_id: str, start: datetime) -> tuple[bool, str]:
        block = self._blocks.get(block_id)
        if block is None:
            return False, f"Block {block_id} not found"
        return self.update(block.moved_to(start))

    def resize(self, block_id: str, duration: timedelta) -> tuple[bool, str]:
        block = self._blocks.get(block_id)
        if block is None:
            return False, f"Block {block_id} not found"
        if duration <= timedelta(0):
            return False, "Duration must be positive"
        return self.update(block.resized(duration))

    def remove(self, block_id: str) -> tuple[bool, str]:
        if self._blocks.pop(block_id, None) is None:
            return False, f"Block {block_id} not found"
        return True, f"Removed block {block_id}"

    def copy(self) -> "DayTimeline":
        clone = DayTimeline(self.day)
        clone._blocks = dict(self._blocks)
        return clone

    def to_dict(self) -> dict:
        return {"date": self.day.isoformat(), "blocks": [b.to_dict() for b in self.blocks]}

    @classmethod
    def from_dict(cls, data: dict) -> "DayTimeline":
        return cls(
            date.fromisoformat(data["date"]),
            [TimeBlock.from_dict(b) for b in data.get("blocks", [])],
        )


class TimelineHistory:
    """The current day plus a cache of other days' timelines."""

    def __init__(self, current_day: date | None = None, timelines: Iterable[DayTimeline] = ()):
        self._timelines: dict[date, DayTimeline] = {t.day: t for t in timelines}
        self._current_day = current_day or date.today()
        self.timeline_for(self._current_day)

    @property
    def current(self) -> DayTimeline:
        return self._timelines[self._current_day]

    def timeline_for(self, day: date) -> DayTimeline:
        """Timeline for `day`, created empty on first access."""
        if day not in self._timelines:
            self._timelines[day] = DayTimeline(day)
        return self._timelines[day]

    def switch_to(self, day: date) -> DayTimeline:
        self._current_day = day
        return self.timeline_for(day)

    def days(self) -> list[date]:
        return sorted(self._timelines)

    def last_block_for_pillar(self, pillar_id: str, as_of: datetime) -> TimeBlock | None:
        """Most recent block linked to the pillar starting at or before `as_of`."""
        latest: TimeBlock | None = None
        for day in self.days():
            if day > as_of.date():
                break
            for block in self._timelines[day].blocks_for_pillar(pillar_id):
                if block.start <= as_of and (latest is None or block.start > latest.start):
                    latest = block
        return latest
