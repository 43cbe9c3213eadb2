"""
Chain Placer - lays a chain out as consecutive blocks with inter-step buffers.

Placement is all-or-nothing: the whole span, buffers included, must be free
or nothing is written. A successful placement counts as one completion of the
chain.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from ..models import BlockOrigin, Chain, GlassState, TimeBlock
from ..policy import DEFAULT_POLICY, SchedulingPolicy
from .gaps import GapFinder, GapStatus
from .timeline import DayTimeline

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    OVERLAP_CONFLICT = "overlap_conflict"
    INSUFFICIENT_GAP = "insufficient_gap"
    OUT_OF_DAY = "out_of_day"
    EMPTY_CHAIN = "empty_chain"


@dataclass
class PlacementFailure:
    kind: FailureKind
    message: str
    conflicting_ids: list[str] = field(default_factory=list)
    available: timedelta | None = None
    required: timedelta | None = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "conflicting_ids": list(self.conflicting_ids),
            "available_minutes": _minutes(self.available),
            "required_minutes": _minutes(self.required),
        }


@dataclass
class PlacementResult:
    """Result of a placement attempt."""

    success: bool
    blocks: list[TimeBlock] = field(default_factory=list)
    failure: PlacementFailure | None = None
    promoted_to_routine: bool = False

    @classmethod
    def failed(cls, kind: FailureKind, message: str, **details) -> "PlacementResult":
        return cls(success=False, failure=PlacementFailure(kind=kind, message=message, **details))

    @property
    def message(self) -> str:
        if self.failure:
            return self.failure.message
        return f"Placed {len(self.blocks)} blocks"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "blocks": [b.to_dict() for b in self.blocks],
            "failure": self.failure.to_dict() if self.failure else None,
            "promoted_to_routine": self.promoted_to_routine,
        }


def _minutes(value: timedelta | None) -> int | None:
    return None if value is None else int(value.total_seconds() // 60)


class ChainPlacer:
    def __init__(self, policy: SchedulingPolicy | None = None, gap_finder: GapFinder | None = None):
        self.policy = policy or DEFAULT_POLICY
        self.gaps = gap_finder or GapFinder(self.policy)

    def layout(self, chain: Chain, start: datetime) -> list[TimeBlock]:
        """Preview the blocks a placement at `start` would create. Pure."""
        blocks = []
        cursor = start
        for step in chain.steps:
            block = TimeBlock(
                title=step.title,
                start=cursor,
                duration=step.duration,
                energy=step.energy,
                glyph=step.glyph,
                state=GlassState.SOLID,
                origin=BlockOrigin.CHAIN,
                related_goal_id=chain.related_goal_id,
                related_pillar_id=chain.related_pillar_id,
            )
            blocks.append(block)
            cursor = block.end + self.policy.chain_buffer
        return blocks

    def span_length(self, chain: Chain) -> timedelta:
        """Steps plus the buffers between them."""
        if not chain.steps:
            return timedelta(0)
        return chain.total_duration + self.policy.chain_buffer * (len(chain.steps) - 1)

    def span(self, chain: Chain, start: datetime) -> tuple[datetime, datetime]:
        return start, start + self.span_length(chain)

    def place(
        self,
        chain: Chain,
        start: datetime,
        timeline: DayTimeline,
        at: datetime | None = None,
    ) -> PlacementResult:
        """
        Place every step of `chain` from `start` onward.

        Args:
            at: completion timestamp recorded on the chain (defaults to now)

        Returns:
            PlacementResult; on failure the timeline is untouched.
        """
        if not chain.steps:
            return PlacementResult.failed(FailureKind.EMPTY_CHAIN, f"Chain '{chain.name}' has no steps")

        blocks = self.layout(chain, start)
        stray = [b for b in blocks if b.start.date() != timeline.day]
        if stray:
            return PlacementResult.failed(
                FailureKind.OUT_OF_DAY,
                f"Step '{stray[0].title}' would start on {stray[0].start.date().isoformat()}",
            )

        span_start, span_end = self.span(chain, start)
        conflicts = timeline.conflicts_for(span_start, span_end)
        if conflicts:
            logger.info(
                f"Chain '{chain.name}' at {start:%H:%M} conflicts with {len(conflicts)} block(s)"
            )
            return PlacementResult.failed(
                FailureKind.OVERLAP_CONFLICT,
                f"Chain '{chain.name}' overlaps '{conflicts[0].title}'",
                conflicting_ids=[b.id for b in conflicts],
            )

        ok, message = timeline.add_all(blocks)
        if not ok:
            return PlacementResult.failed(FailureKind.OVERLAP_CONFLICT, message)

        promoted = chain.mark_completed(at, threshold=self.policy.routine_threshold)
        logger.info(
            f"Placed chain '{chain.name}' at {start:%H:%M} ({len(blocks)} blocks, "
            f"completion #{chain.completion_count})"
        )
        if promoted:
            logger.info(f"Chain '{chain.name}' reached routine status")
        return PlacementResult(success=True, blocks=blocks, promoted_to_routine=promoted)

    def insert_before(self, chain: Chain, target: TimeBlock, timeline: DayTimeline, at=None) -> PlacementResult:
        """Place `chain` so that it ends one buffer before `target` starts."""
        check = self.gaps.check_gap_before(target, timeline)
        failure = self._gap_failure(check)
        if failure:
            return failure
        start = target.start - self.span_length(chain) - self.policy.chain_buffer
        return self.place(chain, start, timeline, at=at)

    def insert_after(self, chain: Chain, target: TimeBlock, timeline: DayTimeline, at=None) -> PlacementResult:
        """Place `chain` starting one buffer after `target` ends."""
        check = self.gaps.check_gap_after(target, timeline)
        failure = self._gap_failure(check)
        if failure:
            return failure
        start = target.end + self.policy.chain_buffer
        return self.place(chain, start, timeline, at=at)

    @staticmethod
    def _gap_failure(check) -> PlacementResult | None:
        if check.status is GapStatus.INSUFFICIENT_GAP:
            logger.info(f"Insufficient gap for chain insertion: {check.message}")
            return PlacementResult.failed(
                FailureKind.INSUFFICIENT_GAP,
                check.message,
                available=check.available,
                required=check.required,
            )
        if check.status is GapStatus.OVERLAP_CONFLICT:
            return PlacementResult.failed(
                FailureKind.OVERLAP_CONFLICT,
                check.message,
                conflicting_ids=check.conflicting_ids,
            )
        return None
