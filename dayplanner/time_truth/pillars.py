"""
Pillar Due-Tracker - which recurring commitments are overdue, and where they fit.

Due status is computed on demand from the cadence and the time since the
pillar was last satisfied; it is never stored. Quiet hours behave as
obstacles: a candidate slot touching one is skipped even when no block is there.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..models import BlockOrigin, Cadence, EnergyType, GlassState, Pillar, TimeBlock
from ..policy import DEFAULT_POLICY, SchedulingPolicy
from .gaps import GapFinder, Interval
from .timeline import DayTimeline, TimelineHistory

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def is_due_after(cadence: Cadence, elapsed_days: float) -> bool:
    """True when more than the cadence's expected interval has elapsed."""
    return elapsed_days > cadence.expected_interval_days


def round_up(moment: datetime, step: timedelta) -> datetime:
    """Round `moment` up to the next multiple of `step` since midnight."""
    midnight = datetime.combine(moment.date(), datetime.min.time())
    steps = math.ceil((moment - midnight) / step)
    return midnight + step * steps


@dataclass
class PillarAnalysis:
    due: list[Pillar] = field(default_factory=list)
    proposals: list[TimeBlock] = field(default_factory=list)
    checked: int = 0

    @property
    def summary(self) -> str:
        if not self.due:
            return (
                "All your pillars are up to date! "
                "Keep up the great work maintaining your core principles."
            )
        return (
            f"Found {len(self.due)} of {self.checked} pillars that need attention "
            "based on their frequency settings."
        )

    def to_dict(self) -> dict:
        return {
            "due": [p.id for p in self.due],
            "proposals": [b.to_dict() for b in self.proposals],
            "summary": self.summary,
        }


class PillarTracker:
    def __init__(self, policy: SchedulingPolicy | None = None, gap_finder: GapFinder | None = None):
        self.policy = policy or DEFAULT_POLICY
        self.gaps = gap_finder or GapFinder(self.policy)

    # -------------------------------------------------------------------------
    # Due status
    # -------------------------------------------------------------------------

    def last_satisfied(
        self,
        pillar: Pillar,
        history: TimelineHistory | DayTimeline | None,
        as_of: datetime,
    ) -> datetime | None:
        """Later of the newest linked block at or before `as_of` and the cached timestamp."""
        candidates = []
        if isinstance(history, TimelineHistory):
            block = history.last_block_for_pillar(pillar.id, as_of)
            if block:
                candidates.append(block.start)
        elif isinstance(history, DayTimeline):
            candidates += [b.start for b in history.blocks_for_pillar(pillar.id) if b.start <= as_of]
        if pillar.last_satisfied_at and pillar.last_satisfied_at <= as_of:
            candidates.append(pillar.last_satisfied_at)
        return max(candidates, default=None)

    def is_due(
        self,
        pillar: Pillar,
        as_of: datetime,
        history: TimelineHistory | DayTimeline | None = None,
    ) -> bool:
        last = self.last_satisfied(pillar, history, as_of)
        if last is None:
            return True
        elapsed_days = (as_of - last).total_seconds() / SECONDS_PER_DAY
        return is_due_after(pillar.cadence, elapsed_days)

    # -------------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------------

    def quiet_obstacles(self, pillar: Pillar, day: date) -> list[Interval]:
        obstacles: list[Interval] = []
        for window in pillar.quiet_hours:
            obstacles.extend(window.occurrences(day))
        return obstacles

    def placement_duration(self, pillar: Pillar) -> timedelta:
        return pillar.min_duration or self.policy.default_pillar_duration

    def best_slot(
        self,
        pillar: Pillar,
        day: date,
        timeline: DayTimeline,
        now: datetime | None = None,
    ) -> tuple[datetime, timedelta] | None:
        """
        Find where the pillar fits on `day`.

        Preferred windows are tried in declared order; then the day is scanned
        from now (rounded up to the quarter hour) to the day end in fixed steps.
        Returns (start, duration) or None when nothing fits.
        """
        now = now or datetime.now()
        duration = self.placement_duration(pillar)
        obstacles = self.quiet_obstacles(pillar, day)

        for window in pillar.preferred_windows:
            start = window.start_on(day)
            if start < now:
                continue
            if self.gaps.is_slot_available(timeline, start, duration, obstacles):
                return start, duration

        day_start, day_end = self.policy.day_bounds(day)
        if day < now.date():
            return None
        if day == now.date():
            candidate = max(round_up(now, self.policy.pillar_round_to), day_start)
        else:
            candidate = day_start

        while candidate + duration <= day_end:
            if self.gaps.is_slot_available(timeline, candidate, duration, obstacles):
                return candidate, duration
            candidate += self.policy.pillar_scan_step

        logger.info(f"No slot found for pillar '{pillar.name}' on {day.isoformat()}")
        return None

    def proposal_block(self, pillar: Pillar, start: datetime, duration: timedelta) -> TimeBlock:
        return TimeBlock(
            title=pillar.name,
            start=start,
            duration=duration,
            energy=EnergyType.DAYLIGHT,
            glyph=pillar.glyph,
            state=GlassState.MIST,
            origin=BlockOrigin.SUGGESTION,
            related_goal_id=pillar.related_goal_id,
            related_pillar_id=pillar.id,
            suggestion_reason=f"{pillar.name} is due ({pillar.cadence.describe()})",
        )

    def analyze(
        self,
        pillars: list[Pillar],
        timeline: DayTimeline,
        as_of: datetime,
        history: TimelineHistory | DayTimeline | None = None,
    ) -> PillarAnalysis:
        """
        Check every pillar and propose a tentative block for each due one.

        Proposals never overlap the timeline or each other. The timeline is
        not modified.
        """
        analysis = PillarAnalysis(checked=len(pillars))
        history = history if history is not None else timeline
        working = timeline.copy()

        for pillar in pillars:
            if not self.is_due(pillar, as_of, history):
                continue
            analysis.due.append(pillar)
            slot = self.best_slot(pillar, timeline.day, working, now=as_of)
            if slot is None:
                continue
            block = self.proposal_block(pillar, *slot)
            ok, _ = working.add(block)
            if ok:
                analysis.proposals.append(block)

        logger.info(analysis.summary)
        return analysis
