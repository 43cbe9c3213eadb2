"""
Backfill Reconstructor - rebuild a plausible day from sparse signals.

Free intervals around the known blocks are filled from a ranked list of
generic activities. Everything produced is tagged crystal (AI-generated) and
is meant to be reviewed by the user before it is committed.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from ..models import BlockOrigin, EnergyType, GlassState, TimeBlock
from ..policy import DEFAULT_POLICY, SchedulingPolicy
from .gaps import GapFinder, TimeSlot
from .timeline import DayTimeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityTemplate:
    """A generic activity with how plausible it is for an unrecorded stretch."""

    title: str
    duration: timedelta
    energy: EnergyType
    glyph: str
    confidence: float


@dataclass(frozen=True)
class DayTemplateEntry:
    """One slot of a complete typical day."""

    title: str
    start: time
    duration: timedelta
    energy: EnergyType
    glyph: str


# =============================================================================
# TEMPLATES
# =============================================================================

WEEKEND_ACTIVITIES = [
    ActivityTemplate("Sleep in", timedelta(hours=1), EnergyType.MOONLIGHT, "☁️", 0.9),
    ActivityTemplate("Meals", timedelta(minutes=90), EnergyType.DAYLIGHT, "☁️", 0.95),
    ActivityTemplate("Personal time", timedelta(hours=2), EnergyType.DAYLIGHT, "🌊", 0.8),
    ActivityTemplate("Evening activities", timedelta(minutes=90), EnergyType.MOONLIGHT, "🌊", 0.7),
]

WEEKDAY_ACTIVITIES = [
    ActivityTemplate("Morning routine", timedelta(hours=1), EnergyType.SUNRISE, "💎", 0.9),
    ActivityTemplate("Work time", timedelta(hours=8), EnergyType.DAYLIGHT, "💎", 0.85),
    ActivityTemplate("Lunch", timedelta(hours=1), EnergyType.DAYLIGHT, "☁️", 0.9),
    ActivityTemplate("Commute/travel", timedelta(hours=1), EnergyType.MOONLIGHT, "☁️", 0.7),
    ActivityTemplate("Dinner", timedelta(hours=1), EnergyType.MOONLIGHT, "☁️", 0.9),
    ActivityTemplate("Evening personal", timedelta(minutes=90), EnergyType.MOONLIGHT, "🌊", 0.6),
]

WEEKEND_DAY = [
    DayTemplateEntry("Sleep in", time(8, 0), timedelta(hours=1), EnergyType.MOONLIGHT, "☁️"),
    DayTemplateEntry("Lazy breakfast", time(9, 30), timedelta(minutes=30), EnergyType.SUNRISE, "☁️"),
    DayTemplateEntry("Personal time", time(11, 0), timedelta(hours=2), EnergyType.DAYLIGHT, "🌊"),
    DayTemplateEntry("Lunch", time(13, 0), timedelta(minutes=30), EnergyType.DAYLIGHT, "☁️"),
    DayTemplateEntry("Afternoon activities", time(15, 0), timedelta(minutes=90), EnergyType.DAYLIGHT, "🌊"),
    DayTemplateEntry("Dinner", time(18, 30), timedelta(minutes=45), EnergyType.MOONLIGHT, "☁️"),
    DayTemplateEntry("Evening relaxation", time(21, 0), timedelta(hours=1), EnergyType.MOONLIGHT, "🌊"),
]

WEEKDAY_DAY = [
    DayTemplateEntry("Morning routine", time(7, 0), timedelta(hours=1), EnergyType.SUNRISE, "💎"),
    DayTemplateEntry("Commute/Setup", time(8, 30), timedelta(minutes=30), EnergyType.SUNRISE, "☁️"),
    DayTemplateEntry("Morning work block", time(9, 30), timedelta(hours=2), EnergyType.DAYLIGHT, "💎"),
    DayTemplateEntry("Lunch break", time(12, 0), timedelta(hours=1), EnergyType.DAYLIGHT, "☁️"),
    DayTemplateEntry("Afternoon work", time(13, 30), timedelta(minutes=150), EnergyType.DAYLIGHT, "🌊"),
    DayTemplateEntry("Wrap up work", time(16, 0), timedelta(hours=1), EnergyType.DAYLIGHT, "💎"),
    DayTemplateEntry("Commute home", time(17, 30), timedelta(minutes=30), EnergyType.MOONLIGHT, "☁️"),
    DayTemplateEntry("Dinner", time(19, 0), timedelta(minutes=45), EnergyType.MOONLIGHT, "☁️"),
    DayTemplateEntry("Evening personal time", time(20, 30), timedelta(minutes=90), EnergyType.MOONLIGHT, "🌊"),
]


class BackfillReconstructor:
    def __init__(self, policy: SchedulingPolicy | None = None, gap_finder: GapFinder | None = None):
        self.policy = policy or DEFAULT_POLICY
        self.gaps = gap_finder or GapFinder(self.policy)

    def activities_for(self, day: date) -> list[ActivityTemplate]:
        """Ranked activities for the day type, most plausible first."""
        pool = WEEKEND_ACTIVITIES if self.policy.is_weekend(day) else WEEKDAY_ACTIVITIES
        return sorted(pool, key=lambda t: t.confidence, reverse=True)

    def reconstruct(self, day: date, existing: DayTimeline | list[TimeBlock]) -> list[TimeBlock]:
        """
        Propose activities for the free stretches of `day`.

        Each free interval (at least the backfill minimum) receives at most one
        activity: the most plausible unused one that fits. Intervals and
        suggestions are capped by policy. The input is not modified.
        """
        timeline = existing if isinstance(existing, DayTimeline) else DayTimeline(day, existing)
        weekend = self.policy.is_weekend(day)
        intervals = self.gaps.free_intervals(timeline, min_slot=self.policy.backfill_min_slot)
        intervals = intervals[: self.policy.backfill_max_intervals]

        remaining = self.activities_for(day)
        proposals: list[TimeBlock] = []
        for interval in intervals:
            if len(proposals) >= self.policy.backfill_max_suggestions:
                break
            template = next((t for t in remaining if interval.fits(t.duration)), None)
            if template is None:
                continue
            remaining.remove(template)
            start = self._placement_time(interval, template.duration, weekend)
            proposals.append(
                TimeBlock(
                    title=template.title,
                    start=start,
                    duration=template.duration,
                    energy=template.energy,
                    glyph=template.glyph,
                    state=GlassState.CRYSTAL,
                    origin=BlockOrigin.AI_GENERATED,
                    suggestion_confidence=template.confidence,
                    suggestion_reason=f"Typical {'weekend' if weekend else 'weekday'} activity",
                )
            )

        logger.info(
            f"Backfill for {day.isoformat()}: {len(proposals)} suggestion(s) "
            f"from {len(intervals)} free interval(s)"
        )
        return proposals

    def _placement_time(self, interval: TimeSlot, duration: timedelta, weekend: bool) -> datetime:
        day = interval.start.date()
        if not weekend and interval.start.time() < self.policy.early_morning_cutoff:
            return interval.start
        lunch_start = datetime.combine(day, self.policy.lunch_start)
        lunch_end = datetime.combine(day, self.policy.lunch_end)
        if interval.overlaps(lunch_start, lunch_end):
            return interval.start
        # Center, floored to the minute
        offset = (interval.duration - duration) / 2
        return interval.start + timedelta(minutes=offset // timedelta(minutes=1))

    def reconstruct_full_day(
        self, day: date, existing: DayTimeline | list[TimeBlock] = ()
    ) -> list[TimeBlock]:
        """The complete typical day for `day`, minus entries clashing with known blocks."""
        timeline = existing if isinstance(existing, DayTimeline) else DayTimeline(day, existing)
        template = WEEKEND_DAY if self.policy.is_weekend(day) else WEEKDAY_DAY
        blocks = []
        for entry in template:
            start = datetime.combine(day, entry.start)
            if not timeline.is_free(start, start + entry.duration):
                logger.debug(f"Skipping '{entry.title}': overlaps a recorded block")
                continue
            blocks.append(
                TimeBlock(
                    title=entry.title,
                    start=start,
                    duration=entry.duration,
                    energy=entry.energy,
                    glyph=entry.glyph,
                    state=GlassState.CRYSTAL,
                    origin=BlockOrigin.AI_GENERATED,
                )
            )
        return blocks
