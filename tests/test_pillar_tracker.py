"""
Tests for PillarTracker: due status, slot search, and the analysis pass.
"""

from datetime import datetime, timedelta

import pytest

from dayplanner.models import BlockOrigin, Cadence, GlassState, TimeWindow
from dayplanner.time_truth import DayTimeline, TimelineHistory, is_due_after, round_up
from tests.fixtures import MONDAY, at, make_block, make_pillar


class TestDueRule:
    def test_weekly_three_after_four_days_is_due(self, tracker):
        pillar = make_pillar(cadence=Cadence.weekly(3), last_satisfied_at=at(8) - timedelta(days=4))
        assert tracker.is_due(pillar, at(8)) is True

    def test_daily_after_twelve_hours_not_due(self, tracker):
        pillar = make_pillar(cadence=Cadence.daily(), last_satisfied_at=at(8) - timedelta(hours=12))
        assert tracker.is_due(pillar, at(8)) is False

    def test_exact_interval_is_not_yet_due(self):
        assert is_due_after(Cadence.daily(), 1.0) is False
        assert is_due_after(Cadence.daily(), 1.01) is True

    def test_never_satisfied_is_due(self, tracker):
        assert tracker.is_due(make_pillar(cadence=Cadence.monthly(1)), at(8)) is True

    def test_as_needed_uses_a_week(self, tracker):
        pillar = make_pillar(cadence=Cadence.as_needed(), last_satisfied_at=at(8) - timedelta(days=6))
        assert tracker.is_due(pillar, at(8)) is False

    def test_linked_block_satisfies(self, tracker, timeline):
        pillar = make_pillar(cadence=Cadence.daily())
        timeline.add(make_block("Gym", at(7), 60, related_pillar_id=pillar.id))
        assert tracker.is_due(pillar, at(8), timeline) is False

    def test_future_blocks_ignored(self, tracker, timeline):
        pillar = make_pillar(cadence=Cadence.daily())
        timeline.add(make_block("Gym", at(18), 60, related_pillar_id=pillar.id))
        assert tracker.last_satisfied(pillar, timeline, at(8)) is None

    def test_later_of_block_and_cached_timestamp(self, tracker):
        pillar = make_pillar(cadence=Cadence.weekly(1), last_satisfied_at=at(6))
        friday = MONDAY - timedelta(days=3)
        history = TimelineHistory(
            MONDAY,
            [DayTimeline(friday, [make_block("Gym", at(7, day=friday), 60, related_pillar_id=pillar.id)])],
        )
        assert tracker.last_satisfied(pillar, history, at(8)) == at(6)

    def test_due_is_idempotent(self, tracker):
        pillar = make_pillar(cadence=Cadence.weekly(2), last_satisfied_at=at(8) - timedelta(days=5))
        assert tracker.is_due(pillar, at(8)) == tracker.is_due(pillar, at(8))


class TestRoundUp:
    def test_already_aligned(self):
        assert round_up(at(9, 15), timedelta(minutes=15)) == at(9, 15)

    def test_rounds_forward(self):
        assert round_up(at(9, 1), timedelta(minutes=15)) == at(9, 15)
        assert round_up(at(9, 46), timedelta(minutes=15)) == at(10)


class TestBestSlot:
    def test_preferred_window_first(self, tracker, timeline):
        pillar = make_pillar(preferred_windows=[TimeWindow.parse("17:00", "18:00")])
        assert tracker.best_slot(pillar, MONDAY, timeline, now=at(7)) == (at(17), timedelta(minutes=30))

    def test_preferred_windows_in_declared_order(self, tracker, timeline):
        timeline.add(make_block("Busy", at(7), 60))
        pillar = make_pillar(
            preferred_windows=[TimeWindow.parse("07:00", "08:00"), TimeWindow.parse("19:00", "20:00")]
        )
        start, _ = tracker.best_slot(pillar, MONDAY, timeline, now=at(6))
        assert start == at(19)

    def test_past_preferred_window_skipped(self, tracker, timeline):
        pillar = make_pillar(preferred_windows=[TimeWindow.parse("07:00", "08:00")])
        start, _ = tracker.best_slot(pillar, MONDAY, timeline, now=at(10, 5))
        assert start == at(10, 15)

    def test_fallback_scan_from_day_start_on_future_day(self, tracker):
        tuesday = MONDAY + timedelta(days=1)
        start, _ = tracker.best_slot(make_pillar(), tuesday, DayTimeline(tuesday), now=at(12))
        assert start == at(6, day=tuesday)

    def test_scan_steps_past_blocks(self, tracker, timeline):
        timeline.add(make_block("Work", at(6), 200))
        start, _ = tracker.best_slot(make_pillar(), MONDAY, timeline, now=at(5))
        assert start == at(9, 30)

    def test_quiet_hours_are_obstacles(self, tracker, timeline):
        pillar = make_pillar(quiet_hours=[TimeWindow.parse("22:00", "08:00")])
        start, _ = tracker.best_slot(pillar, MONDAY, timeline, now=at(5))
        assert start == at(8)

    def test_past_day_has_no_slot(self, tracker):
        sunday = MONDAY - timedelta(days=1)
        assert tracker.best_slot(make_pillar(), sunday, DayTimeline(sunday), now=at(9)) is None

    def test_full_day_has_no_slot(self, tracker, timeline):
        timeline.add(make_block("Marathon", at(6), 16 * 60))
        assert tracker.best_slot(make_pillar(), MONDAY, timeline, now=at(5)) is None

    def test_slot_must_end_by_day_end(self, tracker, timeline):
        pillar = make_pillar(min_duration=timedelta(hours=1))
        assert tracker.best_slot(pillar, MONDAY, timeline, now=at(21, 10)) is None

    def test_zero_minimum_uses_default_length(self, tracker, timeline):
        pillar = make_pillar(min_duration=timedelta(0))
        _, duration = tracker.best_slot(pillar, MONDAY, timeline, now=at(5))
        assert duration == timedelta(minutes=30)


class TestAnalyze:
    def test_proposals_are_mist_suggestions(self, tracker, timeline):
        pillar = make_pillar("Reading", cadence=Cadence.daily())
        analysis = tracker.analyze([pillar], timeline, at(9))
        assert analysis.due == [pillar]
        block = analysis.proposals[0]
        assert block.state is GlassState.MIST
        assert block.origin is BlockOrigin.SUGGESTION
        assert block.related_pillar_id == pillar.id
        assert block.suggestion_reason == "Reading is due (daily)"

    def test_timeline_not_modified(self, tracker, timeline):
        tracker.analyze([make_pillar("A"), make_pillar("B")], timeline, at(9))
        assert len(timeline) == 0

    def test_proposals_do_not_overlap_each_other(self, tracker, timeline):
        pillars = [make_pillar(name) for name in ("A", "B", "C")]
        analysis = tracker.analyze(pillars, timeline, at(9))
        scratch = DayTimeline(MONDAY)
        assert scratch.add_all(analysis.proposals)[0] is True
        assert [b.start for b in analysis.proposals] == [at(9), at(9, 30), at(10)]

    def test_summary_when_all_satisfied(self, tracker, timeline):
        pillar = make_pillar(cadence=Cadence.weekly(1), last_satisfied_at=at(8) - timedelta(days=1))
        analysis = tracker.analyze([pillar], timeline, at(9))
        assert analysis.due == []
        assert analysis.summary.startswith("All your pillars are up to date!")

    def test_summary_counts(self, tracker, timeline):
        fresh = make_pillar("Fresh", last_satisfied_at=at(8))
        stale = make_pillar("Stale")
        analysis = tracker.analyze([fresh, stale], timeline, at(9))
        assert analysis.summary == (
            "Found 1 of 2 pillars that need attention based on their frequency settings."
        )

    @pytest.mark.parametrize("days", [1, 3, 8])
    def test_weekly_pillar_due_only_after_a_week(self, tracker, timeline, days):
        pillar = make_pillar(last_satisfied_at=at(9) - timedelta(days=days))
        analysis = tracker.analyze([pillar], timeline, at(9))
        assert (pillar in analysis.due) is (days > 7)

    def test_late_evening_has_no_slot(self, tracker, timeline):
        assert tracker.best_slot(make_pillar(), MONDAY, timeline, now=datetime(2026, 3, 2, 23, 0)) is None
