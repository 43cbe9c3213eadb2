"""
Tests for GapFinder: room around a block and free intervals across a day.
"""

from datetime import timedelta

from dayplanner.time_truth import GapStatus
from tests.fixtures import at, make_block


class TestGapAroundBlock:
    def test_gap_before_bounded_by_midnight(self, gaps, timeline):
        block = make_block("Solo", at(9), 30)
        assert gaps.gap_before(block, timeline) == timedelta(hours=9)

    def test_gap_before_previous_block(self, gaps, timeline):
        timeline.add(make_block("Earlier", at(8), 50))
        block = make_block("Target", at(9), 30)
        assert gaps.gap_before(block, timeline) == timedelta(minutes=10)

    def test_gap_after_bounded_by_end_of_day(self, gaps, timeline):
        block = make_block("Late", at(23), 30)
        assert gaps.gap_after(block, timeline) == timedelta(minutes=29, seconds=59)

    def test_gap_after_past_end_of_day_clamped(self, gaps, timeline):
        block = make_block("Overnight", at(23, 30), 60)
        assert gaps.gap_after(block, timeline) == timedelta(0)

    def test_gap_after_next_block(self, gaps, timeline):
        timeline.add(make_block("Next", at(10, 3), 30))
        block = make_block("Target", at(9), 60)
        assert gaps.gap_after(block, timeline) == timedelta(minutes=3)


class TestGapChecks:
    def test_point_inside_block_is_overlap(self, gaps, timeline):
        existing = make_block("Meeting", at(10), 60)
        timeline.add(existing)
        check = gaps.check_gap_before(make_block("Probe", at(10, 30), 15), timeline)
        assert check.status is GapStatus.OVERLAP_CONFLICT
        assert check.conflicting_ids == [existing.id]

    def test_insufficient_gap(self, gaps, timeline):
        timeline.add(make_block("Earlier", at(8), 58))
        target = make_block("Target", at(9), 30)
        timeline.add(target)
        check = gaps.check_gap_before(target, timeline)
        assert check.status is GapStatus.INSUFFICIENT_GAP
        assert check.available == timedelta(minutes=2)
        assert check.required == timedelta(minutes=5)
        assert check.shortfall == timedelta(minutes=3)
        assert check.message == "Need 5 min gap (2 min available)"

    def test_exact_minimum_is_ok(self, gaps, timeline):
        target = make_block("Target", at(9), 30)
        timeline.add_all([target, make_block("Next", at(9, 35), 30)])
        check = gaps.check_gap_after(target, timeline)
        assert check.ok
        assert check.shortfall == timedelta(0)

    def test_custom_minimum(self, gaps, timeline):
        target = make_block("Target", at(9), 30)
        timeline.add_all([target, make_block("Next", at(9, 40), 30)])
        check = gaps.check_gap_after(target, timeline, minimum=timedelta(minutes=15))
        assert check.status is GapStatus.INSUFFICIENT_GAP


class TestFreeIntervals:
    def test_empty_day_is_one_interval(self, gaps, timeline):
        slots = gaps.free_intervals(timeline)
        assert [(s.start, s.end) for s in slots] == [(at(6), at(22))]

    def test_openings_between_blocks(self, gaps, timeline):
        timeline.add_all(
            [
                make_block("Breakfast", at(7), 60),
                make_block("Work", at(9), 180),
                make_block("Lunch", at(12, 15), 45),
            ]
        )
        slots = gaps.free_intervals(timeline)
        assert [(s.start, s.end) for s in slots] == [
            (at(6), at(7)),
            (at(8), at(9)),
            (at(13), at(22)),
        ]

    def test_short_openings_filtered(self, gaps, timeline):
        timeline.add_all([make_block("A", at(6), 60), make_block("B", at(7, 20), 60)])
        starts = [s.start for s in gaps.free_intervals(timeline)]
        assert at(7) not in starts

    def test_blocks_outside_day_window_clip(self, gaps, timeline):
        timeline.add_all([make_block("Early", at(5), 90), make_block("Late", at(21, 30), 120)])
        slots = gaps.free_intervals(timeline)
        assert [(s.start, s.end) for s in slots] == [(at(6, 30), at(21, 30))]

    def test_obstacles_block_time(self, gaps, timeline):
        slots = gaps.free_intervals(timeline, obstacles=[(at(12), at(13))])
        assert [(s.start, s.end) for s in slots] == [(at(6), at(12)), (at(13), at(22))]

    def test_custom_bounds_and_minimum(self, gaps, timeline):
        timeline.add(make_block("A", at(10), 60))
        slots = gaps.free_intervals(
            timeline, day_start=at(9), day_end=at(12), min_slot=timedelta(minutes=60)
        )
        assert [(s.start, s.end) for s in slots] == [(at(9), at(10)), (at(11), at(12))]


class TestNextAvailableStart:
    def test_free_hint_returned(self, gaps, timeline):
        assert gaps.next_available_start(timeline, at(9), timedelta(minutes=30)) == at(9)

    def test_slides_past_conflicts(self, gaps, timeline):
        timeline.add_all([make_block("A", at(9), 60), make_block("B", at(10, 15), 60)])
        start = gaps.next_available_start(timeline, at(9, 30), timedelta(minutes=30))
        assert start == at(11, 15)

    def test_none_when_day_exhausted(self, gaps, timeline):
        timeline.add(make_block("Evening", at(22), 90))
        assert gaps.next_available_start(timeline, at(22), timedelta(hours=2)) is None

    def test_slot_available_respects_obstacles(self, gaps, timeline):
        obstacle = [(at(12), at(13))]
        assert gaps.is_slot_available(timeline, at(12, 30), timedelta(minutes=30), obstacle) is False
        assert gaps.is_slot_available(timeline, at(13), timedelta(minutes=30), obstacle) is True
