"""
Tests for BackfillReconstructor.

2026-03-02 is a Monday (weekday templates), 2026-03-07 a Saturday (weekend templates).
"""

from dayplanner.models import BlockOrigin, GlassState
from dayplanner.policy import SchedulingPolicy
from dayplanner.time_truth import BackfillReconstructor, DayTimeline
from dayplanner.time_truth.backfill import WEEKDAY_DAY, WEEKEND_DAY
from tests.fixtures import MONDAY, SATURDAY, at, make_block


def _saturday(hour, minute=0):
    return at(hour, minute, day=SATURDAY)


class TestActivities:
    def test_ranked_by_confidence(self, reconstructor):
        confidences = [t.confidence for t in reconstructor.activities_for(MONDAY)]
        assert confidences == sorted(confidences, reverse=True)

    def test_weekend_pool(self, reconstructor):
        assert reconstructor.activities_for(SATURDAY)[0].title == "Meals"

    def test_weekend_days_follow_policy(self):
        reconstructor = BackfillReconstructor(SchedulingPolicy(weekend_days=(0,)))
        assert reconstructor.activities_for(MONDAY)[0].title == "Meals"


class TestReconstruct:
    def test_empty_weekday_gets_morning_routine_at_start(self, reconstructor):
        blocks = reconstructor.reconstruct(MONDAY, [])
        assert [(b.title, b.start) for b in blocks] == [("Morning routine", at(6))]

    def test_blocks_are_crystal_ai_generated(self, reconstructor):
        block = reconstructor.reconstruct(MONDAY, [])[0]
        assert block.state is GlassState.CRYSTAL
        assert block.origin is BlockOrigin.AI_GENERATED
        assert block.suggestion_confidence == 0.9
        assert block.suggestion_reason == "Typical weekday activity"

    def test_one_activity_per_interval_without_repeats(self, reconstructor):
        existing = [make_block("Work", at(9), 8 * 60)]
        blocks = reconstructor.reconstruct(MONDAY, existing)
        assert [b.title for b in blocks] == ["Morning routine", "Lunch"]

    def test_lunch_overlap_places_at_interval_start(self, reconstructor):
        existing = [make_block("Early", at(6), 5 * 60), make_block("Late", at(15), 7 * 60)]
        blocks = reconstructor.reconstruct(MONDAY, existing)
        assert blocks[0].start == at(11)

    def test_centered_in_interval(self, reconstructor):
        existing = [make_block("Out", _saturday(6), 9 * 60), make_block("Party", _saturday(20), 120)]
        blocks = reconstructor.reconstruct(SATURDAY, existing)
        assert (blocks[0].title, blocks[0].start) == ("Meals", _saturday(16, 45))

    def test_centering_floors_to_the_minute(self, reconstructor):
        existing = [make_block("Out", _saturday(6), 9 * 60), make_block("Party", _saturday(19, 31), 149)]
        blocks = reconstructor.reconstruct(SATURDAY, existing)
        assert blocks[0].start == _saturday(16, 30)

    def test_caps(self, reconstructor):
        existing = [
            make_block("A", at(7), 60),
            make_block("B", at(9), 60),
            make_block("C", at(11), 60),
            make_block("D", at(13), 60),
            make_block("E", at(15), 7 * 60),
        ]
        blocks = reconstructor.reconstruct(MONDAY, existing)
        assert [(b.title, b.start) for b in blocks] == [
            ("Morning routine", at(6)),
            ("Lunch", at(8)),
            ("Dinner", at(10)),
        ]

    def test_interval_too_short_for_any_template(self, reconstructor):
        existing = [make_block("AM", at(6), 6 * 60), make_block("PM", at(12, 30), 570)]
        assert reconstructor.reconstruct(MONDAY, existing) == []

    def test_proposals_fit_the_existing_day(self, reconstructor):
        timeline = DayTimeline(MONDAY, [make_block("Work", at(9), 8 * 60)])
        blocks = reconstructor.reconstruct(MONDAY, timeline)
        assert timeline.copy().add_all(blocks)[0] is True
        assert len(timeline) == 1


class TestFullDay:
    def test_weekday_template(self, reconstructor):
        blocks = reconstructor.reconstruct_full_day(MONDAY)
        assert len(blocks) == len(WEEKDAY_DAY)
        assert blocks[0].title == "Morning routine"
        assert blocks[0].start == at(7)

    def test_weekend_template(self, reconstructor):
        blocks = reconstructor.reconstruct_full_day(SATURDAY)
        assert len(blocks) == len(WEEKEND_DAY)

    def test_skips_entries_clashing_with_recorded_blocks(self, reconstructor):
        blocks = reconstructor.reconstruct_full_day(MONDAY, [make_block("Client lunch", at(12), 60)])
        assert "Lunch break" not in [b.title for b in blocks]
        assert len(blocks) == len(WEEKDAY_DAY) - 1
