"""
Tests for DayTimeline and TimelineHistory.

The timeline refuses anything that would overlap; nothing is auto-shifted.
"""

from datetime import timedelta

import pytest

from dayplanner.time_truth import DayTimeline, TimelineHistory
from tests.fixtures import MONDAY, at, make_block


class TestAdd:
    def test_add_and_sorted_blocks(self, timeline):
        late = make_block("Late", at(14), 60)
        early = make_block("Early", at(9), 60)
        assert timeline.add(late)[0] is True
        assert timeline.add(early)[0] is True
        assert [b.title for b in timeline.blocks] == ["Early", "Late"]
        assert len(timeline) == 2
        assert early.id in timeline

    def test_overlap_refused(self, timeline):
        first = make_block("First", at(9), 60)
        timeline.add(first)
        ok, message = timeline.add(make_block("Second", at(9, 30), 60))
        assert ok is False
        assert message == f"Overlaps with existing block: {first.id}"
        assert len(timeline) == 1

    def test_touching_allowed(self, timeline):
        timeline.add(make_block("First", at(9), 60))
        assert timeline.add(make_block("Second", at(10), 60))[0] is True

    def test_other_day_refused(self, timeline):
        ok, _ = timeline.add(make_block("Tomorrow", at(9, day=MONDAY + timedelta(days=1)), 30))
        assert ok is False

    def test_duplicate_id_refused(self, timeline):
        block = make_block("Once", at(9), 30)
        timeline.add(block)
        ok, message = timeline.add(block.moved_to(at(12)))
        assert ok is False
        assert "already exists" in message


class TestAddAll:
    def test_all_or_nothing(self, timeline):
        timeline.add(make_block("Existing", at(12), 60))
        batch = [make_block("A", at(9), 60), make_block("B", at(12, 30), 30)]
        ok, _ = timeline.add_all(batch)
        assert ok is False
        assert [b.title for b in timeline.blocks] == ["Existing"]

    def test_batch_checked_against_itself(self, timeline):
        batch = [make_block("A", at(9), 60), make_block("B", at(9, 30), 60)]
        assert timeline.add_all(batch)[0] is False
        assert len(timeline) == 0

    def test_success(self, timeline):
        batch = [make_block("A", at(9), 60), make_block("B", at(10), 60)]
        assert timeline.add_all(batch) == (True, "Added 2 blocks")

    def test_constructor_rejects_overlap(self):
        with pytest.raises(ValueError):
            DayTimeline(MONDAY, [make_block("A", at(9), 60), make_block("B", at(9), 60)])


class TestEdits:
    @pytest.fixture
    def two_blocks(self, timeline):
        a = make_block("A", at(9), 60)
        b = make_block("B", at(11), 60)
        timeline.add_all([a, b])
        return a, b

    def test_move(self, timeline, two_blocks):
        a, _ = two_blocks
        assert timeline.move(a.id, at(13))[0] is True
        assert timeline.get(a.id).start == at(13)

    def test_move_into_overlap_refused(self, timeline, two_blocks):
        a, _ = two_blocks
        ok, _ = timeline.move(a.id, at(11, 30))
        assert ok is False
        assert timeline.get(a.id).start == at(9)

    def test_resize_within_itself(self, timeline, two_blocks):
        a, _ = two_blocks
        assert timeline.resize(a.id, timedelta(minutes=120))[0] is True

    def test_resize_into_neighbour_refused(self, timeline, two_blocks):
        a, _ = two_blocks
        assert timeline.resize(a.id, timedelta(minutes=150))[0] is False

    def test_resize_non_positive_refused(self, timeline, two_blocks):
        a, _ = two_blocks
        assert timeline.resize(a.id, timedelta(0)) == (False, "Duration must be positive")

    def test_remove(self, timeline, two_blocks):
        a, _ = two_blocks
        assert timeline.remove(a.id)[0] is True
        assert timeline.remove(a.id)[0] is False

    def test_unknown_id(self, timeline):
        assert timeline.move("block_missing", at(9))[0] is False
        assert timeline.update(make_block("Ghost", at(9), 30))[0] is False


class TestQueries:
    def test_conflicts_for_excludes_self(self, timeline):
        block = make_block("A", at(9), 60)
        timeline.add(block)
        assert timeline.conflicts_for(at(9), at(10)) == [block]
        assert timeline.conflicts_for(at(9), at(10), exclude_id=block.id) == []

    def test_no_conflicts_when_invariant_holds(self, timeline):
        timeline.add_all([make_block("A", at(9), 60), make_block("B", at(10), 60)])
        assert timeline.get_conflicts() == []

    def test_copy_is_independent(self, timeline):
        timeline.add(make_block("A", at(9), 60))
        clone = timeline.copy()
        clone.add(make_block("B", at(11), 60))
        assert len(timeline) == 1
        assert len(clone) == 2

    def test_dict_roundtrip(self, timeline):
        timeline.add_all([make_block("A", at(9), 60), make_block("B", at(11), 30)])
        restored = DayTimeline.from_dict(timeline.to_dict())
        assert restored.day == MONDAY
        assert restored.blocks == timeline.blocks


class TestHistory:
    def test_switch_creates_empty_day(self):
        history = TimelineHistory(MONDAY)
        tuesday = MONDAY + timedelta(days=1)
        assert len(history.switch_to(tuesday)) == 0
        assert history.current.day == tuesday
        assert history.days() == [MONDAY, tuesday]

    def test_last_block_for_pillar(self):
        friday = MONDAY - timedelta(days=3)
        history = TimelineHistory(
            MONDAY,
            [
                DayTimeline(friday, [make_block("Run", at(7, day=friday), 30, related_pillar_id="p1")]),
                DayTimeline(MONDAY, [make_block("Run", at(18), 30, related_pillar_id="p1")]),
            ],
        )
        assert history.last_block_for_pillar("p1", at(12)).start == at(7, day=friday)
        assert history.last_block_for_pillar("p1", at(19)).start == at(18)
        assert history.last_block_for_pillar("p2", at(19)) is None
