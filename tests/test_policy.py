"""
Tests for SchedulingPolicy defaults, validation and YAML loading.
"""

from datetime import time, timedelta

import pytest
import yaml

from dayplanner import paths
from dayplanner.models import ActionType
from dayplanner.policy import ActionThreshold, CompositeWeights, SchedulingPolicy, load_policy
from tests.fixtures import MONDAY, SATURDAY


class TestDefaults:
    def test_documented_values(self, policy):
        assert policy.chain_buffer == timedelta(minutes=5)
        assert policy.min_chain_gap == timedelta(minutes=5)
        assert policy.min_free_slot == timedelta(minutes=30)
        assert (policy.day_start, policy.day_end) == (time(6, 0), time(22, 0))
        assert policy.backfill_max_suggestions == 3
        assert policy.routine_threshold == 3

    def test_thresholds(self, policy):
        event = policy.threshold_for(ActionType.CREATE_EVENT)
        assert (event.direct, event.middle, event.stage_middle) == (0.70, 0.50, True)
        pillar = policy.threshold_for(ActionType.CREATE_PILLAR)
        assert (pillar.direct, pillar.middle, pillar.stage_middle) == (0.85, 0.60, False)
        assert policy.threshold_for(ActionType.GENERAL_CHAT) is None

    def test_weights_sum_to_one(self, policy):
        assert policy.weights.total == pytest.approx(1.0)

    def test_weekend(self, policy):
        assert policy.is_weekend(SATURDAY) is True
        assert policy.is_weekend(MONDAY) is False


class TestValidation:
    def test_day_end_before_start(self):
        with pytest.raises(ValueError):
            SchedulingPolicy(day_start=time(22, 0), day_end=time(6, 0))

    def test_non_positive_buffer(self):
        with pytest.raises(ValueError):
            SchedulingPolicy(chain_buffer=timedelta(0))

    def test_bad_weekday(self):
        with pytest.raises(ValueError):
            SchedulingPolicy(weekend_days=(7,))

    def test_middle_above_direct(self):
        with pytest.raises(ValueError):
            ActionThreshold(direct=0.5, middle=0.7, stage_middle=True)

    def test_negative_weight(self):
        with pytest.raises(ValueError):
            CompositeWeights(urgency=-0.1)


class TestFromDict:
    def test_empty_is_default(self):
        assert SchedulingPolicy.from_dict({}) == SchedulingPolicy()

    def test_sections(self):
        policy = SchedulingPolicy.from_dict(
            {
                "chain": {"buffer_minutes": 10, "routine_threshold": 5},
                "day": {"start": "07:30", "end": "21:00", "weekend_days": ["friday", "saturday"]},
                "backfill": {"max_suggestions": 2, "lunch_window": {"start": "11:30", "end": "13:00"}},
                "ai": {"timeout_seconds": 5, "thresholds": {"create_goal": {"direct": 0.9}}},
            }
        )
        assert policy.chain_buffer == timedelta(minutes=10)
        assert policy.routine_threshold == 5
        assert policy.day_start == time(7, 30)
        assert policy.weekend_days == (4, 5)
        assert policy.backfill_max_suggestions == 2
        assert policy.lunch_start == time(11, 30)
        assert policy.ai_timeout == 5.0
        goal = policy.threshold_for(ActionType.CREATE_GOAL)
        assert goal.direct == 0.9
        assert goal.middle == 0.60

    def test_unknown_action_type(self):
        with pytest.raises(ValueError):
            SchedulingPolicy.from_dict({"ai": {"thresholds": {"create_spaceship": {"direct": 0.9}}}})

    def test_unknown_weekday(self):
        with pytest.raises(ValueError):
            SchedulingPolicy.from_dict({"day": {"weekend_days": ["caturday"]}})


class TestLoadPolicy:
    def test_bundled_file_matches_defaults(self):
        assert load_policy(paths.bundled_policy_path()) == SchedulingPolicy()

    def test_missing_file_uses_defaults(self, tmp_path, caplog):
        with caplog.at_level("WARNING", logger="dayplanner.policy"):
            assert load_policy(tmp_path / "nope.yaml") == SchedulingPolicy()
        assert f"Scheduling policy not found at {tmp_path / 'nope.yaml'}, using defaults" in caplog.text

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("chain: [unclosed")
        assert load_policy(bad) == SchedulingPolicy()

    def test_non_mapping_uses_defaults(self, tmp_path):
        listed = tmp_path / "list.yaml"
        listed.write_text("- 1\n- 2\n")
        assert load_policy(listed) == SchedulingPolicy()

    def test_env_override(self, tmp_path, monkeypatch):
        custom = tmp_path / "custom.yaml"
        custom.write_text(yaml.safe_dump({"slots": {"min_free_minutes": 45}}))
        monkeypatch.setenv("DAYPLANNER_POLICY", str(custom))
        assert load_policy().min_free_slot == timedelta(minutes=45)

    def test_app_home_default_location(self, isolated_home):
        target = isolated_home / "config" / "scheduling.yaml"
        target.parent.mkdir(parents=True)
        target.write_text(yaml.safe_dump({"pillars": {"scan_step_minutes": 15}}))
        assert paths.policy_path() == target.resolve()
        assert load_policy().pillar_scan_step == timedelta(minutes=15)
