"""
Scheduling Policy - every tunable constant of the planner core.

Defaults are documented here; a YAML file can override any of them.

POLICY JUSTIFICATIONS:
=====================

CHAIN_BUFFER = 5 min
  - Breathing room between consecutive chain steps.
  - Also the minimum gap required when inserting a chain next to a block.

MIN_FREE_SLOT = 30 min / BACKFILL_MIN_SLOT = 30 min
  - Shorter openings are not worth proposing an activity for.

DAY WINDOW = 06:00 - 22:00
  - The "reasonable day" searched for free time and pillar fallbacks.

CONFIDENCE THRESHOLDS (per action type)
  - create_event   >= 0.70 apply, >= 0.50 stage, else clarify
  - create_goal    >= 0.80 apply, >= 0.60 clarify with partial goal, else ask
  - create_pillar  >= 0.85 apply, >= 0.60 clarify, else ask
  - create_chain   >= 0.75 apply, >= 0.60 stage, else clarify
  - Pillars and goals are long-lived, so they demand more certainty than
    a single event which the user can delete at a glance.

Resolution order for the policy file:
  explicit path -> DAYPLANNER_POLICY -> <app home>/config/scheduling.yaml -> defaults
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path

import yaml

from . import config, paths
from .models import ActionType, parse_hhmm

logger = logging.getLogger(__name__)

_WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass(frozen=True)
class ActionThreshold:
    """Confidence bands for one action type."""

    direct: float
    middle: float
    stage_middle: bool
    description: str = ""

    def __post_init__(self):
        for value in (self.direct, self.middle):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Threshold out of range: {value}")
        if self.middle > self.direct:
            raise ValueError(
                f"Middle threshold {self.middle} is above direct threshold {self.direct}"
            )


# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_THRESHOLDS: dict[ActionType, ActionThreshold] = {
    ActionType.CREATE_EVENT: ActionThreshold(
        direct=0.70,
        middle=0.50,
        stage_middle=True,
        description="Events are cheap to undo; medium confidence is staged",
    ),
    ActionType.CREATE_GOAL: ActionThreshold(
        direct=0.80,
        middle=0.60,
        stage_middle=False,
        description="Medium confidence asks for the goal's outcome",
    ),
    ActionType.CREATE_PILLAR: ActionThreshold(
        direct=0.85,
        middle=0.60,
        stage_middle=False,
        description="Medium confidence asks whether it is recurring or a principle",
    ),
    ActionType.CREATE_CHAIN: ActionThreshold(
        direct=0.75,
        middle=0.60,
        stage_middle=True,
        description="Medium confidence stages the chain for confirmation",
    ),
}


@dataclass(frozen=True)
class CompositeWeights:
    """Weights of the signals averaged into the composite confidence."""

    confidence: float = 0.5
    intent: float = 0.15
    explicit_time: float = 0.15
    urgency: float = 0.1
    single_suggestion: float = 0.05
    recent_confident: float = 0.05
    recent_threshold: float = 0.7

    def __post_init__(self):
        weights = (
            self.confidence,
            self.intent,
            self.explicit_time,
            self.urgency,
            self.single_suggestion,
            self.recent_confident,
        )
        if any(w < 0 for w in weights):
            raise ValueError("Composite weights cannot be negative")
        if sum(weights) <= 0:
            raise ValueError("Composite weights must not all be zero")

    @property
    def total(self) -> float:
        return (
            self.confidence
            + self.intent
            + self.explicit_time
            + self.urgency
            + self.single_suggestion
            + self.recent_confident
        )


@dataclass(frozen=True)
class SchedulingPolicy:
    chain_buffer: timedelta = timedelta(minutes=5)
    min_chain_gap: timedelta = timedelta(minutes=5)
    min_free_slot: timedelta = timedelta(minutes=30)
    backfill_min_slot: timedelta = timedelta(minutes=30)
    day_start: time = time(6, 0)
    day_end: time = time(22, 0)
    pillar_scan_step: timedelta = timedelta(minutes=30)
    pillar_round_to: timedelta = timedelta(minutes=15)
    default_pillar_duration: timedelta = timedelta(minutes=30)
    backfill_max_suggestions: int = 3
    backfill_max_intervals: int = 4
    lunch_start: time = time(12, 0)
    lunch_end: time = time(14, 0)
    early_morning_cutoff: time = time(9, 0)
    routine_threshold: int = 3
    weekend_days: tuple[int, ...] = (5, 6)
    ai_timeout: float = config.AI_TIMEOUT_SECONDS
    suggestion_spacing: timedelta = timedelta(minutes=30)
    thresholds: dict[ActionType, ActionThreshold] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS)
    )
    weights: CompositeWeights = field(default_factory=CompositeWeights)

    def __post_init__(self):
        positive = {
            "chain_buffer": self.chain_buffer,
            "min_free_slot": self.min_free_slot,
            "backfill_min_slot": self.backfill_min_slot,
            "pillar_scan_step": self.pillar_scan_step,
            "pillar_round_to": self.pillar_round_to,
            "default_pillar_duration": self.default_pillar_duration,
            "suggestion_spacing": self.suggestion_spacing,
        }
        for name, value in positive.items():
            if value <= timedelta(0):
                raise ValueError(f"{name} must be positive, got {value}")
        if self.min_chain_gap < timedelta(0):
            raise ValueError("min_chain_gap cannot be negative")
        if self.day_end <= self.day_start:
            raise ValueError(f"Day end {self.day_end} must be after day start {self.day_start}")
        if self.lunch_end <= self.lunch_start:
            raise ValueError("Lunch window end must be after its start")
        if self.backfill_max_suggestions < 0 or self.backfill_max_intervals < 0:
            raise ValueError("Backfill caps cannot be negative")
        if self.routine_threshold < 1:
            raise ValueError("Routine threshold must be at least 1")
        if any(d not in range(7) for d in self.weekend_days):
            raise ValueError(f"Weekend days must be weekday indexes 0-6, got {self.weekend_days}")
        if self.ai_timeout <= 0:
            raise ValueError("AI timeout must be positive")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        return datetime.combine(day, self.day_start), datetime.combine(day, self.day_end)

    def is_weekend(self, day: date) -> bool:
        return day.weekday() in self.weekend_days

    def threshold_for(self, action: ActionType) -> ActionThreshold | None:
        return self.thresholds.get(action)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> "SchedulingPolicy":
        """Build a policy from the YAML layout; absent keys keep their defaults."""
        kwargs: dict = {}
        chain = data.get("chain", {}) or {}
        day = data.get("day", {}) or {}
        slots = data.get("slots", {}) or {}
        pillars = data.get("pillars", {}) or {}
        backfill = data.get("backfill", {}) or {}
        ai = data.get("ai", {}) or {}

        _minutes(kwargs, "chain_buffer", chain, "buffer_minutes")
        _minutes(kwargs, "min_chain_gap", chain, "min_gap_minutes")
        if "routine_threshold" in chain:
            kwargs["routine_threshold"] = int(chain["routine_threshold"])

        _clock(kwargs, "day_start", day, "start")
        _clock(kwargs, "day_end", day, "end")
        if "weekend_days" in day:
            kwargs["weekend_days"] = tuple(_weekday(d) for d in day["weekend_days"])

        _minutes(kwargs, "min_free_slot", slots, "min_free_minutes")

        _minutes(kwargs, "pillar_scan_step", pillars, "scan_step_minutes")
        _minutes(kwargs, "pillar_round_to", pillars, "round_to_minutes")
        _minutes(kwargs, "default_pillar_duration", pillars, "default_duration_minutes")

        _minutes(kwargs, "backfill_min_slot", backfill, "min_slot_minutes")
        if "max_suggestions" in backfill:
            kwargs["backfill_max_suggestions"] = int(backfill["max_suggestions"])
        if "max_intervals" in backfill:
            kwargs["backfill_max_intervals"] = int(backfill["max_intervals"])
        lunch = backfill.get("lunch_window") or {}
        _clock(kwargs, "lunch_start", lunch, "start")
        _clock(kwargs, "lunch_end", lunch, "end")
        _clock(kwargs, "early_morning_cutoff", backfill, "early_morning_cutoff")

        if "timeout_seconds" in ai:
            kwargs["ai_timeout"] = float(ai["timeout_seconds"])
        _minutes(kwargs, "suggestion_spacing", ai, "suggestion_spacing_minutes")
        if ai.get("thresholds"):
            thresholds = dict(DEFAULT_THRESHOLDS)
            for name, overrides in ai["thresholds"].items():
                try:
                    action = ActionType(name)
                except ValueError:
                    raise ValueError(f"Unknown action type in thresholds: {name}") from None
                base = thresholds.get(action) or ActionThreshold(1.0, 1.0, False)
                thresholds[action] = ActionThreshold(
                    direct=float(overrides.get("direct", base.direct)),
                    middle=float(overrides.get("middle", base.middle)),
                    stage_middle=bool(overrides.get("stage_middle", base.stage_middle)),
                    description=base.description,
                )
            kwargs["thresholds"] = thresholds
        if ai.get("composite_weights"):
            kwargs["weights"] = CompositeWeights(
                **{k: float(v) for k, v in ai["composite_weights"].items()}
            )

        return cls(**kwargs)


def _minutes(kwargs: dict, name: str, section: dict, key: str) -> None:
    if key in section:
        kwargs[name] = timedelta(minutes=float(section[key]))


def _clock(kwargs: dict, name: str, section: dict, key: str) -> None:
    if key in section:
        hour, minute = parse_hhmm(str(section[key]))
        kwargs[name] = time(hour, minute)


def _weekday(value) -> int:
    if isinstance(value, int):
        return value
    name = str(value).strip().lower()
    if name in _WEEKDAY_NAMES:
        return _WEEKDAY_NAMES.index(name)
    raise ValueError(f"Unknown weekday: {value!r}")


def _load_yaml(path: Path) -> dict:
    """Load YAML policy, return empty dict on failure."""
    if not path.exists():
        logger.warning(f"Scheduling policy not found at {path}, using defaults")
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.error(f"Failed to load scheduling policy from {path}: {exc}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Scheduling policy at {path} is not a mapping, using defaults")
        return {}
    return data


def load_policy(path: str | Path | None = None) -> SchedulingPolicy:
    """
    Load the scheduling policy.

    Args:
        path: Explicit policy file. When None, DAYPLANNER_POLICY and then
            <app home>/config/scheduling.yaml are tried.

    Raises:
        ValueError: a value in the file is present but invalid.
    """
    policy_file = Path(path).expanduser() if path else paths.policy_path()
    policy = SchedulingPolicy.from_dict(_load_yaml(policy_file))
    logger.debug(f"Loaded scheduling policy from {policy_file}")
    return policy


DEFAULT_POLICY = SchedulingPolicy()
