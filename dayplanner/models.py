"""
Core value types for the day planner.

Blocks, chain steps, cadences and windows are immutable values; edits produce
new values. Chains, pillars and goals are records that the library mutates
(completion counters, cached timestamps). Cross references between records are
plain identifiers resolved by lookup, never owning references.

Every persisted record round-trips through to_dict()/from_dict(). Instants are
naive local ISO-8601 strings, durations are seconds.
"""

import logging
import re
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4

logger = logging.getLogger(__name__)

ROUTINE_THRESHOLD = 3
ROUTINE_SPACING = timedelta(hours=24)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def _seconds(value: timedelta) -> int | float:
    secs = value.total_seconds()
    return int(secs) if secs.is_integer() else secs


def _from_seconds(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=float(value))


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


# =============================================================================
# ENUMS
# =============================================================================


class EnergyType(Enum):
    """Qualitative energy of an activity."""

    SUNRISE = "sunrise"
    DAYLIGHT = "daylight"
    MOONLIGHT = "moonlight"


class GlassState(Enum):
    """Provenance/confidence of a block."""

    SOLID = "solid"  # user-confirmed
    LIQUID = "liquid"  # being edited or moved
    MIST = "mist"  # tentative, low confidence
    CRYSTAL = "crystal"  # AI-generated


class BlockOrigin(Enum):
    """Which path created a block."""

    MANUAL = "manual"
    CHAIN = "chain"
    SUGGESTION = "suggestion"
    AI_GENERATED = "ai_generated"


class FlowPattern(Enum):
    """Descriptive shape of a chain. Does not affect placement."""

    WATERFALL = "waterfall"
    SPIRAL = "spiral"
    RIPPLE = "ripple"
    WAVE = "wave"


class GoalState(Enum):
    DRAFT = "draft"
    ON = "on"
    OFF = "off"


class TimePeriod(Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def for_hour(cls, hour: int) -> "TimePeriod":
        if 6 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 18:
            return cls.AFTERNOON
        return cls.EVENING


class ActionType(Enum):
    """What the AI collaborator believes the user asked for."""

    CREATE_EVENT = "create_event"
    CREATE_GOAL = "create_goal"
    CREATE_PILLAR = "create_pillar"
    CREATE_CHAIN = "create_chain"
    SUGGEST_ACTIVITIES = "suggest_activities"
    GENERAL_CHAT = "general_chat"


# =============================================================================
# TIME BLOCK
# =============================================================================


@dataclass(frozen=True)
class TimeBlock:
    """A single scheduled activity occupying [start, end)."""

    title: str
    start: datetime
    duration: timedelta
    energy: EnergyType = EnergyType.DAYLIGHT
    glyph: str = ""
    state: GlassState = GlassState.SOLID
    origin: BlockOrigin = BlockOrigin.MANUAL
    related_goal_id: str | None = None
    related_pillar_id: str | None = None
    suggestion_id: str | None = None
    suggestion_reason: str | None = None
    suggestion_confidence: float | None = None
    notes: str = ""
    id: str = field(default_factory=lambda: _new_id("block"))

    def __post_init__(self):
        if self.duration <= timedelta(0):
            raise ValueError(f"Block duration must be positive, got {self.duration}")
        if self.suggestion_confidence is not None and not 0.0 <= self.suggestion_confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {self.suggestion_confidence}")

    @property
    def end(self) -> datetime:
        return self.start + self.duration

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @property
    def period(self) -> TimePeriod:
        return TimePeriod.for_hour(self.start.hour)

    @property
    def day(self) -> date:
        return self.start.date()

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval intersection: touching edges do not overlap."""
        return self.start < end and start < self.end

    def moved_to(self, start: datetime) -> "TimeBlock":
        return replace(self, start=start)

    def resized(self, duration: timedelta) -> "TimeBlock":
        return replace(self, duration=duration)

    def with_state(self, state: GlassState) -> "TimeBlock":
        return replace(self, state=state)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "duration": _seconds(self.duration),
            "energy": self.energy.value,
            "glyph": self.glyph,
            "state": self.state.value,
            "origin": self.origin.value,
            "related_goal_id": self.related_goal_id,
            "related_pillar_id": self.related_pillar_id,
            "suggestion_id": self.suggestion_id,
            "suggestion_reason": self.suggestion_reason,
            "suggestion_confidence": self.suggestion_confidence,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeBlock":
        return cls(
            id=data.get("id") or _new_id("block"),
            title=data["title"],
            start=_parse_dt(data["start"]),
            duration=_from_seconds(data["duration"]),
            energy=EnergyType(data.get("energy", EnergyType.DAYLIGHT.value)),
            glyph=data.get("glyph", ""),
            state=GlassState(data.get("state", GlassState.SOLID.value)),
            origin=BlockOrigin(data.get("origin", BlockOrigin.MANUAL.value)),
            related_goal_id=data.get("related_goal_id"),
            related_pillar_id=data.get("related_pillar_id"),
            suggestion_id=data.get("suggestion_id"),
            suggestion_reason=data.get("suggestion_reason"),
            suggestion_confidence=data.get("suggestion_confidence"),
            notes=data.get("notes", ""),
        )


# =============================================================================
# CHAINS
# =============================================================================


@dataclass(frozen=True)
class ChainStep:
    """Template for one block of a chain."""

    title: str
    duration: timedelta
    energy: EnergyType = EnergyType.DAYLIGHT
    glyph: str = ""

    def __post_init__(self):
        if self.duration <= timedelta(0):
            raise ValueError(f"Step duration must be positive, got {self.duration}")

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "duration": _seconds(self.duration),
            "energy": self.energy.value,
            "glyph": self.glyph,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChainStep":
        return cls(
            title=data["title"],
            duration=_from_seconds(data["duration"]),
            energy=EnergyType(data.get("energy", EnergyType.DAYLIGHT.value)),
            glyph=data.get("glyph", ""),
        )


@dataclass
class Chain:
    """A named, ordered sequence of block templates."""

    name: str
    steps: list[ChainStep] = field(default_factory=list)
    flow_pattern: FlowPattern = FlowPattern.WATERFALL
    completion_count: int = 0
    routine: bool = False
    is_active: bool = True
    glyph: str = "🔗"
    related_goal_id: str | None = None
    related_pillar_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    last_completed_at: datetime | None = None
    completion_history: list[datetime] = field(default_factory=list)
    routine_prompt_shown: bool = False
    id: str = field(default_factory=lambda: _new_id("chain"))

    @property
    def total_duration(self) -> timedelta:
        return sum((step.duration for step in self.steps), timedelta(0))

    def mark_completed(self, at: datetime | None = None, threshold: int = ROUTINE_THRESHOLD) -> bool:
        """
        Record one successful placement.

        Returns True when this completion crossed the routine threshold.
        """
        at = at or datetime.now()
        self.completion_count += 1
        self.last_completed_at = at
        self.completion_history.append(at)
        if not self.routine and self.completion_count >= threshold:
            self.routine = True
            return True
        return False

    def can_be_promoted_to_routine(self, threshold: int = ROUTINE_THRESHOLD) -> bool:
        """Enough completions, not yet offered, and completions spread over separate days."""
        if self.completion_count < threshold or self.routine_prompt_shown:
            return False
        history = sorted(self.completion_history)
        if len(history) < threshold:
            return False
        for earlier, later in zip(history, history[1:]):
            if later - earlier < ROUTINE_SPACING:
                return False
        return True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "steps": [step.to_dict() for step in self.steps],
            "flow_pattern": self.flow_pattern.value,
            "completion_count": self.completion_count,
            "routine": self.routine,
            "is_active": self.is_active,
            "glyph": self.glyph,
            "related_goal_id": self.related_goal_id,
            "related_pillar_id": self.related_pillar_id,
            "created_at": _iso(self.created_at),
            "last_completed_at": _iso(self.last_completed_at),
            "completion_history": [ts.isoformat() for ts in self.completion_history],
            "routine_prompt_shown": self.routine_prompt_shown,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Chain":
        return cls(
            id=data.get("id") or _new_id("chain"),
            name=data["name"],
            steps=[ChainStep.from_dict(s) for s in data.get("steps", [])],
            flow_pattern=FlowPattern(data.get("flow_pattern", FlowPattern.WATERFALL.value)),
            completion_count=int(data.get("completion_count", 0)),
            routine=bool(data.get("routine", False)),
            is_active=bool(data.get("is_active", True)),
            glyph=data.get("glyph", "🔗"),
            related_goal_id=data.get("related_goal_id"),
            related_pillar_id=data.get("related_pillar_id"),
            created_at=_parse_dt(data.get("created_at")) or datetime.now(),
            last_completed_at=_parse_dt(data.get("last_completed_at")),
            completion_history=[_parse_dt(ts) for ts in data.get("completion_history", [])],
            routine_prompt_shown=bool(data.get("routine_prompt_shown", False)),
        )


@dataclass
class Routine:
    """A chain adopted as a habit after repeated completion."""

    chain_id: str
    name: str
    adoption_score: float = 0.7
    window: "TimeWindow | None" = None
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: _new_id("routine"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "chain_id": self.chain_id,
            "name": self.name,
            "adoption_score": self.adoption_score,
            "window": self.window.to_dict() if self.window else None,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Routine":
        window = data.get("window")
        return cls(
            id=data.get("id") or _new_id("routine"),
            chain_id=data["chain_id"],
            name=data["name"],
            adoption_score=float(data.get("adoption_score", 0.7)),
            window=TimeWindow.from_dict(window) if window else None,
            created_at=_parse_dt(data.get("created_at")) or datetime.now(),
        )


# =============================================================================
# PILLARS
# =============================================================================


class CadenceKind(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    AS_NEEDED = "as_needed"


_TIMES_PER = re.compile(r"(\d+)\s*x?\s*(?:times?\s*)?(?:per|a|/)\s*(week|month)", re.IGNORECASE)


@dataclass(frozen=True)
class Cadence:
    """How often a pillar expects to be honoured."""

    kind: CadenceKind
    times: int = 1

    def __post_init__(self):
        if self.times < 1:
            raise ValueError(f"Cadence needs at least one occurrence, got {self.times}")

    @classmethod
    def daily(cls) -> "Cadence":
        return cls(CadenceKind.DAILY)

    @classmethod
    def weekly(cls, times: int = 1) -> "Cadence":
        return cls(CadenceKind.WEEKLY, times)

    @classmethod
    def monthly(cls, times: int = 1) -> "Cadence":
        return cls(CadenceKind.MONTHLY, times)

    @classmethod
    def as_needed(cls) -> "Cadence":
        return cls(CadenceKind.AS_NEEDED)

    @property
    def expected_interval_days(self) -> float:
        if self.kind is CadenceKind.DAILY:
            return 1.0
        if self.kind is CadenceKind.WEEKLY:
            return 7.0 / self.times
        if self.kind is CadenceKind.MONTHLY:
            return 30.0 / self.times
        return 7.0

    def describe(self) -> str:
        if self.kind is CadenceKind.DAILY:
            return "daily"
        if self.kind is CadenceKind.AS_NEEDED:
            return "as needed"
        unit = "week" if self.kind is CadenceKind.WEEKLY else "month"
        return f"{self.times}x per {unit}"

    @classmethod
    def parse(cls, text: str | None) -> "Cadence":
        """Parse free text ("daily", "3x per week", "as needed"); unknown text is weekly(1)."""
        if not text:
            return cls.weekly(1)
        normalized = text.strip().lower()
        match = _TIMES_PER.search(normalized)
        if match:
            times = max(1, int(match.group(1)))
            return cls.weekly(times) if match.group(2) == "week" else cls.monthly(times)
        if normalized == "daily":
            return cls.daily()
        if normalized == "weekly":
            return cls.weekly(1)
        if normalized == "monthly":
            return cls.monthly(1)
        if normalized.replace("_", " ") in ("as needed", "asneeded"):
            return cls.as_needed()
        logger.debug(f"Unrecognized cadence {text!r}, defaulting to weekly")
        return cls.weekly(1)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "times": self.times}

    @classmethod
    def from_dict(cls, data: dict | str) -> "Cadence":
        if isinstance(data, str):
            return cls.parse(data)
        return cls(CadenceKind(data["kind"]), int(data.get("times", 1)))


_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_hhmm(value: str) -> tuple[int, int]:
    match = _HHMM.match(value)
    if not match:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return int(match.group(1)), int(match.group(2))


@dataclass(frozen=True)
class TimeWindow:
    """
    A daily recurring wall-clock window [start, end).

    A window whose end is at or before its start wraps past midnight
    (22:00-06:00 covers late evening and the early hours of the next day).
    """

    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int

    def __post_init__(self):
        for hour in (self.start_hour, self.end_hour):
            if not 0 <= hour <= 23:
                raise ValueError(f"Hour out of range: {hour}")
        for minute in (self.start_minute, self.end_minute):
            if not 0 <= minute <= 59:
                raise ValueError(f"Minute out of range: {minute}")
        if self.start_time == self.end_time:
            raise ValueError("Window start and end must differ")

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeWindow":
        sh, sm = parse_hhmm(start)
        eh, em = parse_hhmm(end)
        return cls(sh, sm, eh, em)

    @property
    def start_time(self) -> time:
        return time(self.start_hour, self.start_minute)

    @property
    def end_time(self) -> time:
        return time(self.end_hour, self.end_minute)

    @property
    def wraps_midnight(self) -> bool:
        return self.end_time <= self.start_time

    @property
    def length(self) -> timedelta:
        start = self.start_hour * 60 + self.start_minute
        end = self.end_hour * 60 + self.end_minute
        if end <= start:
            end += 24 * 60
        return timedelta(minutes=end - start)

    def start_on(self, day: date) -> datetime:
        return datetime.combine(day, self.start_time)

    def occurrences(self, day: date) -> list[tuple[datetime, datetime]]:
        """Concrete intervals touching `day`, including yesterday's wrapped tail."""
        today = self.start_on(day)
        spans = [(today, today + self.length)]
        if self.wraps_midnight:
            yesterday = today - timedelta(days=1)
            spans.insert(0, (yesterday, yesterday + self.length))
        return spans

    def to_dict(self) -> dict:
        return {
            "start": f"{self.start_hour:02d}:{self.start_minute:02d}",
            "end": f"{self.end_hour:02d}:{self.end_minute:02d}",
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TimeWindow":
        if "start_hour" in data or "startHour" in data:
            return cls(
                int(data.get("start_hour", data.get("startHour", 0))),
                int(data.get("start_minute", data.get("startMinute", 0))),
                int(data.get("end_hour", data.get("endHour", 0))),
                int(data.get("end_minute", data.get("endMinute", 0))),
            )
        return cls.parse(data["start"], data["end"])


@dataclass
class Pillar:
    """A recurring commitment with a cadence and placement preferences."""

    name: str
    cadence: Cadence = field(default_factory=Cadence.weekly)
    min_duration: timedelta = timedelta(minutes=30)
    max_duration: timedelta = timedelta(hours=2)
    preferred_windows: list[TimeWindow] = field(default_factory=list)
    quiet_hours: list[TimeWindow] = field(default_factory=list)
    values: list[str] = field(default_factory=list)
    habits: list[str] = field(default_factory=list)
    constraints: list[str] = field(default_factory=list)
    description: str = ""
    wisdom: str = ""
    glyph: str = "🏛️"
    related_goal_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    last_satisfied_at: datetime | None = None
    id: str = field(default_factory=lambda: _new_id("pillar"))

    def __post_init__(self):
        if self.min_duration < timedelta(0):
            raise ValueError("Minimum duration cannot be negative")
        if self.min_duration > self.max_duration:
            raise ValueError(
                f"Minimum duration {self.min_duration} exceeds maximum {self.max_duration}"
            )

    @property
    def guidance_text(self) -> str:
        """Compact summary handed to the AI collaborator."""
        parts = [f"{self.name} ({self.cadence.describe()})"]
        if self.description:
            parts.append(self.description)
        for label, items in (
            ("Values", self.values),
            ("Habits", self.habits),
            ("Constraints", self.constraints),
        ):
            if items:
                parts.append(f"{label}: {', '.join(items)}")
        if self.quiet_hours:
            spans = ", ".join(f"{w.to_dict()['start']}-{w.to_dict()['end']}" for w in self.quiet_hours)
            parts.append(f"Quiet hours: {spans}")
        if self.wisdom:
            parts.append(f"Wisdom: {self.wisdom}")
        return ". ".join(parts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cadence": self.cadence.to_dict(),
            "min_duration": _seconds(self.min_duration),
            "max_duration": _seconds(self.max_duration),
            "preferred_windows": [w.to_dict() for w in self.preferred_windows],
            "quiet_hours": [w.to_dict() for w in self.quiet_hours],
            "values": list(self.values),
            "habits": list(self.habits),
            "constraints": list(self.constraints),
            "description": self.description,
            "wisdom": self.wisdom,
            "glyph": self.glyph,
            "related_goal_id": self.related_goal_id,
            "created_at": _iso(self.created_at),
            "last_satisfied_at": _iso(self.last_satisfied_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Pillar":
        return cls(
            id=data.get("id") or _new_id("pillar"),
            name=data["name"],
            cadence=Cadence.from_dict(data.get("cadence", {"kind": "weekly", "times": 1})),
            min_duration=_from_seconds(data.get("min_duration", 1800)),
            max_duration=_from_seconds(data.get("max_duration", 7200)),
            preferred_windows=[TimeWindow.from_dict(w) for w in data.get("preferred_windows", [])],
            quiet_hours=[TimeWindow.from_dict(w) for w in data.get("quiet_hours", [])],
            values=list(data.get("values", [])),
            habits=list(data.get("habits", [])),
            constraints=list(data.get("constraints", [])),
            description=data.get("description", ""),
            wisdom=data.get("wisdom", ""),
            glyph=data.get("glyph", "🏛️"),
            related_goal_id=data.get("related_goal_id"),
            created_at=_parse_dt(data.get("created_at")) or datetime.now(),
            last_satisfied_at=_parse_dt(data.get("last_satisfied_at")),
        )


# =============================================================================
# GOALS & SUGGESTIONS
# =============================================================================


@dataclass
class Goal:
    title: str
    description: str = ""
    state: GoalState = GoalState.DRAFT
    importance: int = 3
    glyph: str = "🎯"
    target_date: datetime | None = None
    progress: float = 0.0
    related_pillar_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: _new_id("goal"))

    def __post_init__(self):
        if not 1 <= self.importance <= 5:
            raise ValueError(f"Importance must be 1-5, got {self.importance}")
        if not 0.0 <= self.progress <= 1.0:
            raise ValueError(f"Progress must be within [0, 1], got {self.progress}")

    @property
    def is_active(self) -> bool:
        return self.state is GoalState.ON

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        data["target_date"] = _iso(self.target_date)
        data["created_at"] = _iso(self.created_at)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Goal":
        return cls(
            id=data.get("id") or _new_id("goal"),
            title=data["title"],
            description=data.get("description", ""),
            state=GoalState(data.get("state", GoalState.DRAFT.value)),
            importance=int(data.get("importance", 3)),
            glyph=data.get("glyph", "🎯"),
            target_date=_parse_dt(data.get("target_date")),
            progress=float(data.get("progress", 0.0)),
            related_pillar_ids=list(data.get("related_pillar_ids", [])),
            created_at=_parse_dt(data.get("created_at")) or datetime.now(),
        )


@dataclass(frozen=True)
class Suggestion:
    """An AI-proposed activity. Never persisted; accepted or discarded."""

    title: str
    duration: timedelta
    energy: EnergyType = EnergyType.DAYLIGHT
    glyph: str = ""
    explanation: str = ""
    confidence: float = 0.5
    suggested_time: datetime | None = None
    weight: float = 0.0
    reason: str = ""
    related_goal_id: str | None = None
    related_pillar_id: str | None = None
    id: str = field(default_factory=lambda: _new_id("sugg"))

    def __post_init__(self):
        if self.duration <= timedelta(0):
            raise ValueError(f"Suggestion duration must be positive, got {self.duration}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {self.confidence}")

    def to_time_block(self, start: datetime, state: GlassState = GlassState.CRYSTAL) -> TimeBlock:
        return TimeBlock(
            title=self.title,
            start=start,
            duration=self.duration,
            energy=self.energy,
            glyph=self.glyph,
            state=state,
            origin=BlockOrigin.SUGGESTION,
            related_goal_id=self.related_goal_id,
            related_pillar_id=self.related_pillar_id,
            suggestion_id=self.id,
            suggestion_reason=self.reason or self.explanation or None,
            suggestion_confidence=self.confidence,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "duration": _seconds(self.duration),
            "energy": self.energy.value,
            "glyph": self.glyph,
            "explanation": self.explanation,
            "confidence": self.confidence,
            "suggested_time": _iso(self.suggested_time),
            "weight": self.weight,
            "reason": self.reason,
            "related_goal_id": self.related_goal_id,
            "related_pillar_id": self.related_pillar_id,
        }
