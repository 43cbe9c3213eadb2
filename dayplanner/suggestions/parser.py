"""
AI Response Parser - the only place free-form collaborator output is read.

Every payload is validated with pydantic. Anything that does not validate is
dropped (single items) or degraded to a low-confidence general-chat response
(whole messages); parse errors never escape this module.

Also home of natural-language time extraction for requests such as
"lunch with Sam tomorrow at 12:30".
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..models import (
    ActionType,
    Cadence,
    Chain,
    ChainStep,
    EnergyType,
    FlowPattern,
    Goal,
    GoalState,
    Pillar,
    Suggestion,
    TimeWindow,
)

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.3
MAX_DURATION_MINUTES = 24 * 60

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def _clamp(value: Any) -> float:
    return min(1.0, max(0.0, float(value)))


def _naive(value: datetime) -> datetime:
    """Convert aware datetimes to naive local time."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def _lenient_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _string_list(value: Any, max_items: int | None = None) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(v).strip() for v in value if isinstance(v, str) and v.strip()]
    return items[:max_items] if max_items else items


# =============================================================================
# AI RESPONSE CONTRACTS
# =============================================================================


class SuggestionPayload(BaseModel):
    """One suggested activity. Duration is in minutes."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    explanation: str = ""
    duration: float = Field(default=30, gt=0, le=MAX_DURATION_MINUTES)
    energy: EnergyType = EnergyType.DAYLIGHT
    glyph: str = Field(default="", validation_alias=AliasChoices("glyph", "emoji"))
    confidence: float = 0.5
    weight: float = 0.0
    reason: str = ""
    suggested_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("suggested_time", "suggestedTime")
    )
    related_goal_id: str | None = Field(
        default=None, validation_alias=AliasChoices("related_goal_id", "relatedGoalId")
    )
    related_pillar_id: str | None = Field(
        default=None, validation_alias=AliasChoices("related_pillar_id", "relatedPillarId")
    )

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("energy", mode="before")
    @classmethod
    def _known_energy(cls, v):
        if isinstance(v, str) and v.strip().lower() in {e.value for e in EnergyType}:
            return v.strip().lower()
        return EnergyType.DAYLIGHT

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        return _clamp(v)

    @field_validator("suggested_time", mode="before")
    @classmethod
    def _parse_time(cls, v):
        return _lenient_datetime(v)

    def to_suggestion(self) -> Suggestion:
        return Suggestion(
            title=self.title,
            duration=timedelta(minutes=self.duration),
            energy=self.energy,
            glyph=self.glyph,
            explanation=self.explanation,
            confidence=self.confidence,
            suggested_time=_naive(self.suggested_time) if self.suggested_time else None,
            weight=self.weight,
            reason=self.reason or self.explanation,
            related_goal_id=self.related_goal_id,
            related_pillar_id=self.related_pillar_id,
        )


class CreatedItemPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["event", "goal", "pillar", "chain"]
    title: str = ""
    data: dict = Field(default_factory=dict)


class AIResponsePayload(BaseModel):
    """Top-level shape of one collaborator turn."""

    model_config = ConfigDict(extra="ignore")

    text: str = Field(default="", validation_alias=AliasChoices("response", "text"))
    confidence: float = 0.5
    action_type: ActionType = Field(
        default=ActionType.GENERAL_CHAT,
        validation_alias=AliasChoices(
            "action_type", "actionType", "recommended_action", "recommendedAction"
        ),
    )
    suggestions: list[Any] = Field(default_factory=list)
    created_items: list[Any] = Field(
        default_factory=list, validation_alias=AliasChoices("created_items", "createdItems")
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        return _clamp(v)

    @field_validator("action_type", mode="before")
    @classmethod
    def _known_action(cls, v):
        if v is None:
            return ActionType.GENERAL_CHAT
        try:
            return ActionType(str(v).strip().lower())
        except ValueError:
            logger.warning(f"Unknown action type {v!r}, treating as general chat")
            return ActionType.GENERAL_CHAT

    @field_validator("suggestions", "created_items", mode="before")
    @classmethod
    def _list_or_empty(cls, v):
        return v if isinstance(v, list) else []


@dataclass
class CreatedItem:
    type: str
    title: str
    data: dict = field(default_factory=dict)


@dataclass
class AIResponse:
    """A validated collaborator turn."""

    text: str
    confidence: float
    action_type: ActionType
    suggestions: list[Suggestion] = field(default_factory=list)
    created_items: list[CreatedItem] = field(default_factory=list)
    degraded: bool = False

    def items_of(self, item_type: str) -> list[CreatedItem]:
        return [i for i in self.created_items if i.type == item_type]


def _fallback(text: str, reason: str) -> AIResponse:
    logger.warning(f"AI response did not parse ({reason}); falling back to general chat")
    return AIResponse(
        text=text,
        confidence=FALLBACK_CONFIDENCE,
        action_type=ActionType.GENERAL_CHAT,
        degraded=True,
    )


def parse_ai_response(raw: dict | str) -> AIResponse:
    """
    Validate a collaborator turn given as a dict or JSON text.

    Markdown code fences are stripped. Invalid suggestions and created items
    are dropped individually; an invalid envelope degrades the whole turn to
    general chat at low confidence.
    """
    text = ""
    if isinstance(raw, str):
        text = strip_code_fences(raw)
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            return _fallback(text, f"invalid JSON: {e.msg}")
    if not isinstance(raw, dict):
        return _fallback(text, "expected an object")

    try:
        payload = AIResponsePayload.model_validate(raw)
    except ValidationError as e:
        return _fallback(text, f"{e.error_count()} validation error(s)")

    suggestions = []
    for entry in payload.suggestions:
        try:
            suggestions.append(SuggestionPayload.model_validate(entry).to_suggestion())
        except (ValidationError, ValueError) as e:
            logger.warning(f"Dropping invalid suggestion {entry!r}: {e}")

    items = []
    for entry in payload.created_items:
        try:
            item = CreatedItemPayload.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Dropping invalid created item: {e.error_count()} error(s)")
            continue
        data = item.data or {k: v for k, v in entry.items() if k not in ("type", "data")}
        items.append(CreatedItem(type=item.type, title=item.title, data=data))

    return AIResponse(
        text=payload.text,
        confidence=payload.confidence,
        action_type=payload.action_type,
        suggestions=suggestions,
        created_items=items,
    )


# =============================================================================
# CREATED-ITEM PAYLOADS
# =============================================================================


class PillarPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = "New Pillar"
    description: str = "AI-created pillar"
    frequency: str = Field(default="weekly", validation_alias=AliasChoices("frequency", "cadence"))
    values: list[str] = Field(default_factory=list)
    habits: list[str] = Field(default_factory=list)
    constraints: list[str] = Field(default_factory=list)
    quiet_hours: list[dict] = Field(
        default_factory=list, validation_alias=AliasChoices("quiet_hours", "quietHours")
    )
    preferred_windows: list[dict] = Field(
        default_factory=list,
        validation_alias=AliasChoices("preferred_windows", "preferredWindows", "preferredTimeWindows"),
    )
    wisdom: str = Field(default="", validation_alias=AliasChoices("wisdom", "wisdomText", "wisdom_text"))
    glyph: str = Field(default="🏛️", validation_alias=AliasChoices("glyph", "emoji"))
    min_duration: float = Field(
        default=30, ge=0, le=MAX_DURATION_MINUTES, validation_alias=AliasChoices("min_duration", "minDuration")
    )
    max_duration: float = Field(
        default=120, gt=0, le=MAX_DURATION_MINUTES, validation_alias=AliasChoices("max_duration", "maxDuration")
    )

    @field_validator("name", mode="before")
    @classmethod
    def _sanitize_name(cls, v):
        if not isinstance(v, str) or not v.strip():
            return "New Pillar"
        return v.strip().replace("\n", " ")[:24]

    @field_validator("description", mode="before")
    @classmethod
    def _sanitize_description(cls, v):
        if not isinstance(v, str) or not v.strip():
            return "AI-created pillar"
        return v.strip().replace("\n", " ")[:200]

    @field_validator("frequency", "wisdom", mode="before")
    @classmethod
    def _text_or_default(cls, v, info):
        if isinstance(v, str):
            return v.strip()
        return "weekly" if info.field_name == "frequency" else ""

    @field_validator("glyph", mode="before")
    @classmethod
    def _glyph(cls, v):
        return v.strip() if isinstance(v, str) and v.strip() else "🏛️"

    @field_validator("values", "habits", mode="before")
    @classmethod
    def _five_items(cls, v):
        return _string_list(v, max_items=5)

    @field_validator("constraints", mode="before")
    @classmethod
    def _four_items(cls, v):
        return _string_list(v, max_items=4)

    @field_validator("quiet_hours", "preferred_windows", mode="before")
    @classmethod
    def _dicts_only(cls, v):
        return [w for w in v if isinstance(w, dict)] if isinstance(v, list) else []


def _windows(entries: list[dict]) -> list[TimeWindow]:
    windows = []
    for entry in entries:
        try:
            windows.append(TimeWindow.from_dict(entry))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid time window {entry!r}: {e}")
    return windows


def parse_pillar_payload(data: dict | None) -> Pillar:
    """Normalise AI pillar data into a Pillar, filling gaps with defaults."""
    try:
        payload = PillarPayload.model_validate(data or {})
    except ValidationError as e:
        logger.warning(f"Pillar payload invalid ({e.error_count()} error(s)); using defaults")
        payload = PillarPayload()

    min_duration = timedelta(minutes=payload.min_duration)
    max_duration = max(timedelta(minutes=payload.max_duration), min_duration)
    return Pillar(
        name=payload.name,
        description=payload.description,
        cadence=Cadence.parse(payload.frequency),
        min_duration=min_duration,
        max_duration=max_duration,
        preferred_windows=_windows(payload.preferred_windows),
        quiet_hours=_windows(payload.quiet_hours),
        values=payload.values,
        habits=payload.habits,
        constraints=payload.constraints,
        wisdom=payload.wisdom,
        glyph=payload.glyph,
    )


@dataclass
class PillarReview:
    is_valid: bool
    issues: list[str]
    suggestions: list[str]
    completeness: float


def review_pillar(pillar: Pillar) -> PillarReview:
    """How complete an AI-created pillar is, and what would improve it."""
    issues = []
    suggestions = []
    generic = not pillar.description or pillar.description == "AI-created pillar"
    if generic:
        issues.append("Description is missing or generic")
        suggestions.append("Add a specific description of what this pillar represents")

    optional = [
        (pillar.values, "Consider adding core values this pillar represents"),
        (pillar.habits, "Consider adding specific habits to encourage"),
        (pillar.constraints, "Consider adding constraints or boundaries"),
        (pillar.quiet_hours, "Consider adding quiet hours to protect important time"),
        (pillar.wisdom, "Consider adding a core principle or wisdom statement"),
    ]
    filled = 0 if generic else 1
    for value, hint in optional:
        if value:
            filled += 1
        else:
            suggestions.append(hint)

    return PillarReview(
        is_valid=not issues,
        issues=issues,
        suggestions=suggestions,
        completeness=filled / 6.0,
    )


class GoalPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = "New Goal"
    description: str = ""
    importance: int = 3
    glyph: str = Field(default="🎯", validation_alias=AliasChoices("glyph", "emoji"))
    state: GoalState = GoalState.ON
    target_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("target_date", "targetDate")
    )

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v):
        return v.strip() if isinstance(v, str) and v.strip() else "New Goal"

    @field_validator("importance", mode="before")
    @classmethod
    def _importance(cls, v):
        try:
            return min(5, max(1, int(v)))
        except (TypeError, ValueError):
            return 3

    @field_validator("state", mode="before")
    @classmethod
    def _state(cls, v):
        values = {s.value for s in GoalState}
        return v.lower() if isinstance(v, str) and v.lower() in values else GoalState.ON

    @field_validator("target_date", mode="before")
    @classmethod
    def _target(cls, v):
        return _lenient_datetime(v)


def parse_goal_payload(data: dict | None) -> Goal:
    try:
        payload = GoalPayload.model_validate(data or {})
    except ValidationError as e:
        logger.warning(f"Goal payload invalid ({e.error_count()} error(s)); using defaults")
        payload = GoalPayload()
    return Goal(
        title=payload.title,
        description=payload.description,
        importance=payload.importance,
        glyph=payload.glyph,
        state=payload.state,
        target_date=_naive(payload.target_date) if payload.target_date else None,
    )


class ChainPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(default="New Chain", validation_alias=AliasChoices("name", "title"))
    steps: list[dict] = Field(default_factory=list, validation_alias=AliasChoices("steps", "blocks"))
    flow_pattern: FlowPattern = Field(
        default=FlowPattern.WATERFALL, validation_alias=AliasChoices("flow_pattern", "flowPattern")
    )
    glyph: str = Field(default="🔗", validation_alias=AliasChoices("glyph", "emoji"))

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        return v.strip() if isinstance(v, str) and v.strip() else "New Chain"

    @field_validator("flow_pattern", mode="before")
    @classmethod
    def _flow(cls, v):
        values = {f.value for f in FlowPattern}
        return v.lower() if isinstance(v, str) and v.lower() in values else FlowPattern.WATERFALL

    @field_validator("steps", mode="before")
    @classmethod
    def _steps(cls, v):
        return [s for s in v if isinstance(s, dict)] if isinstance(v, list) else []


def parse_chain_payload(data: dict | None) -> Chain:
    """Normalise AI chain data; a chain always has at least one step."""
    try:
        payload = ChainPayload.model_validate(data or {})
    except ValidationError as e:
        logger.warning(f"Chain payload invalid ({e.error_count()} error(s)); using defaults")
        payload = ChainPayload()

    steps = []
    for entry in payload.steps:
        try:
            step = SuggestionPayload.model_validate(entry)
        except ValidationError:
            logger.warning(f"Dropping invalid chain step {entry!r}")
            continue
        steps.append(
            ChainStep(
                title=step.title,
                duration=timedelta(minutes=step.duration),
                energy=step.energy,
                glyph=step.glyph,
            )
        )
    if not steps:
        steps = [ChainStep(title="Activity", duration=timedelta(minutes=30))]

    return Chain(name=payload.name, steps=steps, flow_pattern=payload.flow_pattern, glyph=payload.glyph)


# =============================================================================
# TIME EXTRACTION
# =============================================================================

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}  # fmt: skip
_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_IN_HOURS = re.compile(r"\bin\s+(\d{1,4})\s*(?:hours?|hrs?)\b", re.IGNORECASE)
_IN_AN_HOUR = re.compile(r"\bin\s+an\s+hour\b", re.IGNORECASE)
_IN_MINUTES = re.compile(r"\bin\s+(\d{1,5})\s*(?:minutes?|mins?)\b", re.IGNORECASE)
_MONTH_DAY = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\s+(\d{1,2})\b",
    re.IGNORECASE,
)
_NUMERIC_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")
_AT_TIME = re.compile(r"(?:\bat|@)\s*(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b", re.IGNORECASE)
_BARE_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b", re.IGNORECASE)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _explicit_date(message: str, now: datetime) -> date | None:
    """Month-name or m/d[/y] date; year-less dates already past roll to next year."""
    match = _MONTH_DAY.search(message)
    if match:
        month = _MONTHS[match.group(1)[:3].lower()]
        day = int(match.group(2))
        found = _safe_date(now.year, month, day)
        if found and found < now.date():
            found = _safe_date(now.year + 1, month, day)
        if found:
            return found

    match = _NUMERIC_DATE.search(message)
    if match:
        month, day = int(match.group(1)), int(match.group(2))
        if match.group(3):
            year = int(match.group(3))
            return _safe_date(2000 + year if year < 100 else year, month, day)
        found = _safe_date(now.year, month, day)
        if found and found < now.date():
            found = _safe_date(now.year + 1, month, day)
        return found
    return None


def _explicit_clock(message: str) -> tuple[int, int] | None:
    match = _AT_TIME.search(message) or _BARE_TIME.search(message)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = (match.group(3) or "").lower()
    if meridiem == "pm" and hour != 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def _part_of_day(lowered: str) -> tuple[int, int] | None:
    if "tonight" in lowered or "this evening" in lowered:
        return 19, 0
    if "afternoon" in lowered:
        return 15, 0
    if "morning" in lowered:
        return 9, 0
    if "evening" in lowered:
        return 19, 0
    return None


def extract_requested_time(
    message: str,
    now: datetime,
    default_start: time = time(9, 0),
) -> datetime | None:
    """
    Find the moment a request refers to, or None when it names no time.

    Relative offsets ("in 2 hours") win outright. Otherwise a date (explicit,
    today/tomorrow/next week, weekday name) and a clock time (explicit or part
    of day) are combined. A date without a time uses `default_start`; a time
    without a date that has already passed today moves to tomorrow.
    """
    lowered = message.lower()

    match = _IN_HOURS.search(message)
    if match:
        return now + timedelta(hours=int(match.group(1)))
    if _IN_AN_HOUR.search(message):
        return now + timedelta(hours=1)
    match = _IN_MINUTES.search(message)
    if match:
        return now + timedelta(minutes=int(match.group(1)))

    day = _explicit_date(message, now)
    if re.search(r"\btomorrow\b", lowered):
        day = now.date() + timedelta(days=1)
    elif re.search(r"\btoday\b", lowered):
        day = now.date()
    elif re.search(r"\bnext\s+week\b", lowered):
        day = now.date() + timedelta(weeks=1)

    for index, name in enumerate(_WEEKDAYS):
        if re.search(rf"\b{name}\b", lowered):
            ahead = (index - now.weekday()) % 7 or 7
            day = now.date() + timedelta(days=ahead)
            break

    clock = _explicit_clock(message) or _part_of_day(lowered)

    if day is None and clock is None:
        return None

    if clock is None:
        return datetime.combine(day, default_start)

    hour, minute = clock
    if day is not None:
        return datetime.combine(day, time(hour, minute))

    result = datetime.combine(now.date(), time(hour, minute))
    if result < now:
        result += timedelta(days=1)
    return result
