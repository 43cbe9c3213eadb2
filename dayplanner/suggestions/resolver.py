"""
Suggestion Resolver - turns an AI turn into a decision and its mutation.

Decisions, in increasing commitment:
- ASK: reply with a clarification prompt, change nothing
- STAGE: hold the suggestions as pending until the user accepts or rejects
- APPLY: perform the mutation now

Confidence never bypasses placement rules: a direct application that does not
fit the timeline is downgraded to STAGE, never dropped and never forced.
All mutations happen on the caller's thread; only the AI round-trip in
consult() is awaited.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol
from uuid import uuid4

from ..library import PlannerLibrary
from ..models import ActionType, Chain, GlassState, Goal, Pillar, Suggestion, TimeBlock
from ..observability import TurnContext
from ..policy import DEFAULT_POLICY, SchedulingPolicy
from ..time_truth.chains import ChainPlacer
from ..time_truth.gaps import GapFinder
from ..time_truth.timeline import DayTimeline, TimelineHistory
from .intent import analyze_message
from .parser import (
    AIResponse,
    extract_requested_time,
    parse_ai_response,
    parse_chain_payload,
    parse_goal_payload,
    parse_pillar_payload,
)

logger = logging.getLogger(__name__)

SCHEDULING_ACTIONS = (ActionType.CREATE_EVENT, ActionType.CREATE_CHAIN)

# One day, or every day the caller keeps; blocks land on the timeline of their start date
Timelines = DayTimeline | TimelineHistory


class DecisionKind(Enum):
    ASK = "ask_clarification"
    STAGE = "stage_for_approval"
    APPLY = "apply_directly"

    @property
    def rank(self) -> int:
        """Commitment order: ASK < STAGE < APPLY."""
        return list(DecisionKind).index(self)


class PendingStatus(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# (middle-band prompt, low-band prompt) per action type
CLARIFICATION_PROMPTS = {
    ActionType.CREATE_EVENT: (
        "Could you be more specific about what you'd like to schedule?",
        "Could you be more specific about what you'd like to schedule?",
    ),
    ActionType.CREATE_GOAL: (
        "I think you want to create a goal. What's the main outcome you're hoping for?",
        "Tell me what you want to achieve.",
    ),
    ActionType.CREATE_PILLAR: (
        "I need more detail: is this a recurring activity or a guiding principle?",
        "I need more detail to create a pillar. What principle or recurring activity do you have in mind?",
    ),
    ActionType.CREATE_CHAIN: (
        "Should these activities be linked together?",
        "I'd love to help you create a chain. What activities should be connected?",
    ),
}
DEFAULT_PROMPT = "Could you tell me a bit more about what you'd like to do?"


@dataclass
class PendingSuggestion:
    """A staged item awaiting an explicit accept or reject."""

    action_type: ActionType
    suggestion: Suggestion | None = None
    record: Goal | Pillar | Chain | None = None
    start: datetime | None = None
    exact: bool = False
    state: GlassState = GlassState.MIST
    status: PendingStatus = PendingStatus.PENDING
    rejection_reason: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: f"pending_{uuid4().hex[:12]}")

    @property
    def title(self) -> str:
        if self.suggestion:
            return self.suggestion.title
        if isinstance(self.record, Goal):
            return self.record.title
        if self.record is not None:
            return self.record.name
        return ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action_type": self.action_type.value,
            "title": self.title,
            "suggestion": self.suggestion.to_dict() if self.suggestion else None,
            "record": self.record.to_dict() if self.record else None,
            "start": self.start.isoformat() if self.start else None,
            "exact": self.exact,
            "state": self.state.value,
            "status": self.status.value,
            "rejection_reason": self.rejection_reason,
        }


@dataclass
class Decision:
    kind: DecisionKind
    action_type: ActionType
    confidence: float
    message: str = ""
    blocks: list[TimeBlock] = field(default_factory=list)
    created: list[Goal | Pillar | Chain] = field(default_factory=list)
    pending: list[PendingSuggestion] = field(default_factory=list)
    downgraded: bool = False

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "action_type": self.action_type.value,
            "confidence": round(self.confidence, 3),
            "message": self.message,
            "blocks": [b.to_dict() for b in self.blocks],
            "created": [r.to_dict() for r in self.created],
            "pending": [p.to_dict() for p in self.pending],
            "downgraded": self.downgraded,
        }


class AIService(Protocol):
    async def process_message(self, text: str, context: dict) -> dict | str: ...


class _NoRoom(Exception):
    """Internal: a direct application did not fit the timeline."""


class _OtherDay(Exception):
    """Internal: a placement falls on a day whose timeline was not supplied."""


class SuggestionResolver:
    """
    Routes AI turns to ask / stage / apply.

    Wires together:
    - Per-action confidence thresholds from the policy
    - Composite confidence from request heuristics
    - Placement through GapFinder / ChainPlacer / DayTimeline
    - A pending list with accept / reject and an optional learning hook
    """

    def __init__(
        self,
        library: PlannerLibrary | None = None,
        policy: SchedulingPolicy | None = None,
        gap_finder: GapFinder | None = None,
        chain_placer: ChainPlacer | None = None,
        learning_hook: Callable[[PendingSuggestion, str], None] | None = None,
    ):
        self.library = library or PlannerLibrary()
        self.policy = policy or DEFAULT_POLICY
        self.gaps = gap_finder or GapFinder(self.policy)
        self.placer = chain_placer or ChainPlacer(self.policy, self.gaps)
        self.learning_hook = learning_hook
        self.pending: dict[str, PendingSuggestion] = {}
        self._recent: deque[float] = deque(maxlen=5)

    # -------------------------------------------------------------------------
    # Decision policy
    # -------------------------------------------------------------------------

    def decide(self, action: ActionType, confidence: float, has_content: bool = True) -> DecisionKind:
        """Pure threshold routing. Non-decreasing in confidence for a fixed action."""
        if not has_content:
            return DecisionKind.ASK
        threshold = self.policy.threshold_for(action)
        if threshold is None:
            return DecisionKind.STAGE
        if confidence >= threshold.direct:
            return DecisionKind.APPLY
        if confidence >= threshold.middle and threshold.stage_middle:
            return DecisionKind.STAGE
        return DecisionKind.ASK

    def effective_confidence(
        self,
        response: AIResponse,
        message: str,
        recent_confidences: Iterable[float] = (),
    ) -> float:
        """
        Model confidence, raised by the composite score for scheduling actions.

        The composite can only raise confidence, never lower it.
        """
        if response.action_type not in SCHEDULING_ACTIONS:
            return response.confidence
        signals = analyze_message(
            message,
            response.confidence,
            suggestion_count=len(response.suggestions),
            recent_confidences=recent_confidences,
            weights=self.policy.weights,
        )
        return max(response.confidence, signals.composite(self.policy.weights))

    def clarification_prompt(self, action: ActionType, confidence: float) -> str:
        prompts = CLARIFICATION_PROMPTS.get(action)
        threshold = self.policy.threshold_for(action)
        if not prompts or threshold is None:
            return DEFAULT_PROMPT
        middle, low = prompts
        return middle if confidence >= threshold.middle else low

    @staticmethod
    def has_content(response: AIResponse) -> bool:
        action = response.action_type
        if action is ActionType.CREATE_GOAL:
            return bool(response.items_of("goal"))
        if action is ActionType.CREATE_PILLAR:
            return bool(response.items_of("pillar"))
        if action is ActionType.CREATE_CHAIN:
            return bool(response.items_of("chain") or response.suggestions)
        return bool(response.suggestions)

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(
        self,
        response: AIResponse,
        message: str,
        timeline: Timelines,
        now: datetime | None = None,
        recent_confidences: Iterable[float] | None = None,
    ) -> Decision:
        """
        Decide what to do with one AI turn and carry it out.

        Args:
            response: the parsed collaborator turn
            message: the user's original request
            timeline: the day any blocks are placed on, or a TimelineHistory
                so requests naming another day land on that day
            recent_confidences: confidences of earlier turns; defaults to the
                last few turns this resolver has seen
        """
        now = now or datetime.now()
        recent = list(self._recent) if recent_confidences is None else list(recent_confidences)
        self._recent.append(response.confidence)

        action = response.action_type
        confidence = self.effective_confidence(response, message, recent)
        kind = self.decide(action, confidence, self.has_content(response))
        logger.info(
            f"Resolved {action.value} at confidence {response.confidence:.2f} "
            f"(effective {confidence:.2f}): {kind.value}"
        )

        if kind is DecisionKind.ASK:
            return Decision(kind, action, confidence, message=self.clarification_prompt(action, confidence))

        requested = extract_requested_time(message, now)
        anchor = self._anchor(timeline, now)
        if kind is DecisionKind.STAGE:
            pending = self._stage(response, requested, anchor)
            return Decision(kind, action, confidence, message=response.text, pending=pending)

        try:
            return self._apply(response, requested, timeline, anchor, now, confidence)
        except _NoRoom as e:
            logger.warning(f"Direct {action.value} did not fit ({e}); staging for approval")
            reply = f"No room found: {e}. Review the suggestion to pick another time."
        except _OtherDay as e:
            logger.warning(f"Direct {action.value} is for another day ({e}); staging for approval")
            reply = f"{e}. Accept the suggestion with that day's timeline to place it."
        pending = self._stage(response, requested, anchor, state=GlassState.CRYSTAL)
        return Decision(DecisionKind.STAGE, action, confidence, message=reply, pending=pending, downgraded=True)

    def _apply(self, response, requested, timeline, anchor, now, confidence) -> Decision:
        action = response.action_type
        if action is ActionType.CREATE_EVENT:
            blocks = self._place_suggestions(response.suggestions, requested, timeline, anchor)
            return Decision(DecisionKind.APPLY, action, confidence, message=response.text, blocks=blocks)

        if action is ActionType.CREATE_GOAL:
            goal = self.library.add_goal(self._goal_from(response))
            return Decision(DecisionKind.APPLY, action, confidence, message=response.text, created=[goal])

        if action is ActionType.CREATE_PILLAR:
            pillar = self.library.add_pillar(self._pillar_from(response))
            return Decision(DecisionKind.APPLY, action, confidence, message=response.text, created=[pillar])

        chain = self._chain_from(response)
        blocks = self._place_chain(chain, requested, timeline, now)
        self.library.add_chain(chain)
        return Decision(
            DecisionKind.APPLY, action, confidence, message=response.text, blocks=blocks, created=[chain]
        )

    # -------------------------------------------------------------------------
    # Day selection
    # -------------------------------------------------------------------------

    @staticmethod
    def _focus(timeline: Timelines) -> DayTimeline:
        return timeline.current if isinstance(timeline, TimelineHistory) else timeline

    def _anchor(self, timeline: Timelines, now: datetime) -> datetime:
        """Where an untimed request starts searching: now, or the focused day's start if later."""
        return max(now, self.policy.day_bounds(self._focus(timeline).day)[0])

    @staticmethod
    def _timeline_on(timeline: Timelines, day: date) -> DayTimeline:
        if isinstance(timeline, TimelineHistory):
            return timeline.timeline_for(day)
        if day != timeline.day:
            raise _OtherDay(f"{day.isoformat()} is not on the {timeline.day.isoformat()} timeline")
        return timeline

    # -------------------------------------------------------------------------
    # Mutations shared by direct application and accept()
    # -------------------------------------------------------------------------

    def _link(self, block: TimeBlock) -> TimeBlock:
        goal_id = block.related_goal_id
        pillar_id = block.related_pillar_id
        if goal_id is None:
            goal = self.library.find_related_goal(block.title)
            goal_id = goal.id if goal else None
        if pillar_id is None:
            pillar = self.library.find_related_pillar(block.title)
            pillar_id = pillar.id if pillar else None
        return replace(block, related_goal_id=goal_id, related_pillar_id=pillar_id)

    def _place_suggestions(
        self,
        suggestions: list[Suggestion],
        requested: datetime | None,
        timeline: Timelines,
        anchor: datetime,
        exact: bool | None = None,
        state: GlassState = GlassState.CRYSTAL,
    ) -> list[TimeBlock]:
        """
        Place every suggestion or none, each on the timeline of its start date.

        With a requested time the placement is exact; otherwise the time is a
        hint and the next free start at or after it is used.
        """
        exact = requested is not None if exact is None else exact
        working: dict[date, DayTimeline] = {}
        blocks = []
        for index, suggestion in enumerate(suggestions):
            hint = (requested or suggestion.suggested_time or anchor) + self.policy.suggestion_spacing * index
            if hint.date() not in working:
                working[hint.date()] = self._timeline_on(timeline, hint.date()).copy()
            draft = working[hint.date()]
            if exact:
                start = hint
                if not draft.is_free(start, start + suggestion.duration):
                    raise _NoRoom(f"'{suggestion.title}' conflicts at {start:%H:%M}")
            else:
                start = self.gaps.next_available_start(draft, hint, suggestion.duration)
                if start is None:
                    raise _NoRoom(f"nothing free for '{suggestion.title}' after {hint:%H:%M}")
            block = self._link(suggestion.to_time_block(start, state))
            ok, message = draft.add(block)
            if not ok:
                raise _NoRoom(message)
            blocks.append(block)

        for day in working:
            ok, message = self._timeline_on(timeline, day).add_all([b for b in blocks if b.day == day])
            if not ok:
                raise _NoRoom(message)
        return blocks

    def _place_chain(
        self, chain: Chain, start: datetime | None, timeline: Timelines, now: datetime
    ) -> list[TimeBlock]:
        if start is None:
            return []
        result = self.placer.place(chain, start, self._timeline_on(timeline, start.date()), at=now)
        if not result.success:
            raise _NoRoom(result.message)
        return result.blocks

    def _goal_from(self, response: AIResponse) -> Goal:
        item = response.items_of("goal")[0]
        return parse_goal_payload({"title": item.title, **item.data})

    def _pillar_from(self, response: AIResponse) -> Pillar:
        item = response.items_of("pillar")[0]
        return parse_pillar_payload({"name": item.title, **item.data})

    def _chain_from(self, response: AIResponse) -> Chain:
        items = response.items_of("chain")
        if items:
            return parse_chain_payload({"name": items[0].title, **items[0].data})
        steps = [
            {
                "title": s.title,
                "duration": s.duration.total_seconds() / 60,
                "energy": s.energy.value,
                "glyph": s.glyph,
            }
            for s in response.suggestions
        ]
        return parse_chain_payload({"steps": steps})

    # -------------------------------------------------------------------------
    # Staging
    # -------------------------------------------------------------------------

    def _stage(
        self,
        response: AIResponse,
        requested: datetime | None,
        anchor: datetime,
        state: GlassState = GlassState.MIST,
    ) -> list[PendingSuggestion]:
        """Hold the turn's items as pending; accepted event blocks take `state`."""
        action = response.action_type
        staged: list[PendingSuggestion] = []
        if action is ActionType.CREATE_GOAL and response.items_of("goal"):
            staged.append(PendingSuggestion(action, record=self._goal_from(response)))
        elif action is ActionType.CREATE_PILLAR and response.items_of("pillar"):
            staged.append(PendingSuggestion(action, record=self._pillar_from(response)))
        elif action is ActionType.CREATE_CHAIN:
            staged.append(
                PendingSuggestion(
                    action, record=self._chain_from(response), start=requested, exact=requested is not None
                )
            )
        else:
            for index, suggestion in enumerate(response.suggestions):
                hint = requested or suggestion.suggested_time or anchor
                staged.append(
                    PendingSuggestion(
                        action,
                        suggestion=suggestion,
                        start=hint + self.policy.suggestion_spacing * index,
                        exact=requested is not None,
                        state=state,
                    )
                )

        for item in staged:
            self.pending[item.id] = item
        logger.info(f"Staged {len(staged)} {action.value} item(s) for approval")
        return staged

    def pending_suggestions(self) -> list[PendingSuggestion]:
        return list(self.pending.values())

    def accept(self, pending_id: str, timeline: Timelines, now: datetime | None = None) -> Decision:
        """
        Accept a staged item, performing the mutation a direct application would.

        Event blocks are placed on the timeline of their start date, tagged
        mist unless the item was a downgraded direct application. If it no
        longer fits, the item stays pending and a STAGE decision is returned.
        """
        now = now or datetime.now()
        item = self.pending.get(pending_id)
        if item is None:
            logger.error(f"Pending suggestion not found: {pending_id}")
            raise KeyError(pending_id)

        action = item.action_type
        confidence = item.suggestion.confidence if item.suggestion else 1.0
        try:
            if item.suggestion is not None:
                blocks = self._place_suggestions(
                    [item.suggestion],
                    item.start,
                    timeline,
                    self._anchor(timeline, now),
                    exact=item.exact,
                    state=item.state,
                )
                decision = Decision(DecisionKind.APPLY, action, confidence, blocks=blocks)
            elif isinstance(item.record, Chain):
                blocks = self._place_chain(item.record, item.start, timeline, now)
                self.library.add_chain(item.record)
                decision = Decision(DecisionKind.APPLY, action, confidence, blocks=blocks, created=[item.record])
            elif isinstance(item.record, Goal):
                decision = Decision(DecisionKind.APPLY, action, confidence, created=[self.library.add_goal(item.record)])
            else:
                decision = Decision(DecisionKind.APPLY, action, confidence, created=[self.library.add_pillar(item.record)])
        except _NoRoom as e:
            logger.info(f"Accepted item {pending_id} does not fit: {e}")
            return Decision(DecisionKind.STAGE, action, confidence, message=f"No room found: {e}", pending=[item])
        except _OtherDay as e:
            logger.info(f"Accepted item {pending_id} is for another day: {e}")
            return Decision(DecisionKind.STAGE, action, confidence, message=str(e), pending=[item])

        item.status = PendingStatus.ACCEPTED
        del self.pending[pending_id]
        decision.message = f"Accepted '{item.title}'"
        logger.info(f"Accepted pending item {pending_id} ({action.value})")
        return decision

    def reject(self, pending_id: str, reason: str = "") -> bool:
        """Discard a staged item and feed the rejection to the learning hook."""
        item = self.pending.pop(pending_id, None)
        if item is None:
            logger.error(f"Pending suggestion not found: {pending_id}")
            return False
        item.status = PendingStatus.REJECTED
        item.rejection_reason = reason or None
        logger.info(f"Rejected pending item {pending_id} ('{item.title}'): {reason or 'no reason'}")
        if self.learning_hook:
            self.learning_hook(item, reason)
        return True

    # -------------------------------------------------------------------------
    # AI round-trip
    # -------------------------------------------------------------------------

    def day_context(self, timeline: Timelines, now: datetime) -> dict[str, Any]:
        """Snapshot of the focused day handed to the AI collaborator."""
        timeline = self._focus(timeline)
        free = self.gaps.free_intervals(timeline, day_start=self._anchor(timeline, now))
        return {
            "current_time": now.isoformat(),
            "date": timeline.day.isoformat(),
            "existing_blocks": len(timeline),
            "available_minutes": sum(slot.duration_minutes for slot in free),
            "pillar_guidance": [p.guidance_text for p in self.library.pillars.values()],
            "active_goals": [g.title for g in self.library.active_goals()],
        }

    async def consult(
        self,
        service: AIService,
        message: str,
        timeline: Timelines,
        now: datetime | None = None,
        context: dict | None = None,
    ) -> Decision:
        """
        Ask the AI collaborator about `message` and resolve its answer.

        Only the round-trip is awaited; the decision and any mutation run on
        the awaiting caller. A timeout becomes a clarification.
        """
        now = now or datetime.now()
        with TurnContext(message=message) as turn:
            logger.info(f"Consulting AI collaborator (turn {turn.turn_id})")
            try:
                raw = await asyncio.wait_for(
                    service.process_message(message, context or self.day_context(timeline, now)),
                    timeout=self.policy.ai_timeout,
                )
            except TimeoutError:
                logger.warning(f"AI collaborator timed out after {self.policy.ai_timeout}s")
                return Decision(
                    DecisionKind.ASK,
                    ActionType.GENERAL_CHAT,
                    0.0,
                    message="The assistant took too long to answer. Could you try again?",
                )
            decision = self.resolve(parse_ai_response(raw), message, timeline, now=now)
        logger.info(f"Turn {turn.turn_id} resolved as {decision.kind.value} in {turn.elapsed:.2f}s")
        return decision
