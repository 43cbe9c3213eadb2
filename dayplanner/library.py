"""
Planner Library - the chains, pillars, goals and routines a timeline refers to.

An in-memory stand-in for the persistence layer. Blocks reference records
here by id only; deleting a goal never touches the blocks that mention it.
"""

import logging
import re

from .models import Chain, Goal, Pillar, Routine, TimeWindow

logger = logging.getLogger(__name__)

_WORD = re.compile(r"[\w']+")

# Category words that link an activity to a pillar even without a shared title word
CATEGORY_WORDS = ("work", "exercise", "meeting")


def _words(text: str) -> set[str]:
    return set(_WORD.findall(text.lower()))


class PlannerLibrary:
    def __init__(
        self,
        chains: list[Chain] | None = None,
        pillars: list[Pillar] | None = None,
        goals: list[Goal] | None = None,
        routines: list[Routine] | None = None,
    ):
        self.chains: dict[str, Chain] = {c.id: c for c in chains or []}
        self.pillars: dict[str, Pillar] = {p.id: p for p in pillars or []}
        self.goals: dict[str, Goal] = {g.id: g for g in goals or []}
        self.routines: dict[str, Routine] = {r.id: r for r in routines or []}

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def add_chain(self, chain: Chain) -> Chain:
        self.chains[chain.id] = chain
        logger.info(f"Added chain '{chain.name}' ({len(chain.steps)} steps)")
        return chain

    def add_pillar(self, pillar: Pillar) -> Pillar:
        self.pillars[pillar.id] = pillar
        logger.info(f"Added pillar '{pillar.name}' ({pillar.cadence.describe()})")
        return pillar

    def add_goal(self, goal: Goal) -> Goal:
        self.goals[goal.id] = goal
        logger.info(f"Added goal '{goal.title}'")
        return goal

    def get_chain(self, chain_id: str) -> Chain | None:
        return self.chains.get(chain_id)

    def get_pillar(self, pillar_id: str) -> Pillar | None:
        return self.pillars.get(pillar_id)

    def get_goal(self, goal_id: str) -> Goal | None:
        return self.goals.get(goal_id)

    def remove_goal(self, goal_id: str) -> bool:
        return self.goals.pop(goal_id, None) is not None

    def remove_pillar(self, pillar_id: str) -> bool:
        return self.pillars.pop(pillar_id, None) is not None

    def remove_chain(self, chain_id: str) -> bool:
        return self.chains.pop(chain_id, None) is not None

    def active_goals(self) -> list[Goal]:
        return [g for g in self.goals.values() if g.is_active]

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def find_related_goal(self, title: str) -> Goal | None:
        """First active goal sharing a word with `title`."""
        words = _words(title)
        for goal in self.goals.values():
            if goal.is_active and words & _words(goal.title):
                return goal
        return None

    def find_related_pillar(self, title: str) -> Pillar | None:
        """First pillar sharing a word or a category (work, exercise, meeting) with `title`."""
        words = _words(title)
        lowered = title.lower()
        for pillar in self.pillars.values():
            name = pillar.name.lower()
            if words & _words(name):
                return pillar
            if any(cat in lowered and cat in name for cat in CATEGORY_WORDS):
                return pillar
        return None

    # -------------------------------------------------------------------------
    # Routines
    # -------------------------------------------------------------------------

    def offer_routine(self, chain: Chain) -> Routine | None:
        """
        Promote `chain` if it qualifies and has not been offered before.

        The offer is recorded either way so the user is asked only once.
        """
        if not chain.can_be_promoted_to_routine():
            return None
        chain.routine_prompt_shown = True
        return self.promote_chain_to_routine(chain)

    def dismiss_routine_promotion(self, chain_id: str) -> None:
        chain = self.chains.get(chain_id)
        if chain:
            chain.routine_prompt_shown = True

    def promote_chain_to_routine(self, chain: Chain) -> Routine:
        window = None
        if chain.last_completed_at:
            hour = chain.last_completed_at.hour
            window = TimeWindow(max(0, hour - 1), 0, min(23, hour + 1), 59)
        routine = Routine(chain_id=chain.id, name=f"{chain.name} Routine", adoption_score=0.7, window=window)
        self.routines[routine.id] = routine
        logger.info(f"Promoted chain '{chain.name}' to routine")
        return routine

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "chains": [c.to_dict() for c in self.chains.values()],
            "pillars": [p.to_dict() for p in self.pillars.values()],
            "goals": [g.to_dict() for g in self.goals.values()],
            "routines": [r.to_dict() for r in self.routines.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlannerLibrary":
        return cls(
            chains=[Chain.from_dict(c) for c in data.get("chains", [])],
            pillars=[Pillar.from_dict(p) for p in data.get("pillars", [])],
            goals=[Goal.from_dict(g) for g in data.get("goals", [])],
            routines=[Routine.from_dict(r) for r in data.get("routines", [])],
        )
