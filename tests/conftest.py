"""
Test configuration: repo root on sys.path plus isolation guards.

This allows tests to import the dayplanner package and tests.fixtures.
Every test runs with DAYPLANNER_HOME pointed at a temp directory so no test
reads or writes the user's real policy file.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dayplanner.library import PlannerLibrary  # noqa: E402
from dayplanner.policy import SchedulingPolicy  # noqa: E402
from dayplanner.suggestions.resolver import SuggestionResolver  # noqa: E402
from dayplanner.time_truth import (  # noqa: E402
    BackfillReconstructor,
    ChainPlacer,
    DayTimeline,
    GapFinder,
    PillarTracker,
    TimelineHistory,
)
from tests.fixtures import MONDAY  # noqa: E402

# =============================================================================
# ISOLATION GUARD: never touch the real app home
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    monkeypatch.setenv("DAYPLANNER_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("DAYPLANNER_POLICY", raising=False)
    return tmp_path / "home"


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def policy():
    return SchedulingPolicy()


@pytest.fixture
def day() -> date:
    """A Monday."""
    return MONDAY


@pytest.fixture
def timeline(day):
    return DayTimeline(day)


@pytest.fixture
def history(day, timeline):
    """Day history whose current day is `timeline`."""
    return TimelineHistory(day, [timeline])


@pytest.fixture
def gaps(policy):
    return GapFinder(policy)


@pytest.fixture
def placer(policy):
    return ChainPlacer(policy)


@pytest.fixture
def tracker(policy):
    return PillarTracker(policy)


@pytest.fixture
def reconstructor(policy):
    return BackfillReconstructor(policy)


@pytest.fixture
def library():
    return PlannerLibrary()


@pytest.fixture
def learned():
    """Collects (pending, reason) pairs passed to the learning hook."""
    return []


@pytest.fixture
def resolver(library, policy, learned):
    return SuggestionResolver(
        library=library,
        policy=policy,
        learning_hook=lambda item, reason: learned.append((item, reason)),
    )
