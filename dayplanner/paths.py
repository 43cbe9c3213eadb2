from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "DAYPLANNER_HOME"
APP_ENV_POLICY = "DAYPLANNER_POLICY"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains dayplanner/, config/, tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for the day planner.
    Override with DAYPLANNER_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".dayplanner").resolve()


def config_dir() -> Path:
    return app_home() / "config"


def policy_path() -> Path:
    """
    Scheduling policy file.

    Resolution order:
    1. DAYPLANNER_POLICY env var (explicit override)
    2. ~/.dayplanner/config/scheduling.yaml (default)
    """
    if os.environ.get(APP_ENV_POLICY):
        return Path(os.environ[APP_ENV_POLICY]).expanduser().resolve()
    return config_dir() / "scheduling.yaml"


def bundled_policy_path() -> Path:
    """Reference policy shipped with the repository."""
    return project_root() / "config" / "scheduling.yaml"
