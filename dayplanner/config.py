"""
Centralized runtime settings for the day planner core.

Scheduling constants live in policy.py (YAML-backed). Values here vary by
deployment and are overridden via environment variables.
"""

import os

# ============================================================
# Logging
# ============================================================

LOG_LEVEL: str = os.environ.get("DAYPLANNER_LOG_LEVEL", "INFO")
"""Root log level used by configure_logging() when none is given."""

_json_env = os.environ.get("DAYPLANNER_LOG_JSON", "").strip().lower()
LOG_JSON: bool | None = None if not _json_env else _json_env in ("1", "true", "yes")
"""Force JSON (true) or human (false) log output. Unset = auto-detect from TTY."""

# ============================================================
# AI collaborator
# ============================================================

AI_TIMEOUT_SECONDS: float = float(os.environ.get("DAYPLANNER_AI_TIMEOUT", "30"))
"""Upper bound on one AI round-trip before the resolver asks for clarification."""
