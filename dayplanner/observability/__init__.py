"""
Observability module: structured logging and AI-turn correlation ids.

Usage:
    from dayplanner.observability import get_logger, TurnContext

    logger = get_logger(__name__)
    logger.info("Resolving suggestion", extra={"action": "create_event"})

    with TurnContext() as turn:
        logger.info("AI turn started")  # carries turn.turn_id
"""

from .context import TurnContext, current_turn, generate_turn_id, get_turn_id
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "TurnContext",
    "get_turn_id",
    "current_turn",
    "generate_turn_id",
]
