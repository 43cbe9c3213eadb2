"""
Test fixtures for deterministic testing.

Builders for blocks, chains and pillars anchored to fixed dates, so no test
depends on the wall clock.
"""

from .builders import MONDAY, SATURDAY, at, make_block, make_chain, make_pillar

__all__ = ["MONDAY", "SATURDAY", "at", "make_block", "make_chain", "make_pillar"]
