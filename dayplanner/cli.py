"""
Day Planner CLI

Command-line access to the placement engine over JSON files written by
to_dict().

Usage:
    python -m dayplanner gaps day.json [--min 30]
    python -m dayplanner place-chain day.json chain.json --at 09:00 [--write]
    python -m dayplanner due pillars.json day.json [--as-of 2026-03-02T08:00]
    python -m dayplanner backfill day.json [--full]
"""

import argparse
import json
import logging
import sys
from datetime import datetime, time, timedelta
from pathlib import Path

from . import config
from .models import Chain, Pillar, parse_hhmm
from .observability import configure_logging
from .policy import load_policy
from .time_truth import BackfillReconstructor, ChainPlacer, DayTimeline, GapFinder, PillarTracker

logger = logging.getLogger(__name__)


def _read_json(path: str):
    with open(path) as f:
        return json.load(f)


def _load_day(path: str) -> DayTimeline:
    return DayTimeline.from_dict(_read_json(path))


def _emit(args, payload, lines: list[str]) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print("\n".join(lines))


def _block_line(block) -> str:
    return f"  {block.start:%H:%M}-{block.end:%H:%M}  {block.glyph} {block.title} [{block.state.value}]"


def cmd_gaps(args, policy):
    """Free intervals of a day."""
    timeline = _load_day(args.day_file)
    min_slot = timedelta(minutes=args.min) if args.min is not None else None
    slots = GapFinder(policy).free_intervals(timeline, min_slot=min_slot)
    lines = [f"Free time on {timeline.day.isoformat()}:"]
    lines += [f"  {s.start:%H:%M}-{s.end:%H:%M}  ({s.duration_minutes} min)" for s in slots]
    if not slots:
        lines.append("  (none)")
    _emit(args, [s.to_dict() for s in slots], lines)
    return 0


def cmd_place_chain(args, policy):
    """Place a chain at a time of day."""
    timeline = _load_day(args.day_file)
    chain = Chain.from_dict(_read_json(args.chain_file))
    hour, minute = parse_hhmm(args.at)
    start = datetime.combine(timeline.day, time(hour, minute))

    result = ChainPlacer(policy).place(chain, start, timeline)
    if not result.success:
        _emit(args, result.to_dict(), [f"❌ {result.message}"])
        return 1

    lines = [f"✅ Placed '{chain.name}' ({chain.completion_count} completions)"]
    lines += [_block_line(b) for b in result.blocks]
    if args.write:
        Path(args.day_file).write_text(json.dumps(timeline.to_dict(), indent=2, ensure_ascii=False))
        Path(args.chain_file).write_text(json.dumps(chain.to_dict(), indent=2, ensure_ascii=False))
        lines.append(f"Saved {args.day_file}")
    _emit(args, result.to_dict(), lines)
    return 0


def cmd_due(args, policy):
    """Overdue pillars and proposed slots."""
    data = _read_json(args.pillars_file)
    if isinstance(data, dict):
        data = data.get("pillars", [])
    pillars = [Pillar.from_dict(p) for p in data]
    timeline = _load_day(args.day_file)
    as_of = datetime.fromisoformat(args.as_of) if args.as_of else datetime.now()

    analysis = PillarTracker(policy).analyze(pillars, timeline, as_of)
    lines = [analysis.summary]
    lines += [_block_line(b) for b in analysis.proposals]
    _emit(args, analysis.to_dict(), lines)
    return 0


def cmd_backfill(args, policy):
    """Reconstruct a day."""
    timeline = _load_day(args.day_file)
    reconstructor = BackfillReconstructor(policy)
    if args.full:
        blocks = reconstructor.reconstruct_full_day(timeline.day, timeline)
    else:
        blocks = reconstructor.reconstruct(timeline.day, timeline)
    lines = [f"Reconstruction for {timeline.day.isoformat()} ({len(blocks)} blocks):"]
    lines += [_block_line(b) for b in blocks]
    _emit(args, [b.to_dict() for b in blocks], lines)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="dayplanner", description="Day Planner CLI")
    parser.add_argument("--policy", help="Scheduling policy YAML")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")
    parser.add_argument("--json", action="store_true", help="JSON output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # gaps
    p = subparsers.add_parser("gaps", help="Free intervals of a day")
    p.add_argument("day_file", help="Day timeline JSON")
    p.add_argument("--min", type=int, help="Minimum slot in minutes")

    # place-chain
    p = subparsers.add_parser("place-chain", help="Place a chain")
    p.add_argument("day_file", help="Day timeline JSON")
    p.add_argument("chain_file", help="Chain JSON")
    p.add_argument("--at", required=True, help="Start time (HH:MM)")
    p.add_argument("--write", action="store_true", help="Save the updated day and chain")

    # due
    p = subparsers.add_parser("due", help="Overdue pillars")
    p.add_argument("pillars_file", help="Pillars JSON")
    p.add_argument("day_file", help="Day timeline JSON")
    p.add_argument("--as-of", help="Reference time (ISO-8601), default now")

    # backfill
    p = subparsers.add_parser("backfill", help="Reconstruct a day")
    p.add_argument("day_file", help="Day timeline JSON")
    p.add_argument("--full", action="store_true", help="Complete typical day instead of gap filling")

    args = parser.parse_args(argv)
    configure_logging(args.log_level, json_format=config.LOG_JSON)

    commands = {
        "gaps": cmd_gaps,
        "place-chain": cmd_place_chain,
        "due": cmd_due,
        "backfill": cmd_backfill,
    }

    try:
        policy = load_policy(args.policy)
        return commands[args.command](args, policy)
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
