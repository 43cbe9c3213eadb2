"""
Tests for the command-line interface over JSON day files.
"""

import json
import logging

import pytest

from dayplanner.cli import main
from dayplanner.models import Pillar
from dayplanner.time_truth import DayTimeline
from tests.fixtures import MONDAY, at, make_block, make_chain


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def day_file(tmp_path):
    path = tmp_path / "day.json"
    timeline = DayTimeline(MONDAY, [make_block("Standup", at(9), 30)])
    path.write_text(json.dumps(timeline.to_dict()))
    return path


@pytest.fixture
def chain_file(tmp_path):
    path = tmp_path / "chain.json"
    path.write_text(json.dumps(make_chain("Morning", [("Prep", 15), ("Work", 60)]).to_dict()))
    return path


class TestGaps:
    def test_human_output(self, day_file, capsys):
        assert main(["gaps", str(day_file)]) == 0
        out = capsys.readouterr().out
        assert "Free time on 2026-03-02:" in out
        assert "06:00-09:00  (180 min)" in out
        assert "09:30-22:00  (750 min)" in out

    def test_json_output(self, day_file, capsys):
        assert main(["--json", "gaps", str(day_file), "--min", "200"]) == 0
        slots = json.loads(capsys.readouterr().out)
        assert [s["duration_minutes"] for s in slots] == [750]


class TestPlaceChain:
    def test_write_saves_day_and_chain(self, day_file, chain_file, capsys):
        assert main(["place-chain", str(day_file), str(chain_file), "--at", "10:00", "--write"]) == 0
        assert "✅ Placed 'Morning'" in capsys.readouterr().out
        saved = DayTimeline.from_dict(json.loads(day_file.read_text()))
        assert [b.title for b in saved.blocks] == ["Standup", "Prep", "Work"]
        assert json.loads(chain_file.read_text())["completion_count"] == 1

    def test_without_write_leaves_files(self, day_file, chain_file):
        before = day_file.read_text()
        assert main(["place-chain", str(day_file), str(chain_file), "--at", "10:00"]) == 0
        assert day_file.read_text() == before

    def test_conflict_fails(self, day_file, chain_file, capsys):
        assert main(["place-chain", str(day_file), str(chain_file), "--at", "08:30"]) == 1
        assert "❌" in capsys.readouterr().out

    def test_bad_time_fails(self, day_file, chain_file):
        assert main(["place-chain", str(day_file), str(chain_file), "--at", "9am"]) == 1


class TestDue:
    def test_reports_due_pillars(self, tmp_path, day_file, capsys):
        pillars = tmp_path / "pillars.json"
        pillars.write_text(json.dumps({"pillars": [Pillar(name="Reading").to_dict()]}))
        assert main(["due", str(pillars), str(day_file), "--as-of", "2026-03-02T08:00"]) == 0
        out = capsys.readouterr().out
        assert "Found 1 of 1 pillars" in out
        assert "08:00-08:30" in out


class TestBackfill:
    def test_gap_filling(self, day_file, capsys):
        assert main(["--json", "backfill", str(day_file)]) == 0
        blocks = json.loads(capsys.readouterr().out)
        assert all(b["state"] == "crystal" for b in blocks)

    def test_full_day(self, day_file, capsys):
        assert main(["backfill", str(day_file), "--full"]) == 0
        assert "Reconstruction for 2026-03-02" in capsys.readouterr().out


class TestErrors:
    def test_missing_file(self, tmp_path, capsys):
        assert main(["gaps", str(tmp_path / "missing.json")]) == 1
        assert "❌" in capsys.readouterr().out

    def test_invalid_policy_value(self, tmp_path, day_file):
        policy = tmp_path / "policy.yaml"
        policy.write_text("day:\n  start: '23:00'\n  end: '06:00'\n")
        assert main(["--policy", str(policy), "gaps", str(day_file)]) == 1
