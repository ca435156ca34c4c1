"""Tests for the ``cuescore`` CLI.

All tests use ``typer.testing.CliRunner`` against the full ``cuescore`` app so
that argument parsing, flag handling and exit codes are exercised end-to-end.
"""
from __future__ import annotations

import json

from typer.testing import CliRunner

from cuescore.cli.app import cli
from cuescore.cli.commands.preview import sparkline
from cuescore.cli.errors import ExitCode

runner = CliRunner()


# ---------------------------------------------------------------------------
# simulate
# ---------------------------------------------------------------------------


class TestSimulateCommand:

    def test_table_output(self) -> None:
        result = runner.invoke(cli, ["simulate", "--seed", "3", "--duration", "2", "--players", "4"])
        assert result.exit_code == ExitCode.SUCCESS, result.output
        assert "Prompts:" in result.stdout
        assert "Fairness:" in result.stdout
        assert "Player  Plays  Rests  Play%" in result.stdout

    def test_json_output(self) -> None:
        result = runner.invoke(
            cli,
            ["simulate", "--seed", "3", "--duration", "2", "--players", "5", "--arc", "wave", "--json"],
        )
        assert result.exit_code == ExitCode.SUCCESS, result.output
        report = json.loads(result.stdout)
        assert report["summary"]["players"] == 5
        assert report["summary"]["timedOut"] is False
        assert len(report["playerBreakdown"]) == 5

    def test_seeded_runs_match(self) -> None:
        args = ["simulate", "--seed", "11", "--duration", "2", "--json"]
        first = runner.invoke(cli, args)
        second = runner.invoke(cli, args)
        assert json.loads(first.stdout)["timeline"] == json.loads(second.stdout)["timeline"]

    def test_reversed_interval_is_a_user_error(self) -> None:
        result = runner.invoke(cli, ["simulate", "--min-interval", "40", "--max-interval", "10"])
        assert result.exit_code == ExitCode.USER_ERROR
        assert "❌" in result.output

    def test_contrast_out_of_range_is_a_user_error(self) -> None:
        result = runner.invoke(cli, ["simulate", "--contrast", "1.5"])
        assert result.exit_code == ExitCode.USER_ERROR

    def test_unknown_arc_is_rejected(self) -> None:
        result = runner.invoke(cli, ["simulate", "--arc", "zigzag"])
        assert result.exit_code != ExitCode.SUCCESS


# ---------------------------------------------------------------------------
# preview
# ---------------------------------------------------------------------------


class TestPreviewCommand:

    def test_sparkline_output(self) -> None:
        result = runner.invoke(cli, ["preview", "--arc", "swell", "--width", "20", "--seed", "1"])
        assert result.exit_code == ExitCode.SUCCESS, result.output
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("swell")
        assert len(lines[-1]) == 20

    def test_json_points(self) -> None:
        result = runner.invoke(cli, ["preview", "--width", "11", "--contrast", "0", "--json"])
        assert result.exit_code == ExitCode.SUCCESS, result.output
        points = json.loads(result.stdout)
        assert len(points) == 11
        assert points[0]["x"] == 0.0
        assert points[-1]["x"] == 1.0

    def test_bad_dynamic_range(self) -> None:
        result = runner.invoke(cli, ["preview", "--dyn-min", "6", "--dyn-max", "2"])
        assert result.exit_code == ExitCode.USER_ERROR


class TestSparkline:

    def test_maps_unit_range_to_bars(self) -> None:
        assert sparkline([0.0, 1.0]) == "▁█"

    def test_clamps_out_of_range_values(self) -> None:
        assert sparkline([-0.4, 1.4]) == "▁█"
