"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bluegreen import __version__
from bluegreen.cli import main

_REQUEST = """\
service: checkout
strategy: canary
percentage: 10
bake_minutes: 5
deployment_id: d-cli
blue:
  fleet_id: checkout-blue
  image_tag: shop:1.0
green:
  fleet_id: checkout-green
  image_tag: shop:1.1
"""


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    return excinfo.value.code


@pytest.fixture
def request_file(tmp_path: Path) -> Path:
    path = tmp_path / "request.yaml"
    path.write_text(_REQUEST, encoding="utf-8")
    return path


class TestGlobalFlags:

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--version"]) == 0
        assert __version__ in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run([]) == 0
        assert "simulate" in capsys.readouterr().out


class TestPlan:

    def test_linear_from_flags(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["plan", "--strategy", "linear", "--step-percentage", "30"])
        out = capsys.readouterr().out
        assert code == 0
        for weight in ("30%", "60%", "90%", "100%"):
            assert weight in out

    def test_from_request(
        self, request_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _run(["plan", "--request", str(request_file)]) == 0
        out = capsys.readouterr().out
        assert "canary" in out and "10%" in out

    def test_invalid_params(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["plan", "--strategy", "canary", "--percentage", "100"]) == 1
        assert "Error" in capsys.readouterr().err


class TestSimulate:

    def test_successful_cutover(
        self, request_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        store_dir = tmp_path / "state"
        audit_path = tmp_path / "audit.jsonl"

        code = _run([
            "simulate", str(request_file),
            "--store", str(store_dir),
            "--audit-log", str(audit_path),
        ])

        assert code == 0
        assert "succeeded" in capsys.readouterr().out
        record = json.loads((store_dir / "deployments" / "d-cli.json").read_text())
        assert record["status"] == "succeeded"
        assert record["retired"] is True
        kinds = [json.loads(line)["kind"] for line in audit_path.read_text().splitlines()]
        assert "FleetPromoted" in kinds and "FleetRetired" in kinds

    def test_alarm_rolls_back(
        self, request_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(["simulate", str(request_file), "--alarm-at-minutes", "2"])
        assert code == 2
        assert "rolled-back" in capsys.readouterr().out

    def test_config_file(
        self, request_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = tmp_path / "controller.yaml"
        config.write_text("controller:\n  min_signals: 2\n  fail_fast_on_alarm: false\n")
        assert _run(["simulate", str(request_file), "--config", str(config), "--no-retire"]) == 0

    def test_missing_request(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["simulate", str(tmp_path / "nope.yaml")]) == 1
        assert "Error" in capsys.readouterr().err


class TestStatus:

    def test_lists_and_shows(
        self, request_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        store_dir = tmp_path / "state"
        _run(["simulate", str(request_file), "--store", str(store_dir), "--no-retire"])
        capsys.readouterr()

        assert _run(["status", "--store", str(store_dir)]) == 0
        assert "d-cli" in capsys.readouterr().out

        assert _run(["status", "--store", str(store_dir), "--deployment", "d-cli"]) == 0
        assert "succeeded" in capsys.readouterr().out

    def test_unknown_deployment(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["status", "--store", str(tmp_path), "--deployment", "d-x"]) == 1
        assert "no deployment" in capsys.readouterr().err


class TestInfo:

    def test_lists_strategies(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["info"]) == 0
        out = capsys.readouterr().out
        for name in ("canary", "linear", "all-at-once"):
            assert name in out
