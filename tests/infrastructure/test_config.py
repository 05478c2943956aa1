"""Tests for ControllerConfig and the config loaders."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bluegreen.infrastructure.config import (
    ControllerConfig,
    load_config_file,
    load_config_from_json,
    load_config_from_yaml,
)


class TestControllerConfig:

    def test_defaults_are_valid(self) -> None:
        cfg = ControllerConfig()
        cfg.validate()
        assert cfg.min_signals == 1
        assert cfg.fail_fast_on_alarm is True
        assert cfg.blue_fleet_retain_seconds == 3600.0

    @pytest.mark.parametrize("field,value", [
        ("min_signals", -1),
        ("evaluation_window_seconds", 0),
        ("max_inconclusive_wait_seconds", -5),
        ("health_poll_interval_seconds", 0),
        ("blue_fleet_retain_minutes", -1),
        ("alarm_poll_interval_seconds", 0),
    ])
    def test_out_of_range(self, field: str, value: float) -> None:
        with pytest.raises(ValueError, match=field):
            ControllerConfig(**{field: value}).validate()

    def test_retention_must_cover_window(self) -> None:
        with pytest.raises(ValueError, match="signal_retention_seconds"):
            ControllerConfig(evaluation_window_seconds=600, signal_retention_seconds=60).validate()

    def test_dict_round_trip_ignores_unknown_keys(self) -> None:
        cfg = ControllerConfig(min_signals=3, blue_fleet_retain_minutes=15)
        data = cfg.to_dict()
        data["unknown"] = "ignored"
        assert ControllerConfig.from_dict(data) == cfg

    def test_from_dict_validates(self) -> None:
        with pytest.raises(ValueError):
            ControllerConfig.from_dict({"min_signals": -2})


class TestLoaders:

    def test_json_sections(self) -> None:
        sections = load_config_from_json(
            json.dumps({"controller": {"min_signals": 2}, "extra": {"a": 1}})
        )
        assert sections["controller"] == ControllerConfig(min_signals=2)
        assert sections["extra"] == {"a": 1}

    def test_yaml_sections(self) -> None:
        sections = load_config_from_yaml(
            "controller:\n  fail_fast_on_alarm: false\n  health_poll_interval_seconds: 5\n"
        )
        cfg = sections["controller"]
        assert cfg.fail_fast_on_alarm is False
        assert cfg.health_poll_interval_seconds == 5

    def test_top_level_must_be_mapping(self) -> None:
        with pytest.raises(ValueError):
            load_config_from_json("[1, 2]")

    def test_load_file_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "controller.yaml"
        path.write_text("controller:\n  blue_fleet_retain_minutes: 5\n", encoding="utf-8")
        assert load_config_file(path).blue_fleet_retain_minutes == 5

    def test_load_file_without_section_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "controller.json"
        path.write_text("{}", encoding="utf-8")
        assert load_config_file(path) == ControllerConfig()
