"""Configuration dataclasses for the cutover controller.

Each config is a plain ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations.  Configs are **frozen** so a running
controller can never observe a silent change of policy mid-cutover.

Config files may be JSON or YAML; the top-level object maps section names
(currently only ``controller``) to field dicts.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class ControllerConfig:
    """Policy knobs of the cutover state machine and health monitor.

    Attributes
    ----------
    min_signals:
        Minimum number of signals a window must hold before a fleet can be
        judged healthy.  Fewer signals yield ``inconclusive``.
    evaluation_window_seconds:
        Lower bound on the evaluation window.  The effective window is the
        larger of this value and the time since the step was applied.
    max_inconclusive_wait_seconds:
        How long to keep waiting on ``inconclusive`` verdicts after the hold
        time before proceeding anyway.
    health_poll_interval_seconds:
        Re-evaluation period while a verdict is inconclusive.
    blue_fleet_retain_minutes:
        Delay between promotion and retirement of the previous blue fleet.
    fail_fast_on_alarm:
        If ``True``, a triggered signal for the green fleet ends the current
        hold immediately instead of waiting for the bake to elapse.
    alarm_poll_interval_seconds:
        Period at which a configured ``AlarmSource`` is polled.
    signal_retention_seconds:
        Signals older than this are discarded by the health monitor.
    store_dir:
        Directory for durable deployment records.  Empty means in-memory.
    audit_log_path:
        JSON-lines file receiving audit entries.  Empty means in-memory only.
    """

    min_signals: int = 1
    evaluation_window_seconds: float = 60.0
    max_inconclusive_wait_seconds: float = 300.0
    health_poll_interval_seconds: float = 15.0
    blue_fleet_retain_minutes: float = 60.0
    fail_fast_on_alarm: bool = True
    alarm_poll_interval_seconds: float = 30.0
    signal_retention_seconds: float = 3600.0
    store_dir: str = ""
    audit_log_path: str = ""

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if self.min_signals < 0:
            raise ValueError(f"min_signals must be >= 0, got {self.min_signals}")
        if self.evaluation_window_seconds <= 0:
            raise ValueError(
                f"evaluation_window_seconds must be > 0, got {self.evaluation_window_seconds}"
            )
        if self.max_inconclusive_wait_seconds < 0:
            raise ValueError(
                "max_inconclusive_wait_seconds must be >= 0, "
                f"got {self.max_inconclusive_wait_seconds}"
            )
        if self.health_poll_interval_seconds <= 0:
            raise ValueError(
                "health_poll_interval_seconds must be > 0, "
                f"got {self.health_poll_interval_seconds}"
            )
        if self.blue_fleet_retain_minutes < 0:
            raise ValueError(
                f"blue_fleet_retain_minutes must be >= 0, got {self.blue_fleet_retain_minutes}"
            )
        if self.alarm_poll_interval_seconds <= 0:
            raise ValueError(
                "alarm_poll_interval_seconds must be > 0, "
                f"got {self.alarm_poll_interval_seconds}"
            )
        if self.signal_retention_seconds < self.evaluation_window_seconds:
            raise ValueError(
                "signal_retention_seconds must cover evaluation_window_seconds "
                f"({self.signal_retention_seconds} < {self.evaluation_window_seconds})"
            )

    @property
    def blue_fleet_retain_seconds(self) -> float:
        return self.blue_fleet_retain_minutes * 60.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ControllerConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        cfg = cls(**filtered)
        cfg.validate()
        return cfg


# ===================================================================== #
#  Loaders                                                               #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "controller": ControllerConfig,
}


def _sections(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError("Top-level config must be a mapping")
    result: dict[str, Any] = {}
    for section, data in raw.items():
        cls = _CONFIG_MAP.get(section)
        if cls is not None and isinstance(data, dict):
            result[section] = cls.from_dict(data)
        else:
            result[section] = data
    return result


def load_config_from_json(json_str: str) -> dict[str, Any]:
    """Parse a JSON string into a dict of typed config objects.

    Unknown sections are preserved as raw values.
    """
    return _sections(json.loads(json_str))


def load_config_from_yaml(yaml_str: str) -> dict[str, Any]:
    """Parse a YAML string into a dict of typed config objects."""
    return _sections(yaml.safe_load(yaml_str) or {})


def load_config_file(path: str | Path) -> ControllerConfig:
    """Load the ``controller`` section of a JSON or YAML file.

    A missing section yields the defaults.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        sections = load_config_from_yaml(text)
    else:
        sections = load_config_from_json(text)
    cfg = sections.get("controller")
    if cfg is None:
        cfg = ControllerConfig()
        cfg.validate()
    return cfg
