"""Serialization utilities for the cutover controller.

Provides ``to_dict`` / ``from_dict`` round-trip conversion for the domain
values, entities and configs.  Every ``to_dict`` output is JSON-serializable
(enums are stored by value, tuples become lists).  ``from_dict`` reconstructors
accept permissive input and raise ``ValueError``/``KeyError`` for truly
unrecoverable data.
"""

from __future__ import annotations

import json
from typing import Any

import yaml

from bluegreen.domain.entities import Deployment, Fleet
from bluegreen.domain.enums import (
    DeploymentStatus,
    FleetHealth,
    FleetRole,
    RoutingStrategy,
)
from bluegreen.domain.values import (
    AuditEntry,
    HealthSignal,
    StrategyParams,
    TrafficStep,
)
from bluegreen.infrastructure.config import ControllerConfig


def _enum_val(v: Any) -> Any:
    """Return the ``.value`` if *v* is an enum member, else *v* unchanged."""
    if hasattr(v, "value"):
        return v.value
    return v


def _opt_float(v: Any) -> float | None:
    return None if v is None else float(v)


# =========================================================================== #
#  Value objects                                                               #
# =========================================================================== #

def strategy_params_to_dict(p: StrategyParams) -> dict[str, Any]:
    return {
        "percentage": p.percentage,
        "bake_minutes": p.bake_minutes,
        "step_percentage": p.step_percentage,
        "interval_minutes": p.interval_minutes,
    }


def strategy_params_from_dict(data: dict[str, Any]) -> StrategyParams:
    defaults = StrategyParams()
    return StrategyParams(
        percentage=int(data.get("percentage", defaults.percentage)),
        bake_minutes=float(data.get("bake_minutes", defaults.bake_minutes)),
        step_percentage=int(data.get("step_percentage", defaults.step_percentage)),
        interval_minutes=float(data.get("interval_minutes", defaults.interval_minutes)),
    )


def traffic_step_to_dict(s: TrafficStep) -> dict[str, Any]:
    return {
        "index": s.index,
        "target_weight": s.target_weight,
        "offset_seconds": s.offset_seconds,
        "hold_seconds": s.hold_seconds,
    }


def traffic_step_from_dict(data: dict[str, Any]) -> TrafficStep:
    return TrafficStep(
        index=int(data["index"]),
        target_weight=int(data["target_weight"]),
        offset_seconds=float(data.get("offset_seconds", 0.0)),
        hold_seconds=float(data.get("hold_seconds", 0.0)),
    )


def health_signal_to_dict(s: HealthSignal) -> dict[str, Any]:
    return {
        "source": s.source,
        "fleet_id": s.fleet_id,
        "triggered": s.triggered,
        "timestamp": s.timestamp,
        "reason": s.reason,
    }


def health_signal_from_dict(data: dict[str, Any]) -> HealthSignal:
    return HealthSignal(
        source=str(data["source"]),
        fleet_id=str(data["fleet_id"]),
        triggered=bool(data["triggered"]),
        timestamp=float(data["timestamp"]),
        reason=str(data.get("reason", "")),
    )


def audit_entry_to_dict(e: AuditEntry) -> dict[str, Any]:
    return {
        "entry_id": e.entry_id,
        "kind": e.kind,
        "timestamp": e.timestamp,
        "service": e.service,
        "deployment_id": e.deployment_id,
        "fleet_id": e.fleet_id,
        "details": dict(e.details),
    }


def audit_entry_from_dict(data: dict[str, Any]) -> AuditEntry:
    return AuditEntry(
        entry_id=str(data.get("entry_id", "")),
        kind=str(data["kind"]),
        timestamp=float(data["timestamp"]),
        service=str(data.get("service", "")),
        deployment_id=str(data.get("deployment_id", "")),
        fleet_id=str(data.get("fleet_id", "")),
        details=dict(data.get("details", {})),
    )


# =========================================================================== #
#  Entities                                                                    #
# =========================================================================== #

def fleet_to_dict(f: Fleet) -> dict[str, Any]:
    return {
        "fleet_id": f.fleet_id,
        "role": _enum_val(f.role),
        "weight": f.weight,
        "health": _enum_val(f.health),
        "created_at": f.created_at,
        "target_group": f.target_group,
        "image_tag": f.image_tag,
    }


def fleet_from_dict(data: dict[str, Any]) -> Fleet:
    return Fleet(
        fleet_id=str(data["fleet_id"]),
        role=FleetRole(data.get("role", "green")),
        weight=int(data.get("weight", 0)),
        health=FleetHealth(data.get("health", "unknown")),
        created_at=float(data.get("created_at", 0.0)),
        target_group=str(data.get("target_group", "")),
        image_tag=str(data.get("image_tag", "")),
    )


def deployment_to_dict(d: Deployment) -> dict[str, Any]:
    return {
        "deployment_id": d.deployment_id,
        "service": d.service,
        "blue_fleet_id": d.blue_fleet_id,
        "green_fleet_id": d.green_fleet_id,
        "strategy": _enum_val(d.strategy),
        "params": strategy_params_to_dict(d.params),
        "steps": [traffic_step_to_dict(s) for s in d.steps],
        "status": _enum_val(d.status),
        "phase_index": d.phase_index,
        "phase_applied": d.phase_applied,
        "phase_applied_at": d.phase_applied_at,
        "created_at": d.created_at,
        "started_at": d.started_at,
        "ended_at": d.ended_at,
        "status_reason": d.status_reason,
        "image_tag": d.image_tag,
        "abort_requested": d.abort_requested,
        "abort_reason": d.abort_reason,
        "retire_at": d.retire_at,
        "retired": d.retired,
    }


def deployment_from_dict(data: dict[str, Any]) -> Deployment:
    return Deployment(
        deployment_id=str(data["deployment_id"]),
        service=str(data["service"]),
        blue_fleet_id=str(data["blue_fleet_id"]),
        green_fleet_id=str(data["green_fleet_id"]),
        strategy=RoutingStrategy(data["strategy"]),
        params=strategy_params_from_dict(data.get("params", {})),
        steps=tuple(traffic_step_from_dict(s) for s in data.get("steps", [])),
        status=DeploymentStatus(data.get("status", "pending")),
        phase_index=int(data.get("phase_index", 0)),
        phase_applied=bool(data.get("phase_applied", False)),
        phase_applied_at=_opt_float(data.get("phase_applied_at")),
        created_at=float(data.get("created_at", 0.0)),
        started_at=_opt_float(data.get("started_at")),
        ended_at=_opt_float(data.get("ended_at")),
        status_reason=str(data.get("status_reason", "")),
        image_tag=str(data.get("image_tag", "")),
        abort_requested=bool(data.get("abort_requested", False)),
        abort_reason=str(data.get("abort_reason", "")),
        retire_at=_opt_float(data.get("retire_at")),
        retired=bool(data.get("retired", False)),
    )


# =========================================================================== #
#  Unified serializer                                                          #
# =========================================================================== #

def _config_to_dict(cfg: ControllerConfig) -> dict[str, Any]:
    return cfg.to_dict()


# Maps type -> (to_dict_fn, from_dict_fn)
_SERIALIZERS: dict[type, tuple[Any, Any]] = {
    StrategyParams: (strategy_params_to_dict, strategy_params_from_dict),
    TrafficStep: (traffic_step_to_dict, traffic_step_from_dict),
    HealthSignal: (health_signal_to_dict, health_signal_from_dict),
    AuditEntry: (audit_entry_to_dict, audit_entry_from_dict),
    Fleet: (fleet_to_dict, fleet_from_dict),
    Deployment: (deployment_to_dict, deployment_from_dict),
    ControllerConfig: (_config_to_dict, ControllerConfig.from_dict),
}


def serialize(obj: Any) -> dict[str, Any]:
    """Serialize a known domain/infrastructure object to a dict.

    Raises ``TypeError`` for unsupported types.
    """
    ser = _SERIALIZERS.get(type(obj))
    if ser is None:
        raise TypeError(f"No serializer registered for {type(obj).__name__}")
    to_fn, _ = ser
    return to_fn(obj)


def deserialize(data: dict[str, Any], target_type: type) -> Any:
    """Deserialize a dict into *target_type*."""
    ser = _SERIALIZERS.get(target_type)
    if ser is None:
        raise TypeError(f"No deserializer registered for {target_type.__name__}")
    _, from_fn = ser
    return from_fn(data)


def to_json(obj: Any, *, indent: int | None = 2) -> str:
    return json.dumps(serialize(obj), indent=indent)


def from_json(json_str: str, target_type: type) -> Any:
    return deserialize(json.loads(json_str), target_type)


def to_yaml(obj: Any) -> str:
    return yaml.safe_dump(serialize(obj), default_flow_style=False, sort_keys=False)


def from_yaml(yaml_str: str, target_type: type) -> Any:
    return deserialize(yaml.safe_load(yaml_str), target_type)
