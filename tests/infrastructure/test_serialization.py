"""Tests for the serialization helpers."""

from __future__ import annotations

import json

import pytest

from bluegreen.domain.entities import Deployment, Fleet
from bluegreen.domain.enums import DeploymentStatus, FleetHealth, FleetRole, RoutingStrategy
from bluegreen.domain.values import StrategyParams, TrafficStep
from bluegreen.infrastructure.config import ControllerConfig
from bluegreen.infrastructure.serialization import (
    deployment_from_dict,
    deployment_to_dict,
    deserialize,
    from_json,
    from_yaml,
    serialize,
    to_json,
    to_yaml,
)


def _in_flight_deployment() -> Deployment:
    d = Deployment(
        service="checkout",
        blue_fleet_id="b",
        green_fleet_id="g",
        strategy=RoutingStrategy.LINEAR,
        params=StrategyParams(step_percentage=50, interval_minutes=2),
        steps=(
            TrafficStep(0, 50, offset_seconds=0.0, hold_seconds=120.0),
            TrafficStep(1, 100, offset_seconds=120.0),
        ),
        created_at=5.0,
        image_tag="shop:2.0",
    )
    d.transition(DeploymentStatus.IN_PROGRESS, at=10.0)
    d.mark_applied(11.0)
    d.abort_requested = True
    d.abort_reason = "operator"
    return d


class TestDeploymentSerialization:

    def test_dict_is_json_ready(self) -> None:
        data = deployment_to_dict(_in_flight_deployment())
        assert data["strategy"] == "linear"
        assert data["status"] == "in-progress"
        assert data["steps"][0] == {
            "index": 0, "target_weight": 50, "offset_seconds": 0.0, "hold_seconds": 120.0,
        }
        json.dumps(data)

    def test_cursor_survives(self) -> None:
        original = _in_flight_deployment()
        restored = deployment_from_dict(json.loads(json.dumps(deployment_to_dict(original))))
        assert restored == original
        assert restored.phase_applied and restored.phase_applied_at == 11.0
        assert restored.steps == original.steps

    def test_missing_optional_fields_use_defaults(self) -> None:
        restored = deployment_from_dict({
            "deployment_id": "d-1",
            "service": "svc",
            "blue_fleet_id": "b",
            "green_fleet_id": "g",
            "strategy": "all-at-once",
        })
        assert restored.status is DeploymentStatus.PENDING
        assert restored.steps == ()
        assert restored.retire_at is None


class TestUnifiedSerializer:

    def test_fleet_json(self) -> None:
        fleet = Fleet(
            fleet_id="g", role=FleetRole.BLUE, weight=100,
            health=FleetHealth.HEALTHY, created_at=1.0, image_tag="shop:2",
        )
        assert from_json(to_json(fleet), Fleet) == fleet

    def test_config_yaml(self) -> None:
        cfg = ControllerConfig(min_signals=4)
        assert from_yaml(to_yaml(cfg), ControllerConfig) == cfg

    def test_serialize_unknown_type(self) -> None:
        with pytest.raises(TypeError):
            serialize(object())

    def test_deserialize_unknown_type(self) -> None:
        with pytest.raises(TypeError):
            deserialize({}, dict)
