"""Tests for Fleet and Deployment entities."""

from __future__ import annotations

import dataclasses

import pytest

from bluegreen.domain.entities import Deployment, Fleet
from bluegreen.domain.enums import DeploymentStatus, FleetHealth, FleetRole, RoutingStrategy
from bluegreen.domain.exceptions import AlreadyTerminal, ValidationError
from bluegreen.domain.values import TrafficStep


def _deployment(**kwargs) -> Deployment:
    defaults = dict(
        service="svc",
        blue_fleet_id="b",
        green_fleet_id="g",
        strategy=RoutingStrategy.CANARY,
        steps=(TrafficStep(0, 10, hold_seconds=300.0), TrafficStep(1, 100, offset_seconds=300.0)),
    )
    defaults.update(kwargs)
    return Deployment(**defaults)


class TestFleet:

    def test_target_group_defaults_to_fleet_id(self) -> None:
        fleet = Fleet(fleet_id="web-green")
        assert fleet.target_group == "web-green"
        assert fleet.role is FleetRole.GREEN
        assert fleet.health is FleetHealth.UNKNOWN

    def test_explicit_target_group_kept(self) -> None:
        fleet = Fleet(fleet_id="web-green", target_group="tg-web-2")
        assert fleet.target_group == "tg-web-2"

    def test_frozen(self) -> None:
        fleet = Fleet(fleet_id="a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            fleet.weight = 50  # type: ignore[misc]

    def test_with_helpers_return_copies(self) -> None:
        fleet = Fleet(fleet_id="a", weight=0)
        heavier = fleet.with_weight(40)
        blue = fleet.with_role(FleetRole.BLUE)
        sick = fleet.with_health(FleetHealth.UNHEALTHY)
        assert fleet.weight == 0 and heavier.weight == 40
        assert blue.is_blue and not fleet.is_blue
        assert sick.health is FleetHealth.UNHEALTHY
        assert heavier.fleet_id == blue.fleet_id == sick.fleet_id == "a"


class TestDeploymentLifecycle:

    def test_defaults(self) -> None:
        d = _deployment()
        assert d.status is DeploymentStatus.PENDING
        assert d.deployment_id.startswith("d-")
        assert d.phase_index == 0
        assert not d.phase_applied
        assert d.current_step == d.steps[0]
        assert d.remaining_steps == 2

    def test_start_sets_started_at(self) -> None:
        d = _deployment()
        previous = d.transition(DeploymentStatus.IN_PROGRESS, at=12.0)
        assert previous is DeploymentStatus.PENDING
        assert d.started_at == 12.0
        assert d.ended_at is None

    def test_terminal_sets_ended_at_and_reason(self) -> None:
        d = _deployment()
        d.transition(DeploymentStatus.IN_PROGRESS, at=1.0)
        d.transition(DeploymentStatus.ROLLED_BACK, at=5.0, reason="alarm")
        assert d.is_terminal
        assert d.ended_at == 5.0
        assert d.status_reason == "alarm"

    def test_pending_can_roll_back_directly(self) -> None:
        d = _deployment()
        d.transition(DeploymentStatus.ROLLED_BACK, at=0.0)
        assert d.status is DeploymentStatus.ROLLED_BACK

    @pytest.mark.parametrize("status", [DeploymentStatus.SUCCEEDED, DeploymentStatus.FAILED])
    def test_pending_cannot_finish_without_running(self, status: DeploymentStatus) -> None:
        d = _deployment()
        with pytest.raises(ValueError, match="Illegal transition"):
            d.transition(status, at=0.0)
        assert d.status is DeploymentStatus.PENDING

    @pytest.mark.parametrize("final", [
        DeploymentStatus.SUCCEEDED,
        DeploymentStatus.FAILED,
        DeploymentStatus.ROLLED_BACK,
    ])
    def test_terminal_is_immutable(self, final: DeploymentStatus) -> None:
        d = _deployment()
        d.transition(DeploymentStatus.IN_PROGRESS, at=0.0)
        d.transition(final, at=1.0)
        with pytest.raises(AlreadyTerminal) as exc_info:
            d.transition(DeploymentStatus.IN_PROGRESS, at=2.0)
        assert exc_info.value.status == final.value
        assert isinstance(exc_info.value, ValidationError)

    def test_cursor(self) -> None:
        d = _deployment()
        d.mark_applied(30.0)
        assert d.phase_applied and d.phase_applied_at == 30.0
        d.advance()
        assert d.phase_index == 1
        assert not d.phase_applied and d.phase_applied_at is None
        assert d.current_step == d.steps[1]
        d.advance()
        assert d.current_step is None
        assert d.remaining_steps == 0
