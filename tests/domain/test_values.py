"""Tests for domain value objects and enums."""

from __future__ import annotations

import pytest

from bluegreen.domain.enums import DeploymentStatus, RoutingStrategy
from bluegreen.domain.exceptions import InvalidStrategy
from bluegreen.domain.values import AuditEntry, HealthSignal, StrategyParams, TrafficStep


class TestStrategyParams:

    def test_defaults_valid_for_every_strategy(self) -> None:
        for strategy in RoutingStrategy:
            StrategyParams().validate(strategy)

    @pytest.mark.parametrize("percentage", [0, 100, -5, 150])
    def test_canary_percentage_bounds(self, percentage: int) -> None:
        with pytest.raises(InvalidStrategy):
            StrategyParams(percentage=percentage).validate(RoutingStrategy.CANARY)

    def test_canary_negative_bake(self) -> None:
        with pytest.raises(InvalidStrategy, match="bake_minutes"):
            StrategyParams(bake_minutes=-1).validate(RoutingStrategy.CANARY)

    def test_linear_allows_single_full_step(self) -> None:
        StrategyParams(step_percentage=100).validate(RoutingStrategy.LINEAR)

    @pytest.mark.parametrize("step", [0, 101])
    def test_linear_step_bounds(self, step: int) -> None:
        with pytest.raises(InvalidStrategy):
            StrategyParams(step_percentage=step).validate(RoutingStrategy.LINEAR)

    def test_irrelevant_fields_ignored(self) -> None:
        # canary fields are not read for linear
        StrategyParams(percentage=0, step_percentage=20).validate(RoutingStrategy.LINEAR)
        StrategyParams(percentage=0, step_percentage=0).validate(RoutingStrategy.ALL_AT_ONCE)


class TestTrafficStep:

    def test_blue_is_complement(self) -> None:
        step = TrafficStep(index=0, target_weight=30)
        assert step.blue_weight == 70
        assert not step.is_final
        assert TrafficStep(index=1, target_weight=100).is_final

    @pytest.mark.parametrize("weight", [-1, 101])
    def test_weight_bounds(self, weight: int) -> None:
        with pytest.raises(ValueError):
            TrafficStep(index=0, target_weight=weight)

    def test_negative_hold_rejected(self) -> None:
        with pytest.raises(ValueError):
            TrafficStep(index=0, target_weight=10, hold_seconds=-1.0)


class TestSignalsAndEntries:

    def test_health_signal_defaults(self) -> None:
        signal = HealthSignal(source="cpu-high", fleet_id="g", triggered=True)
        assert signal.timestamp > 0
        assert signal.reason == ""

    def test_audit_entry_ids_unique(self) -> None:
        a = AuditEntry(kind="X", timestamp=0.0)
        b = AuditEntry(kind="X", timestamp=0.0)
        assert a.entry_id != b.entry_id


class TestDeploymentStatus:

    def test_terminal_statuses(self) -> None:
        terminal = {s for s in DeploymentStatus if s.is_terminal}
        assert terminal == {
            DeploymentStatus.SUCCEEDED,
            DeploymentStatus.FAILED,
            DeploymentStatus.ROLLED_BACK,
        }

    def test_wire_values(self) -> None:
        assert DeploymentStatus.IN_PROGRESS.value == "in-progress"
        assert DeploymentStatus.ROLLED_BACK.value == "rolled-back"
        assert RoutingStrategy.ALL_AT_ONCE.value == "all-at-once"
