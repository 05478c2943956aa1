"""Tests for HealthMonitor."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pydantic
import pytest

from bluegreen.domain.enums import HealthVerdict
from bluegreen.domain.events import HealthEvaluated, HealthSignalReceived
from bluegreen.domain.values import HealthSignal
from bluegreen.infrastructure.alarms import AlarmSource, SyntheticCheckSource
from bluegreen.infrastructure.clock import ManualClock
from bluegreen.infrastructure.config import ControllerConfig
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.services.health import HealthMonitor

GREEN = "checkout-green"


def _signal(ts: float, triggered: bool = False, source: str = "p99") -> HealthSignal:
    return HealthSignal(source=source, fleet_id=GREEN, triggered=triggered, timestamp=ts)


@pytest.fixture
def monitor(clock: ManualClock, bus: EventBus) -> HealthMonitor:
    return HealthMonitor(ControllerConfig(min_signals=2), clock, bus)


class TestEvaluate:

    def test_no_signals_is_inconclusive(self, monitor: HealthMonitor) -> None:
        assert monitor.evaluate(GREEN, 60) is HealthVerdict.INCONCLUSIVE

    def test_enough_quiet_signals_is_healthy(
        self, monitor: HealthMonitor, clock: ManualClock
    ) -> None:
        clock.advance(100)
        monitor.ingest(_signal(90))
        monitor.ingest(_signal(95))
        assert monitor.evaluate(GREEN, 60) is HealthVerdict.HEALTHY

    def test_any_triggered_is_unhealthy(self, monitor: HealthMonitor, clock: ManualClock) -> None:
        clock.advance(100)
        monitor.ingest(_signal(99, triggered=True))
        assert monitor.evaluate(GREEN, 60) is HealthVerdict.UNHEALTHY

    def test_window_excludes_old_alarm(self, monitor: HealthMonitor, clock: ManualClock) -> None:
        clock.advance(300)
        monitor.ingest(_signal(100, triggered=True))
        monitor.ingest(_signal(280))
        monitor.ingest(_signal(290))

        assert monitor.evaluate(GREEN, 60) is HealthVerdict.HEALTHY
        assert monitor.evaluate(GREEN, 250) is HealthVerdict.UNHEALTHY

    def test_zero_min_signals(self, clock: ManualClock) -> None:
        monitor = HealthMonitor(ControllerConfig(min_signals=0), clock)
        assert monitor.evaluate(GREEN, 60) is HealthVerdict.HEALTHY

    def test_assess_publishes(
        self, monitor: HealthMonitor, clock: ManualClock, bus: EventBus
    ) -> None:
        seen: list[HealthEvaluated] = []
        bus.subscribe(HealthEvaluated, seen.append)
        clock.advance(10)
        monitor.ingest(_signal(5, triggered=True, source="5xx"))
        monitor.ingest(_signal(6, triggered=True, source="5xx"))

        assessment = monitor.assess(
            GREEN, 60, service="checkout", deployment_id="d-1", phase_index=1
        )

        assert assessment.triggered_sources == ("5xx",)
        assert assessment.signal_count == 2
        assert seen[0].deployment_id == "d-1"
        assert seen[0].phase_index == 1
        assert seen[0].verdict is HealthVerdict.UNHEALTHY


class TestIngest:

    def test_retention_prunes(self, clock: ManualClock) -> None:
        monitor = HealthMonitor(ControllerConfig(signal_retention_seconds=100), clock)
        monitor.ingest(_signal(0))
        clock.advance(150)
        monitor.ingest(_signal(150))
        assert [s.timestamp for s in monitor.signals(GREEN)] == [150]

    def test_event_tagged_with_watcher(
        self, monitor: HealthMonitor, bus: EventBus
    ) -> None:
        seen: list[HealthSignalReceived] = []
        bus.subscribe(HealthSignalReceived, seen.append)

        monitor.ingest(_signal(0))
        monitor.watch(GREEN, "checkout", "d-1")
        monitor.ingest(_signal(1, triggered=True))
        monitor.unwatch(GREEN)
        monitor.ingest(_signal(2))

        assert [e.deployment_id for e in seen] == ["", "d-1", ""]
        assert seen[1].triggered

    def test_subscribers_and_unsubscribe(self, monitor: HealthMonitor) -> None:
        received: list[HealthSignal] = []
        unsubscribe = monitor.subscribe(received.append)

        monitor.ingest(_signal(0))
        unsubscribe()
        monitor.ingest(_signal(1))

        assert len(received) == 1

    def test_failing_subscriber_isolated(self, monitor: HealthMonitor) -> None:
        received: list[HealthSignal] = []

        def _broken(signal: HealthSignal) -> None:
            raise RuntimeError("boom")

        monitor.subscribe(_broken)
        monitor.subscribe(received.append)
        monitor.ingest(_signal(0))

        assert len(received) == 1
        assert len(monitor.signals(GREEN)) == 1

    def test_ingest_alarm_payload(self, monitor: HealthMonitor, clock: ManualClock) -> None:
        clock.advance(50)
        signal = monitor.ingest_alarm({
            "AlarmName": "checkout-5xx",
            "NewStateValue": "ALARM",
            "FleetId": GREEN,
        })
        assert signal is not None and signal.timestamp == 50
        assert monitor.evaluate(GREEN, 60) is HealthVerdict.UNHEALTHY

    def test_ingest_alarm_insufficient_data(self, monitor: HealthMonitor) -> None:
        result = monitor.ingest_alarm({
            "AlarmName": "checkout-5xx",
            "NewStateValue": "INSUFFICIENT_DATA",
            "FleetId": GREEN,
        })
        assert result is None
        assert monitor.signals(GREEN) == []

    def test_ingest_alarm_malformed(self, monitor: HealthMonitor) -> None:
        with pytest.raises(pydantic.ValidationError):
            monitor.ingest_alarm({"AlarmName": "x"})

    def test_clear(self, monitor: HealthMonitor) -> None:
        monitor.ingest(_signal(0))
        monitor.clear(GREEN)
        assert monitor.signals(GREEN) == []


class _FlakySource(AlarmSource):

    def __init__(self) -> None:
        self.calls = 0

    async def fetch(self, fleet_id: str) -> Sequence[HealthSignal]:
        self.calls += 1
        if self.calls == 1:
            raise ConnectionError("metrics API down")
        return [HealthSignal(source="flaky", fleet_id=fleet_id, triggered=False, timestamp=0)]


class TestPoll:

    @pytest.mark.asyncio
    async def test_polls_until_stopped(self, monitor: HealthMonitor, clock: ManualClock) -> None:
        source = SyntheticCheckSource(clock)
        stop = asyncio.Event()
        clock.call_at(95, stop.set)

        await monitor.poll(source, GREEN, 30, stop)

        # t = 0, 30, 60, 90
        assert source.fetch_count == 4
        assert clock.now() == 95
        assert len(monitor.signals(GREEN)) == 4

    @pytest.mark.asyncio
    async def test_fetch_errors_skipped(self, monitor: HealthMonitor, clock: ManualClock) -> None:
        source = _FlakySource()
        stop = asyncio.Event()
        clock.call_at(45, stop.set)

        await monitor.poll(source, GREEN, 30, stop)

        assert source.calls == 2
        assert len(monitor.signals(GREEN)) == 1
