"""Tests for alarm notifications and polled alarm sources."""

from __future__ import annotations

from datetime import datetime, timezone

import pydantic
import pytest

from bluegreen.infrastructure.alarms import AlarmNotification, SyntheticCheckSource
from bluegreen.infrastructure.clock import ManualClock


class TestAlarmNotification:

    def test_cloudwatch_aliases(self) -> None:
        note = AlarmNotification.model_validate({
            "AlarmName": "checkout-5xx",
            "NewStateValue": "ALARM",
            "NewStateReason": "Threshold crossed",
            "FleetId": "checkout-green",
        })
        signal = note.to_signal(default_timestamp=42.0)
        assert signal is not None
        assert signal.triggered
        assert signal.source == "checkout-5xx"
        assert signal.fleet_id == "checkout-green"
        assert signal.timestamp == 42.0
        assert signal.reason == "Threshold crossed"

    def test_snake_case_names(self) -> None:
        note = AlarmNotification(alarm_name="p99", new_state="OK", fleet_id="g")
        signal = note.to_signal(default_timestamp=1.0)
        assert signal is not None and not signal.triggered

    def test_state_change_time_used(self) -> None:
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        note = AlarmNotification(
            alarm_name="p99", new_state="ALARM", fleet_id="g", state_change_time=when
        )
        assert note.to_signal(default_timestamp=0.0).timestamp == when.timestamp()

    def test_insufficient_data_has_no_signal(self) -> None:
        note = AlarmNotification(alarm_name="p99", new_state="INSUFFICIENT_DATA", fleet_id="g")
        assert note.to_signal(default_timestamp=0.0) is None

    def test_unknown_state_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            AlarmNotification(alarm_name="p99", new_state="RED", fleet_id="g")


class TestSyntheticCheckSource:

    @pytest.mark.asyncio
    async def test_passes_until_armed_time(self) -> None:
        clock = ManualClock()
        source = SyntheticCheckSource(clock)
        source.arm("g", 120.0)

        before = await source.fetch("g")
        clock.advance(120.0)
        after = await source.fetch("g")
        other = await source.fetch("b")

        assert [s.triggered for s in before] == [False]
        assert [s.triggered for s in after] == [True]
        assert after[0].timestamp == 120.0
        assert [s.triggered for s in other] == [False]
        assert source.fetch_count == 3
