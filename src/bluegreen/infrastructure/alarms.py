"""Alerting-source adapters.

Alarms reach the health monitor either pushed (a metric-alarm state-change
notification parsed by ``AlarmNotification``) or polled (an ``AlarmSource``
queried on an interval).  Both end up as ``HealthSignal`` values.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from bluegreen.domain.values import HealthSignal
from bluegreen.infrastructure.clock import Clock

logger = logging.getLogger(__name__)

# -- Push notifications ------------------------------------------------------


class AlarmNotification(BaseModel):
    """Schema of a metric-alarm state-change notification.

    Field aliases follow the CloudWatch alarm payload so notifications can be
    validated as received; snake_case names are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True)

    alarm_name: str = Field(alias="AlarmName", min_length=1, description="Alarm identifier")
    new_state: Literal["ALARM", "OK", "INSUFFICIENT_DATA"] = Field(
        alias="NewStateValue", description="State the alarm transitioned into"
    )
    reason: str = Field(default="", alias="NewStateReason")
    state_change_time: datetime | None = Field(default=None, alias="StateChangeTime")
    fleet_id: str = Field(alias="FleetId", min_length=1, description="Fleet the alarm watches")

    def to_signal(self, default_timestamp: float) -> HealthSignal | None:
        """Convert to a ``HealthSignal``.

        ``INSUFFICIENT_DATA`` carries no verdict and yields ``None``.
        """
        if self.new_state == "INSUFFICIENT_DATA":
            return None
        ts = (
            self.state_change_time.timestamp()
            if self.state_change_time is not None
            else default_timestamp
        )
        return HealthSignal(
            source=self.alarm_name,
            fleet_id=self.fleet_id,
            triggered=self.new_state == "ALARM",
            timestamp=ts,
            reason=self.reason,
        )


# -- Polled sources ----------------------------------------------------------


class AlarmSource(ABC):
    """Something the health monitor can poll for fresh signals."""

    @abstractmethod
    async def fetch(self, fleet_id: str) -> Sequence[HealthSignal]:
        """Return signals observed for *fleet_id* since the previous fetch."""


class SyntheticCheckSource(AlarmSource):
    """Synthetic health check with optional scripted alarms.

    Every fetch reports one passing check per fleet.  A fleet listed in
    *alarm_at* reports a triggered alarm instead once the clock reaches the
    given time.

    Parameters
    ----------
    clock:
        Time source used to stamp signals.
    alarm_at:
        Mapping of fleet id to the absolute time from which the alarm fires.
    source:
        Name recorded on the emitted signals.
    """

    def __init__(
        self,
        clock: Clock,
        alarm_at: dict[str, float] | None = None,
        source: str = "synthetic-check",
    ) -> None:
        self._clock = clock
        self._alarm_at = dict(alarm_at or {})
        self._source = source
        self.fetch_count = 0

    def arm(self, fleet_id: str, at: float) -> None:
        self._alarm_at[fleet_id] = at

    async def fetch(self, fleet_id: str) -> Sequence[HealthSignal]:
        self.fetch_count += 1
        now = self._clock.now()
        fire_at = self._alarm_at.get(fleet_id)
        if fire_at is not None and now >= fire_at:
            return [
                HealthSignal(
                    source=f"{self._source}:alarm",
                    fleet_id=fleet_id,
                    triggered=True,
                    timestamp=now,
                    reason="scripted alarm",
                )
            ]
        return [HealthSignal(source=self._source, fleet_id=fleet_id, triggered=False, timestamp=now)]
