"""Value objects for the blue/green cutover controller.

All types here are frozen dataclasses -- immutable, compared by value.
They represent schedules, signals and records that have no identity beyond
their content.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .enums import HealthVerdict, RoutingStrategy
from .exceptions import InvalidStrategy

# ---------------------------------------------------------------------------
# StrategyParams
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StrategyParams:
    """Parameters of a routing strategy.

    Only the fields relevant to the chosen strategy are read:

    * canary -- ``percentage`` and ``bake_minutes``
    * linear -- ``step_percentage`` and ``interval_minutes``
    * all-at-once -- none
    """

    percentage: int = 10
    bake_minutes: float = 5.0
    step_percentage: int = 10
    interval_minutes: float = 1.0

    def validate(self, strategy: RoutingStrategy) -> None:
        """Raise ``InvalidStrategy`` if the fields are unusable for *strategy*."""
        if strategy is RoutingStrategy.CANARY:
            if not 0 < self.percentage < 100:
                raise InvalidStrategy(
                    f"canary percentage must be in (0, 100), got {self.percentage}"
                )
            if self.bake_minutes < 0:
                raise InvalidStrategy(
                    f"bake_minutes must be >= 0, got {self.bake_minutes}"
                )
        elif strategy is RoutingStrategy.LINEAR:
            if not 0 < self.step_percentage <= 100:
                raise InvalidStrategy(
                    f"step_percentage must be in (0, 100], got {self.step_percentage}"
                )
            if self.interval_minutes < 0:
                raise InvalidStrategy(
                    f"interval_minutes must be >= 0, got {self.interval_minutes}"
                )


# ---------------------------------------------------------------------------
# TrafficStep
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrafficStep:
    """One scheduled shift of the green fleet's weight.

    ``offset_seconds`` is the nominal time from deployment start at which the
    step is applied; ``hold_seconds`` is the bake/interval observed after the
    shift before health is evaluated.
    """

    index: int
    target_weight: int
    offset_seconds: float = 0.0
    hold_seconds: float = 0.0

    def __post_init__(self) -> None:
        if not 0 <= self.target_weight <= 100:
            raise ValueError(
                f"target_weight must be in [0, 100], got {self.target_weight}"
            )
        if self.hold_seconds < 0:
            raise ValueError(f"hold_seconds must be >= 0, got {self.hold_seconds}")

    @property
    def blue_weight(self) -> int:
        return 100 - self.target_weight

    @property
    def is_final(self) -> bool:
        return self.target_weight == 100


# ---------------------------------------------------------------------------
# HealthSignal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthSignal:
    """A point-in-time alarm or synthetic-check result for one fleet."""

    source: str
    fleet_id: str
    triggered: bool
    timestamp: float = field(default_factory=time.time)
    reason: str = ""


@dataclass(frozen=True)
class HealthAssessment:
    """A verdict plus the evidence it was derived from."""

    fleet_id: str
    verdict: HealthVerdict
    signal_count: int = 0
    triggered_sources: tuple[str, ...] = ()
    window_seconds: float = 0.0


# ---------------------------------------------------------------------------
# AuditEntry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuditEntry:
    """One record in the audit log, derived from a domain event."""

    kind: str
    timestamp: float
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4())[:12])
    service: str = ""
    deployment_id: str = ""
    fleet_id: str = ""
    details: Mapping[str, Any] = field(default_factory=dict)
