"""Domain events for the blue/green cutover controller.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  Events are
the integration mechanism between components: the fleet registry, traffic
shifter, health monitor and cutover state machine emit events; the audit log
listens to all of them.

All events carry a ``timestamp``, the ``service`` they concern and, where one
applies, the ``deployment_id``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import DeploymentStatus, FleetHealth, FleetRole, HealthVerdict, RoutingStrategy

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    service: str = ""
    deployment_id: str = ""


# ---------------------------------------------------------------------------
# Fleet registry events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FleetRegistered(DomainEvent):
    fleet_id: str = ""
    role: FleetRole = FleetRole.GREEN
    weight: int = 0
    image_tag: str = ""


@dataclass(frozen=True)
class FleetWeightChanged(DomainEvent):
    fleet_id: str = ""
    previous_weight: int = 0
    new_weight: int = 0


@dataclass(frozen=True)
class FleetHealthChanged(DomainEvent):
    fleet_id: str = ""
    previous_health: FleetHealth = FleetHealth.UNKNOWN
    new_health: FleetHealth = FleetHealth.UNKNOWN


@dataclass(frozen=True)
class FleetPromoted(DomainEvent):
    """A green fleet became blue; the previous blue took the green slot."""

    fleet_id: str = ""
    demoted_fleet_id: str = ""


@dataclass(frozen=True)
class FleetRetired(DomainEvent):
    fleet_id: str = ""


# ---------------------------------------------------------------------------
# Deployment lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeploymentCreated(DomainEvent):
    blue_fleet_id: str = ""
    green_fleet_id: str = ""
    strategy: RoutingStrategy = RoutingStrategy.ALL_AT_ONCE
    step_count: int = 0
    image_tag: str = ""


@dataclass(frozen=True)
class DeploymentStatusChanged(DomainEvent):
    previous_status: DeploymentStatus = DeploymentStatus.PENDING
    new_status: DeploymentStatus = DeploymentStatus.PENDING
    reason: str = ""


@dataclass(frozen=True)
class TrafficShifted(DomainEvent):
    phase_index: int = 0
    green_weight: int = 0
    blue_weight: int = 100


@dataclass(frozen=True)
class AbortRequested(DomainEvent):
    reason: str = ""


@dataclass(frozen=True)
class RetirementScheduled(DomainEvent):
    fleet_id: str = ""
    retire_at: float = 0.0


# ---------------------------------------------------------------------------
# Health events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthSignalReceived(DomainEvent):
    fleet_id: str = ""
    source: str = ""
    triggered: bool = False
    reason: str = ""


@dataclass(frozen=True)
class HealthEvaluated(DomainEvent):
    fleet_id: str = ""
    phase_index: int = 0
    verdict: HealthVerdict = HealthVerdict.INCONCLUSIVE
    signal_count: int = 0
    triggered_sources: tuple[str, ...] = ()
