"""Service layer for the blue/green cutover controller.

Re-exports public service types for convenient top-level access::

    from bluegreen.services import (
        FleetRegistry, TrafficShifter, compute_schedule,
        HealthMonitor, CutoverController, AuditLog,
    )
"""

from bluegreen.services.audit_log import AuditLog
from bluegreen.services.cutover import CutoverController
from bluegreen.services.fleet_registry import FleetRegistry
from bluegreen.services.health import HealthMonitor
from bluegreen.services.traffic import (
    TrafficShifter,
    all_at_once_schedule,
    canary_schedule,
    compute_schedule,
    linear_schedule,
)

__all__ = [
    "AuditLog",
    "CutoverController",
    "FleetRegistry",
    "HealthMonitor",
    "TrafficShifter",
    "compute_schedule",
    "canary_schedule",
    "linear_schedule",
    "all_at_once_schedule",
]
