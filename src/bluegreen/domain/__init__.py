"""Domain layer for the blue/green cutover controller.

Re-exports all public domain types so that consumers can write::

    from bluegreen.domain import Deployment, Fleet, RoutingStrategy
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    DeploymentStatus,
    FleetHealth,
    FleetRole,
    HealthVerdict,
    RoutingStrategy,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    AuditEntry,
    HealthAssessment,
    HealthSignal,
    StrategyParams,
    TrafficStep,
)

# -- Entities -----------------------------------------------------------------
from .entities import Deployment, Fleet

# -- Domain Events ------------------------------------------------------------
from .events import (
    AbortRequested,
    DeploymentCreated,
    DeploymentStatusChanged,
    DomainEvent,
    FleetHealthChanged,
    FleetPromoted,
    FleetRegistered,
    FleetRetired,
    FleetWeightChanged,
    HealthEvaluated,
    HealthSignalReceived,
    RetirementScheduled,
    TrafficShifted,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    AlreadyTerminal,
    BlueGreenError,
    ConflictError,
    DeploymentInProgress,
    DeploymentNotFound,
    FleetNotFound,
    InfrastructureFailure,
    InvalidFleetRole,
    InvalidStrategy,
    InvalidWeight,
    NoActiveGreen,
    ShiftConflict,
    StillRoutable,
    ValidationError,
)

__all__ = [
    # enums
    "DeploymentStatus",
    "FleetHealth",
    "FleetRole",
    "HealthVerdict",
    "RoutingStrategy",
    # values
    "AuditEntry",
    "HealthAssessment",
    "HealthSignal",
    "StrategyParams",
    "TrafficStep",
    # entities
    "Deployment",
    "Fleet",
    # events
    "AbortRequested",
    "DeploymentCreated",
    "DeploymentStatusChanged",
    "DomainEvent",
    "FleetHealthChanged",
    "FleetPromoted",
    "FleetRegistered",
    "FleetRetired",
    "FleetWeightChanged",
    "HealthEvaluated",
    "HealthSignalReceived",
    "RetirementScheduled",
    "TrafficShifted",
    # exceptions
    "AlreadyTerminal",
    "BlueGreenError",
    "ConflictError",
    "DeploymentInProgress",
    "DeploymentNotFound",
    "FleetNotFound",
    "InfrastructureFailure",
    "InvalidFleetRole",
    "InvalidStrategy",
    "InvalidWeight",
    "NoActiveGreen",
    "ShiftConflict",
    "StillRoutable",
    "ValidationError",
]
