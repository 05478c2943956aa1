"""Domain enumerations for the blue/green cutover controller.

These enums capture the fixed vocabularies used across the domain layer:
fleet roles and health, routing strategies, deployment lifecycle statuses,
and health verdicts.
"""

from enum import Enum


class FleetRole(Enum):
    """Role of a fleet behind the load balancer."""

    BLUE = "blue"  # stable, serving production traffic
    GREEN = "green"  # candidate (or demoted blue awaiting retirement)


class FleetHealth(Enum):
    """Last known health of a fleet."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RoutingStrategy(Enum):
    """How traffic moves from blue to green."""

    CANARY = "canary"
    LINEAR = "linear"
    ALL_AT_ONCE = "all-at-once"


class DeploymentStatus(Enum):
    """Lifecycle status of a Deployment entity."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled-back"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    DeploymentStatus.SUCCEEDED,
    DeploymentStatus.FAILED,
    DeploymentStatus.ROLLED_BACK,
})


class HealthVerdict(Enum):
    """Outcome of evaluating a fleet over a signal window."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    INCONCLUSIVE = "inconclusive"  # not yet safe to proceed
