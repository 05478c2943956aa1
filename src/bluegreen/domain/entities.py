"""Domain entities for the blue/green cutover controller.

Entities have *identity* (a unique id that persists across mutations).
``Fleet`` is immutable: the registry replaces it with an updated copy on every
change, so audit records never hold a reference to a live, mutating object.
``Deployment`` is the mutable record of one cutover attempt; only the cutover
state machine changes its status.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field

from .enums import DeploymentStatus, FleetHealth, FleetRole, RoutingStrategy
from .exceptions import AlreadyTerminal
from .values import StrategyParams, TrafficStep

# ---------------------------------------------------------------------------
# Fleet entity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Fleet:
    """A routable group of service instances sharing one application version.

    ``target_group`` names the load-balancer target group in front of the
    instances; it defaults to the fleet id.
    """

    fleet_id: str
    role: FleetRole = FleetRole.GREEN
    weight: int = 0
    health: FleetHealth = FleetHealth.UNKNOWN
    created_at: float = field(default_factory=time.time)
    target_group: str = ""
    image_tag: str = ""

    def __post_init__(self) -> None:
        if not self.target_group:
            object.__setattr__(self, "target_group", self.fleet_id)

    def with_weight(self, weight: int) -> Fleet:
        return dataclasses.replace(self, weight=weight)

    def with_health(self, health: FleetHealth) -> Fleet:
        return dataclasses.replace(self, health=health)

    def with_role(self, role: FleetRole) -> Fleet:
        return dataclasses.replace(self, role=role)

    @property
    def is_blue(self) -> bool:
        return self.role is FleetRole.BLUE


# ---------------------------------------------------------------------------
# Deployment entity
# ---------------------------------------------------------------------------

_ALLOWED_TRANSITIONS: dict[DeploymentStatus, frozenset[DeploymentStatus]] = {
    DeploymentStatus.PENDING: frozenset({
        DeploymentStatus.IN_PROGRESS,
        DeploymentStatus.ROLLED_BACK,
    }),
    DeploymentStatus.IN_PROGRESS: frozenset({
        DeploymentStatus.SUCCEEDED,
        DeploymentStatus.ROLLED_BACK,
        DeploymentStatus.FAILED,
    }),
}


@dataclass
class Deployment:
    """One cutover attempt from a blue fleet to a green fleet.

    The deployment exclusively owns its ``steps`` and the phase cursor
    (``phase_index``, ``phase_applied``, ``phase_applied_at``).  The cursor
    points at the step currently being processed; ``phase_applied`` records
    whether that step's shift has already reached the load balancer so a
    resumed run never re-issues it.
    """

    service: str
    blue_fleet_id: str
    green_fleet_id: str
    strategy: RoutingStrategy
    params: StrategyParams = field(default_factory=StrategyParams)
    steps: tuple[TrafficStep, ...] = ()
    deployment_id: str = field(default_factory=lambda: f"d-{uuid.uuid4().hex[:10]}")
    status: DeploymentStatus = DeploymentStatus.PENDING
    phase_index: int = 0
    phase_applied: bool = False
    phase_applied_at: float | None = None
    created_at: float = field(default_factory=time.time)
    started_at: float | None = None
    ended_at: float | None = None
    status_reason: str = ""
    image_tag: str = ""
    abort_requested: bool = False
    abort_reason: str = ""
    retire_at: float | None = None
    retired: bool = False

    # -- lifecycle ------------------------------------------------------------

    def transition(self, new_status: DeploymentStatus, at: float, reason: str = "") -> DeploymentStatus:
        """Move to *new_status* and return the previous status.

        Raises ``AlreadyTerminal`` when the deployment already finished and
        ``ValueError`` for any other transition the lifecycle does not allow.
        """
        if self.status.is_terminal:
            raise AlreadyTerminal(
                f"Deployment {self.deployment_id} is already {self.status.value}",
                deployment_id=self.deployment_id,
                status=self.status.value,
            )
        if new_status not in _ALLOWED_TRANSITIONS.get(self.status, frozenset()):
            raise ValueError(
                f"Illegal transition {self.status.value} -> {new_status.value}"
            )
        previous = self.status
        self.status = new_status
        if new_status is DeploymentStatus.IN_PROGRESS:
            self.started_at = at
        if new_status.is_terminal:
            self.ended_at = at
        if reason:
            self.status_reason = reason
        return previous

    def mark_applied(self, at: float) -> None:
        self.phase_applied = True
        self.phase_applied_at = at

    def advance(self) -> None:
        """Move the cursor past the current step once it passed evaluation."""
        self.phase_index += 1
        self.phase_applied = False
        self.phase_applied_at = None

    # -- queries --------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def current_step(self) -> TrafficStep | None:
        if self.phase_index < len(self.steps):
            return self.steps[self.phase_index]
        return None

    @property
    def remaining_steps(self) -> int:
        return max(0, len(self.steps) - self.phase_index)
