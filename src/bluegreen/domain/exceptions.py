"""Domain exceptions for the blue/green cutover controller.

All domain-specific exceptions inherit from ``BlueGreenError`` so callers can
catch the full family with a single ``except`` clause when needed.  The
hierarchy mirrors how callers are expected to react:

* ``ValidationError`` -- rejected before any state change; retry with
  corrected input.
* ``ConflictError`` -- a concurrent operation is in the way; retry with
  backoff.
* ``InfrastructureFailure`` -- an external collaborator failed; the
  deployment ends in ``failed`` and needs an operator.

A health-driven rollback is *not* an exception: it is a designed terminal
outcome reported through ``Deployment.status``.
"""

from __future__ import annotations

from typing import Any


class BlueGreenError(Exception):
    """Base exception for all cutover controller errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------

class ValidationError(BlueGreenError):
    """Raised when a request is invalid; no state was changed."""


class InvalidWeight(ValidationError):
    """Raised when a weight is outside [0, 100] or targets an unknown fleet."""

    def __init__(
        self,
        message: str = "Invalid traffic weight",
        fleet_id: str = "",
        weight: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.fleet_id = fleet_id
        self.weight = weight


class FleetNotFound(ValidationError):
    """Raised when a fleet id is not registered for the service."""

    def __init__(
        self,
        message: str = "Fleet not found",
        fleet_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.fleet_id = fleet_id


class InvalidFleetRole(ValidationError):
    """Raised when a fleet's role does not allow the requested operation.

    Examples: registering a second blue fleet, a green fleet before any blue
    exists, or retiring the blue fleet.
    """


class NoActiveGreen(ValidationError):
    """Raised by ``promote`` when the fleet is not the registered candidate."""

    def __init__(
        self,
        message: str = "No active green fleet to promote",
        fleet_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.fleet_id = fleet_id


class StillRoutable(ValidationError):
    """Raised by ``retire`` while the fleet still receives traffic."""

    def __init__(
        self,
        message: str = "Fleet still receives traffic",
        fleet_id: str = "",
        weight: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.fleet_id = fleet_id
        self.weight = weight


class InvalidStrategy(ValidationError):
    """Raised when routing strategy parameters are out of range."""


class DeploymentNotFound(ValidationError):
    """Raised when a deployment id is unknown to the controller and store."""

    def __init__(
        self,
        message: str = "Deployment not found",
        deployment_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.deployment_id = deployment_id


class AlreadyTerminal(ValidationError):
    """Raised by ``start``/``abort`` on a deployment that already finished."""

    def __init__(
        self,
        message: str = "Deployment already terminal",
        deployment_id: str = "",
        status: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.deployment_id = deployment_id
        self.status = status


# ---------------------------------------------------------------------------
# Conflict errors
# ---------------------------------------------------------------------------

class ConflictError(BlueGreenError):
    """Raised when a concurrent operation holds the resource."""

    def __init__(
        self,
        message: str = "Conflicting operation in progress",
        deployment_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.deployment_id = deployment_id


class ShiftConflict(ConflictError):
    """Raised when a traffic shift is already in flight for the deployment."""


class DeploymentInProgress(ConflictError):
    """Raised when a cutover is already running for the deployment or service."""


# ---------------------------------------------------------------------------
# Infrastructure failures
# ---------------------------------------------------------------------------

class InfrastructureFailure(BlueGreenError):
    """Raised when an external collaborator call fails unexpectedly.

    Traffic state may be indeterminate afterwards, so the controller never
    auto-reverts on this error.
    """

    def __init__(
        self,
        message: str = "Infrastructure call failed",
        operation: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
