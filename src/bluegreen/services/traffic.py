"""Traffic scheduling and shifting.

Two halves:

* **Schedules** -- pure functions turning a routing strategy and its
  parameters into an ordered tuple of ``TrafficStep`` values.  The built-in
  builders register themselves with ``bluegreen.infrastructure.registry``.
* **Shifting** -- :class:`TrafficShifter` applies one step to the load
  balancer and commits the resulting weights to the fleet registry.

Classes
-------
TrafficShifter
    Atomic, non-overlapping application of traffic steps per deployment.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Mapping

import numpy as np

from bluegreen.domain.entities import Deployment
from bluegreen.domain.enums import RoutingStrategy
from bluegreen.domain.events import TrafficShifted
from bluegreen.domain.exceptions import (
    FleetNotFound,
    InfrastructureFailure,
    InvalidStrategy,
    InvalidWeight,
    ShiftConflict,
)
from bluegreen.domain.values import StrategyParams, TrafficStep
from bluegreen.infrastructure.adapters import LoadBalancer
from bluegreen.infrastructure.clock import Clock, SystemClock
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.infrastructure.registry import ScheduleRegistry, schedules
from bluegreen.services.fleet_registry import FleetRegistry

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Schedules                                                             #
# ===================================================================== #

@schedules.register(RoutingStrategy.CANARY)
def canary_schedule(params: StrategyParams) -> tuple[TrafficStep, ...]:
    """Shift ``percentage`` to green, bake, then shift the rest."""
    bake = params.bake_minutes * 60.0
    return (
        TrafficStep(index=0, target_weight=params.percentage, offset_seconds=0.0, hold_seconds=bake),
        TrafficStep(index=1, target_weight=100, offset_seconds=bake, hold_seconds=0.0),
    )


@schedules.register(RoutingStrategy.LINEAR)
def linear_schedule(params: StrategyParams) -> tuple[TrafficStep, ...]:
    """``ceil(100 / step_percentage)`` equal increments, the last one capped at 100."""
    count = math.ceil(100 / params.step_percentage)
    interval = params.interval_minutes * 60.0
    weights = np.minimum(np.arange(1, count + 1) * params.step_percentage, 100)
    offsets = np.arange(count) * interval
    return tuple(
        TrafficStep(
            index=i,
            target_weight=int(weights[i]),
            offset_seconds=float(offsets[i]),
            hold_seconds=interval if i < count - 1 else 0.0,
        )
        for i in range(count)
    )


@schedules.register(RoutingStrategy.ALL_AT_ONCE)
def all_at_once_schedule(params: StrategyParams) -> tuple[TrafficStep, ...]:
    return (TrafficStep(index=0, target_weight=100),)


def compute_schedule(
    strategy: RoutingStrategy,
    params: StrategyParams | None = None,
    registry: ScheduleRegistry | None = None,
) -> tuple[TrafficStep, ...]:
    """Validate *params* for *strategy* and build its schedule.

    Parameters
    ----------
    strategy:
        Routing strategy to schedule.
    params:
        Strategy parameters.  Defaults to ``StrategyParams()``.
    registry:
        Builder lookup.  Defaults to the built-in ``schedules``.

    Raises
    ------
    InvalidStrategy
        If the parameters are out of range, no builder is registered, or
        the builder returns a schedule that does not end at 100% green.
    """
    params = params or StrategyParams()
    params.validate(strategy)
    builder = (registry or schedules).get(strategy)
    steps = builder(params)
    if not steps or steps[-1].target_weight != 100:
        raise InvalidStrategy(
            f"Schedule for {strategy.value} must end at 100% green",
            {"strategy": strategy.value, "steps": len(steps or ())},
        )
    return steps


# ===================================================================== #
#  Shifter                                                               #
# ===================================================================== #

class TrafficShifter:
    """Applies traffic steps for deployments.

    A step is applied load balancer first, then committed to the fleet
    registry.  If the registry commit fails, the load balancer is set back to
    the previous weights before the error propagates, so the two never
    disagree about a successful shift.

    At most one shift per deployment is in flight at any time; a second
    concurrent ``apply_step`` for the same deployment raises
    ``ShiftConflict`` without touching anything.

    Parameters
    ----------
    load_balancer:
        Weighted routing facility.
    registries:
        Fleet registry per service.  The mapping is read on every call, so
        registries added later are picked up.
    event_bus:
        Optional bus receiving ``TrafficShifted`` events.
    clock:
        Time source for event timestamps.
    """

    def __init__(
        self,
        load_balancer: LoadBalancer,
        registries: Mapping[str, FleetRegistry],
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._load_balancer = load_balancer
        self._registries = registries
        self._event_bus = event_bus
        self._clock = clock or SystemClock()
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    def in_flight(self, deployment_id: str) -> bool:
        with self._lock:
            return deployment_id in self._in_flight

    async def apply_step(self, deployment: Deployment, step: TrafficStep) -> None:
        """Route ``step.target_weight`` to green and the complement to blue.

        Raises
        ------
        ShiftConflict
            If a shift for the same deployment is already running.
        InvalidWeight, FleetNotFound
            If the step or fleets are invalid; nothing was changed.
        InfrastructureFailure
            If the load balancer rejected the update.
        """
        did = deployment.deployment_id
        with self._lock:
            if did in self._in_flight:
                raise ShiftConflict(
                    f"A traffic shift is already in flight for {did}", deployment_id=did
                )
            self._in_flight.add(did)
        try:
            await self._shift(deployment, step)
        finally:
            with self._lock:
                self._in_flight.discard(did)

    async def revert(self, deployment: Deployment) -> None:
        """Send all traffic back to blue."""
        await self.apply_step(
            deployment, TrafficStep(index=deployment.phase_index, target_weight=0)
        )

    # -- internals ----------------------------------------------------------

    def _registry(self, deployment: Deployment) -> FleetRegistry:
        registry = self._registries.get(deployment.service)
        if registry is None:
            raise FleetNotFound(
                f"No fleets registered for service {deployment.service!r}",
                fleet_id=deployment.green_fleet_id,
            )
        return registry

    async def _shift(self, deployment: Deployment, step: TrafficStep) -> None:
        registry = self._registry(deployment)
        blue = registry.get(deployment.blue_fleet_id)
        green = registry.get(deployment.green_fleet_id)
        if not 0 <= step.target_weight <= 100:
            raise InvalidWeight(
                f"Step weight {step.target_weight} out of range",
                fleet_id=green.fleet_id,
                weight=step.target_weight,
            )

        previous = {blue.target_group: blue.weight, green.target_group: green.weight}
        target = {blue.target_group: step.blue_weight, green.target_group: step.target_weight}

        try:
            await self._load_balancer.set_weights(deployment.service, target)
        except Exception as exc:
            raise InfrastructureFailure(
                f"Load balancer rejected {target} for {deployment.service}: {exc}",
                operation="set_weights",
                details={"deployment_id": deployment.deployment_id, "step": step.index},
            ) from exc

        try:
            registry.set_weight(
                green.fleet_id, step.target_weight, deployment_id=deployment.deployment_id
            )
        except Exception:
            logger.error(
                "Registry commit failed for %s step %d; restoring load balancer to %s",
                deployment.deployment_id, step.index, previous,
            )
            await self._compensate(deployment.service, previous)
            raise

        logger.info(
            "%s step %d: green %s=%d%% blue %s=%d%%",
            deployment.deployment_id, step.index,
            green.fleet_id, step.target_weight, blue.fleet_id, step.blue_weight,
        )
        if self._event_bus is not None:
            self._event_bus.publish(TrafficShifted(
                timestamp=self._clock.now(),
                service=deployment.service,
                deployment_id=deployment.deployment_id,
                phase_index=step.index,
                green_weight=step.target_weight,
                blue_weight=step.blue_weight,
            ))

    async def _compensate(self, service: str, previous: dict[str, int]) -> None:
        try:
            await self._load_balancer.set_weights(service, previous)
        except Exception:
            logger.exception("Compensating weight update for %s failed", service)
