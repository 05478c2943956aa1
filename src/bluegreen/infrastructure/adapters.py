"""Adapters for the external collaborators of the cutover controller.

The controller never talks to a real load balancer or container orchestrator
directly; it issues intents through the abstract interfaces below.

Classes
-------
LoadBalancer
    Weighted routing across target groups.
InMemoryLoadBalancer
    Process-local implementation with failure injection, used by the
    simulator and tests.
FleetLifecycle
    Receives promote / terminate intents for fleets.
LoggingFleetLifecycle
    Records intents and logs them.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

from bluegreen.domain.entities import Fleet

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Load balancer                                                         #
# ===================================================================== #

class LoadBalancer(ABC):
    """Traffic-routing facility.

    A single ``set_weights`` call is assumed atomic from the controller's
    point of view: either all target groups of the service take the new
    weights or none do.
    """

    @abstractmethod
    async def set_weights(self, service: str, weights: Mapping[str, int]) -> None:
        """Route *service* traffic across target groups by *weights*."""

    @abstractmethod
    async def get_weights(self, service: str) -> dict[str, int]:
        """Return the current weights for *service*."""


class InMemoryLoadBalancer(LoadBalancer):
    """Dictionary-backed load balancer.

    Parameters
    ----------
    latency:
        Seconds each ``set_weights`` call takes (real ``asyncio.sleep``).
    fail_on_call:
        1-based call numbers that raise ``ConnectionError`` instead of
        applying, for exercising infrastructure-failure paths.
    """

    def __init__(self, latency: float = 0.0, fail_on_call: set[int] | None = None) -> None:
        self._weights: dict[str, dict[str, int]] = {}
        self._latency = latency
        self._fail_on_call = set(fail_on_call or ())
        self.calls: list[tuple[str, dict[str, int]]] = []

    async def set_weights(self, service: str, weights: Mapping[str, int]) -> None:
        call_number = len(self.calls) + 1
        self.calls.append((service, dict(weights)))
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        if call_number in self._fail_on_call:
            raise ConnectionError(
                f"load balancer rejected weight update #{call_number} for {service}"
            )
        self._weights.setdefault(service, {}).update(weights)
        logger.debug("LB %s weights -> %s", service, dict(weights))

    async def get_weights(self, service: str) -> dict[str, int]:
        return dict(self._weights.get(service, {}))

    @property
    def call_count(self) -> int:
        return len(self.calls)


# ===================================================================== #
#  Fleet lifecycle                                                       #
# ===================================================================== #

class FleetLifecycle(ABC):
    """Container orchestration layer that owns the actual instances."""

    @abstractmethod
    async def promote(self, service: str, fleet: Fleet) -> None:
        """The fleet became the stable (blue) fleet."""

    @abstractmethod
    async def terminate(self, service: str, fleet: Fleet) -> None:
        """The fleet was retired; its instances may be torn down."""


@dataclass
class LifecycleIntent:
    action: str
    service: str
    fleet_id: str
    image_tag: str = ""


@dataclass
class LoggingFleetLifecycle(FleetLifecycle):
    """Records intents without touching any real infrastructure."""

    intents: list[LifecycleIntent] = field(default_factory=list)

    async def promote(self, service: str, fleet: Fleet) -> None:
        self.intents.append(LifecycleIntent("promote", service, fleet.fleet_id, fleet.image_tag))
        logger.info("Lifecycle: promote %s/%s (%s)", service, fleet.fleet_id, fleet.image_tag or "-")

    async def terminate(self, service: str, fleet: Fleet) -> None:
        self.intents.append(LifecycleIntent("terminate", service, fleet.fleet_id, fleet.image_tag))
        logger.info("Lifecycle: terminate %s/%s", service, fleet.fleet_id)
