"""Fleet registry for one service.

Tracks the blue (stable) and green (candidate) fleets of a service together
with their traffic weights and health.  The registry enforces the routing
invariants on every mutation:

* exactly one blue fleet once the first fleet is registered,
* at most one fleet in the green slot,
* blue and green weights always sum to 100.

Promotion is a role reassignment: fleet identifiers never change, so audit
records that mention a fleet id stay meaningful across the swap.  The previous
blue fleet keeps the green slot until it is retired.

Every mutation publishes a domain event on the optional ``EventBus``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from bluegreen.domain.entities import Fleet
from bluegreen.domain.enums import FleetHealth, FleetRole
from bluegreen.domain.events import (
    DomainEvent,
    FleetHealthChanged,
    FleetPromoted,
    FleetRegistered,
    FleetRetired,
    FleetWeightChanged,
)
from bluegreen.domain.exceptions import (
    FleetNotFound,
    InvalidFleetRole,
    InvalidWeight,
    NoActiveGreen,
    StillRoutable,
    ValidationError,
)
from bluegreen.infrastructure.clock import Clock, SystemClock
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.infrastructure.serialization import fleet_from_dict, fleet_to_dict

logger = logging.getLogger(__name__)


class FleetRegistry:
    """Blue/green fleet bookkeeping for a single service.

    Parameters
    ----------
    service:
        Service the fleets belong to.
    event_bus:
        Optional bus receiving a domain event for every mutation.
    clock:
        Time source for event timestamps.  Defaults to ``SystemClock``.
    """

    def __init__(
        self,
        service: str,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._service = service
        self._event_bus = event_bus
        self._clock = clock or SystemClock()
        self._fleets: dict[str, Fleet] = {}
        self._blue_id: str | None = None
        self._green_id: str | None = None
        self._lock = threading.RLock()

    # -- queries ------------------------------------------------------------

    @property
    def service(self) -> str:
        return self._service

    @property
    def blue(self) -> Fleet | None:
        with self._lock:
            return self._fleets.get(self._blue_id) if self._blue_id else None

    @property
    def green(self) -> Fleet | None:
        with self._lock:
            return self._fleets.get(self._green_id) if self._green_id else None

    def get(self, fleet_id: str) -> Fleet:
        """Return the fleet, raising ``FleetNotFound`` if unknown."""
        with self._lock:
            fleet = self._fleets.get(fleet_id)
        if fleet is None:
            raise FleetNotFound(
                f"Fleet {fleet_id!r} is not registered for {self._service}",
                fleet_id=fleet_id,
            )
        return fleet

    def fleets(self) -> list[Fleet]:
        with self._lock:
            return list(self._fleets.values())

    def weights(self) -> dict[str, int]:
        with self._lock:
            return {fid: f.weight for fid, f in self._fleets.items()}

    def __contains__(self, fleet_id: object) -> bool:
        with self._lock:
            return fleet_id in self._fleets

    def __len__(self) -> int:
        with self._lock:
            return len(self._fleets)

    # -- mutations ----------------------------------------------------------

    def register(self, fleet: Fleet) -> str:
        """Add *fleet* and return its id.

        The first fleet of a service must be blue and is stored at weight 100.
        A green fleet is stored at weight 0 and only accepted while a blue
        fleet exists and the green slot is free.

        Raises
        ------
        InvalidFleetRole
            If the role does not fit the current registry contents.
        ValidationError
            If the fleet id is already registered.
        """
        with self._lock:
            if fleet.fleet_id in self._fleets:
                raise ValidationError(
                    f"Fleet {fleet.fleet_id!r} already registered for {self._service}"
                )
            if fleet.role is FleetRole.BLUE:
                if self._blue_id is not None:
                    raise InvalidFleetRole(
                        f"{self._service} already has blue fleet {self._blue_id!r}"
                    )
                stored = fleet.with_weight(100)
                self._blue_id = fleet.fleet_id
            else:
                if self._blue_id is None:
                    raise InvalidFleetRole(
                        f"{self._service} has no blue fleet; register it first"
                    )
                if self._green_id is not None:
                    raise InvalidFleetRole(
                        f"{self._service} already has green fleet {self._green_id!r}"
                    )
                stored = fleet.with_weight(0)
                self._green_id = fleet.fleet_id
            self._fleets[stored.fleet_id] = stored

        logger.info(
            "Registered %s fleet %s for %s", stored.role.value, stored.fleet_id, self._service
        )
        self._publish(FleetRegistered(
            timestamp=self._clock.now(),
            service=self._service,
            fleet_id=stored.fleet_id,
            role=stored.role,
            weight=stored.weight,
            image_tag=stored.image_tag,
        ))
        return stored.fleet_id

    def set_weight(self, fleet_id: str, weight: int, *, deployment_id: str = "") -> tuple[Fleet, Fleet]:
        """Route *weight* percent to *fleet_id* and the complement to the
        other fleet, as a single update.

        Returns the updated ``(fleet, counterpart)`` pair.

        Raises
        ------
        InvalidWeight
            If *weight* is outside ``[0, 100]``, the fleet is unknown, or the
            fleet has no counterpart to take the complement.
        """
        if isinstance(weight, bool) or not isinstance(weight, int) or not 0 <= weight <= 100:
            raise InvalidWeight(
                f"Weight must be an integer in [0, 100], got {weight!r}",
                fleet_id=fleet_id,
                weight=weight if isinstance(weight, int) else None,
            )
        events: list[DomainEvent] = []
        with self._lock:
            fleet = self._fleets.get(fleet_id)
            if fleet is None:
                raise InvalidWeight(
                    f"Cannot weight unknown fleet {fleet_id!r}", fleet_id=fleet_id, weight=weight
                )
            other_id = self._counterpart_id(fleet_id)
            if other_id is None:
                if weight != 100:
                    raise InvalidWeight(
                        f"{fleet_id!r} is the only fleet of {self._service}; it must carry 100",
                        fleet_id=fleet_id,
                        weight=weight,
                    )
                return fleet, fleet
            other = self._fleets[other_id]
            updated = fleet.with_weight(weight)
            updated_other = other.with_weight(100 - weight)
            self._fleets[fleet_id] = updated
            self._fleets[other_id] = updated_other

            now = self._clock.now()
            for before, after in ((fleet, updated), (other, updated_other)):
                if before.weight != after.weight:
                    events.append(FleetWeightChanged(
                        timestamp=now,
                        service=self._service,
                        deployment_id=deployment_id,
                        fleet_id=after.fleet_id,
                        previous_weight=before.weight,
                        new_weight=after.weight,
                    ))

        logger.debug(
            "%s weights: %s=%d %s=%d",
            self._service, fleet_id, weight, other_id, 100 - weight,
        )
        self._publish_many(events)
        return updated, updated_other

    def set_health(self, fleet_id: str, health: FleetHealth, *, deployment_id: str = "") -> Fleet:
        with self._lock:
            fleet = self.get(fleet_id)
            updated = fleet.with_health(health)
            self._fleets[fleet_id] = updated
        if fleet.health is not health:
            logger.info("%s fleet %s is now %s", self._service, fleet_id, health.value)
            self._publish(FleetHealthChanged(
                timestamp=self._clock.now(),
                service=self._service,
                deployment_id=deployment_id,
                fleet_id=fleet_id,
                previous_health=fleet.health,
                new_health=health,
            ))
        return updated

    def promote(self, fleet_id: str, *, deployment_id: str = "") -> Fleet:
        """Make the green candidate *fleet_id* the blue fleet.

        The previous blue fleet is demoted into the green slot, where it stays
        (normally at weight 0) until ``retire`` removes it.

        Raises
        ------
        NoActiveGreen
            If *fleet_id* is not the registered green candidate.
        """
        with self._lock:
            if self._green_id is None or self._green_id != fleet_id:
                raise NoActiveGreen(
                    f"{fleet_id!r} is not the green candidate of {self._service}",
                    fleet_id=fleet_id,
                )
            demoted_id = self._blue_id
            promoted = self._fleets[fleet_id].with_role(FleetRole.BLUE)
            self._fleets[fleet_id] = promoted
            if demoted_id is not None:
                self._fleets[demoted_id] = self._fleets[demoted_id].with_role(FleetRole.GREEN)
            self._blue_id, self._green_id = fleet_id, demoted_id

        logger.info(
            "Promoted %s to blue for %s (demoted %s)", fleet_id, self._service, demoted_id
        )
        self._publish(FleetPromoted(
            timestamp=self._clock.now(),
            service=self._service,
            deployment_id=deployment_id,
            fleet_id=fleet_id,
            demoted_fleet_id=demoted_id or "",
        ))
        return promoted

    def retire(self, fleet_id: str, *, deployment_id: str = "") -> Fleet:
        """Remove a fleet that no longer receives traffic.

        Raises
        ------
        FleetNotFound
            If the fleet is not registered.
        InvalidFleetRole
            If the fleet is the blue fleet.
        StillRoutable
            If the fleet's weight is above 0.
        """
        with self._lock:
            fleet = self.get(fleet_id)
            if fleet_id == self._blue_id:
                raise InvalidFleetRole(f"Cannot retire blue fleet {fleet_id!r}")
            if fleet.weight > 0:
                raise StillRoutable(
                    f"Fleet {fleet_id!r} still receives {fleet.weight}% of traffic",
                    fleet_id=fleet_id,
                    weight=fleet.weight,
                )
            del self._fleets[fleet_id]
            if self._green_id == fleet_id:
                self._green_id = None

        logger.info("Retired fleet %s of %s", fleet_id, self._service)
        self._publish(FleetRetired(
            timestamp=self._clock.now(),
            service=self._service,
            deployment_id=deployment_id,
            fleet_id=fleet_id,
        ))
        return fleet

    # -- persistence --------------------------------------------------------

    def snapshot(self) -> list[dict[str, Any]]:
        """JSON-serializable state, blue first."""
        with self._lock:
            ordered = [fid for fid in (self._blue_id, self._green_id) if fid is not None]
            return [fleet_to_dict(self._fleets[fid]) for fid in ordered]

    @classmethod
    def restore(
        cls,
        service: str,
        snapshot: list[dict[str, Any]],
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> FleetRegistry:
        """Rebuild a registry from ``snapshot()`` output without emitting events."""
        registry = cls(service, event_bus=event_bus, clock=clock)
        for data in snapshot:
            fleet = fleet_from_dict(data)
            slot = "_blue_id" if fleet.role is FleetRole.BLUE else "_green_id"
            if getattr(registry, slot) is not None:
                raise InvalidFleetRole(
                    f"Snapshot of {service} holds more than one {fleet.role.value} fleet"
                )
            setattr(registry, slot, fleet.fleet_id)
            registry._fleets[fleet.fleet_id] = fleet
        total = sum(f.weight for f in registry._fleets.values())
        if registry._fleets and total != 100:
            raise InvalidWeight(f"Snapshot of {service} has weights summing to {total}")
        return registry

    # -- internals ----------------------------------------------------------

    def _counterpart_id(self, fleet_id: str) -> str | None:
        if fleet_id == self._blue_id:
            return self._green_id
        if fleet_id == self._green_id:
            return self._blue_id
        return None

    def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)

    def _publish_many(self, events: list[DomainEvent]) -> None:
        if self._event_bus is not None:
            self._event_bus.publish_many(events)
