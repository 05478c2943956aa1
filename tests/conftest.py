"""Shared fixtures for the blue/green controller test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from bluegreen.domain.entities import Deployment, Fleet
from bluegreen.domain.enums import FleetRole, RoutingStrategy
from bluegreen.domain.values import StrategyParams
from bluegreen.infrastructure.adapters import InMemoryLoadBalancer, LoggingFleetLifecycle
from bluegreen.infrastructure.clock import ManualClock
from bluegreen.infrastructure.config import ControllerConfig
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.infrastructure.store import InMemoryDeploymentStore
from bluegreen.services.audit_log import AuditLog
from bluegreen.services.cutover import CutoverController
from bluegreen.services.fleet_registry import FleetRegistry

SERVICE = "checkout"
BLUE = "checkout-blue"
GREEN = "checkout-green"


# ---------------------------------------------------------------------------
# Infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock starting at t=0."""
    return ManualClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def audit(bus: EventBus) -> AuditLog:
    """In-memory audit log attached to ``bus``."""
    log = AuditLog()
    log.attach(bus)
    return log


@pytest.fixture
def lb() -> InMemoryLoadBalancer:
    return InMemoryLoadBalancer()


@pytest.fixture
def lifecycle() -> LoggingFleetLifecycle:
    return LoggingFleetLifecycle()


@pytest.fixture
def store() -> InMemoryDeploymentStore:
    return InMemoryDeploymentStore()


@pytest.fixture
def quiet_config() -> ControllerConfig:
    """Config under which a fleet with no signals at all counts as healthy."""
    return ControllerConfig(min_signals=0)


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry(bus: EventBus, clock: ManualClock) -> FleetRegistry:
    """Registry with blue at 100 and green at 0."""
    reg = FleetRegistry(SERVICE, event_bus=bus, clock=clock)
    reg.register(Fleet(fleet_id=BLUE, role=FleetRole.BLUE, image_tag="shop:1.0"))
    reg.register(Fleet(fleet_id=GREEN, role=FleetRole.GREEN, image_tag="shop:1.1"))
    return reg


@pytest.fixture
def canary_deployment() -> Deployment:
    """Pending canary(10%, 5 min) deployment record for SERVICE."""
    from bluegreen.services.traffic import compute_schedule

    params = StrategyParams(percentage=10, bake_minutes=5)
    return Deployment(
        service=SERVICE,
        blue_fleet_id=BLUE,
        green_fleet_id=GREEN,
        strategy=RoutingStrategy.CANARY,
        params=params,
        steps=compute_schedule(RoutingStrategy.CANARY, params),
        created_at=0.0,
    )


# ---------------------------------------------------------------------------
# Controller factory
# ---------------------------------------------------------------------------


@pytest.fixture
def make_controller(
    lb: InMemoryLoadBalancer,
    clock: ManualClock,
    bus: EventBus,
    store: InMemoryDeploymentStore,
    lifecycle: LoggingFleetLifecycle,
) -> Callable[..., CutoverController]:
    """Build a controller sharing the test's adapters.

    Keyword arguments override the defaults; ``fleets=False`` skips
    registering the blue/green pair for SERVICE.
    """

    def _make(fleets: bool = True, **overrides: Any) -> CutoverController:
        load_balancer = overrides.pop("load_balancer", lb)
        kwargs: dict[str, Any] = {
            "config": ControllerConfig(min_signals=0),
            "clock": clock,
            "event_bus": bus,
            "store": store,
            "lifecycle": lifecycle,
        }
        kwargs.update(overrides)
        controller = CutoverController(load_balancer, **kwargs)
        if fleets:
            controller.register_fleet(
                SERVICE, Fleet(fleet_id=BLUE, role=FleetRole.BLUE, image_tag="shop:1.0")
            )
            controller.register_fleet(
                SERVICE, Fleet(fleet_id=GREEN, role=FleetRole.GREEN, image_tag="shop:1.1")
            )
        return controller

    return _make
