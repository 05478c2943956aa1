"""Infrastructure layer for the blue/green cutover controller.

Re-exports the public API surface for convenience::

    from bluegreen.infrastructure import (
        EventBus, ControllerConfig, ManualClock,
        InMemoryLoadBalancer, JsonFileDeploymentStore,
    )
"""

from bluegreen.infrastructure.adapters import (
    FleetLifecycle,
    InMemoryLoadBalancer,
    LifecycleIntent,
    LoadBalancer,
    LoggingFleetLifecycle,
)
from bluegreen.infrastructure.alarms import (
    AlarmNotification,
    AlarmSource,
    SyntheticCheckSource,
)
from bluegreen.infrastructure.clock import Clock, ManualClock, SystemClock
from bluegreen.infrastructure.config import (
    ControllerConfig,
    load_config_file,
    load_config_from_json,
    load_config_from_yaml,
)
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.infrastructure.registry import ScheduleRegistry, schedules
from bluegreen.infrastructure.requests import DeploymentRequest, FleetSpec, load_request
from bluegreen.infrastructure.serialization import (
    deserialize,
    from_json,
    from_yaml,
    serialize,
    to_json,
    to_yaml,
)
from bluegreen.infrastructure.store import (
    DeploymentStore,
    InMemoryDeploymentStore,
    JsonFileDeploymentStore,
)

__all__ = [
    # Event bus
    "EventBus",
    # Time
    "Clock",
    "SystemClock",
    "ManualClock",
    # External collaborators
    "LoadBalancer",
    "InMemoryLoadBalancer",
    "FleetLifecycle",
    "LoggingFleetLifecycle",
    "LifecycleIntent",
    "AlarmSource",
    "AlarmNotification",
    "SyntheticCheckSource",
    # Schedules
    "ScheduleRegistry",
    "schedules",
    # Configuration and requests
    "ControllerConfig",
    "load_config_file",
    "load_config_from_json",
    "load_config_from_yaml",
    "DeploymentRequest",
    "FleetSpec",
    "load_request",
    # Persistence
    "DeploymentStore",
    "InMemoryDeploymentStore",
    "JsonFileDeploymentStore",
    # Serialization
    "serialize",
    "deserialize",
    "to_json",
    "from_json",
    "to_yaml",
    "from_yaml",
]
