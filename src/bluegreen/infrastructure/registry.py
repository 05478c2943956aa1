"""Schedule-builder registry.

Maps each ``RoutingStrategy`` to the function that turns ``StrategyParams``
into a traffic schedule.  Builders register themselves with the
``@schedules.register(...)`` decorator or imperatively through
``register_builder``.

A module-level ``schedules`` registry holds the built-in strategies; tests or
embedders that need different rollout shapes can create their own
``ScheduleRegistry`` and hand it to the traffic shifter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from bluegreen.domain.enums import RoutingStrategy
from bluegreen.domain.exceptions import InvalidStrategy
from bluegreen.domain.values import StrategyParams, TrafficStep

logger = logging.getLogger(__name__)

ScheduleBuilder = Callable[[StrategyParams], tuple[TrafficStep, ...]]


class ScheduleRegistry:
    """Lookup table of schedule builders keyed by routing strategy.

    Usage -- decorator style::

        @schedules.register(RoutingStrategy.CANARY)
        def canary_schedule(params):
            ...

    Usage -- imperative style::

        schedules.register_builder(RoutingStrategy.LINEAR, linear_schedule)
    """

    def __init__(self) -> None:
        self._builders: dict[RoutingStrategy, ScheduleBuilder] = {}

    # ------------------------------------------------------------------ #
    #  Registration                                                       #
    # ------------------------------------------------------------------ #

    def register(
        self,
        strategy: RoutingStrategy,
        *,
        overwrite: bool = False,
    ) -> Callable[[ScheduleBuilder], ScheduleBuilder]:
        """Decorator registering the decorated function for *strategy*.

        Raises ``ValueError`` on duplicates unless *overwrite* is set.
        """

        def decorator(fn: ScheduleBuilder) -> ScheduleBuilder:
            self.register_builder(strategy, fn, overwrite=overwrite)
            return fn

        return decorator

    def register_builder(
        self,
        strategy: RoutingStrategy,
        builder: ScheduleBuilder,
        *,
        overwrite: bool = False,
    ) -> None:
        if not overwrite and strategy in self._builders:
            raise ValueError(
                f"Schedule for '{strategy.value}' is already registered as "
                f"{self._builders[strategy]!r}. Pass overwrite=True to replace."
            )
        self._builders[strategy] = builder
        logger.debug("Registered schedule builder %s: %r", strategy.value, builder)

    # ------------------------------------------------------------------ #
    #  Lookup                                                              #
    # ------------------------------------------------------------------ #

    def get(self, strategy: RoutingStrategy) -> ScheduleBuilder:
        """Return the builder for *strategy*.

        Raises ``InvalidStrategy`` if nothing is registered.
        """
        try:
            return self._builders[strategy]
        except KeyError:
            available = [s.value for s in self._builders]
            raise InvalidStrategy(
                f"No schedule registered for '{strategy}'. Available: {available}"
            ) from None

    def has(self, strategy: RoutingStrategy) -> bool:
        return strategy in self._builders

    def strategies(self) -> list[RoutingStrategy]:
        return list(self._builders)

    def unregister(self, strategy: RoutingStrategy) -> ScheduleBuilder:
        try:
            return self._builders.pop(strategy)
        except KeyError:
            raise KeyError(f"Cannot unregister '{strategy}': not found.") from None

    def __contains__(self, strategy: object) -> bool:
        return strategy in self._builders

    def __repr__(self) -> str:
        names = ", ".join(s.value for s in self._builders)
        return f"<ScheduleRegistry [{names}]>"


# ===================================================================== #
#  Global registry                                                       #
# ===================================================================== #

schedules = ScheduleRegistry()
"""Registry of the built-in strategies, populated by ``bluegreen.services.traffic``."""
