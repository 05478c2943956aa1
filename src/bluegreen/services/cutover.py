"""Cutover state machine.

:class:`CutoverController` drives deployments through::

    pending -> in-progress -> succeeded | rolled-back | failed

Each running deployment is one asyncio task that walks the schedule step by
step:

1. apply the step through the :class:`TrafficShifter` (non-interruptible),
2. hold for the step's bake/interval as a cancellable wait that ends early on
   ``abort`` or, with ``fail_fast_on_alarm``, on a triggered green signal,
3. ask the :class:`HealthMonitor` for a verdict over the step's window.

``unhealthy`` reverts traffic, marks green unhealthy and ends ``rolled-back``.
``inconclusive`` re-evaluates every ``health_poll_interval_seconds`` for up to
``max_inconclusive_wait_seconds`` and then proceeds.  After the final step
green is promoted and the previous blue fleet is retired once
``blue_fleet_retain_minutes`` have passed.  Any unexpected error ends the
deployment ``failed`` with traffic left where it was.

The deployment record is persisted after every change, so ``resume`` can pick
a deployment up after a restart without re-applying a step that already
reached the load balancer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from bluegreen.domain.entities import Deployment, Fleet
from bluegreen.domain.enums import (
    DeploymentStatus,
    FleetHealth,
    FleetRole,
    HealthVerdict,
    RoutingStrategy,
)
from bluegreen.domain.events import (
    AbortRequested,
    DeploymentCreated,
    DeploymentStatusChanged,
    RetirementScheduled,
)
from bluegreen.domain.exceptions import (
    AlreadyTerminal,
    DeploymentInProgress,
    DeploymentNotFound,
    InfrastructureFailure,
    InvalidFleetRole,
    InvalidWeight,
    ValidationError,
)
from bluegreen.domain.values import HealthSignal, StrategyParams, TrafficStep
from bluegreen.infrastructure.adapters import FleetLifecycle, LoadBalancer, LoggingFleetLifecycle
from bluegreen.infrastructure.alarms import AlarmSource
from bluegreen.infrastructure.clock import Clock, SystemClock
from bluegreen.infrastructure.config import ControllerConfig
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.infrastructure.registry import ScheduleRegistry
from bluegreen.infrastructure.requests import DeploymentRequest
from bluegreen.infrastructure.store import DeploymentStore, InMemoryDeploymentStore
from bluegreen.services.fleet_registry import FleetRegistry
from bluegreen.services.health import HealthMonitor
from bluegreen.services.traffic import TrafficShifter, compute_schedule

logger = logging.getLogger(__name__)


class CutoverController:
    """Runs blue/green cutovers for any number of services.

    Deployments are addressed by id only; callers poll ``get`` or await
    ``wait`` for the outcome.

    Parameters
    ----------
    load_balancer:
        Weighted routing facility the traffic shifter drives.
    config:
        Policy knobs.  Validated on construction.
    clock:
        Time source for every wait and timestamp.
    event_bus:
        Bus receiving every domain event.  One is created when omitted.
    store:
        Durable record store.  Defaults to ``InMemoryDeploymentStore``.
    health_monitor:
        Shared monitor.  One is created from *config* when omitted.
    lifecycle:
        Receives promote/terminate intents.  Defaults to
        ``LoggingFleetLifecycle``.
    alarm_source:
        Optional source polled for the green fleet while a deployment runs.
    schedule_registry:
        Optional schedule builders replacing the built-in ones.
    """

    def __init__(
        self,
        load_balancer: LoadBalancer,
        *,
        config: ControllerConfig | None = None,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
        store: DeploymentStore | None = None,
        health_monitor: HealthMonitor | None = None,
        lifecycle: FleetLifecycle | None = None,
        alarm_source: AlarmSource | None = None,
        schedule_registry: ScheduleRegistry | None = None,
    ) -> None:
        self._config = config or ControllerConfig()
        self._config.validate()
        self._clock = clock or SystemClock()
        self._event_bus = event_bus or EventBus()
        self._store = store or InMemoryDeploymentStore()
        self._monitor = health_monitor or HealthMonitor(self._config, self._clock, self._event_bus)
        self._lifecycle = lifecycle or LoggingFleetLifecycle()
        self._alarm_source = alarm_source
        self._schedule_registry = schedule_registry

        self._registries: dict[str, FleetRegistry] = {}
        self._shifter = TrafficShifter(load_balancer, self._registries, self._event_bus, self._clock)
        self._deployments: dict[str, Deployment] = {}
        self._drivers: dict[str, asyncio.Task[None]] = {}
        self._running_services: dict[str, str] = {}
        self._wakeups: dict[str, asyncio.Event] = {}
        self._loops: dict[str, asyncio.AbstractEventLoop] = {}
        self._watched: dict[str, str] = {}
        self._background: set[asyncio.Task[None]] = set()
        self._monitor.subscribe(self._on_signal)

    # ------------------------------------------------------------------ #
    #  Accessors                                                          #
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ControllerConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def health_monitor(self) -> HealthMonitor:
        return self._monitor

    @property
    def shifter(self) -> TrafficShifter:
        return self._shifter

    @property
    def store(self) -> DeploymentStore:
        return self._store

    def registry(self, service: str) -> FleetRegistry:
        """Fleet registry of *service*, restored from the store on first use."""
        registry = self._registries.get(service)
        if registry is None:
            snapshot = self._store.load_fleets(service)
            if snapshot:
                registry = FleetRegistry.restore(service, snapshot, self._event_bus, self._clock)
            else:
                registry = FleetRegistry(service, self._event_bus, self._clock)
            self._registries[service] = registry
        return registry

    def weights(self, service: str) -> Mapping[str, int]:
        return self.registry(service).weights()

    def register_fleet(self, service: str, fleet: Fleet) -> str:
        registry = self.registry(service)
        fleet_id = registry.register(fleet)
        self._store.save_fleets(service, registry.snapshot())
        return fleet_id

    def get(self, deployment_id: str) -> Deployment:
        """Current record of a deployment.

        Raises ``DeploymentNotFound`` if neither memory nor the store know it.
        """
        deployment = self._deployments.get(deployment_id)
        if deployment is None:
            deployment = self._store.load(deployment_id)
            if deployment is None:
                raise DeploymentNotFound(
                    f"Unknown deployment {deployment_id!r}", deployment_id=deployment_id
                )
            self._deployments[deployment_id] = deployment
        return deployment

    def list_deployments(self) -> list[Deployment]:
        for deployment_id in self._store.list_ids():
            if deployment_id not in self._deployments:
                self.get(deployment_id)
        return sorted(self._deployments.values(), key=lambda d: d.created_at)

    def is_running(self, deployment_id: str) -> bool:
        task = self._drivers.get(deployment_id)
        return task is not None and not task.done()

    # ------------------------------------------------------------------ #
    #  Creation                                                           #
    # ------------------------------------------------------------------ #

    def create_deployment(
        self,
        service: str,
        blue_fleet_id: str,
        green_fleet_id: str,
        strategy: RoutingStrategy,
        params: StrategyParams | None = None,
        *,
        image_tag: str = "",
        deployment_id: str | None = None,
    ) -> Deployment:
        """Validate the request, compute its schedule and persist it as
        ``pending``.

        Raises
        ------
        InvalidStrategy
            If *params* do not fit *strategy*.
        FleetNotFound, InvalidFleetRole
            If the fleets are unknown or hold the wrong roles.
        ValidationError
            If *deployment_id* is already taken.
        """
        params = params or StrategyParams()
        steps = compute_schedule(strategy, params, self._schedule_registry)
        self._check_roles(self.registry(service), blue_fleet_id, green_fleet_id)
        if deployment_id is not None and self._known(deployment_id):
            raise ValidationError(f"Deployment {deployment_id!r} already exists")

        deployment = Deployment(
            service=service,
            blue_fleet_id=blue_fleet_id,
            green_fleet_id=green_fleet_id,
            strategy=strategy,
            params=params,
            steps=steps,
            created_at=self._clock.now(),
            image_tag=image_tag or self.registry(service).get(green_fleet_id).image_tag,
        )
        if deployment_id is not None:
            deployment.deployment_id = deployment_id
        self._deployments[deployment.deployment_id] = deployment
        self._persist(deployment)
        logger.info(
            "Created %s for %s: %s %s -> %s in %d steps",
            deployment.deployment_id, service, strategy.value,
            blue_fleet_id, green_fleet_id, len(steps),
        )
        self._event_bus.publish(DeploymentCreated(
            timestamp=self._clock.now(),
            service=service,
            deployment_id=deployment.deployment_id,
            blue_fleet_id=blue_fleet_id,
            green_fleet_id=green_fleet_id,
            strategy=strategy,
            step_count=len(steps),
            image_tag=deployment.image_tag,
        ))
        return deployment

    def create_from_request(self, request: DeploymentRequest) -> Deployment:
        """Register the request's fleets where missing and create the
        deployment."""
        registry = self.registry(request.service)
        if request.blue.fleet_id not in registry:
            self.register_fleet(request.service, Fleet(
                fleet_id=request.blue.fleet_id,
                role=FleetRole.BLUE,
                created_at=self._clock.now(),
                target_group=request.blue.target_group,
                image_tag=request.blue.image_tag,
            ))
        if request.green.fleet_id not in registry:
            self.register_fleet(request.service, Fleet(
                fleet_id=request.green.fleet_id,
                role=FleetRole.GREEN,
                created_at=self._clock.now(),
                target_group=request.green.target_group,
                image_tag=request.green.image_tag,
            ))
        return self.create_deployment(
            request.service,
            request.blue.fleet_id,
            request.green.fleet_id,
            request.strategy,
            request.strategy_params(),
            image_tag=request.green.image_tag,
            deployment_id=request.deployment_id,
        )

    # ------------------------------------------------------------------ #
    #  Control                                                            #
    # ------------------------------------------------------------------ #

    def start(self, deployment_id: str) -> asyncio.Task[None]:
        """Begin the cutover and return the task driving it.

        Must be called from a running event loop.

        Raises
        ------
        AlreadyTerminal
            If the deployment already finished.
        DeploymentInProgress
            If this deployment, or another one for the same service, is
            already running.
        FleetNotFound, InvalidFleetRole, InvalidWeight
            If the fleets no longer match the deployment or blue does not
            carry all traffic.
        """
        deployment = self.get(deployment_id)
        self._check_startable(deployment)
        if deployment.status is not DeploymentStatus.PENDING:
            raise DeploymentInProgress(
                f"{deployment_id} is already {deployment.status.value}; use resume",
                deployment_id=deployment_id,
            )
        registry = self.registry(deployment.service)
        self._check_roles(registry, deployment.blue_fleet_id, deployment.green_fleet_id)
        blue = registry.get(deployment.blue_fleet_id)
        if blue.weight != 100:
            raise InvalidWeight(
                f"Blue fleet {blue.fleet_id!r} carries {blue.weight}%, expected 100",
                fleet_id=blue.fleet_id,
                weight=blue.weight,
            )

        self._set_status(deployment, DeploymentStatus.IN_PROGRESS, "cutover started")
        return self._spawn_driver(deployment)

    async def run(self, deployment_id: str) -> Deployment:
        """``start`` followed by ``wait``."""
        self.start(deployment_id)
        return await self.wait(deployment_id)

    async def wait(self, deployment_id: str) -> Deployment:
        """Wait for the driving task (if any) and return the record."""
        task = self._drivers.get(deployment_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.get(deployment_id)

    def abort(self, deployment_id: str, reason: str = "") -> Deployment:
        """Request a rollback.

        A pending deployment is rolled back immediately.  For a running one
        the request is queued: an in-flight traffic shift completes first and
        the rollback happens at the next wait or step boundary.

        Raises ``AlreadyTerminal`` for a finished deployment.
        """
        deployment = self.get(deployment_id)
        if deployment.is_terminal:
            raise AlreadyTerminal(
                f"Deployment {deployment_id} is already {deployment.status.value}",
                deployment_id=deployment_id,
                status=deployment.status.value,
            )
        reason = reason or "aborted by operator"
        if deployment.status is DeploymentStatus.PENDING:
            self._set_status(deployment, DeploymentStatus.ROLLED_BACK, reason)
            return deployment

        deployment.abort_requested = True
        deployment.abort_reason = reason
        self._persist(deployment)
        logger.warning("Abort requested for %s: %s", deployment_id, reason)
        self._event_bus.publish(AbortRequested(
            timestamp=self._clock.now(),
            service=deployment.service,
            deployment_id=deployment_id,
            reason=reason,
        ))
        self._wake(deployment_id)
        return deployment

    def resume(self, deployment_id: str) -> asyncio.Task[None] | None:
        """Reload a deployment from the store and continue it.

        The fleet registry of its service is restored from the stored
        snapshot.  An in-progress deployment continues from its persisted
        cursor; a step already marked applied is not re-issued.  A succeeded
        deployment whose old blue fleet is not yet retired gets its
        retirement rescheduled.  Returns the driving task, or ``None`` if
        nothing was left to drive.
        """
        if self.is_running(deployment_id):
            raise DeploymentInProgress(
                f"{deployment_id} is already running", deployment_id=deployment_id
            )
        deployment = self._store.load(deployment_id)
        if deployment is None:
            raise DeploymentNotFound(
                f"Unknown deployment {deployment_id!r}", deployment_id=deployment_id
            )
        self._deployments[deployment_id] = deployment
        snapshot = self._store.load_fleets(deployment.service)
        if snapshot is not None:
            self._registries[deployment.service] = FleetRegistry.restore(
                deployment.service, snapshot, self._event_bus, self._clock
            )
        logger.info(
            "Resuming %s (%s, step %d/%d, applied=%s)",
            deployment_id, deployment.status.value, deployment.phase_index,
            len(deployment.steps), deployment.phase_applied,
        )

        if deployment.status is DeploymentStatus.PENDING:
            return self.start(deployment_id)
        if deployment.status is DeploymentStatus.IN_PROGRESS:
            running = self._running_services.get(deployment.service)
            if running is not None and running != deployment_id:
                raise DeploymentInProgress(
                    f"{deployment.service} is busy with {running}", deployment_id=deployment_id
                )
            return self._spawn_driver(deployment)
        if (
            deployment.status is DeploymentStatus.SUCCEEDED
            and deployment.retire_at is not None
            and not deployment.retired
        ):
            self._schedule_retirement(deployment)
        return None

    async def drain(self) -> None:
        """Wait for every running deployment and pending retirement."""
        while True:
            pending = [t for t in (*self._drivers.values(), *self._background) if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running deployments and retirements.

        Records stay as persisted, so a later ``resume`` continues them.
        """
        pending = [t for t in (*self._drivers.values(), *self._background) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Controller shut down (%d tasks cancelled)", len(pending))

    # ------------------------------------------------------------------ #
    #  Driver                                                             #
    # ------------------------------------------------------------------ #

    def _spawn_driver(self, deployment: Deployment) -> asyncio.Task[None]:
        did = deployment.deployment_id
        self._running_services[deployment.service] = did
        self._wakeups[did] = asyncio.Event()
        self._loops[did] = asyncio.get_running_loop()
        self._watched[did] = deployment.green_fleet_id
        self._monitor.watch(deployment.green_fleet_id, deployment.service, did)
        task = asyncio.get_running_loop().create_task(self._drive(deployment), name=f"cutover-{did}")
        self._drivers[did] = task
        return task

    async def _drive(self, deployment: Deployment) -> None:
        did = deployment.deployment_id
        stop_polling = asyncio.Event()
        poller: asyncio.Task[None] | None = None
        if self._alarm_source is not None:
            poller = asyncio.get_running_loop().create_task(
                self._monitor.poll(
                    self._alarm_source,
                    deployment.green_fleet_id,
                    self._config.alarm_poll_interval_seconds,
                    stop_polling,
                ),
                name=f"alarm-poll-{did}",
            )
        try:
            await self._run_steps(deployment)
        except asyncio.CancelledError:
            logger.info("Driver for %s cancelled at step %d", did, deployment.phase_index)
            raise
        except Exception as exc:
            logger.exception("Cutover %s failed at step %d", did, deployment.phase_index)
            if not deployment.is_terminal:
                self._set_status(
                    deployment, DeploymentStatus.FAILED, f"{type(exc).__name__}: {exc}"
                )
        finally:
            stop_polling.set()
            if poller is not None:
                await asyncio.gather(poller, return_exceptions=True)
            self._monitor.unwatch(deployment.green_fleet_id)
            self._watched.pop(did, None)
            self._wakeups.pop(did, None)
            self._loops.pop(did, None)
            if self._running_services.get(deployment.service) == did:
                del self._running_services[deployment.service]

    async def _run_steps(self, deployment: Deployment) -> None:
        while (step := deployment.current_step) is not None:
            if deployment.abort_requested:
                await self._roll_back(deployment, deployment.abort_reason, mark_unhealthy=False)
                return

            if not deployment.phase_applied:
                await self._shifter.apply_step(deployment, step)
                deployment.mark_applied(self._clock.now())
                self._persist(deployment)
            else:
                logger.info("%s step %d already applied; not re-issuing", deployment.deployment_id, step.index)

            verdict = await self._observe(deployment, step)
            if deployment.abort_requested:
                await self._roll_back(deployment, deployment.abort_reason, mark_unhealthy=False)
                return
            if verdict is HealthVerdict.UNHEALTHY:
                await self._roll_back(
                    deployment,
                    f"green fleet unhealthy at step {step.index} ({step.target_weight}%)",
                    mark_unhealthy=True,
                )
                return

            deployment.advance()
            self._persist(deployment)

        await self._complete(deployment)

    async def _observe(self, deployment: Deployment, step: TrafficStep) -> HealthVerdict | None:
        """Hold, then evaluate until the verdict is conclusive or the
        inconclusive budget is spent.  Returns ``None`` on abort."""
        wakeup = self._wakeups[deployment.deployment_id]
        applied_at = deployment.phase_applied_at
        if applied_at is None:
            applied_at = self._clock.now()
        hold_until = applied_at + step.hold_seconds

        remaining = hold_until - self._clock.now()
        if remaining > 0:
            await self._clock.wait(wakeup, remaining)
            if not deployment.abort_requested:
                wakeup.clear()

        give_up_at = max(hold_until, self._clock.now()) + self._config.max_inconclusive_wait_seconds
        while True:
            if deployment.abort_requested:
                return None
            now = self._clock.now()
            window = max(now - applied_at, self._config.evaluation_window_seconds)
            assessment = self._monitor.assess(
                deployment.green_fleet_id,
                window,
                service=deployment.service,
                deployment_id=deployment.deployment_id,
                phase_index=step.index,
            )
            if assessment.verdict is not HealthVerdict.INCONCLUSIVE:
                return assessment.verdict
            if now >= give_up_at:
                logger.warning(
                    "%s step %d still inconclusive after %.0fs; proceeding",
                    deployment.deployment_id, step.index,
                    self._config.max_inconclusive_wait_seconds,
                )
                return assessment.verdict
            await self._clock.wait(
                wakeup, min(self._config.health_poll_interval_seconds, give_up_at - now)
            )
            if not deployment.abort_requested:
                wakeup.clear()

    async def _roll_back(self, deployment: Deployment, reason: str, *, mark_unhealthy: bool) -> None:
        logger.warning("Rolling back %s: %s", deployment.deployment_id, reason)
        await self._shifter.revert(deployment)
        if mark_unhealthy:
            self.registry(deployment.service).set_health(
                deployment.green_fleet_id, FleetHealth.UNHEALTHY,
                deployment_id=deployment.deployment_id,
            )
        self._set_status(deployment, DeploymentStatus.ROLLED_BACK, reason)

    async def _complete(self, deployment: Deployment) -> None:
        registry = self.registry(deployment.service)
        did = deployment.deployment_id
        promoted = registry.promote(deployment.green_fleet_id, deployment_id=did)
        promoted = registry.set_health(promoted.fleet_id, FleetHealth.HEALTHY, deployment_id=did)
        try:
            await self._lifecycle.promote(deployment.service, promoted)
        except Exception as exc:
            raise InfrastructureFailure(
                f"Lifecycle promote of {promoted.fleet_id} failed: {exc}", operation="promote"
            ) from exc

        deployment.retire_at = self._clock.now() + self._config.blue_fleet_retain_seconds
        self._set_status(deployment, DeploymentStatus.SUCCEEDED, "cutover complete")
        self._event_bus.publish(RetirementScheduled(
            timestamp=self._clock.now(),
            service=deployment.service,
            deployment_id=did,
            fleet_id=deployment.blue_fleet_id,
            retire_at=deployment.retire_at,
        ))
        self._schedule_retirement(deployment)

    # ------------------------------------------------------------------ #
    #  Retirement                                                         #
    # ------------------------------------------------------------------ #

    def _schedule_retirement(self, deployment: Deployment) -> None:
        task = asyncio.get_running_loop().create_task(
            self._retire_later(deployment), name=f"retire-{deployment.deployment_id}"
        )
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _retire_later(self, deployment: Deployment) -> None:
        delay = (deployment.retire_at or self._clock.now()) - self._clock.now()
        if delay > 0:
            await self._clock.sleep(delay)
        registry = self.registry(deployment.service)
        try:
            fleet = registry.retire(deployment.blue_fleet_id, deployment_id=deployment.deployment_id)
            await self._lifecycle.terminate(deployment.service, fleet)
        except Exception:
            logger.exception(
                "Retirement of %s for %s failed", deployment.blue_fleet_id, deployment.deployment_id
            )
            return
        deployment.retired = True
        self._persist(deployment)

    # ------------------------------------------------------------------ #
    #  Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _known(self, deployment_id: str) -> bool:
        return deployment_id in self._deployments or self._store.load(deployment_id) is not None

    def _check_startable(self, deployment: Deployment) -> None:
        did = deployment.deployment_id
        if deployment.is_terminal:
            raise AlreadyTerminal(
                f"Deployment {did} is already {deployment.status.value}",
                deployment_id=did,
                status=deployment.status.value,
            )
        if self.is_running(did):
            raise DeploymentInProgress(f"{did} is already running", deployment_id=did)
        running = self._running_services.get(deployment.service)
        if running is not None and running != did:
            raise DeploymentInProgress(
                f"{deployment.service} is busy with {running}", deployment_id=did
            )

    @staticmethod
    def _check_roles(registry: FleetRegistry, blue_fleet_id: str, green_fleet_id: str) -> None:
        blue = registry.get(blue_fleet_id)
        green = registry.get(green_fleet_id)
        if blue.role is not FleetRole.BLUE:
            raise InvalidFleetRole(f"{blue_fleet_id!r} is not the blue fleet of {registry.service}")
        if green.role is not FleetRole.GREEN:
            raise InvalidFleetRole(f"{green_fleet_id!r} is not the green fleet of {registry.service}")

    def _set_status(self, deployment: Deployment, status: DeploymentStatus, reason: str) -> None:
        previous = deployment.transition(status, self._clock.now(), reason)
        self._persist(deployment)
        level = logging.INFO
        if status in (DeploymentStatus.FAILED, DeploymentStatus.ROLLED_BACK):
            level = logging.WARNING
        logger.log(
            level, "%s: %s -> %s (%s)",
            deployment.deployment_id, previous.value, status.value, reason,
        )
        self._event_bus.publish(DeploymentStatusChanged(
            timestamp=self._clock.now(),
            service=deployment.service,
            deployment_id=deployment.deployment_id,
            previous_status=previous,
            new_status=status,
            reason=reason,
        ))

    def _persist(self, deployment: Deployment) -> None:
        self._store.save(deployment)
        registry = self._registries.get(deployment.service)
        if registry is not None:
            self._store.save_fleets(deployment.service, registry.snapshot())

    def _on_signal(self, signal: HealthSignal) -> None:
        if not signal.triggered or not self._config.fail_fast_on_alarm:
            return
        for did, fleet_id in list(self._watched.items()):
            if fleet_id == signal.fleet_id:
                self._wake(did)

    def _wake(self, deployment_id: str) -> None:
        """Set the driver's wakeup event from any thread.

        ``asyncio.Event`` is bound to the driver's loop; callers on other
        threads (alarm webhooks, operator consoles) go through
        ``call_soon_threadsafe`` so the loop notices.
        """
        wakeup = self._wakeups.get(deployment_id)
        loop = self._loops.get(deployment_id)
        if wakeup is None or loop is None:
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            wakeup.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(wakeup.set)
