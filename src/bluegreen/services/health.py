"""Health monitor.

Collects ``HealthSignal`` values per fleet through two channels:

* **push** -- ``ingest(signal)`` or ``ingest_alarm(payload)`` for metric-alarm
  state-change notifications,
* **poll** -- ``poll(source, fleet_id, interval, stop)`` drives an
  ``AlarmSource`` until *stop* is set,

and turns the signals of a time window into a ``HealthVerdict``:

* any triggered signal in the window  -> ``unhealthy``
* fewer than ``min_signals`` signals  -> ``inconclusive``
* otherwise                           -> ``healthy``

Evaluation is read-only, so several deployments may query the monitor
concurrently.  Signals older than ``signal_retention_seconds`` are dropped;
the monitor is not a replay store.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict, deque
from collections.abc import Callable, Mapping
from typing import Any

from bluegreen.domain.enums import HealthVerdict
from bluegreen.domain.events import HealthEvaluated, HealthSignalReceived
from bluegreen.domain.values import HealthAssessment, HealthSignal
from bluegreen.infrastructure.alarms import AlarmNotification, AlarmSource
from bluegreen.infrastructure.clock import Clock, SystemClock
from bluegreen.infrastructure.config import ControllerConfig
from bluegreen.infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)

SignalCallback = Callable[[HealthSignal], None]


class HealthMonitor:
    """Windowed health verdicts over pushed and polled signals.

    Parameters
    ----------
    config:
        Supplies ``min_signals`` and ``signal_retention_seconds``.
    clock:
        Time source; window boundaries are relative to ``clock.now()``.
    event_bus:
        Optional bus receiving ``HealthSignalReceived`` and
        ``HealthEvaluated`` events.
    """

    def __init__(
        self,
        config: ControllerConfig | None = None,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._config = config or ControllerConfig()
        self._clock = clock or SystemClock()
        self._event_bus = event_bus
        self._signals: dict[str, deque[HealthSignal]] = defaultdict(deque)
        self._subscribers: list[SignalCallback] = []
        self._context: dict[str, tuple[str, str]] = {}
        self._lock = threading.Lock()

    # -- correlation --------------------------------------------------------

    def watch(self, fleet_id: str, service: str, deployment_id: str) -> None:
        """Tag future events about *fleet_id* with the deployment using it."""
        with self._lock:
            self._context[fleet_id] = (service, deployment_id)

    def unwatch(self, fleet_id: str) -> None:
        with self._lock:
            self._context.pop(fleet_id, None)

    # -- push channel -------------------------------------------------------

    def ingest(self, signal: HealthSignal) -> None:
        """Record *signal* and notify subscribers."""
        with self._lock:
            self._signals[signal.fleet_id].append(signal)
            self._prune_locked(self._clock.now())
            service, deployment_id = self._context.get(signal.fleet_id, ("", ""))
            subscribers = list(self._subscribers)

        if signal.triggered:
            logger.warning(
                "Triggered signal for %s from %s: %s",
                signal.fleet_id, signal.source, signal.reason or "-",
            )
        if self._event_bus is not None:
            self._event_bus.publish(HealthSignalReceived(
                timestamp=signal.timestamp,
                service=service,
                deployment_id=deployment_id,
                fleet_id=signal.fleet_id,
                source=signal.source,
                triggered=signal.triggered,
                reason=signal.reason,
            ))
        for callback in subscribers:
            try:
                callback(signal)
            except Exception:
                logger.exception("Signal subscriber %r failed", callback)

    def ingest_alarm(self, payload: AlarmNotification | Mapping[str, Any]) -> HealthSignal | None:
        """Parse a metric-alarm state-change notification and ingest it.

        Returns the resulting signal, or ``None`` for ``INSUFFICIENT_DATA``.
        Raises ``pydantic.ValidationError`` for malformed payloads.
        """
        notification = (
            payload
            if isinstance(payload, AlarmNotification)
            else AlarmNotification.model_validate(payload)
        )
        signal = notification.to_signal(default_timestamp=self._clock.now())
        if signal is None:
            logger.debug("Ignoring %s without data", notification.alarm_name)
            return None
        self.ingest(signal)
        return signal

    def subscribe(self, callback: SignalCallback) -> Callable[[], None]:
        """Call *callback* for every ingested signal.

        Returns a function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    # -- poll channel -------------------------------------------------------

    async def poll(
        self,
        source: AlarmSource,
        fleet_id: str,
        interval: float,
        stop: asyncio.Event,
    ) -> None:
        """Fetch from *source* every *interval* seconds until *stop* is set.

        A failing fetch is logged and retried on the next tick.
        """
        while not stop.is_set():
            try:
                fetched = await source.fetch(fleet_id)
            except Exception:
                logger.exception("Polling %r for %s failed", source, fleet_id)
                fetched = ()
            for signal in fetched:
                self.ingest(signal)
            if await self._clock.wait(stop, interval):
                break

    # -- evaluation ---------------------------------------------------------

    def signals(self, fleet_id: str, window: float | None = None) -> list[HealthSignal]:
        """Signals retained for *fleet_id*, optionally limited to the last
        *window* seconds."""
        now = self._clock.now()
        with self._lock:
            retained = list(self._signals.get(fleet_id, ()))
        if window is None:
            return retained
        cutoff = now - window
        return [s for s in retained if s.timestamp >= cutoff]

    def evaluate(self, fleet_id: str, window: float) -> HealthVerdict:
        """Verdict over the signals of the last *window* seconds."""
        return self._assess(fleet_id, window).verdict

    def assess(
        self,
        fleet_id: str,
        window: float,
        *,
        service: str = "",
        deployment_id: str = "",
        phase_index: int = 0,
    ) -> HealthAssessment:
        """Like ``evaluate`` but returns the evidence and publishes a
        ``HealthEvaluated`` event."""
        assessment = self._assess(fleet_id, window)
        logger.info(
            "Health of %s over %.0fs: %s (%d signals, triggered=%s)",
            fleet_id, window, assessment.verdict.value,
            assessment.signal_count, list(assessment.triggered_sources),
        )
        if self._event_bus is not None:
            self._event_bus.publish(HealthEvaluated(
                timestamp=self._clock.now(),
                service=service,
                deployment_id=deployment_id,
                fleet_id=fleet_id,
                phase_index=phase_index,
                verdict=assessment.verdict,
                signal_count=assessment.signal_count,
                triggered_sources=assessment.triggered_sources,
            ))
        return assessment

    def clear(self, fleet_id: str | None = None) -> None:
        with self._lock:
            if fleet_id is None:
                self._signals.clear()
            else:
                self._signals.pop(fleet_id, None)

    # -- internals ----------------------------------------------------------

    def _assess(self, fleet_id: str, window: float) -> HealthAssessment:
        in_window = self.signals(fleet_id, window)
        triggered = tuple(dict.fromkeys(s.source for s in in_window if s.triggered))
        if triggered:
            verdict = HealthVerdict.UNHEALTHY
        elif len(in_window) < self._config.min_signals:
            verdict = HealthVerdict.INCONCLUSIVE
        else:
            verdict = HealthVerdict.HEALTHY
        return HealthAssessment(
            fleet_id=fleet_id,
            verdict=verdict,
            signal_count=len(in_window),
            triggered_sources=triggered,
            window_seconds=window,
        )

    def _prune_locked(self, now: float) -> None:
        cutoff = now - self._config.signal_retention_seconds
        for fleet_id, queue in self._signals.items():
            if queue and min(s.timestamp for s in queue) < cutoff:
                self._signals[fleet_id] = deque(s for s in queue if s.timestamp >= cutoff)
