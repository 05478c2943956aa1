"""Deployment audit log -- serializable record of every transition.

The log subscribes to all events on an ``EventBus`` and turns each one into an
``AuditEntry``.  Appends happen under a lock, so concurrent deployments never
interleave within a single record.  With a *path*, every entry is also written
as one JSON line, giving a post-hoc trail that survives the process.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any

from bluegreen.domain.events import DomainEvent
from bluegreen.domain.values import AuditEntry
from bluegreen.infrastructure.event_bus import EventBus
from bluegreen.infrastructure.serialization import audit_entry_from_dict, audit_entry_to_dict

logger = logging.getLogger(__name__)

_BASE_FIELDS = {"timestamp", "service", "deployment_id"}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_plain(v) for v in value]
    return value


class AuditLog:
    """Append-only audit trail of deployment events.

    Parameters
    ----------
    path:
        Optional JSON-lines file each entry is appended to.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._entries: list[AuditEntry] = []
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)

    # -- wiring --------------------------------------------------------------

    def attach(self, event_bus: EventBus) -> None:
        event_bus.subscribe_all(self.record_event)

    def detach(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe_all(self.record_event)

    # -- recording -----------------------------------------------------------

    def record_event(self, event: DomainEvent) -> AuditEntry:
        """Record a domain event; the entry kind is the event class name."""
        details = {
            f.name: _plain(getattr(event, f.name))
            for f in dataclasses.fields(event)
            if f.name not in _BASE_FIELDS
        }
        fleet_id = details.pop("fleet_id", "")
        return self.record(
            type(event).__name__,
            timestamp=event.timestamp,
            service=event.service,
            deployment_id=event.deployment_id,
            fleet_id=fleet_id,
            details=details,
        )

    def record(
        self,
        kind: str,
        *,
        timestamp: float,
        service: str = "",
        deployment_id: str = "",
        fleet_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            kind=kind,
            timestamp=timestamp,
            service=service,
            deployment_id=deployment_id,
            fleet_id=fleet_id,
            details=details or {},
        )
        with self._lock:
            self._entries.append(entry)
            if self._path is not None:
                line = json.dumps(audit_entry_to_dict(entry), sort_keys=True)
                with open(self._path, "a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
        return entry

    # -- queries -------------------------------------------------------------

    def query(
        self,
        deployment_id: str | None = None,
        kind: str | None = None,
        service: str | None = None,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        """Entries matching every given filter, oldest first."""
        with self._lock:
            results = list(self._entries)
        if deployment_id is not None:
            results = [e for e in results if e.deployment_id == deployment_id]
        if kind is not None:
            results = [e for e in results if e.kind == kind]
        if service is not None:
            results = [e for e in results if e.service == service]
        if since is not None:
            results = [e for e in results if e.timestamp >= since]
        return results[:limit] if limit is not None else results

    def kinds(self, deployment_id: str | None = None) -> list[str]:
        return [e.kind for e in self.query(deployment_id=deployment_id)]

    @property
    def entries(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def path(self) -> Path | None:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- serialization -------------------------------------------------------

    def to_dict(self) -> list[dict[str, Any]]:
        return [audit_entry_to_dict(e) for e in self.entries]

    @classmethod
    def from_dict(cls, data: list[dict[str, Any]]) -> AuditLog:
        log = cls()
        log._entries.extend(audit_entry_from_dict(d) for d in data)
        return log

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> AuditLog:
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: str | Path) -> AuditLog:
        """Read a JSON-lines file written by a previous run."""
        entries = []
        with open(path, encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, 1):
                if not line.strip():
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed audit line %d in %s", lineno, path)
        return cls.from_dict(entries)
