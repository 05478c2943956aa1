"""Durable deployment records.

The minimum durable record is one Deployment (with its TrafficStep sequence
and phase cursor) so the state machine can resume after a process restart
without re-issuing an already-applied shift.  Stores also keep a snapshot of
each service's fleet registry, which the controller restores on resume.

Both stores hold *serialized* copies: what comes back from ``load`` is a fresh
object, never the instance that was saved.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from bluegreen.domain.entities import Deployment
from bluegreen.domain.exceptions import ValidationError
from bluegreen.infrastructure.serialization import deployment_from_dict, deployment_to_dict

logger = logging.getLogger(__name__)

# File-name-safe keys: no separators, no leading dot.
_SAFE_KEY = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


class DeploymentStore(ABC):
    """Persistence interface for deployment records and fleet snapshots."""

    @abstractmethod
    def save(self, deployment: Deployment) -> None:
        """Persist *deployment*, replacing any previous record with its id."""

    @abstractmethod
    def load(self, deployment_id: str) -> Deployment | None:
        """Return the stored deployment, or ``None`` if unknown."""

    @abstractmethod
    def list_ids(self) -> list[str]:
        """Return every stored deployment id."""

    @abstractmethod
    def save_fleets(self, service: str, snapshot: list[dict[str, Any]]) -> None:
        """Persist the fleet registry snapshot of *service*."""

    @abstractmethod
    def load_fleets(self, service: str) -> list[dict[str, Any]] | None:
        """Return the fleet snapshot of *service*, or ``None``."""

    def load_all(self) -> list[Deployment]:
        records = (self.load(did) for did in self.list_ids())
        return sorted((d for d in records if d is not None), key=lambda d: d.created_at)


# ===================================================================== #
#  In-memory                                                             #
# ===================================================================== #

class InMemoryDeploymentStore(DeploymentStore):
    """Process-local store; survives controller re-creation, not restarts."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._fleets: dict[str, list[dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def save(self, deployment: Deployment) -> None:
        data = deployment_to_dict(deployment)
        with self._lock:
            self._records[deployment.deployment_id] = data

    def load(self, deployment_id: str) -> Deployment | None:
        with self._lock:
            data = self._records.get(deployment_id)
        return deployment_from_dict(data) if data is not None else None

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def save_fleets(self, service: str, snapshot: list[dict[str, Any]]) -> None:
        with self._lock:
            self._fleets[service] = [dict(f) for f in snapshot]

    def load_fleets(self, service: str) -> list[dict[str, Any]] | None:
        with self._lock:
            snapshot = self._fleets.get(service)
            return [dict(f) for f in snapshot] if snapshot is not None else None


# ===================================================================== #
#  JSON files                                                            #
# ===================================================================== #

class JsonFileDeploymentStore(DeploymentStore):
    """One JSON document per deployment under ``<root>/deployments`` and one
    fleet snapshot per service under ``<root>/fleets``.

    Writes go to a temporary file in the same directory followed by
    ``os.replace`` so a crash never leaves a half-written record.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._deployments = self._root / "deployments"
        self._fleet_dir = self._root / "fleets"
        self._deployments.mkdir(parents=True, exist_ok=True)
        self._fleet_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def save(self, deployment: Deployment) -> None:
        path = self._path(self._deployments, deployment.deployment_id)
        self._write(path, deployment_to_dict(deployment))

    def load(self, deployment_id: str) -> Deployment | None:
        data = self._read(self._path(self._deployments, deployment_id))
        return deployment_from_dict(data) if data is not None else None

    def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self._deployments.glob("*.json"))

    def save_fleets(self, service: str, snapshot: list[dict[str, Any]]) -> None:
        self._write(self._path(self._fleet_dir, service), {"service": service, "fleets": snapshot})

    def load_fleets(self, service: str) -> list[dict[str, Any]] | None:
        data = self._read(self._path(self._fleet_dir, service))
        return list(data.get("fleets", [])) if data is not None else None

    # -- helpers ---------------------------------------------------------

    @staticmethod
    def _path(directory: Path, key: str) -> Path:
        if not _SAFE_KEY.fullmatch(key):
            raise ValidationError(
                f"{key!r} cannot be used as a store key",
                {"key": key, "directory": directory.name},
            )
        return directory / f"{key}.json"

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        with self._lock:
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        logger.debug("Wrote %s", path)

    def _read(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        with self._lock, open(path, encoding="utf-8") as fh:
            return json.load(fh)
