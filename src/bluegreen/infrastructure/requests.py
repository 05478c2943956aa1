"""Validated deployment request documents.

A deployment request is the external document (YAML or JSON) a pipeline hands
to the controller: which service, which fleets, which image tag, which routing
strategy.  It is validated with pydantic before any domain object is built.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from bluegreen.domain.enums import RoutingStrategy
from bluegreen.domain.values import StrategyParams

# Service names and deployment ids name files in the deployment store.
NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"


class FleetSpec(BaseModel):
    """A fleet as described in a request."""

    fleet_id: str = Field(min_length=1)
    target_group: str = ""
    image_tag: str = Field(default="", description="Opaque registry tag, never interpreted")


class DeploymentRequest(BaseModel):
    """Request to cut *service* over from ``blue`` to ``green``."""

    service: str = Field(min_length=1, pattern=NAME_PATTERN)
    blue: FleetSpec
    green: FleetSpec
    strategy: RoutingStrategy = RoutingStrategy.CANARY
    percentage: int = Field(default=10, gt=0, lt=100, description="Canary traffic share")
    bake_minutes: float = Field(default=5.0, ge=0)
    step_percentage: int = Field(default=10, gt=0, le=100, description="Linear increment")
    interval_minutes: float = Field(default=1.0, ge=0)
    deployment_id: str | None = Field(default=None, pattern=NAME_PATTERN)

    @model_validator(mode="after")
    def _distinct_fleets(self) -> DeploymentRequest:
        if self.blue.fleet_id == self.green.fleet_id:
            raise ValueError("blue and green must be different fleets")
        return self

    def strategy_params(self) -> StrategyParams:
        return StrategyParams(
            percentage=self.percentage,
            bake_minutes=self.bake_minutes,
            step_percentage=self.step_percentage,
            interval_minutes=self.interval_minutes,
        )


def load_request(path: str | Path) -> DeploymentRequest:
    """Read and validate a request file (``.yaml``/``.yml`` or JSON)."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    data: Any
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    return DeploymentRequest.model_validate(data)
