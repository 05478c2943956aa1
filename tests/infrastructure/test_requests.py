"""Tests for deployment request documents."""

from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from bluegreen.domain.enums import RoutingStrategy
from bluegreen.infrastructure.requests import DeploymentRequest, load_request

_REQUEST_YAML = """\
service: checkout
strategy: linear
step_percentage: 25
interval_minutes: 2
blue:
  fleet_id: checkout-blue
  image_tag: shop:1.0
green:
  fleet_id: checkout-green
  target_group: tg-checkout-2
  image_tag: shop:1.1
"""


class TestDeploymentRequest:

    def test_defaults(self) -> None:
        req = DeploymentRequest(
            service="checkout",
            blue={"fleet_id": "b"},
            green={"fleet_id": "g"},
        )
        assert req.strategy is RoutingStrategy.CANARY
        params = req.strategy_params()
        assert params.percentage == 10
        assert params.bake_minutes == 5.0

    def test_same_fleet_rejected(self) -> None:
        with pytest.raises(pydantic.ValidationError, match="different fleets"):
            DeploymentRequest(service="s", blue={"fleet_id": "x"}, green={"fleet_id": "x"})

    @pytest.mark.parametrize("percentage", [0, 100])
    def test_canary_percentage_range(self, percentage: int) -> None:
        with pytest.raises(pydantic.ValidationError):
            DeploymentRequest(
                service="s", blue={"fleet_id": "b"}, green={"fleet_id": "g"},
                percentage=percentage,
            )

    def test_strategy_by_value(self) -> None:
        req = DeploymentRequest.model_validate({
            "service": "s",
            "blue": {"fleet_id": "b"},
            "green": {"fleet_id": "g"},
            "strategy": "all-at-once",
        })
        assert req.strategy is RoutingStrategy.ALL_AT_ONCE

    @pytest.mark.parametrize("field", ["service", "deployment_id"])
    @pytest.mark.parametrize("value", ["../x", "a/b", ".hidden", "a b"])
    def test_names_must_be_file_safe(self, field: str, value: str) -> None:
        data = {"service": "s", "blue": {"fleet_id": "b"}, "green": {"fleet_id": "g"}}
        data[field] = value
        with pytest.raises(pydantic.ValidationError):
            DeploymentRequest.model_validate(data)

    def test_generated_style_id_accepted(self) -> None:
        req = DeploymentRequest(
            service="checkout.v2", blue={"fleet_id": "b"}, green={"fleet_id": "g"},
            deployment_id="d-1a2b3c4d5e",
        )
        assert req.deployment_id == "d-1a2b3c4d5e"


class TestLoadRequest:

    def test_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "request.yaml"
        path.write_text(_REQUEST_YAML, encoding="utf-8")

        req = load_request(path)

        assert req.strategy is RoutingStrategy.LINEAR
        assert req.strategy_params().step_percentage == 25
        assert req.green.target_group == "tg-checkout-2"
        assert req.green.image_tag == "shop:1.1"

    def test_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "request.json"
        path.write_text(
            '{"service": "s", "blue": {"fleet_id": "b"}, "green": {"fleet_id": "g"}}',
            encoding="utf-8",
        )
        assert load_request(path).service == "s"
