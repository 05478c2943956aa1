"""Rich-based console output for schedules, deployments and audit trails."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

from bluegreen.domain.entities import Deployment, Fleet
from bluegreen.domain.enums import DeploymentStatus, FleetHealth
from bluegreen.domain.values import AuditEntry, TrafficStep

_STATUS_COLOURS: dict[DeploymentStatus, str] = {
    DeploymentStatus.PENDING: "dim",
    DeploymentStatus.IN_PROGRESS: "cyan",
    DeploymentStatus.SUCCEEDED: "green",
    DeploymentStatus.ROLLED_BACK: "yellow",
    DeploymentStatus.FAILED: "red",
}

_HEALTH_COLOURS: dict[FleetHealth, str] = {
    FleetHealth.UNKNOWN: "dim",
    FleetHealth.HEALTHY: "green",
    FleetHealth.UNHEALTHY: "red",
}


def _minutes(seconds: float) -> str:
    return f"{seconds / 60.0:g}m"


def _status(status: DeploymentStatus) -> str:
    colour = _STATUS_COLOURS[status]
    return f"[{colour}]{status.value}[/{colour}]"


# ---------------------------------------------------------------------------
# DeploymentConsole
# ---------------------------------------------------------------------------

class DeploymentConsole:
    """Console presentation of controller state.

    Parameters
    ----------
    file:
        Output stream.  Defaults to ``sys.stdout``.
    no_color:
        Disable colour and styling.
    """

    def __init__(self, file: Any = None, no_color: bool = False) -> None:
        self._console = Console(file=file or sys.stdout, no_color=no_color, highlight=False)

    @property
    def console(self) -> Console:
        return self._console

    def print_schedule(self, steps: Sequence[TrafficStep], title: str = "Traffic schedule") -> None:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Step", justify="right")
        table.add_column("At", justify="right")
        table.add_column("Green", justify="right")
        table.add_column("Blue", justify="right")
        table.add_column("Hold", justify="right")
        for step in steps:
            table.add_row(
                str(step.index),
                _minutes(step.offset_seconds),
                f"[green]{step.target_weight}%[/green]",
                f"[blue]{step.blue_weight}%[/blue]",
                _minutes(step.hold_seconds),
            )
        self._console.print()
        self._console.print(table)
        self._console.print()

    def print_deployment(self, deployment: Deployment) -> None:
        """Print one deployment with its schedule and cursor."""
        self._console.print()
        self._console.print(
            f"[bold]{deployment.deployment_id}[/bold]  {deployment.service}  "
            f"{deployment.strategy.value}  {_status(deployment.status)}"
        )
        self._console.print(
            f"  [dim]blue:[/dim] {deployment.blue_fleet_id}  "
            f"[dim]green:[/dim] {deployment.green_fleet_id}  "
            f"[dim]image:[/dim] {deployment.image_tag or '-'}"
        )
        if deployment.status_reason:
            self._console.print(f"  [dim]reason:[/dim] {deployment.status_reason}")
        if deployment.retire_at is not None:
            state = "retired" if deployment.retired else f"retires at t={deployment.retire_at:.0f}s"
            self._console.print(f"  [dim]old blue:[/dim] {state}")

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Step", justify="right")
        table.add_column("Green", justify="right")
        table.add_column("Hold", justify="right")
        table.add_column("State")
        for step in deployment.steps:
            if step.index < deployment.phase_index:
                state = "[green]passed[/green]"
            elif step.index == deployment.phase_index and not deployment.is_terminal:
                state = "[cyan]applied[/cyan]" if deployment.phase_applied else "[dim]next[/dim]"
            elif step.index == deployment.phase_index:
                state = "[yellow]stopped[/yellow]"
            else:
                state = "[dim]-[/dim]"
            table.add_row(str(step.index), f"{step.target_weight}%", _minutes(step.hold_seconds), state)
        self._console.print(table)
        self._console.print()

    def print_deployments(self, deployments: Sequence[Deployment]) -> None:
        if not deployments:
            self._console.print("[dim]no deployments[/dim]")
            return
        table = Table(title="Deployments", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="bold")
        table.add_column("Service")
        table.add_column("Strategy")
        table.add_column("Status")
        table.add_column("Step", justify="right")
        table.add_column("Blue -> Green")
        table.add_column("Reason")
        for d in deployments:
            table.add_row(
                d.deployment_id,
                d.service,
                d.strategy.value,
                _status(d.status),
                f"{min(d.phase_index + 1, len(d.steps))}/{len(d.steps)}",
                f"{d.blue_fleet_id} -> {d.green_fleet_id}",
                d.status_reason,
            )
        self._console.print()
        self._console.print(table)
        self._console.print()

    def print_fleets(self, service: str, fleets: Sequence[Fleet]) -> None:
        table = Table(title=f"Fleets: {service}", show_header=True, header_style="bold cyan")
        table.add_column("Fleet", style="bold")
        table.add_column("Role")
        table.add_column("Weight", justify="right")
        table.add_column("Health")
        table.add_column("Image")
        for f in fleets:
            colour = _HEALTH_COLOURS[f.health]
            table.add_row(
                f.fleet_id,
                f.role.value,
                f"{f.weight}%",
                f"[{colour}]{f.health.value}[/{colour}]",
                f.image_tag or "-",
            )
        self._console.print(table)

    def print_audit(self, entries: Sequence[AuditEntry], title: str = "Audit log") -> None:
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("t", justify="right")
        table.add_column("Event", style="bold")
        table.add_column("Fleet")
        table.add_column("Details")
        for e in entries:
            details = ", ".join(f"{k}={v}" for k, v in e.details.items() if v not in ("", None))
            table.add_row(f"{e.timestamp:.0f}", e.kind, e.fleet_id or "-", details)
        self._console.print()
        self._console.print(table)
        self._console.print()

    def print_info(self, info: dict[str, Any]) -> None:
        for key, val in info.items():
            self._console.print(f"  [dim]{key}:[/dim] {val}")
