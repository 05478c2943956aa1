"""Command-line interface for the blue/green cutover controller.

Provides subcommands for planning schedules, simulating cutovers against
in-memory adapters on a virtual clock, inspecting persisted deployments and
querying controller information.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    bluegreen = "bluegreen.cli:main"

Usage examples::

    bluegreen plan --strategy linear --step-percentage 30 --interval-minutes 2
    bluegreen simulate request.yaml --alarm-at-minutes 2
    bluegreen simulate request.yaml --store ./state --audit-log ./audit.jsonl
    bluegreen status --store ./state
    bluegreen info
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from bluegreen.domain.enums import DeploymentStatus, RoutingStrategy

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="bluegreen",
        description="Blue/green cutover controller -- plan, simulate and inspect deployments.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show version and exit.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity. (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- plan --------------------------------------------------------------
    plan_parser = subparsers.add_parser(
        "plan",
        help="Print the traffic schedule of a strategy.",
        description="Compute and print the steps a strategy would apply.",
    )
    plan_parser.add_argument(
        "--request",
        type=str,
        default=None,
        help="Deployment request file (YAML or JSON) to take the strategy from.",
    )
    plan_parser.add_argument(
        "--strategy",
        type=str,
        default=RoutingStrategy.CANARY.value,
        choices=[s.value for s in RoutingStrategy],
        help="Routing strategy. (default: canary)",
    )
    plan_parser.add_argument("--percentage", type=int, default=10, help="Canary share. (default: 10)")
    plan_parser.add_argument(
        "--bake-minutes", type=float, default=5.0, help="Canary bake time. (default: 5)"
    )
    plan_parser.add_argument(
        "--step-percentage", type=int, default=10, help="Linear increment. (default: 10)"
    )
    plan_parser.add_argument(
        "--interval-minutes", type=float, default=1.0, help="Linear interval. (default: 1)"
    )

    # -- simulate ----------------------------------------------------------
    sim_parser = subparsers.add_parser(
        "simulate",
        help="Simulate a cutover on a virtual clock.",
        description=(
            "Run the cutover described by a request file against an in-memory "
            "load balancer and a synthetic health check.  Time is virtual, so "
            "bake periods complete instantly."
        ),
    )
    sim_parser.add_argument("request", type=str, help="Deployment request file (YAML or JSON).")
    sim_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Controller config file (YAML or JSON) with a 'controller' section.",
    )
    sim_parser.add_argument(
        "--alarm-at-minutes",
        type=float,
        default=None,
        help="Fire a synthetic alarm on the green fleet this many minutes in.",
    )
    sim_parser.add_argument(
        "--store",
        type=str,
        default=None,
        help="Directory for durable deployment records (overrides config store_dir).",
    )
    sim_parser.add_argument(
        "--audit-log",
        type=str,
        default=None,
        help="JSON-lines audit file (overrides config audit_log_path).",
    )
    sim_parser.add_argument(
        "--no-retire",
        action="store_true",
        default=False,
        help="Stop after the cutover instead of waiting out blue retirement.",
    )

    # -- status ------------------------------------------------------------
    status_parser = subparsers.add_parser(
        "status",
        help="List persisted deployments.",
        description="Show deployments recorded in a store directory.",
    )
    status_parser.add_argument("--store", type=str, required=True, help="Store directory.")
    status_parser.add_argument(
        "--deployment", type=str, default=None, help="Show one deployment in detail."
    )

    # -- info --------------------------------------------------------------
    subparsers.add_parser(
        "info",
        help="Show controller information.",
        description="Display version, dependencies and registered strategies.",
    )

    return parser


# =========================================================================
# Subcommand handlers
# =========================================================================

def _cmd_plan(args: argparse.Namespace) -> int:
    """Handle the ``plan`` subcommand."""
    from bluegreen.domain.values import StrategyParams
    from bluegreen.infrastructure.requests import load_request
    from bluegreen.presentation.console import DeploymentConsole
    from bluegreen.services.traffic import compute_schedule

    if args.request is not None:
        request = load_request(args.request)
        strategy = request.strategy
        params = request.strategy_params()
    else:
        strategy = RoutingStrategy(args.strategy)
        params = StrategyParams(
            percentage=args.percentage,
            bake_minutes=args.bake_minutes,
            step_percentage=args.step_percentage,
            interval_minutes=args.interval_minutes,
        )

    steps = compute_schedule(strategy, params)
    DeploymentConsole().print_schedule(steps, title=f"{strategy.value} schedule")
    return 0


def _cmd_simulate(args: argparse.Namespace) -> int:
    """Handle the ``simulate`` subcommand."""
    import dataclasses

    from bluegreen.infrastructure.adapters import InMemoryLoadBalancer, LoggingFleetLifecycle
    from bluegreen.infrastructure.alarms import SyntheticCheckSource
    from bluegreen.infrastructure.clock import ManualClock
    from bluegreen.infrastructure.config import ControllerConfig, load_config_file
    from bluegreen.infrastructure.event_bus import EventBus
    from bluegreen.infrastructure.requests import load_request
    from bluegreen.infrastructure.store import InMemoryDeploymentStore, JsonFileDeploymentStore
    from bluegreen.presentation.console import DeploymentConsole
    from bluegreen.services.audit_log import AuditLog
    from bluegreen.services.cutover import CutoverController

    config = load_config_file(args.config) if args.config else ControllerConfig()
    overrides: dict[str, Any] = {}
    if args.store is not None:
        overrides["store_dir"] = args.store
    if args.audit_log is not None:
        overrides["audit_log_path"] = args.audit_log
    if overrides:
        config = dataclasses.replace(config, **overrides)

    request = load_request(args.request)

    clock = ManualClock()
    bus = EventBus()
    audit = AuditLog(config.audit_log_path or None)
    audit.attach(bus)
    store = JsonFileDeploymentStore(config.store_dir) if config.store_dir else InMemoryDeploymentStore()
    load_balancer = InMemoryLoadBalancer()
    lifecycle = LoggingFleetLifecycle()
    checks = SyntheticCheckSource(clock)
    if args.alarm_at_minutes is not None:
        checks.arm(request.green.fleet_id, args.alarm_at_minutes * 60.0)

    controller = CutoverController(
        load_balancer,
        config=config,
        clock=clock,
        event_bus=bus,
        store=store,
        lifecycle=lifecycle,
        alarm_source=checks,
    )

    async def _simulate() -> Any:
        deployment = controller.create_from_request(request)
        await controller.run(deployment.deployment_id)
        if not args.no_retire:
            await controller.drain()
        return controller.get(deployment.deployment_id)

    deployment = asyncio.run(_simulate())

    console = DeploymentConsole()
    console.print_deployment(deployment)
    console.print_fleets(request.service, controller.registry(request.service).fleets())
    console.print_audit(audit.query(deployment_id=deployment.deployment_id))
    console.print_info({
        "virtual time": f"{clock.now():.0f}s",
        "load balancer calls": load_balancer.call_count,
        "health checks": checks.fetch_count,
        "lifecycle intents": ", ".join(f"{i.action}:{i.fleet_id}" for i in lifecycle.intents) or "-",
    })

    if deployment.status is DeploymentStatus.SUCCEEDED:
        return 0
    if deployment.status is DeploymentStatus.ROLLED_BACK:
        return 2
    return 1


def _cmd_status(args: argparse.Namespace) -> int:
    """Handle the ``status`` subcommand."""
    from bluegreen.infrastructure.store import JsonFileDeploymentStore
    from bluegreen.presentation.console import DeploymentConsole

    store = JsonFileDeploymentStore(args.store)
    console = DeploymentConsole()

    if args.deployment is not None:
        deployment = store.load(args.deployment)
        if deployment is None:
            print(f"Error: no deployment {args.deployment!r} in {args.store}", file=sys.stderr)
            return 1
        console.print_deployment(deployment)
        return 0

    deployments = store.load_all()
    console.print_deployments(deployments)
    return 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from importlib import metadata

    from bluegreen import __version__
    from bluegreen.infrastructure.registry import schedules
    from bluegreen.presentation.console import DeploymentConsole

    console = DeploymentConsole()
    console.console.print(f"[bold]Blue/green cutover controller[/bold] v{__version__}")
    console.console.print()

    deps = {
        "numpy": "Schedule arithmetic",
        "pydantic": "Request and alarm validation",
        "PyYAML": "YAML config and requests",
        "rich": "Console tables",
    }
    console.console.print("Dependencies:")
    for pkg, desc in deps.items():
        try:
            version = metadata.version(pkg)
        except metadata.PackageNotFoundError:
            version = "not installed"
        console.console.print(f"  {pkg} {version} -- {desc}")
    console.console.print()

    console.console.print("Routing strategies:")
    for strategy in schedules.strategies():
        console.console.print(f"  {strategy.value}")
    console.console.print()
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate subcommand handler.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from bluegreen import __version__
        print(f"bluegreen {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    handlers: dict[str, Any] = {
        "plan": _cmd_plan,
        "simulate": _cmd_simulate,
        "status": _cmd_status,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except Exception as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
