"""Presentation layer for the blue/green cutover controller.

Public API
----------
- :class:`DeploymentConsole` -- rich tables for schedules, deployments,
  fleets and audit entries
"""

from bluegreen.presentation.console import DeploymentConsole

__all__ = [
    "DeploymentConsole",
]
