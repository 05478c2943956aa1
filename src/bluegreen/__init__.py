"""Blue/green cutover controller.

Drives a phased traffic cutover between a stable (blue) and a candidate
(green) fleet behind a load balancer, watches health signals while traffic
moves, and either promotes green or rolls back.
"""

__version__ = "0.1.0"

from bluegreen.services import AuditLog, CutoverController

__all__ = [
    "AuditLog",
    "CutoverController",
    "__version__",
]
