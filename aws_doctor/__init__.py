"""Cost comparison, spend trend and waste detection for an AWS account."""

from __future__ import annotations

__version__ = "0.4.0"

from .concurrency import CancelToken
from .config import Pricing, WasteConfig
from .core import (
    get_caller_identity,
    list_address_attachments,
    list_available_volumes,
    list_empty_hosted_zones,
    list_expiring_reserved_instances,
    list_long_stopped_instances,
    list_orphaned_or_stale_snapshots,
    list_unattached_addresses,
    list_unused_amis,
    list_unused_load_balancers,
    run_cost_comparison,
    run_trend,
    run_waste_workflow,
)
from .models import Finding, WasteReport

__all__ = [
    "CancelToken",
    "Finding",
    "Pricing",
    "WasteConfig",
    "WasteReport",
    "__version__",
    "get_caller_identity",
    "list_address_attachments",
    "list_available_volumes",
    "list_empty_hosted_zones",
    "list_expiring_reserved_instances",
    "list_long_stopped_instances",
    "list_orphaned_or_stale_snapshots",
    "list_unattached_addresses",
    "list_unused_amis",
    "list_unused_load_balancers",
    "run_cost_comparison",
    "run_trend",
    "run_waste_workflow",
]
