"""Core orchestration for the aws-doctor reports."""
from __future__ import annotations

import logging
from datetime import date, datetime
from functools import partial
from typing import Dict, Iterable, List, Optional, Tuple

from . import classifiers
from .clients import AwsClients
from .concurrency import CancelToken, run_concurrently
from .config import WasteConfig
from .correlate import Correlation, image_usage, referenced_load_balancers, snapshot_to_image, volume_ids
from .models import (
    Address,
    AddressAttachment,
    CostComparison,
    CostTrend,
    Finding,
    LoadBalancer,
    ReservedInstanceExpiry,
    StoppedInstance,
    Volume,
    WasteReport,
)
from .services import INVENTORY_FETCHERS
from .services import costexplorer, ec2, elb, route53, sts
from .utils import ensure_utc, format_rfc3339, utc_now

logger = logging.getLogger(__name__)

# Finding kind -> WasteReport bucket.
BUCKET_BY_KIND = {
    classifiers.KIND_UNUSED_ELASTIC_IP: "unused_elastic_ips",
    classifiers.KIND_UNUSED_VOLUME: "unused_ebs_volumes",
    classifiers.KIND_STOPPED_INSTANCE_VOLUME: "stopped_instance_volumes",
    classifiers.KIND_STOPPED_INSTANCE: "stopped_instances",
    classifiers.KIND_RI_EXPIRING: "reserved_instances",
    classifiers.KIND_RI_EXPIRED: "reserved_instances",
    classifiers.KIND_UNUSED_LOAD_BALANCER: "unused_load_balancers",
    classifiers.KIND_UNUSED_AMI: "unused_amis",
    classifiers.KIND_ORPHANED_SNAPSHOT: "orphaned_snapshots",
    classifiers.KIND_STALE_SNAPSHOT: "stale_snapshots",
    classifiers.KIND_EMPTY_HOSTED_ZONE: "empty_hosted_zones",
}


def _resolve_now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else utc_now()


def list_unattached_addresses(clients: AwsClients, cancel: CancelToken) -> List[Address]:
    """Return Elastic IP addresses that are not associated with anything."""

    return ec2.fetch_unattached_addresses(clients, cancel)


def list_address_attachments(clients: AwsClients, cancel: CancelToken) -> List[AddressAttachment]:
    """Return the resource type behind every associated Elastic IP address."""

    return ec2.resolve_address_attachments(clients, cancel, ec2.fetch_addresses(clients, cancel))


def list_available_volumes(clients: AwsClients, cancel: CancelToken) -> List[Volume]:
    return ec2.fetch_available_volumes(clients, cancel)


def list_long_stopped_instances(
    clients: AwsClients,
    cancel: CancelToken,
    now: Optional[datetime] = None,
    stopped_days: int = 30,
) -> Tuple[List[StoppedInstance], List[Volume]]:
    """Return instances stopped for more than ``stopped_days`` and their volumes."""

    now = _resolve_now(now)
    stopped = classifiers.find_long_stopped_instances(
        ec2.fetch_stopped_instances(clients, cancel), now, stopped_days
    )
    wanted = [volume_id for item in stopped for volume_id in item.instance.volume_ids]
    volumes = ec2.fetch_volumes_by_id(clients, cancel, wanted) if wanted else []
    return stopped, volumes


def list_expiring_reserved_instances(
    clients: AwsClients,
    cancel: CancelToken,
    now: Optional[datetime] = None,
    window_days: int = 30,
) -> List[ReservedInstanceExpiry]:
    return classifiers.find_expiring_reserved_instances(
        ec2.fetch_reserved_instances(clients, cancel), _resolve_now(now), window_days
    )


def list_unused_amis(
    clients: AwsClients,
    cancel: CancelToken,
    stale_days: int = 90,
    now: Optional[datetime] = None,
    config: Optional[WasteConfig] = None,
) -> List[Finding]:
    """Return owned AMIs that no instance uses and that are older than ``stale_days``."""

    config = config or WasteConfig()
    results = run_concurrently(
        {
            "instances": partial(ec2.fetch_instances, clients),
            "images": partial(ec2.fetch_owned_images, clients),
        },
        cancel,
        max_workers=config.max_workers,
    )
    return classifiers.classify_unused_amis(
        results["images"],
        image_usage(results["instances"]),
        _resolve_now(now),
        stale_days,
        config.pricing,
    )


def list_orphaned_or_stale_snapshots(
    clients: AwsClients,
    cancel: CancelToken,
    stale_days: int = 90,
    now: Optional[datetime] = None,
    config: Optional[WasteConfig] = None,
) -> List[Finding]:
    """Return owned snapshots whose volume is gone or that are older than ``stale_days``."""

    config = config or WasteConfig()
    results = run_concurrently(
        {
            "snapshots": partial(ec2.fetch_owned_snapshots, clients),
            "volumes": partial(ec2.fetch_volumes, clients),
            "images": partial(ec2.fetch_owned_images, clients),
        },
        cancel,
        max_workers=config.max_workers,
    )
    return classifiers.classify_snapshots(
        results["snapshots"],
        volume_ids(results["volumes"]),
        snapshot_to_image(results["images"]),
        _resolve_now(now),
        stale_days,
        config.pricing,
    )


def list_unused_load_balancers(clients: AwsClients, cancel: CancelToken) -> List[LoadBalancer]:
    """Return application and network load balancers without target groups."""

    results = run_concurrently(
        {
            "load_balancers": partial(elb.fetch_load_balancers, clients),
            "target_groups": partial(elb.fetch_target_groups, clients),
        },
        cancel,
    )
    findings = classifiers.classify_unused_load_balancers(
        results["load_balancers"],
        referenced_load_balancers(results["target_groups"]),
        WasteConfig().pricing,
    )
    return [finding.subject for finding in findings]


def list_empty_hosted_zones(
    clients: AwsClients, cancel: CancelToken, config: Optional[WasteConfig] = None
) -> List[Finding]:
    config = config or WasteConfig()
    return classifiers.classify_empty_hosted_zones(
        route53.fetch_hosted_zones(clients, cancel), config.pricing
    )


def get_caller_identity(clients: AwsClients, cancel: CancelToken) -> str:
    return sts.fetch_account_id(clients, cancel)


def build_waste_report(
    account_id: str, findings: Iterable[Finding], generated_at: str
) -> WasteReport:
    """Group ``findings`` into report buckets, keeping their order.

    A later finding for the same (kind, resource) pair replaces the earlier one.
    """

    unique: Dict[str, Finding] = {}
    for finding in findings:
        unique[finding.key()] = finding

    report = WasteReport(account_id=account_id, generated_at=generated_at)
    for finding in unique.values():
        getattr(report, BUCKET_BY_KIND[finding.kind]).append(finding)
    return report


def classify_inventories(
    inventories: Dict[str, object], now: datetime, config: WasteConfig
) -> List[Finding]:
    """Run every classifier over inventories fetched in one run."""

    pricing = config.pricing
    correlation = Correlation.build(
        volumes=inventories["volumes"],
        instances=inventories["instances"],
        images=inventories["images"],
        target_groups=inventories["target_groups"],
    )
    stopped = classifiers.find_long_stopped_instances(
        inventories["instances"], now, config.stopped_days
    )
    stopped_volumes = classifiers.volumes_of_stopped_instances(inventories["volumes"], stopped)
    expiries = classifiers.find_expiring_reserved_instances(
        inventories["reserved_instances"], now, config.ri_window_days
    )

    findings: List[Finding] = []
    findings += classifiers.classify_unattached_addresses(inventories["addresses"], pricing)
    findings += classifiers.classify_available_volumes(inventories["volumes"], pricing)
    findings += classifiers.classify_stopped_instance_volumes(stopped_volumes, pricing)
    findings += classifiers.classify_stopped_instances(stopped, config.stopped_days)
    findings += classifiers.classify_reserved_instances(expiries)
    findings += classifiers.classify_unused_load_balancers(
        inventories["load_balancers"], correlation.lb_referenced, pricing
    )
    findings += classifiers.classify_unused_amis(
        inventories["images"], correlation.image_usage, now, config.stale_days, pricing
    )
    findings += classifiers.classify_snapshots(
        inventories["snapshots"],
        correlation.volume_exists,
        correlation.snapshot_to_image,
        now,
        config.stale_days,
        pricing,
    )
    findings += classifiers.classify_empty_hosted_zones(inventories["hosted_zones"], pricing)
    return findings


def run_waste_workflow(
    clients: AwsClients,
    cancel: CancelToken,
    config: Optional[WasteConfig] = None,
    now: Optional[datetime] = None,
) -> WasteReport:
    """Fetch every inventory in parallel, classify it and return the waste report.

    Any fetch error cancels the remaining fetches and propagates unchanged.
    """

    config = config or WasteConfig()
    now = _resolve_now(now)
    tasks = {name: partial(fetcher, clients) for name, fetcher in INVENTORY_FETCHERS.items()}
    inventories = run_concurrently(tasks, cancel, max_workers=config.max_workers)

    findings = classify_inventories(inventories, now, config)
    report = build_waste_report(str(inventories["caller_identity"]), findings, format_rfc3339(now))
    logger.info("Waste workflow produced %d findings", len(report.findings()))
    return report


def run_cost_comparison(
    clients: AwsClients, cancel: CancelToken, today: Optional[date] = None
) -> CostComparison:
    """Compare month-to-date spend with the same window of the previous month."""

    now = utc_now()
    today = today or now.date()
    results = run_concurrently(
        {
            "current": partial(costexplorer.fetch_month_to_date, clients, end=today),
            "last": partial(
                costexplorer.fetch_month_to_date,
                clients,
                end=costexplorer.previous_month_window_end(today),
            ),
            "account": partial(sts.fetch_account_id, clients),
        },
        cancel,
    )
    return CostComparison(
        account_id=results["account"],
        generated_at=format_rfc3339(now),
        current_month=results["current"],
        last_month=results["last"],
    )


def run_trend(clients: AwsClients, cancel: CancelToken, today: Optional[date] = None) -> CostTrend:
    """Return monthly totals for the last six full months."""

    now = utc_now()
    today = today or now.date()
    results = run_concurrently(
        {
            "months": partial(costexplorer.fetch_monthly_totals, clients, today=today),
            "account": partial(sts.fetch_account_id, clients),
        },
        cancel,
    )
    return CostTrend(
        account_id=results["account"],
        generated_at=format_rfc3339(now),
        months=tuple(results["months"]),
    )


__all__ = [
    "BUCKET_BY_KIND",
    "build_waste_report",
    "classify_inventories",
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
