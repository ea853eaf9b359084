"""Classifiers that turn fetched inventories into waste findings.

Classifiers never fail and never call AWS. An entity that cannot be
classified safely, usually because a timestamp does not parse, is skipped.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Collection, Iterable, List, Mapping, Tuple

from .config import Pricing
from .models import (
    Address,
    Finding,
    HostedZone,
    HostedZoneWaste,
    Image,
    ImageWaste,
    Instance,
    LoadBalancer,
    ReservedInstance,
    ReservedInstanceExpiry,
    Snapshot,
    SnapshotWaste,
    StoppedInstance,
    Volume,
)
from .utils import ensure_utc, parse_rfc3339, parse_transition_date, whole_days

logger = logging.getLogger(__name__)

HIGH = "high"
LOW = "low"

KIND_UNUSED_ELASTIC_IP = "unused_elastic_ip"
KIND_UNUSED_VOLUME = "unused_ebs_volume"
KIND_STOPPED_INSTANCE_VOLUME = "stopped_instance_volume"
KIND_STOPPED_INSTANCE = "stopped_instance"
KIND_RI_EXPIRING = "reserved_instance_expiring"
KIND_RI_EXPIRED = "reserved_instance_expired"
KIND_UNUSED_LOAD_BALANCER = "unused_load_balancer"
KIND_UNUSED_AMI = "unused_ami"
KIND_ORPHANED_SNAPSHOT = "orphaned_snapshot"
KIND_STALE_SNAPSHOT = "stale_snapshot"
KIND_EMPTY_HOSTED_ZONE = "empty_hosted_zone"

RI_EXPIRING_SOON = "EXPIRING SOON"
RI_RECENTLY_EXPIRED = "RECENTLY EXPIRED"

SNAPSHOT_ORPHANED = "orphaned"
SNAPSHOT_STALE = "stale"

CLASSIFIED_LOAD_BALANCER_TYPES = frozenset({"application", "network"})

# NS and SOA records exist in every hosted zone.
MANDATORY_RECORD_SETS = 2

AMI_SAFETY_NOTE = (
    "Verify before deleting: AMI may be used by Auto Scaling Groups or Launch "
    "Templates not currently running instances"
)
SNAPSHOT_SAVING_NOTE = (
    "Maximum saving: snapshot storage is incremental, so only blocks unique to "
    "this snapshot are billed and the actual saving may be lower"
)


def classify_unattached_addresses(addresses: Iterable[Address], pricing: Pricing) -> List[Finding]:
    return [
        Finding(
            kind=KIND_UNUSED_ELASTIC_IP,
            resource_id=address.allocation_id,
            reason="Unassociated",
            confidence=HIGH,
            max_monthly_saving=pricing.address_month,
            subject=address,
        )
        for address in addresses
        if not address.is_associated
    ]


def classify_available_volumes(volumes: Iterable[Volume], pricing: Pricing) -> List[Finding]:
    return [
        Finding(
            kind=KIND_UNUSED_VOLUME,
            resource_id=volume.volume_id,
            reason="Available (Unattached)",
            confidence=HIGH,
            max_monthly_saving=volume.size_gib * pricing.volume_gib_month,
            subject=volume,
        )
        for volume in volumes
        if volume.status == "available"
    ]


def find_long_stopped_instances(
    instances: Iterable[Instance], now: datetime, stopped_days: int = 30
) -> List[StoppedInstance]:
    """Return stopped instances whose stop time is strictly older than the threshold.

    The stop time comes from the state-transition reason; instances whose
    reason carries no parsable timestamp are ignored.
    """

    threshold = now - timedelta(days=stopped_days)
    stopped: List[StoppedInstance] = []
    for instance in instances:
        if instance.state != "stopped":
            continue
        stopped_at = parse_transition_date(instance.state_transition_reason)
        if stopped_at is None:
            logger.debug(
                "Skipping %s: no stop time in %r", instance.instance_id, instance.state_transition_reason
            )
            continue
        if stopped_at < threshold:
            stopped.append(
                StoppedInstance(
                    instance=instance,
                    stopped_at=stopped_at,
                    days_stopped=whole_days(now - stopped_at),
                )
            )
    return stopped


def classify_stopped_instances(
    stopped: Iterable[StoppedInstance], stopped_days: int = 30
) -> List[Finding]:
    return [
        Finding(
            kind=KIND_STOPPED_INSTANCE,
            resource_id=item.instance.instance_id,
            reason=f"Stopped Instance (> {stopped_days} Days)",
            confidence=HIGH,
            max_monthly_saving=0.0,
            subject=item,
        )
        for item in stopped
    ]


def volumes_of_stopped_instances(
    volumes: Iterable[Volume], stopped: Iterable[StoppedInstance]
) -> List[Volume]:
    """Select, in inventory order, the volumes mapped to ``stopped`` instances."""

    wanted = {volume_id for item in stopped for volume_id in item.instance.volume_ids}
    return [volume for volume in volumes if volume.volume_id in wanted]


def classify_stopped_instance_volumes(volumes: Iterable[Volume], pricing: Pricing) -> List[Finding]:
    return [
        Finding(
            kind=KIND_STOPPED_INSTANCE_VOLUME,
            resource_id=volume.volume_id,
            reason="Attached to Stopped Instance",
            confidence=HIGH,
            max_monthly_saving=volume.size_gib * pricing.volume_gib_month,
            subject=volume,
        )
        for volume in volumes
    ]


def find_expiring_reserved_instances(
    reserved_instances: Iterable[ReservedInstance], now: datetime, window_days: int = 30
) -> List[ReservedInstanceExpiry]:
    """Return RIs expiring within the window and RIs that expired within it.

    Both conditions are evaluated independently, so one RI can appear twice.
    RIs without an end date, and retired RIs that ended before the window,
    are dropped.
    """

    window = timedelta(days=window_days)
    results: List[ReservedInstanceExpiry] = []
    for ri in reserved_instances:
        if ri.end is None:
            continue
        end = ensure_utc(ri.end)
        days_until_expiry = whole_days(end - now)
        if ri.state == "active" and end < now + window:
            results.append(ReservedInstanceExpiry(ri, RI_EXPIRING_SOON, days_until_expiry))
        if now - window < end < now:
            results.append(ReservedInstanceExpiry(ri, RI_RECENTLY_EXPIRED, days_until_expiry))
    return results


def classify_reserved_instances(expiries: Iterable[ReservedInstanceExpiry]) -> List[Finding]:
    findings = []
    for expiry in expiries:
        expiring = expiry.status == RI_EXPIRING_SOON
        findings.append(
            Finding(
                kind=KIND_RI_EXPIRING if expiring else KIND_RI_EXPIRED,
                resource_id=expiry.reserved_instance.reserved_instance_id,
                reason="Expiring Soon" if expiring else "Recently Expired",
                confidence=HIGH,
                max_monthly_saving=0.0,
                subject=expiry,
            )
        )
    return findings


def _image_snapshot_totals(image: Image) -> Tuple[Tuple[str, ...], int]:
    snapshot_ids = tuple(snapshot.snapshot_id for snapshot in image.snapshots)
    total_size = sum(snapshot.volume_size_gib or 0 for snapshot in image.snapshots)
    return snapshot_ids, total_size


def classify_unused_amis(
    images: Iterable[Image],
    usage: Mapping[str, int],
    now: datetime,
    stale_days: int = 90,
    pricing: Pricing = Pricing(),
) -> List[Finding]:
    """Flag owned AMIs that no instance uses and that are older than ``stale_days``.

    Findings are low confidence: an Auto Scaling Group or launch template may
    still reference the image without any instance currently running.
    """

    cutoff = now - timedelta(days=stale_days)
    findings: List[Finding] = []
    for image in images:
        created = parse_rfc3339(image.creation_date)
        if created is None:
            logger.debug("Skipping %s: unparsable creation date %r", image.image_id, image.creation_date)
            continue
        used_by = usage.get(image.image_id, 0)
        if used_by != 0 or not created < cutoff:
            continue
        snapshot_ids, total_size = _image_snapshot_totals(image)
        findings.append(
            Finding(
                kind=KIND_UNUSED_AMI,
                resource_id=image.image_id,
                reason="Unused",
                confidence=LOW,
                max_monthly_saving=total_size * pricing.snapshot_gib_month,
                subject=ImageWaste(
                    image=image,
                    creation_date=created,
                    days_since_create=whole_days(now - created),
                    snapshot_ids=snapshot_ids,
                    snapshot_size_gib=total_size,
                    used_by_instances=used_by,
                ),
                safety_note=AMI_SAFETY_NOTE,
            )
        )
    return findings


def classify_snapshots(
    snapshots: Iterable[Snapshot],
    volume_exists: Collection[str],
    snapshot_to_image: Mapping[str, str],
    now: datetime,
    stale_days: int = 90,
    pricing: Pricing = Pricing(),
) -> List[Finding]:
    """Flag snapshots whose source volume is gone (orphaned) or that are old (stale).

    Snapshots backing an owned AMI are skipped; the AMI is reported on its own.
    """

    cutoff = now - timedelta(days=stale_days)
    findings: List[Finding] = []
    for snapshot in snapshots:
        if snapshot.snapshot_id in snapshot_to_image:
            continue
        started = ensure_utc(snapshot.start_time) if snapshot.start_time else None
        exists = snapshot.volume_id in volume_exists
        if not exists:
            kind, category, reason, confidence = KIND_ORPHANED_SNAPSHOT, SNAPSHOT_ORPHANED, "Volume Deleted", HIGH
        elif started is None:
            logger.debug("Skipping %s: no start time", snapshot.snapshot_id)
            continue
        elif started < cutoff:
            kind, category, reason, confidence = KIND_STALE_SNAPSHOT, SNAPSHOT_STALE, "Old Backup", LOW
        else:
            continue
        findings.append(
            Finding(
                kind=kind,
                resource_id=snapshot.snapshot_id,
                reason=reason,
                confidence=confidence,
                max_monthly_saving=snapshot.size_gib * pricing.snapshot_gib_month,
                subject=SnapshotWaste(
                    snapshot=snapshot,
                    category=category,
                    volume_exists=exists,
                    days_since_create=whole_days(now - started) if started else 0,
                ),
                safety_note=SNAPSHOT_SAVING_NOTE,
            )
        )
    return findings


def classify_unused_load_balancers(
    load_balancers: Iterable[LoadBalancer], lb_referenced: Collection[str], pricing: Pricing
) -> List[Finding]:
    """Flag application and network load balancers no target group points to."""

    return [
        Finding(
            kind=KIND_UNUSED_LOAD_BALANCER,
            resource_id=lb.arn,
            reason="No Target Groups",
            confidence=HIGH,
            max_monthly_saving=pricing.load_balancer_month,
            subject=lb,
        )
        for lb in load_balancers
        if lb.type in CLASSIFIED_LOAD_BALANCER_TYPES and lb.arn not in lb_referenced
    ]


def classify_empty_hosted_zones(zones: Iterable[HostedZone], pricing: Pricing) -> List[Finding]:
    return [
        Finding(
            kind=KIND_EMPTY_HOSTED_ZONE,
            resource_id=zone.zone_id,
            reason="Only NS and SOA Records",
            confidence=HIGH,
            max_monthly_saving=pricing.hosted_zone_month,
            subject=HostedZoneWaste(zone=zone, monthly_cost=pricing.hosted_zone_month),
        )
        for zone in zones
        if zone.record_set_count <= MANDATORY_RECORD_SETS
    ]


__all__ = [
    "AMI_SAFETY_NOTE",
    "HIGH",
    "LOW",
    "SNAPSHOT_SAVING_NOTE",
    "classify_available_volumes",
    "classify_empty_hosted_zones",
    "classify_reserved_instances",
    "classify_snapshots",
    "classify_stopped_instance_volumes",
    "classify_stopped_instances",
    "classify_unattached_addresses",
    "classify_unused_amis",
    "classify_unused_load_balancers",
    "find_expiring_reserved_instances",
    "find_long_stopped_instances",
    "volumes_of_stopped_instances",
]
