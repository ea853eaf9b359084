"""Tests for the waste classifiers."""

from __future__ import annotations

from datetime import timedelta

import pytest

from aws_doctor import classifiers
from aws_doctor.config import Pricing
from aws_doctor.models import (
    Address,
    HostedZone,
    Image,
    ImageSnapshot,
    Instance,
    LoadBalancer,
    ReservedInstance,
    Snapshot,
    Volume,
)
from fakes import NOW, days_ago, stop_reason

PRICING = Pricing()


def _stopped(instance_id: str, days: float, volume_ids=()) -> Instance:
    return Instance(
        instance_id=instance_id,
        state="stopped",
        state_transition_reason=stop_reason(days_ago(days)),
        volume_ids=tuple(volume_ids),
    )


def test_unattached_addresses_skip_associated_ones() -> None:
    addresses = [
        Address(allocation_id="eipalloc-1", public_ip="1.2.3.4"),
        Address(allocation_id="eipalloc-2", public_ip="5.6.7.8", association_id="eipassoc-2"),
    ]

    findings = classifiers.classify_unattached_addresses(addresses, PRICING)

    assert [f.resource_id for f in findings] == ["eipalloc-1"]
    assert findings[0].reason == "Unassociated"
    assert findings[0].max_monthly_saving == 0.0


def test_available_volumes_use_configured_price() -> None:
    """Only available volumes are flagged; saving follows the price table."""

    volumes = [Volume("vol-1", 100, "available"), Volume("vol-2", 5, "in-use", ("i-1",))]

    findings = classifiers.classify_available_volumes(volumes, Pricing(volume_gib_month=0.08))

    assert [f.resource_id for f in findings] == ["vol-1"]
    assert findings[0].reason == "Available (Unattached)"
    assert findings[0].max_monthly_saving == pytest.approx(8.0)


def test_long_stopped_instances_use_strict_threshold() -> None:
    """Exactly 30 days is not old enough; unparsable reasons are ignored."""

    instances = [
        _stopped("i-old", 45),
        _stopped("i-boundary", 30),
        _stopped("i-recent", 3),
        Instance("i-noreason", "stopped", state_transition_reason="User initiated"),
        Instance("i-running", "running", state_transition_reason=stop_reason(days_ago(90))),
    ]

    stopped = classifiers.find_long_stopped_instances(instances, NOW)

    assert [item.instance.instance_id for item in stopped] == ["i-old"]
    assert stopped[0].days_stopped == 45
    assert stopped[0].stopped_at < NOW - timedelta(days=30)


def test_volumes_of_stopped_instances_follow_inventory_order() -> None:
    stopped = classifiers.find_long_stopped_instances(
        [_stopped("i-1", 60, ["vol-b", "vol-a"])], NOW
    )
    volumes = [Volume("vol-a", 1, "in-use"), Volume("vol-x", 1, "in-use"), Volume("vol-b", 2, "in-use")]

    selected = classifiers.volumes_of_stopped_instances(volumes, stopped)
    findings = classifiers.classify_stopped_instance_volumes(selected, PRICING)

    assert [f.resource_id for f in findings] == ["vol-a", "vol-b"]
    assert {f.reason for f in findings} == {"Attached to Stopped Instance"}


def test_reserved_instance_windows() -> None:
    ris = [
        ReservedInstance("ri-expiring", "m5.large", "active", NOW + timedelta(days=10)),
        ReservedInstance("ri-far", "m5.large", "active", NOW + timedelta(days=200)),
        ReservedInstance("ri-expired", "m5.large", "retired", NOW - timedelta(days=5)),
        ReservedInstance("ri-ancient", "m5.large", "retired", NOW - timedelta(days=45)),
        ReservedInstance("ri-noend", "m5.large", "active", None),
    ]

    expiries = classifiers.find_expiring_reserved_instances(ris, NOW)

    assert [(e.reserved_instance.reserved_instance_id, e.status) for e in expiries] == [
        ("ri-expiring", classifiers.RI_EXPIRING_SOON),
        ("ri-expired", classifiers.RI_RECENTLY_EXPIRED),
    ]
    assert expiries[0].days_until_expiry == 10
    assert expiries[1].days_until_expiry == -5


def test_active_reserved_instance_past_its_end_is_reported_in_both_categories() -> None:
    ri = ReservedInstance("ri-both", "c5.xlarge", "active", NOW - timedelta(days=2))

    expiries = classifiers.find_expiring_reserved_instances([ri], NOW)
    findings = classifiers.classify_reserved_instances(expiries)

    assert [e.status for e in expiries] == [classifiers.RI_EXPIRING_SOON, classifiers.RI_RECENTLY_EXPIRED]
    assert len({f.key() for f in findings}) == 2


def test_unused_ami_requires_zero_usage_and_age() -> None:
    images = [
        Image("ami-old", creation_date="2026-01-01T00:00:00.000Z", snapshots=(ImageSnapshot("snap-1", 8), ImageSnapshot("snap-2", 12))),
        Image("ami-used", creation_date="2025-01-01T00:00:00.000Z"),
        Image("ami-new", creation_date=(NOW - timedelta(days=10)).strftime("%Y-%m-%dT%H:%M:%SZ")),
        Image("ami-baddate", creation_date="sometime last year"),
        Image("ami-nodate"),
    ]

    findings = classifiers.classify_unused_amis(images, {"ami-used": 2}, NOW, stale_days=90)

    assert [f.resource_id for f in findings] == ["ami-old"]
    finding = findings[0]
    assert finding.confidence == classifiers.LOW
    assert finding.safety_note == classifiers.AMI_SAFETY_NOTE
    assert finding.subject.snapshot_ids == ("snap-1", "snap-2")
    assert finding.subject.snapshot_size_gib == 20
    assert finding.subject.used_by_instances == 0
    assert finding.max_monthly_saving == pytest.approx(1.0)


def test_snapshot_classification_categories() -> None:
    """Orphaned wins over stale and AMI-backed snapshots are skipped."""

    snapshots = [
        Snapshot("snap-ami", "vol-gone", days_ago(400), 50),
        Snapshot("snap-orphan", "vol-gone", days_ago(1), 10),
        Snapshot("snap-stale", "vol-live", days_ago(120), 4),
        Snapshot("snap-fresh", "vol-live", days_ago(10), 4),
        Snapshot("snap-notime", "vol-live", None, 4),
    ]

    findings = classifiers.classify_snapshots(
        snapshots, frozenset({"vol-live"}), {"snap-ami": "ami-1"}, NOW, stale_days=90
    )

    assert [(f.resource_id, f.reason, f.confidence) for f in findings] == [
        ("snap-orphan", "Volume Deleted", classifiers.HIGH),
        ("snap-stale", "Old Backup", classifiers.LOW),
    ]
    assert findings[0].subject.category == classifiers.SNAPSHOT_ORPHANED
    assert findings[1].subject.category == classifiers.SNAPSHOT_STALE
    assert findings[1].subject.days_since_create == 120
    assert all(f.safety_note == classifiers.SNAPSHOT_SAVING_NOTE for f in findings)


def test_unused_load_balancers_skip_gateways_and_referenced() -> None:
    lbs = [
        LoadBalancer("arn:alb", "alb", "application"),
        LoadBalancer("arn:nlb", "nlb", "network"),
        LoadBalancer("arn:gwlb", "gwlb", "gateway"),
    ]

    findings = classifiers.classify_unused_load_balancers(lbs, frozenset({"arn:nlb"}), PRICING)

    assert [f.resource_id for f in findings] == ["arn:alb"]
    assert findings[0].reason == "No Target Groups"


def test_empty_hosted_zones_count_mandatory_records() -> None:
    zones = [HostedZone("Z1", "a.com.", 2), HostedZone("Z2", "b.com.", 3), HostedZone("Z3", "c.com.", 0)]

    findings = classifiers.classify_empty_hosted_zones(zones, PRICING)

    assert [f.resource_id for f in findings] == ["Z1", "Z3"]
    assert findings[0].max_monthly_saving == pytest.approx(0.50)
    assert findings[0].subject.monthly_cost == pytest.approx(0.50)
