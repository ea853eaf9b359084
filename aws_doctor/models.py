"""Data models for AWS inventories and waste findings."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class Address:
    """An Elastic IP address leased to the account."""

    allocation_id: str
    public_ip: Optional[str] = None
    association_id: Optional[str] = None
    instance_id: Optional[str] = None
    network_interface_id: Optional[str] = None

    @property
    def is_associated(self) -> bool:
        return self.association_id is not None


@dataclass(frozen=True)
class AddressAttachment:
    """Resource type behind an associated Elastic IP address."""

    public_ip: str
    allocation_id: str
    resource_type: str
    interface_description: Optional[str] = None


@dataclass(frozen=True)
class Volume:
    """An EBS volume."""

    volume_id: str
    size_gib: int
    status: str
    attached_instance_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Instance:
    """An EC2 instance with the volume IDs of its EBS block-device mappings."""

    instance_id: str
    state: str
    image_id: Optional[str] = None
    state_transition_reason: str = ""
    volume_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ReservedInstance:
    """A reserved instance commitment."""

    reserved_instance_id: str
    instance_type: str
    state: str
    end: Optional[datetime] = None


@dataclass(frozen=True)
class ImageSnapshot:
    """A block-device mapping of an AMI that is backed by an EBS snapshot."""

    snapshot_id: str
    volume_size_gib: Optional[int] = None


@dataclass(frozen=True)
class Image:
    """An AMI owned by the caller."""

    image_id: str
    name: str = ""
    description: str = ""
    creation_date: Optional[str] = None
    public: bool = False
    snapshots: Tuple[ImageSnapshot, ...] = ()


@dataclass(frozen=True)
class Snapshot:
    """An EBS snapshot owned by the caller. ``volume_id`` may dangle."""

    snapshot_id: str
    volume_id: str
    start_time: Optional[datetime]
    size_gib: int
    description: str = ""


@dataclass(frozen=True)
class LoadBalancer:
    """An ELBv2 load balancer."""

    arn: str
    name: str
    type: str


@dataclass(frozen=True)
class TargetGroup:
    """An ELBv2 target group and the load balancers routing to it."""

    arn: str
    load_balancer_arns: Tuple[str, ...] = ()


@dataclass(frozen=True)
class HostedZone:
    """A Route 53 hosted zone."""

    zone_id: str
    name: str
    record_set_count: int
    private: bool = False
    comment: str = ""


@dataclass(frozen=True)
class StoppedInstance:
    """An instance that has been stopped for longer than the threshold."""

    instance: Instance
    stopped_at: datetime
    days_stopped: int


@dataclass(frozen=True)
class ReservedInstanceExpiry:
    """A reserved instance that is about to expire or expired recently."""

    reserved_instance: ReservedInstance
    status: str
    days_until_expiry: int


@dataclass(frozen=True)
class ImageWaste:
    """Details of an AMI that no instance references."""

    image: Image
    creation_date: datetime
    days_since_create: int
    snapshot_ids: Tuple[str, ...]
    snapshot_size_gib: int
    used_by_instances: int


@dataclass(frozen=True)
class SnapshotWaste:
    """Details of a snapshot that is orphaned or stale."""

    snapshot: Snapshot
    category: str
    volume_exists: bool
    days_since_create: int


@dataclass(frozen=True)
class HostedZoneWaste:
    """Details of a hosted zone holding only its NS and SOA records."""

    zone: HostedZone
    monthly_cost: float


Subject = Union[
    Address,
    Volume,
    StoppedInstance,
    ReservedInstanceExpiry,
    LoadBalancer,
    ImageWaste,
    SnapshotWaste,
    HostedZoneWaste,
]


@dataclass(frozen=True)
class Finding:
    """Asserts that a single AWS resource looks like waste.

    ``subject`` carries the inventory record (or the classifier's detail record)
    the finding was produced from so renderers can show kind-specific columns.
    """

    kind: str
    resource_id: str
    reason: str
    confidence: str
    max_monthly_saving: float
    subject: Subject
    safety_note: Optional[str] = None

    def key(self) -> str:
        """Stable identifier; one finding exists per (kind, resource) pair."""

        return f"{self.kind}:{self.resource_id}"


@dataclass(frozen=True)
class ServiceCost:
    """Cost of a single AWS service for a period."""

    name: str
    amount: float
    unit: str


@dataclass(frozen=True)
class CostPeriod:
    """Costs for a date interval. ``end`` is exclusive, as Cost Explorer reports it."""

    start: str
    end: str
    total: float
    unit: str
    services: Tuple[ServiceCost, ...] = ()


@dataclass(frozen=True)
class CostComparison:
    """Month-to-date spend compared with the same window of the previous month."""

    account_id: str
    generated_at: str
    current_month: CostPeriod
    last_month: CostPeriod


@dataclass(frozen=True)
class CostTrend:
    """Monthly spend for the last six full months."""

    account_id: str
    generated_at: str
    months: Tuple[CostPeriod, ...] = ()


@dataclass
class WasteReport:
    """Findings of a waste workflow run grouped into output buckets."""

    account_id: str
    generated_at: str
    unused_elastic_ips: List[Finding] = field(default_factory=list)
    unused_ebs_volumes: List[Finding] = field(default_factory=list)
    stopped_instance_volumes: List[Finding] = field(default_factory=list)
    stopped_instances: List[Finding] = field(default_factory=list)
    reserved_instances: List[Finding] = field(default_factory=list)
    unused_load_balancers: List[Finding] = field(default_factory=list)
    unused_amis: List[Finding] = field(default_factory=list)
    orphaned_snapshots: List[Finding] = field(default_factory=list)
    stale_snapshots: List[Finding] = field(default_factory=list)
    empty_hosted_zones: List[Finding] = field(default_factory=list)

    @property
    def has_waste(self) -> bool:
        return any(findings for _, findings in self.buckets())

    def buckets(self) -> List[Tuple[str, List[Finding]]]:
        """Return ``(bucket name, findings)`` pairs in rendering order."""

        return [
            ("unused_elastic_ips", self.unused_elastic_ips),
            ("unused_ebs_volumes", self.unused_ebs_volumes),
            ("stopped_instance_volumes", self.stopped_instance_volumes),
            ("stopped_instances", self.stopped_instances),
            ("reserved_instances", self.reserved_instances),
            ("unused_load_balancers", self.unused_load_balancers),
            ("unused_amis", self.unused_amis),
            ("orphaned_snapshots", self.orphaned_snapshots),
            ("stale_snapshots", self.stale_snapshots),
            ("empty_hosted_zones", self.empty_hosted_zones),
        ]

    def findings(self) -> List[Finding]:
        """Return every finding, bucket by bucket."""

        return [finding for _, findings in self.buckets() for finding in findings]


__all__ = [
    "Address",
    "AddressAttachment",
    "CostComparison",
    "CostPeriod",
    "CostTrend",
    "Finding",
    "HostedZone",
    "HostedZoneWaste",
    "Image",
    "ImageSnapshot",
    "ImageWaste",
    "Instance",
    "LoadBalancer",
    "ReservedInstance",
    "ReservedInstanceExpiry",
    "ServiceCost",
    "Snapshot",
    "SnapshotWaste",
    "StoppedInstance",
    "Subject",
    "TargetGroup",
    "Volume",
    "WasteReport",
]
