"""Inventory fetchers for Amazon EC2 resources."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from ..clients import AwsClients
from ..concurrency import CancelToken
from ..errors import MissingResourceError
from ..models import (
    Address,
    AddressAttachment,
    Image,
    ImageSnapshot,
    Instance,
    ReservedInstance,
    Snapshot,
    Volume,
)
from ..utils import batch_iterable, safe_paginate
from . import register_inventory


ID_BATCH_SIZE = 200  # describe_volumes and describe_network_interfaces cap the ID list

RESERVED_INSTANCE_STATES = ("active", "retired")

# Substrings of a network interface description mapped to the resource that
# owns an interface of the generic ``interface`` type. First match wins.
_DESCRIPTION_RESOURCE_TYPES = (
    (("elb app/",), "load_balancer"),
    (("elb net/",), "network_load_balancer"),
    (("nat gateway", "nat-gateway"), "nat_gateway"),
    (("globalaccelerator",), "global_accelerator_managed"),
    (("vpc endpoint", "vpce-"), "vpc_endpoint"),
    (("transit gateway", "tgw-"), "transit_gateway"),
    (("aws lambda",), "lambda"),
    (("api gateway",), "api_gateway_managed"),
    (("iot rules",), "iot_rules_managed"),
    (("gateway load balancer",), "gateway_load_balancer"),
    (("redshift",), "redshift_cluster"),
    (("rds",), "rds_database"),
    (("directory service",), "directory_service"),
    (("fsx",), "fsx"),
)


def _address_from_api(item: dict) -> Address:
    return Address(
        allocation_id=item["AllocationId"],
        public_ip=item.get("PublicIp"),
        association_id=item.get("AssociationId"),
        instance_id=item.get("InstanceId"),
        network_interface_id=item.get("NetworkInterfaceId"),
    )


def _volume_from_api(item: dict) -> Volume:
    attached = tuple(
        attachment["InstanceId"]
        for attachment in item.get("Attachments", [])
        if attachment.get("InstanceId")
    )
    return Volume(
        volume_id=item["VolumeId"],
        size_gib=int(item.get("Size") or 0),
        status=item.get("State", ""),
        attached_instance_ids=attached,
    )


def _instance_from_api(item: dict) -> Instance:
    volume_ids = []
    for mapping in item.get("BlockDeviceMappings", []):
        ebs = mapping.get("Ebs")
        if not ebs:
            continue
        volume_id = ebs.get("VolumeId")
        if volume_id:
            volume_ids.append(volume_id)
    return Instance(
        instance_id=item["InstanceId"],
        state=item.get("State", {}).get("Name", ""),
        image_id=item.get("ImageId"),
        state_transition_reason=item.get("StateTransitionReason") or "",
        volume_ids=tuple(volume_ids),
    )


def _image_from_api(item: dict) -> Image:
    snapshots = []
    for mapping in item.get("BlockDeviceMappings", []):
        ebs = mapping.get("Ebs")
        if not ebs or not ebs.get("SnapshotId"):
            continue
        size = ebs.get("VolumeSize")
        snapshots.append(
            ImageSnapshot(
                snapshot_id=ebs["SnapshotId"],
                volume_size_gib=int(size) if size is not None else None,
            )
        )
    return Image(
        image_id=item["ImageId"],
        name=item.get("Name") or "",
        description=item.get("Description") or "",
        creation_date=item.get("CreationDate"),
        public=bool(item.get("Public", False)),
        snapshots=tuple(snapshots),
    )


def _snapshot_from_api(item: dict) -> Snapshot:
    return Snapshot(
        snapshot_id=item["SnapshotId"],
        volume_id=item.get("VolumeId") or "",
        start_time=item.get("StartTime"),
        size_gib=int(item.get("VolumeSize") or 0),
        description=item.get("Description") or "",
    )


def _reserved_instance_from_api(item: dict) -> ReservedInstance:
    return ReservedInstance(
        reserved_instance_id=item["ReservedInstancesId"],
        instance_type=item.get("InstanceType", ""),
        state=item.get("State", ""),
        end=item.get("End"),
    )


@register_inventory("addresses")
def fetch_addresses(clients: AwsClients, cancel: CancelToken) -> List[Address]:
    """Return every Elastic IP address of the region."""

    return [
        _address_from_api(item)
        for item in safe_paginate(clients.ec2, "describe_addresses", "Addresses", cancel=cancel)
    ]


def fetch_unattached_addresses(clients: AwsClients, cancel: CancelToken) -> List[Address]:
    return [address for address in fetch_addresses(clients, cancel) if not address.is_associated]


def resolve_address_attachments(
    clients: AwsClients, cancel: CancelToken, addresses: Iterable[Address]
) -> List[AddressAttachment]:
    """Describe which kind of resource each associated address is attached to.

    Addresses associated with a network interface rather than an instance are
    resolved through ``describe_network_interfaces``. An interface that cannot
    be found raises :class:`~aws_doctor.errors.MissingResourceError`.
    """

    associated = [address for address in addresses if address.is_associated]
    interface_ids = list(
        dict.fromkeys(
            address.network_interface_id
            for address in associated
            if not address.instance_id and address.network_interface_id
        )
    )
    interfaces = _describe_network_interfaces(clients, cancel, interface_ids)

    attachments = []
    for address in associated:
        resource_type = "ec2"
        description = None
        if not address.instance_id:
            if not address.network_interface_id:
                raise MissingResourceError("network interface", address.allocation_id)
            interface = interfaces.get(address.network_interface_id)
            if interface is None:
                raise MissingResourceError("network interface", address.network_interface_id)
            description = interface.get("Description") or ""
            resource_type = interface.get("InterfaceType") or "interface"
            if resource_type == "interface":
                resource_type = resource_type_from_description(description)
        attachments.append(
            AddressAttachment(
                public_ip=address.public_ip or "",
                allocation_id=address.allocation_id,
                resource_type=resource_type,
                interface_description=description,
            )
        )
    return attachments


def _describe_network_interfaces(
    clients: AwsClients, cancel: CancelToken, interface_ids: Sequence[str]
) -> Dict[str, dict]:
    interfaces: Dict[str, dict] = {}
    for batch in batch_iterable(interface_ids, ID_BATCH_SIZE):
        for interface in safe_paginate(
            clients.ec2,
            "describe_network_interfaces",
            "NetworkInterfaces",
            cancel=cancel,
            NetworkInterfaceIds=list(batch),
        ):
            interfaces[interface["NetworkInterfaceId"]] = interface
    return interfaces


def resource_type_from_description(description: str) -> str:
    """Guess the owner of a generic network interface from its description."""

    desc = description.lower()
    for needles, resource_type in _DESCRIPTION_RESOURCE_TYPES:
        if any(needle in desc for needle in needles):
            return resource_type
    return "interface"


@register_inventory("volumes")
def fetch_volumes(clients: AwsClients, cancel: CancelToken) -> List[Volume]:
    """Return every EBS volume of the region."""

    return [
        _volume_from_api(item)
        for item in safe_paginate(clients.ec2, "describe_volumes", "Volumes", cancel=cancel)
    ]


def fetch_available_volumes(clients: AwsClients, cancel: CancelToken) -> List[Volume]:
    return [
        _volume_from_api(item)
        for item in safe_paginate(
            clients.ec2,
            "describe_volumes",
            "Volumes",
            cancel=cancel,
            Filters=[{"Name": "status", "Values": ["available"]}],
        )
    ]


def fetch_volumes_by_id(
    clients: AwsClients, cancel: CancelToken, volume_ids: Sequence[str]
) -> List[Volume]:
    """Return the volumes listed in ``volume_ids``, in API order per batch."""

    volumes: List[Volume] = []
    unique_ids = list(dict.fromkeys(volume_ids))
    for batch in batch_iterable(unique_ids, ID_BATCH_SIZE):
        volumes.extend(
            _volume_from_api(item)
            for item in safe_paginate(
                clients.ec2, "describe_volumes", "Volumes", cancel=cancel, VolumeIds=list(batch)
            )
        )
    return volumes


def _fetch_instances(clients: AwsClients, cancel: CancelToken, **kwargs) -> List[Instance]:
    instances: List[Instance] = []
    for reservation in safe_paginate(
        clients.ec2, "describe_instances", "Reservations", cancel=cancel, **kwargs
    ):
        instances.extend(_instance_from_api(item) for item in reservation.get("Instances", []))
    return instances


@register_inventory("instances")
def fetch_instances(clients: AwsClients, cancel: CancelToken) -> List[Instance]:
    """Return every instance of the region, whatever its state."""

    return _fetch_instances(clients, cancel)


def fetch_stopped_instances(clients: AwsClients, cancel: CancelToken) -> List[Instance]:
    return _fetch_instances(
        clients, cancel, Filters=[{"Name": "instance-state-name", "Values": ["stopped"]}]
    )


@register_inventory("reserved_instances")
def fetch_reserved_instances(
    clients: AwsClients,
    cancel: CancelToken,
    states: Optional[Sequence[str]] = RESERVED_INSTANCE_STATES,
) -> List[ReservedInstance]:
    """Return reserved instances, by default only those active or retired."""

    kwargs = {}
    if states:
        kwargs["Filters"] = [{"Name": "state", "Values": list(states)}]
    return [
        _reserved_instance_from_api(item)
        for item in safe_paginate(
            clients.ec2, "describe_reserved_instances", "ReservedInstances", cancel=cancel, **kwargs
        )
    ]


@register_inventory("images")
def fetch_owned_images(clients: AwsClients, cancel: CancelToken) -> List[Image]:
    """Return the AMIs owned by the caller."""

    return [
        _image_from_api(item)
        for item in safe_paginate(clients.ec2, "describe_images", "Images", cancel=cancel, Owners=["self"])
    ]


@register_inventory("snapshots")
def fetch_owned_snapshots(clients: AwsClients, cancel: CancelToken) -> List[Snapshot]:
    """Return the EBS snapshots owned by the caller."""

    return [
        _snapshot_from_api(item)
        for item in safe_paginate(
            clients.ec2, "describe_snapshots", "Snapshots", cancel=cancel, OwnerIds=["self"]
        )
    ]


__all__ = [
    "fetch_addresses",
    "fetch_available_volumes",
    "fetch_instances",
    "fetch_owned_images",
    "fetch_owned_snapshots",
    "fetch_reserved_instances",
    "fetch_stopped_instances",
    "fetch_unattached_addresses",
    "fetch_volumes",
    "fetch_volumes_by_id",
    "resolve_address_attachments",
    "resource_type_from_description",
]
