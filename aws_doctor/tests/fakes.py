"""Table-driven stand-ins for boto3 clients used across the test-suite."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Union

from botocore.exceptions import ClientError, OperationNotPageableError

from aws_doctor.clients import AwsClients

NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

Pages = Union[List[dict], Callable[..., List[dict]]]

NOT_PAGEABLE = frozenset(
    {"describe_addresses", "describe_reserved_instances", "get_caller_identity", "get_cost_and_usage"}
)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def client_error(code: str, operation: str = "DescribeVolumes") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class FakePaginator:
    def __init__(self, client: "FakeClient", method: str) -> None:
        self._client = client
        self._method = method

    def paginate(self, **kwargs) -> Iterator[dict]:
        for page in self._client.respond(self._method, kwargs):
            self._client.pages_served += 1
            yield page


class FakeClient:
    """Serves pre-canned pages per API method and records every call."""

    def __init__(
        self,
        pages: Optional[Dict[str, Pages]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.pages: Dict[str, Pages] = dict(pages or {})
        self.errors: Dict[str, Exception] = dict(errors or {})
        self.calls: List[tuple] = []
        self.pages_served = 0
        self._lock = threading.Lock()

    def respond(self, method: str, kwargs: dict) -> List[dict]:
        with self._lock:
            self.calls.append((method, kwargs))
        if method in self.errors:
            raise self.errors[method]
        pages = self.pages.get(method, [{}])
        if callable(pages):
            return pages(**kwargs)
        return pages

    def called(self, method: str) -> List[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def get_paginator(self, method: str) -> FakePaginator:
        if method in NOT_PAGEABLE:
            raise OperationNotPageableError(operation_name=method)
        return FakePaginator(self, method)

    def _single(self, method: str, kwargs: dict) -> dict:
        pages = self.respond(method, kwargs)
        return pages[0] if pages else {}

    def describe_addresses(self, **kwargs) -> dict:
        return self._single("describe_addresses", kwargs)

    def describe_reserved_instances(self, **kwargs) -> dict:
        return self._single("describe_reserved_instances", kwargs)

    def get_caller_identity(self, **kwargs) -> dict:
        return self._single("get_caller_identity", kwargs)

    def get_cost_and_usage(self, **kwargs) -> dict:
        return self._single("get_cost_and_usage", kwargs)


def _chunks(items: Sequence[dict], size: int) -> List[List[dict]]:
    if not items:
        return [[]]
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _filter_values(kwargs: dict, name: str) -> Optional[set]:
    for entry in kwargs.get("Filters", []):
        if entry["Name"] == name:
            return set(entry["Values"])
    return None


def ec2_client(
    *,
    addresses: Iterable[dict] = (),
    volumes: Iterable[dict] = (),
    instances: Iterable[dict] = (),
    reserved_instances: Iterable[dict] = (),
    images: Iterable[dict] = (),
    snapshots: Iterable[dict] = (),
    network_interfaces: Iterable[dict] = (),
    page_size: int = 2,
    errors: Optional[Dict[str, Exception]] = None,
) -> FakeClient:
    """Build an EC2 fake that honours the filters the fetchers send."""

    addresses, volumes, instances = list(addresses), list(volumes), list(instances)
    reserved_instances, images, snapshots = list(reserved_instances), list(images), list(snapshots)
    network_interfaces = list(network_interfaces)

    def describe_volumes(**kwargs) -> List[dict]:
        selected = volumes
        statuses = _filter_values(kwargs, "status")
        if statuses is not None:
            selected = [v for v in selected if v["State"] in statuses]
        if "VolumeIds" in kwargs:
            selected = [v for v in selected if v["VolumeId"] in kwargs["VolumeIds"]]
        return [{"Volumes": chunk} for chunk in _chunks(selected, page_size)]

    def describe_instances(**kwargs) -> List[dict]:
        selected = instances
        states = _filter_values(kwargs, "instance-state-name")
        if states is not None:
            selected = [i for i in selected if i["State"]["Name"] in states]
        return [
            {"Reservations": [{"Instances": chunk}] if chunk else []}
            for chunk in _chunks(selected, page_size)
        ]

    def describe_reserved_instances(**kwargs) -> List[dict]:
        selected = reserved_instances
        states = _filter_values(kwargs, "state")
        if states is not None:
            selected = [ri for ri in selected if ri["State"] in states]
        return [{"ReservedInstances": selected}]

    def describe_network_interfaces(**kwargs) -> List[dict]:
        wanted = kwargs.get("NetworkInterfaceIds", [])
        return [{"NetworkInterfaces": [ni for ni in network_interfaces if ni["NetworkInterfaceId"] in wanted]}]

    return FakeClient(
        pages={
            "describe_addresses": [{"Addresses": addresses}],
            "describe_volumes": describe_volumes,
            "describe_instances": describe_instances,
            "describe_reserved_instances": describe_reserved_instances,
            "describe_images": [{"Images": chunk} for chunk in _chunks(images, page_size)],
            "describe_snapshots": [{"Snapshots": chunk} for chunk in _chunks(snapshots, page_size)],
            "describe_network_interfaces": describe_network_interfaces,
        },
        errors=errors,
    )


def elbv2_client(
    *, load_balancers: Iterable[dict] = (), target_groups: Iterable[dict] = (), page_size: int = 2
) -> FakeClient:
    return FakeClient(
        pages={
            "describe_load_balancers": [
                {"LoadBalancers": chunk} for chunk in _chunks(list(load_balancers), page_size)
            ],
            "describe_target_groups": [
                {"TargetGroups": chunk} for chunk in _chunks(list(target_groups), page_size)
            ],
        }
    )


def route53_client(*, hosted_zones: Iterable[dict] = ()) -> FakeClient:
    return FakeClient(pages={"list_hosted_zones": [{"HostedZones": list(hosted_zones)}]})


def sts_client(account_id: str = "123456789012") -> FakeClient:
    return FakeClient(pages={"get_caller_identity": [{"Account": account_id}]})


def make_clients(
    *,
    ec2: Optional[FakeClient] = None,
    elbv2: Optional[FakeClient] = None,
    route53: Optional[FakeClient] = None,
    sts: Optional[FakeClient] = None,
    ce: Optional[FakeClient] = None,
) -> AwsClients:
    return AwsClients(
        ec2=ec2 or ec2_client(),
        elbv2=elbv2 or elbv2_client(),
        route53=route53 or route53_client(),
        sts=sts or sts_client(),
        ce=ce or FakeClient(),
    )


def address(allocation_id: str, public_ip: str = "1.2.3.4", **extra) -> dict:
    return {"AllocationId": allocation_id, "PublicIp": public_ip, **extra}


def volume(volume_id: str, size: int = 8, state: str = "in-use", instance_id: Optional[str] = None) -> dict:
    attachments = [{"InstanceId": instance_id, "VolumeId": volume_id}] if instance_id else []
    return {"VolumeId": volume_id, "Size": size, "State": state, "Attachments": attachments}


def instance(
    instance_id: str,
    state: str = "running",
    image_id: Optional[str] = "ami-base",
    reason: str = "",
    volume_ids: Sequence[str] = (),
) -> dict:
    item = {
        "InstanceId": instance_id,
        "State": {"Name": state},
        "StateTransitionReason": reason,
        "BlockDeviceMappings": [
            {"DeviceName": f"/dev/sd{chr(97 + idx)}", "Ebs": {"VolumeId": volume_id}}
            for idx, volume_id in enumerate(volume_ids)
        ],
    }
    if image_id:
        item["ImageId"] = image_id
    return item


def stop_reason(stopped_at: datetime, zone: str = "UTC") -> str:
    return f"User initiated ({stopped_at.strftime('%Y-%m-%d %H:%M:%S')} {zone})"


def image(image_id: str, created: datetime, snapshots: Sequence[tuple] = (), name: str = "") -> dict:
    return {
        "ImageId": image_id,
        "Name": name or image_id,
        "CreationDate": created.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
        "Public": False,
        "BlockDeviceMappings": [
            {"DeviceName": "/dev/xvda", "Ebs": {"SnapshotId": snapshot_id, "VolumeSize": size}}
            for snapshot_id, size in snapshots
        ],
    }


def snapshot(snapshot_id: str, volume_id: str, started: datetime, size: int = 10) -> dict:
    return {
        "SnapshotId": snapshot_id,
        "VolumeId": volume_id,
        "StartTime": started,
        "VolumeSize": size,
        "Description": f"backup of {volume_id}",
    }


def reserved_instance(ri_id: str, state: str, end: Optional[datetime]) -> dict:
    item = {"ReservedInstancesId": ri_id, "InstanceType": "m5.large", "State": state}
    if end is not None:
        item["End"] = end
    return item


def load_balancer(name: str, lb_type: str = "application") -> dict:
    return {
        "LoadBalancerArn": f"arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/{name}",
        "LoadBalancerName": name,
        "Type": lb_type,
    }


def target_group(name: str, *lb_arns: str) -> dict:
    return {
        "TargetGroupArn": f"arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/{name}",
        "LoadBalancerArns": list(lb_arns),
    }


def hosted_zone(zone_id: str, count: int, name: str = "example.com.", private: bool = False) -> dict:
    return {
        "Id": f"/hostedzone/{zone_id}",
        "Name": name,
        "ResourceRecordSetCount": count,
        "Config": {"PrivateZone": private, "Comment": ""},
    }
