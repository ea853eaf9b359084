"""Inventory fetchers for Elastic Load Balancing (v2)."""
from __future__ import annotations

from typing import List

from ..clients import AwsClients
from ..concurrency import CancelToken
from ..models import LoadBalancer, TargetGroup
from ..utils import safe_paginate
from . import register_inventory


@register_inventory("load_balancers")
def fetch_load_balancers(clients: AwsClients, cancel: CancelToken) -> List[LoadBalancer]:
    """Return every application, network and gateway load balancer."""

    return [
        LoadBalancer(
            arn=item["LoadBalancerArn"],
            name=item.get("LoadBalancerName", ""),
            type=item.get("Type", ""),
        )
        for item in safe_paginate(
            clients.elbv2, "describe_load_balancers", "LoadBalancers", cancel=cancel
        )
    ]


@register_inventory("target_groups")
def fetch_target_groups(clients: AwsClients, cancel: CancelToken) -> List[TargetGroup]:
    return [
        TargetGroup(
            arn=item["TargetGroupArn"],
            load_balancer_arns=tuple(item.get("LoadBalancerArns", [])),
        )
        for item in safe_paginate(clients.elbv2, "describe_target_groups", "TargetGroups", cancel=cancel)
    ]


__all__ = ["fetch_load_balancers", "fetch_target_groups"]
