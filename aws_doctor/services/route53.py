"""Inventory fetcher for Amazon Route 53 hosted zones."""
from __future__ import annotations

from typing import List

from ..clients import AwsClients
from ..concurrency import CancelToken
from ..models import HostedZone
from ..utils import safe_paginate
from . import register_inventory

HOSTED_ZONE_PREFIX = "/hostedzone/"


@register_inventory("hosted_zones")
def fetch_hosted_zones(clients: AwsClients, cancel: CancelToken) -> List[HostedZone]:
    """Return every hosted zone with its ``/hostedzone/`` ID prefix removed."""

    zones: List[HostedZone] = []
    for zone in safe_paginate(clients.route53, "list_hosted_zones", "HostedZones", cancel=cancel):
        zone_id = zone["Id"]
        if zone_id.startswith(HOSTED_ZONE_PREFIX):
            zone_id = zone_id[len(HOSTED_ZONE_PREFIX) :]
        config = zone.get("Config", {})
        zones.append(
            HostedZone(
                zone_id=zone_id,
                name=zone.get("Name", ""),
                record_set_count=int(zone.get("ResourceRecordSetCount") or 0),
                private=bool(config.get("PrivateZone", False)),
                comment=config.get("Comment") or "",
            )
        )
    return zones


__all__ = ["fetch_hosted_zones"]
