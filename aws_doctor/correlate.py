"""Indices joining inventories fetched in the same run."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Mapping

from .models import Image, Instance, TargetGroup, Volume


def volume_ids(volumes: Iterable[Volume]) -> FrozenSet[str]:
    """Every volume ID observed in the inventory."""

    return frozenset(volume.volume_id for volume in volumes)


def image_usage(instances: Iterable[Instance]) -> Mapping[str, int]:
    """Count of instances, in any state, launched from each image."""

    return Counter(instance.image_id for instance in instances if instance.image_id)


def snapshot_to_image(images: Iterable[Image]) -> Mapping[str, str]:
    """Map each snapshot to the first owned image whose block devices reference it."""

    index: Dict[str, str] = {}
    for image in images:
        for snapshot in image.snapshots:
            index.setdefault(snapshot.snapshot_id, image.image_id)
    return index


def referenced_load_balancers(target_groups: Iterable[TargetGroup]) -> FrozenSet[str]:
    """ARNs of every load balancer that routes to at least one target group."""

    return frozenset(arn for group in target_groups for arn in group.load_balancer_arns)


@dataclass(frozen=True)
class Correlation:
    """Read-only indices built once after every inventory has been fetched."""

    volume_exists: FrozenSet[str]
    image_usage: Mapping[str, int]
    snapshot_to_image: Mapping[str, str]
    lb_referenced: FrozenSet[str]

    @classmethod
    def build(
        cls,
        *,
        volumes: Iterable[Volume] = (),
        instances: Iterable[Instance] = (),
        images: Iterable[Image] = (),
        target_groups: Iterable[TargetGroup] = (),
    ) -> "Correlation":
        return cls(
            volume_exists=volume_ids(volumes),
            image_usage=image_usage(instances),
            snapshot_to_image=snapshot_to_image(images),
            lb_referenced=referenced_load_balancers(target_groups),
        )


__all__ = [
    "Correlation",
    "image_usage",
    "referenced_load_balancers",
    "snapshot_to_image",
    "volume_ids",
]
