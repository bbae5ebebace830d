"""Assembles an Advertisement from accounting results."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

from capacity_broadcaster.domains.advertisement.models import Advertisement
from capacity_broadcaster.domains.resources.models import ContainerImage, ResourceEnvelope
from capacity_broadcaster.models.common import ResourceMetadata, SecretReference
from capacity_broadcaster.utils.labels import ResourceNames
from capacity_broadcaster.utils.quantity import ResourceList, to_resource_list

ADVERTISEMENT_TTL = timedelta(minutes=30)


def build_neighbors(virtual_nodes: Iterable[Any]) -> dict[str, ResourceList]:
    """Map every virtual node name to its allocatable resources."""
    neighbors: dict[str, ResourceList] = {}
    for node in virtual_nodes:
        allocatable = node.status.allocatable if node.status is not None else None
        neighbors[node.metadata.name] = to_resource_list(allocatable)
    return neighbors


def build_advertisement(
    home_cluster_id: str,
    envelope: ResourceEnvelope,
    images: Sequence[ContainerImage],
    labels: Mapping[str, str],
    prices: Mapping[str, float],
    neighbors: Mapping[str, ResourceList],
    kubeconfig_ref: SecretReference,
    now: datetime | None = None,
    ttl: timedelta = ADVERTISEMENT_TTL,
) -> Advertisement:
    """Build the Advertisement of a home cluster. No I/O is performed."""
    now = now or datetime.now(timezone.utc)
    return Advertisement(
        metadata=ResourceMetadata(name=ResourceNames.advertisement(home_cluster_id)),
        cluster_id=home_cluster_id,
        images=list(images),
        limits=dict(envelope.limits),
        availability=dict(envelope.availability),
        labels=dict(labels),
        neighbors={name: dict(resources) for name, resources in neighbors.items()},
        prices=dict(prices),
        kubeconfig_ref=kubeconfig_ref,
        timestamp=now,
        time_to_live=now + ttl,
    )
