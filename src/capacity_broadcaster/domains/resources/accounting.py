"""Resource accounting over the home cluster's nodes and pods."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from capacity_broadcaster.domains.resources.models import (
    ContainerImage,
    NodeSet,
    ResourceEnvelope,
    ResourceSnapshot,
)
from capacity_broadcaster.utils.labels import PeeringLabels
from capacity_broadcaster.utils.quantity import (
    ZERO,
    ResourceList,
    add_resource_lists,
    max_resource_lists,
    to_resource_list,
)

if TYPE_CHECKING:
    from capacity_broadcaster.clients.base import K8sClient

logger = logging.getLogger(__name__)

# Terminated pods no longer hold any resources
NON_TERMINATED_PODS = "status.phase!=Succeeded,status.phase!=Failed"


def partition_nodes(nodes: Iterable[Any]) -> NodeSet:
    """Split nodes into physical and virtual ones using the node type label."""
    node_set = NodeSet()
    for node in nodes:
        if PeeringLabels.is_virtual_node(node.metadata.labels):
            node_set.virtual.append(node)
        else:
            node_set.physical.append(node)
    return node_set


def is_accountable_pod(pod: Any, virtual_node_names: set[str]) -> bool:
    """Check whether a pod consumes capacity of this cluster's physical nodes.

    Pods running on a virtual node, or marked as already offloaded, represent
    capacity exported elsewhere and must not be counted twice.
    """
    node_name = getattr(pod.spec, "node_name", None)
    if node_name and node_name in virtual_node_names:
        return False
    return not PeeringLabels.is_outgoing_pod(pod.metadata.labels)


def filter_accountable_pods(pods: Iterable[Any], virtual_node_names: set[str]) -> list[Any]:
    """Drop pods that must not count towards local consumption."""
    return [pod for pod in pods if is_accountable_pod(pod, virtual_node_names)]


def _container_resources(container: Any) -> tuple[ResourceList, ResourceList]:
    resources = getattr(container, "resources", None)
    if resources is None:
        return {}, {}
    return to_resource_list(resources.requests), to_resource_list(resources.limits)


def pod_requests_and_limits(pod: Any) -> tuple[ResourceList, ResourceList]:
    """Compute the effective requests and limits of a single pod.

    Containers are summed; init containers run one at a time, so each class
    is raised to the largest init container value. Pod overhead is added to
    requests, and to limits only for classes that are already limited.
    """
    requests: ResourceList = {}
    limits: ResourceList = {}
    for container in pod.spec.containers or []:
        container_requests, container_limits = _container_resources(container)
        add_resource_lists(requests, container_requests)
        add_resource_lists(limits, container_limits)

    for container in pod.spec.init_containers or []:
        container_requests, container_limits = _container_resources(container)
        max_resource_lists(requests, container_requests)
        max_resource_lists(limits, container_limits)

    overhead = to_resource_list(getattr(pod.spec, "overhead", None))
    if overhead:
        add_resource_lists(requests, overhead)
        add_resource_lists(limits, {k: v for k, v in overhead.items() if k in limits})

    return requests, limits


def sum_pod_resources(pods: Iterable[Any]) -> tuple[ResourceList, ResourceList]:
    """Sum requests and limits over a set of pods."""
    requests: ResourceList = {}
    limits: ResourceList = {}
    for pod in pods:
        pod_requests, pod_limits = pod_requests_and_limits(pod)
        add_resource_lists(requests, pod_requests)
        add_resource_lists(limits, pod_limits)
    return requests, limits


def sum_allocatable(nodes: Iterable[Any]) -> ResourceList:
    """Sum the allocatable capacity of a set of nodes."""
    allocatable: ResourceList = {}
    for node in nodes:
        status = node.status
        if status is not None:
            add_resource_lists(allocatable, to_resource_list(status.allocatable))
    return allocatable


def compute_availability(
    allocatable: ResourceList,
    consumed: ResourceList,
    sharing_percentage: int,
) -> ResourceList:
    """Compute the shareable capacity per resource class.

    ``allocatable * sharing_percentage / 100 - consumed``, never below zero.
    Classes consumed but not allocatable on any physical node are not exported.
    """
    if not 0 <= sharing_percentage <= 100:
        raise ValueError(f"Sharing percentage must be within 0..100, got {sharing_percentage}")
    share = Decimal(sharing_percentage) / Decimal(100)
    availability: ResourceList = {}
    for name, value in allocatable.items():
        available = value * share - consumed.get(name, ZERO)
        availability[name] = max(available, ZERO)
    return availability


def collect_images(physical_nodes: Sequence[Any]) -> list[ContainerImage]:
    """Collect the images of every physical node, deduplicated by reference.

    Order follows node order, then the order reported by each node.
    """
    seen: set[str] = set()
    images: list[ContainerImage] = []
    for node in physical_nodes:
        status = node.status
        for image in (status.images if status is not None else None) or []:
            names = image.names or []
            if not names or names[0] in seen:
                continue
            seen.add(names[0])
            images.append(ContainerImage(reference=names[0], size=image.size_bytes or 0))
    return images


def account(
    nodes: Sequence[Any], pods: Sequence[Any], sharing_percentage: int
) -> ResourceSnapshot:
    """Derive the exportable envelope and image inventory from a cluster snapshot."""
    node_set = partition_nodes(nodes)
    accountable = filter_accountable_pods(pods, node_set.virtual_names)
    requests, limits = sum_pod_resources(accountable)
    allocatable = sum_allocatable(node_set.physical)
    availability = compute_availability(allocatable, requests, sharing_percentage)
    return ResourceSnapshot(
        nodes=node_set,
        envelope=ResourceEnvelope(availability=availability, limits=limits),
        images=collect_images(node_set.physical),
    )


class ResourceAccountant:
    """Reads nodes and pods from the home cluster and derives a ResourceSnapshot."""

    def __init__(self, k8s: K8sClient) -> None:
        """Initialize with the home cluster's K8sClient."""
        self._k8s = k8s

    def snapshot(self, sharing_percentage: int) -> ResourceSnapshot:
        """Take a fresh snapshot of the cluster.

        Raises:
            ListFailedError: If nodes or pods cannot be listed.
        """
        nodes = self._k8s.list_nodes()
        pods = self._k8s.list_pods(field_selector=NON_TERMINATED_PODS)
        snapshot = account(nodes, pods, sharing_percentage)
        logger.debug(
            f"Accounted {len(snapshot.nodes.physical)} physical and "
            f"{len(snapshot.nodes.virtual)} virtual nodes, {len(pods)} pods"
        )
        return snapshot
