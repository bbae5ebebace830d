"""Shared fixtures for broadcaster tests."""

import pytest
from kubernetes.client import V1Node  # type: ignore[import-untyped]

from capacity_broadcaster.config import BroadcasterConfig
from tests.factories import FOREIGN_CLUSTER_ID, HOME_CLUSTER_ID, make_node


@pytest.fixture
def config() -> BroadcasterConfig:
    """Configuration with short timings so loops never block a test."""
    return BroadcasterConfig(
        home_cluster_id=HOME_CLUSTER_ID,
        peering_request_name=FOREIGN_CLUSTER_ID,
        service_account_name="broadcaster",
        resource_sharing_percentage=50,
        broadcast_interval_seconds=0.01,
        retry_backoff_seconds=0.01,
        connect_attempts=3,
        connect_backoff_seconds=0,
    )


@pytest.fixture
def physical_node() -> V1Node:
    return make_node(
        "worker-1",
        allocatable={"cpu": "4", "memory": "8Gi"},
        labels={"topology.kubernetes.io/region": "eu-west"},
        images=[("nginx:1.25", 70_000_000)],
    )


@pytest.fixture
def virtual_node() -> V1Node:
    return make_node(
        "liqo-remote",
        allocatable={"cpu": "2", "memory": "4Gi"},
        virtual=True,
    )
