"""Peering domain - the foreign cluster relationship and its credentials."""

from capacity_broadcaster.domains.peering.client import PeeringClient
from capacity_broadcaster.domains.peering.models import (
    PeeringRequest,
    SharingConfig,
    SyncTarget,
)

__all__ = [
    "PeeringClient",
    "PeeringRequest",
    "SharingConfig",
    "SyncTarget",
]
