"""Advertisement domain - building and publishing Advertisements to the foreign cluster."""

from capacity_broadcaster.domains.advertisement.builder import (
    build_advertisement,
    build_neighbors,
)
from capacity_broadcaster.domains.advertisement.client import AdvertisementSynchronizer
from capacity_broadcaster.domains.advertisement.models import Advertisement, CredentialSecret
from capacity_broadcaster.domains.advertisement.watcher import AdvertisementWatcher

__all__ = [
    "Advertisement",
    "AdvertisementSynchronizer",
    "AdvertisementWatcher",
    "CredentialSecret",
    "build_advertisement",
    "build_neighbors",
]
