"""Background watch over the Advertisement published on the foreign cluster."""

from __future__ import annotations

import logging
import threading
from typing import Any

from capacity_broadcaster.clients.base import K8sClient
from capacity_broadcaster.domains.advertisement.crds import AdvertisementCRDs
from capacity_broadcaster.domains.peering.client import PeeringClient

logger = logging.getLogger(__name__)


class AdvertisementWatcher:
    """Mirrors the status the foreign cluster sets on our Advertisement.

    Each change of ``status.advertisementStatus`` is copied to the local
    PeeringRequest. The watch is restarted when the server closes it and
    ends once ``stop_event`` is set.
    """

    def __init__(
        self,
        remote: K8sClient,
        peering: PeeringClient,
        advertisement_name: str,
        peering_request_name: str,
        stop_event: threading.Event,
        timeout_seconds: int = 300,
        retry_seconds: float = 60,
    ) -> None:
        self._remote = remote
        self._peering = peering
        self._advertisement_name = advertisement_name
        self._peering_request_name = peering_request_name
        self._stop_event = stop_event
        self._timeout_seconds = timeout_seconds
        self._retry_seconds = retry_seconds
        self._last_status: str | None = None

    @property
    def last_status(self) -> str | None:
        return self._last_status

    def run(self) -> None:
        """Watch until the stop event is set."""
        logger.info(
            f"Watching Advertisement {self._advertisement_name} "
            f"on remote cluster {self._remote.cluster_name}"
        )
        while not self._stop_event.is_set():
            try:
                for event_type, obj in self._remote.watch(
                    AdvertisementCRDs.ADVERTISEMENT,
                    self._advertisement_name,
                    timeout=self._timeout_seconds,
                ):
                    self.handle_event(event_type, obj)
                    if self._stop_event.is_set():
                        break
            except Exception as e:
                logger.error(
                    f"Watch on Advertisement {self._advertisement_name} "
                    f"on remote cluster {self._remote.cluster_name} failed: {e}"
                )
                self._stop_event.wait(self._retry_seconds)
        logger.info(f"Stopped watching Advertisement {self._advertisement_name}")

    def handle_event(self, event_type: str, obj: dict[str, Any]) -> None:
        """Process one watch event."""
        if event_type == "DELETED":
            logger.info(
                f"Advertisement {self._advertisement_name} was deleted "
                f"on remote cluster {self._remote.cluster_name}"
            )
            self._last_status = None
            return

        status = (obj.get("status") or {}).get("advertisementStatus")
        if not status or status == self._last_status:
            return
        try:
            self._peering.update_advertisement_status(self._peering_request_name, status)
        except Exception as e:
            logger.error(
                f"Unable to update PeeringRequest {self._peering_request_name} "
                f"with advertisement status {status}: {e}"
            )
            return
        self._last_status = status
