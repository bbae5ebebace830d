"""Builds the home and foreign cluster clients with bounded retries."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

import yaml

from capacity_broadcaster.clients.base import K8sClient
from capacity_broadcaster.config import BroadcasterConfig
from capacity_broadcaster.domains.peering.models import SyncTarget
from capacity_broadcaster.utils.errors import StartupError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[dict[str, Any], str], K8sClient]


class ClientBootstrapper:
    """Creates API clients, retrying a fixed number of times with a pause in between.

    Exhausting the attempts is Startup-Fatal. A pending pause is cut short
    when ``stop_event`` is set, which also ends the retries.
    """

    def __init__(
        self,
        config: BroadcasterConfig,
        stop_event: threading.Event | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._stop_event = stop_event or threading.Event()
        self._client_factory = client_factory or K8sClient.from_kubeconfig_dict

    def connect_local(self) -> K8sClient:
        """Connect to the home cluster.

        Raises:
            StartupError: If the client cannot be created.
        """
        try:
            k8s = K8sClient.from_kubeconfig_path(
                self._config.local_kubeconfig_path, cluster_name=self._config.home_cluster_id
            )
            k8s.connect()
        except Exception as e:
            logger.error(
                f"Unable to create client to local cluster {self._config.home_cluster_id}: {e}"
            )
            raise StartupError(f"Cannot connect to the local cluster: {e}") from e
        return k8s

    def connect_remote(self, kubeconfig: str, foreign_cluster_id: str) -> SyncTarget:
        """Connect to the foreign cluster using the bootstrap kubeconfig.

        Raises:
            StartupError: If the kubeconfig is invalid, all attempts fail,
                or the stop event is set while waiting.
        """
        try:
            kubeconfig_dict = yaml.safe_load(kubeconfig)
        except yaml.YAMLError as e:
            raise StartupError(
                f"Kubeconfig for foreign cluster {foreign_cluster_id} is not valid YAML: {e}"
            ) from e
        if not isinstance(kubeconfig_dict, dict):
            raise StartupError(f"Kubeconfig for foreign cluster {foreign_cluster_id} is empty")

        attempts = self._config.connect_attempts
        for attempt in range(1, attempts + 1):
            try:
                remote = self._client_factory(kubeconfig_dict, foreign_cluster_id)
                remote.connect()
            except Exception as e:
                logger.error(
                    f"Unable to create client to remote cluster {foreign_cluster_id} "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                if attempt == attempts:
                    break
                logger.info(f"Retrying in {self._config.connect_backoff_seconds}s")
                if self._stop_event.wait(self._config.connect_backoff_seconds):
                    raise StartupError(
                        f"Stopped while connecting to remote cluster {foreign_cluster_id}"
                    ) from e
                continue

            logger.info(f"Connected to remote cluster {foreign_cluster_id}")
            return SyncTarget(remote=remote, foreign_cluster_id=foreign_cluster_id)

        raise StartupError(
            f"Failed to create client to remote cluster {foreign_cluster_id} "
            f"after {attempts} attempts"
        )
