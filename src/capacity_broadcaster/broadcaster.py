"""Control loop that periodically publishes the Advertisement to the foreign cluster."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from typing import Protocol, TypeVar

from capacity_broadcaster.clients.base import K8sClient
from capacity_broadcaster.config import BroadcasterConfig
from capacity_broadcaster.domains.advertisement.builder import (
    build_advertisement,
    build_neighbors,
)
from capacity_broadcaster.domains.advertisement.client import AdvertisementSynchronizer
from capacity_broadcaster.domains.advertisement.models import Advertisement, CredentialSecret
from capacity_broadcaster.domains.advertisement.watcher import AdvertisementWatcher
from capacity_broadcaster.domains.peering.bootstrap import ClientBootstrapper
from capacity_broadcaster.domains.peering.client import PeeringClient
from capacity_broadcaster.domains.peering.kubeconfig import create_kubeconfig
from capacity_broadcaster.domains.resources.accounting import ResourceAccountant
from capacity_broadcaster.domains.resources.labels import compute_labels
from capacity_broadcaster.domains.resources.prices import compute_prices, get_pricing_policy
from capacity_broadcaster.utils.errors import BroadcasterError, StartupError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class BroadcasterState(str, Enum):
    """Lifecycle of a broadcaster."""

    BOOTSTRAPPING = "bootstrapping"
    RUNNING = "running"
    TERMINATED = "terminated"


class Runnable(Protocol):
    def run(self) -> None: ...


WatcherFactory = Callable[[], Runnable]


class AdvertisementBroadcaster:
    """Publishes the home cluster's Advertisement to one foreign cluster.

    Every tick publishes the credential Secret, recomputes the resources
    and publishes the Advertisement. A failed tick is retried after the
    backoff, a successful one after the broadcast interval. The first
    successful tick also starts the remote watch, exactly once. On
    cancellation the Advertisement is retracted.

    Collaborators can be passed in explicitly; anything missing is built
    by ``bootstrap()``.
    """

    def __init__(
        self,
        config: BroadcasterConfig,
        *,
        local: K8sClient | None = None,
        peering: PeeringClient | None = None,
        synchronizer: AdvertisementSynchronizer | None = None,
        accountant: ResourceAccountant | None = None,
        credential: CredentialSecret | None = None,
        watcher_factory: WatcherFactory | None = None,
        bootstrapper: ClientBootstrapper | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._config = config
        self._stop_event = stop_event or threading.Event()
        self._local = local
        self._peering = peering
        self._synchronizer = synchronizer
        self._accountant = accountant
        self._credential = credential
        self._watcher_factory = watcher_factory
        self._bootstrapper = bootstrapper or ClientBootstrapper(config, self._stop_event)
        self._pricing = get_pricing_policy(config.pricing_policy)
        self._state = BroadcasterState.BOOTSTRAPPING

        self._watch_lock = threading.Lock()
        self._watch_started = False
        self._watch_thread: threading.Thread | None = None

    @property
    def state(self) -> BroadcasterState:
        return self._state

    @property
    def watch_started(self) -> bool:
        return self._watch_started

    @property
    def home_cluster_id(self) -> str:
        return self._config.home_cluster_id

    @property
    def foreign_cluster_id(self) -> str:
        if self._synchronizer is None:
            return ""
        return self._synchronizer.foreign_cluster_id

    def stop(self) -> None:
        """Request cooperative cancellation; honored at the next tick boundary."""
        logger.info(f"Stop requested for broadcaster of cluster {self.home_cluster_id}")
        self._stop_event.set()

    # -------------------------------------------------------------------------
    # Bootstrapping
    # -------------------------------------------------------------------------

    def bootstrap(self) -> None:
        """Connect to both clusters and publish the credential Secret once.

        Raises:
            StartupError: If any step fails.
        """
        try:
            self._bootstrap()
        except StartupError:
            self._state = BroadcasterState.TERMINATED
            raise
        except BroadcasterError as e:
            self._state = BroadcasterState.TERMINATED
            logger.error(f"Cluster {self.home_cluster_id}: bootstrap failed: {e}")
            raise StartupError(str(e)) from e
        self._state = BroadcasterState.RUNNING

    def _bootstrap(self) -> None:
        config = self._config
        if self._local is None:
            self._local = self._bootstrapper.connect_local()
        if self._peering is None:
            self._peering = PeeringClient(self._local)
        if self._accountant is None:
            self._accountant = ResourceAccountant(self._local)

        if self._synchronizer is None or self._credential is None:
            peering_request = self._peering.get_peering_request(config.peering_request_name)
            foreign_cluster_id = peering_request.foreign_cluster_id

            if self._synchronizer is None:
                kubeconfig = self._peering.get_bootstrap_kubeconfig(peering_request.kubeconfig_ref)
                target = self._bootstrapper.connect_remote(kubeconfig, foreign_cluster_id)
                self._synchronizer = AdvertisementSynchronizer(target, config.home_cluster_id)

            if self._credential is None:
                outgoing = create_kubeconfig(
                    self._local,
                    config.api_server,
                    config.service_account_name,
                    config.service_account_namespace,
                    context_namespace=peering_request.namespace,
                )
                self._credential = CredentialSecret.for_cluster(
                    config.home_cluster_id, peering_request.namespace, outgoing
                )

        try:
            self._synchronizer.publish_credential(self._credential)
        except Exception as e:
            raise StartupError(
                f"Unable to send Secret {self._credential.name} "
                f"to remote cluster {self.foreign_cluster_id}: {e}"
            ) from e
        logger.info(
            f"Broadcaster of cluster {self.home_cluster_id} ready to advertise "
            f"to remote cluster {self.foreign_cluster_id}"
        )

    # -------------------------------------------------------------------------
    # Control loop
    # -------------------------------------------------------------------------

    def run(self) -> None:
        """Bootstrap if needed, then broadcast until stopped.

        Raises:
            StartupError: If bootstrapping fails.
        """
        if self._state == BroadcasterState.BOOTSTRAPPING:
            self.bootstrap()
        if self._state != BroadcasterState.RUNNING:
            return

        try:
            while not self._stop_event.is_set():
                if self.tick():
                    delay = self._config.broadcast_interval_seconds
                else:
                    delay = self._config.retry_backoff_seconds
                    logger.info(f"Retrying broadcast in {delay}s")
                if self._wait(delay):
                    break
        finally:
            self._terminate()

    def tick(self) -> bool:
        """Run one broadcast cycle.

        Returns:
            True if the Advertisement was published.
        """
        synchronizer = self._require(self._synchronizer, "synchronizer")
        credential = self._require(self._credential, "credential")

        try:
            synchronizer.publish_credential(credential)
        except Exception as e:
            logger.error(
                f"Cluster {self.home_cluster_id}: unable to send Secret {credential.name} "
                f"to remote cluster {self.foreign_cluster_id}: {e}"
            )
            return False

        try:
            adv = self.build_advertisement()
            synchronizer.publish_advertisement(adv)
        except Exception as e:
            logger.error(
                f"Cluster {self.home_cluster_id}: unable to send Advertisement "
                f"to remote cluster {self.foreign_cluster_id}: {e}"
            )
            return False

        logger.info(
            f"Advertisement {adv.name} sent to remote cluster {self.foreign_cluster_id}"
        )
        self._start_watch_once()
        return True

    def build_advertisement(self) -> Advertisement:
        """Compute the current Advertisement from the home cluster state."""
        peering = self._require(self._peering, "peering client")
        accountant = self._require(self._accountant, "accountant")
        credential = self._require(self._credential, "credential")

        sharing = peering.get_sharing_config(
            self._config.cluster_config_name, self._config.default_sharing
        )
        snapshot = accountant.snapshot(sharing.sharing_percentage)
        labels = compute_labels(snapshot.nodes.physical, sharing.label_policies)
        prices = compute_prices(snapshot.images, self._pricing)
        neighbors = build_neighbors(snapshot.nodes.virtual)
        return build_advertisement(
            self._config.home_cluster_id,
            snapshot.envelope,
            snapshot.images,
            labels,
            prices,
            neighbors,
            credential.reference,
            ttl=timedelta(seconds=self._config.advertisement_ttl_seconds),
        )

    def _start_watch_once(self) -> None:
        with self._watch_lock:
            if self._watch_started:
                return
            self._watch_started = True

        watcher = self._new_watcher()
        self._watch_thread = threading.Thread(
            target=watcher.run,
            name="advertisement-watch",
            daemon=True,
        )
        self._watch_thread.start()

    def _new_watcher(self) -> Runnable:
        if self._watcher_factory is not None:
            return self._watcher_factory()
        synchronizer = self._require(self._synchronizer, "synchronizer")
        return AdvertisementWatcher(
            remote=synchronizer.target.remote,
            peering=self._require(self._peering, "peering client"),
            advertisement_name=synchronizer.advertisement_name,
            peering_request_name=self._config.peering_request_name,
            stop_event=self._stop_event,
            timeout_seconds=self._config.watch_timeout_seconds,
            retry_seconds=self._config.retry_backoff_seconds,
        )

    def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless stopped; return True if stopped."""
        return self._stop_event.wait(seconds)

    def _terminate(self) -> None:
        self._stop_event.set()
        if self._synchronizer is not None:
            try:
                self._synchronizer.retract_advertisement()
            except Exception as e:
                logger.error(
                    f"Cluster {self.home_cluster_id}: unable to retract Advertisement "
                    f"from remote cluster {self.foreign_cluster_id}: {e}"
                )
        if self._watch_thread is not None:
            self._watch_thread.join(timeout=5.0)
            self._watch_thread = None
        self._state = BroadcasterState.TERMINATED
        logger.info(f"Broadcaster of cluster {self.home_cluster_id} terminated")

    @staticmethod
    def _require(value: _T | None, what: str) -> _T:
        if value is None:
            raise RuntimeError(f"Broadcaster has no {what}; call bootstrap() first")
        return value
