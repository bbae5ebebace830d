"""Synchronization of the Advertisement and its credential Secret with the foreign cluster."""

from __future__ import annotations

import logging
import threading
from typing import Any

from capacity_broadcaster.domains.advertisement.crds import AdvertisementCRDs
from capacity_broadcaster.domains.advertisement.models import Advertisement, CredentialSecret
from capacity_broadcaster.domains.peering.models import SyncTarget
from capacity_broadcaster.models.common import ResourceMetadata
from capacity_broadcaster.utils.errors import BroadcasterError, NotFoundError
from capacity_broadcaster.utils.labels import ResourceNames

logger = logging.getLogger(__name__)


class AdvertisementSynchronizer:
    """Idempotent create-or-update of our records on the foreign cluster.

    Every public operation runs inside one critical section per instance, so
    a retraction triggered on shutdown never interleaves with a publish.
    """

    def __init__(self, target: SyncTarget, home_cluster_id: str) -> None:
        self._target = target
        self._remote = target.remote
        self._home_cluster_id = home_cluster_id
        self._lock = threading.Lock()

    @property
    def target(self) -> SyncTarget:
        return self._target

    @property
    def foreign_cluster_id(self) -> str:
        return self._target.foreign_cluster_id

    @property
    def advertisement_name(self) -> str:
        return ResourceNames.advertisement(self._home_cluster_id)

    # -------------------------------------------------------------------------
    # Credential Secret
    # -------------------------------------------------------------------------

    def publish_credential(self, secret: CredentialSecret) -> CredentialSecret:
        """Create or update the credential Secret on the foreign cluster.

        The remote version token, UID and owner references are copied onto
        ``secret`` before updating, so the update passes the concurrency check
        and keeps the link to the Advertisement.

        Raises:
            BroadcasterError: If the Secret cannot be read or written.
        """
        with self._lock:
            return self._publish_credential(secret)

    def _publish_credential(self, secret: CredentialSecret) -> CredentialSecret:
        crd = AdvertisementCRDs.SECRET
        try:
            existing = self._remote.get(crd, secret.name, namespace=secret.namespace)
        except NotFoundError:
            existing = None
        except BroadcasterError as e:
            logger.error(
                f"Unexpected error while getting Secret {secret.name} "
                f"on remote cluster {self.foreign_cluster_id}: {e}"
            )
            raise

        if existing is None:
            secret.metadata.resource_version = None
            secret.metadata.uid = None
            # Owners copied from a deleted Secret would get the new one collected
            secret.metadata.owner_references = []
            try:
                created = self._remote.create(crd, secret.to_body(), namespace=secret.namespace)
            except BroadcasterError as e:
                logger.error(
                    f"Unable to create Secret {secret.name} "
                    f"on remote cluster {self.foreign_cluster_id}: {e}"
                )
                raise
            logger.info(
                f"Correctly created Secret {secret.name} on remote cluster {self.foreign_cluster_id}"
            )
            return CredentialSecret.from_resource(created)

        remote_metadata = ResourceMetadata.from_dict(existing.get("metadata"))
        secret.metadata.resource_version = remote_metadata.resource_version
        secret.metadata.uid = remote_metadata.uid
        secret.metadata.owner_references = remote_metadata.owner_references
        try:
            updated = self._remote.update(crd, secret.to_body(), namespace=secret.namespace)
        except BroadcasterError as e:
            logger.error(
                f"Unable to update Secret {secret.name} "
                f"on remote cluster {self.foreign_cluster_id}: {e}"
            )
            raise
        logger.info(
            f"Correctly updated Secret {secret.name} on remote cluster {self.foreign_cluster_id}"
        )
        return CredentialSecret.from_resource(updated)

    # -------------------------------------------------------------------------
    # Advertisement
    # -------------------------------------------------------------------------

    def publish_advertisement(self, adv: Advertisement) -> Advertisement:
        """Create or update the Advertisement on the foreign cluster.

        An existing Advertisement keeps its remote metadata and status and gets
        every other field overwritten. A new one is created and the credential
        Secret is made its dependent, so deleting the Advertisement garbage
        collects the Secret.

        Raises:
            ConflictError: If the remote Advertisement changed concurrently.
            BroadcasterError: If any other remote call fails.
        """
        with self._lock:
            try:
                existing = self._remote.get(AdvertisementCRDs.ADVERTISEMENT, adv.name)
            except NotFoundError:
                return self._create_advertisement(adv)
            except BroadcasterError as e:
                logger.error(
                    f"Unexpected error while getting Advertisement {adv.name} "
                    f"on remote cluster {self.foreign_cluster_id}: {e}"
                )
                raise
            return self._update_advertisement(adv, existing)

    def _update_advertisement(self, adv: Advertisement, existing: dict[str, Any]) -> Advertisement:
        body = adv.to_body()
        body["metadata"] = existing.get("metadata") or {"name": adv.name}
        if existing.get("status"):
            body["status"] = existing["status"]
        try:
            updated = self._remote.update(AdvertisementCRDs.ADVERTISEMENT, body)
        except BroadcasterError as e:
            logger.error(
                f"Unable to update Advertisement {adv.name} "
                f"on remote cluster {self.foreign_cluster_id}: {e}"
            )
            raise
        logger.debug(f"Updated Advertisement {adv.name} on remote cluster {self.foreign_cluster_id}")
        return Advertisement.from_resource(updated)

    def _create_advertisement(self, adv: Advertisement) -> Advertisement:
        ref = adv.kubeconfig_ref
        # The Secret is always published before the first Advertisement
        try:
            secret = self._remote.get(AdvertisementCRDs.SECRET, ref.name, namespace=ref.namespace)
        except BroadcasterError as e:
            logger.error(
                f"Unable to get Secret {ref.name} on remote cluster {self.foreign_cluster_id} "
                f"before creating Advertisement {adv.name}: {e}"
            )
            raise

        body = adv.to_body()
        body["metadata"] = {"name": adv.name}
        try:
            created = Advertisement.from_resource(
                self._remote.create(AdvertisementCRDs.ADVERTISEMENT, body)
            )
        except BroadcasterError as e:
            logger.error(
                f"Unable to create Advertisement {adv.name} "
                f"on remote cluster {self.foreign_cluster_id}: {e}"
            )
            raise
        logger.info(
            f"Correctly created Advertisement {adv.name} on remote cluster {self.foreign_cluster_id}"
        )

        self._link_secret(secret, created)
        return created

    def _link_secret(self, secret: dict[str, Any], adv: Advertisement) -> None:
        """Make the credential Secret a dependent of the Advertisement.

        Failure leaves the Advertisement in place; only garbage collection of
        the Secret on teardown is lost, so it is logged and not raised.
        """
        metadata = secret.setdefault("metadata", {})
        name = metadata.get("name", "")
        try:
            metadata["ownerReferences"] = [adv.owner_reference().to_dict()]
            self._remote.update(
                AdvertisementCRDs.SECRET, secret, namespace=metadata.get("namespace")
            )
        except (BroadcasterError, ValueError) as e:
            logger.error(
                f"Unable to set owner reference of Secret {name} to Advertisement {adv.name} "
                f"on remote cluster {self.foreign_cluster_id}; the Secret will not be "
                f"removed together with the Advertisement: {e}"
            )
            return
        logger.debug(f"Secret {name} is now owned by Advertisement {adv.name}")

    def retract_advertisement(self) -> None:
        """Delete our Advertisement from the foreign cluster.

        A missing Advertisement counts as already retracted.

        Raises:
            BroadcasterError: If the delete fails for any other reason.
        """
        name = self.advertisement_name
        with self._lock:
            try:
                self._remote.delete(AdvertisementCRDs.ADVERTISEMENT, name)
            except NotFoundError:
                logger.debug(
                    f"Advertisement {name} already absent on remote cluster "
                    f"{self.foreign_cluster_id}"
                )
                return
            except BroadcasterError as e:
                logger.error(
                    f"Unable to delete Advertisement {name} "
                    f"on remote cluster {self.foreign_cluster_id}: {e}"
                )
                raise
        logger.info(f"Deleted Advertisement {name} on remote cluster {self.foreign_cluster_id}")
