"""Client for peering records stored on the home cluster."""

from __future__ import annotations

import base64
import binascii
import logging

from capacity_broadcaster.clients.base import K8sClient
from capacity_broadcaster.domains.peering.crds import PeeringCRDs
from capacity_broadcaster.domains.peering.models import PeeringRequest, SharingConfig
from capacity_broadcaster.models.common import SecretReference
from capacity_broadcaster.utils.errors import ConfigurationError, NotFoundError
from capacity_broadcaster.utils.labels import ResourceNames

logger = logging.getLogger(__name__)


class PeeringClient:
    """Reads the PeeringRequest, its bootstrap credential and the sharing configuration."""

    def __init__(self, k8s: K8sClient) -> None:
        self._k8s = k8s

    def get_peering_request(self, name: str) -> PeeringRequest:
        """Get the PeeringRequest sent by a foreign cluster.

        Raises:
            NotFoundError: If the PeeringRequest does not exist.
            ConfigurationError: If it lacks the namespace or kubeconfig reference.
        """
        resource = self._k8s.get(PeeringCRDs.PEERING_REQUEST, name)
        return PeeringRequest.from_resource(resource)

    def get_bootstrap_kubeconfig(self, ref: SecretReference) -> str:
        """Read the kubeconfig for the foreign cluster from a local Secret.

        Raises:
            NotFoundError: If the Secret does not exist.
            ConfigurationError: If the Secret has no valid kubeconfig entry.
        """
        secret = self._k8s.get(PeeringCRDs.SECRET, ref.name, namespace=ref.namespace)
        encoded = (secret.get("data") or {}).get(ResourceNames.KUBECONFIG_KEY)
        if not encoded:
            raise ConfigurationError(
                f"Secret {ref.namespace}/{ref.name} has no '{ResourceNames.KUBECONFIG_KEY}' entry"
            )
        try:
            return base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ConfigurationError(
                f"Secret {ref.namespace}/{ref.name} holds an undecodable kubeconfig: {e}"
            ) from e

    def get_sharing_config(self, name: str, default: SharingConfig) -> SharingConfig:
        """Read the sharing settings from the ClusterConfig, or ``default`` if it is absent."""
        try:
            resource = self._k8s.get(PeeringCRDs.CLUSTER_CONFIG, name)
        except NotFoundError:
            logger.debug(f"ClusterConfig {name} not found, using configured sharing settings")
            return default
        return SharingConfig.from_cluster_config(resource, default)

    def update_advertisement_status(self, peering_request_name: str, status: str) -> None:
        """Record the acceptance status of our Advertisement on the PeeringRequest."""
        self._k8s.patch(
            PeeringCRDs.PEERING_REQUEST,
            peering_request_name,
            {"status": {"advertisementStatus": status}},
        )
        logger.info(
            f"PeeringRequest {peering_request_name} advertisement status set to {status}"
        )
