"""Mints the kubeconfig a foreign cluster uses to reach the home cluster."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

import yaml
from kubernetes.client import ApiException  # type: ignore[import-untyped]

from capacity_broadcaster.clients.base import K8sClient
from capacity_broadcaster.utils.errors import ConfigurationError, NotFoundError, RemoteError

if TYPE_CHECKING:
    from capacity_broadcaster.config import APIServerConfig

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_TOKEN_TYPE = "kubernetes.io/service-account-token"
SERVICE_ACCOUNT_NAME_ANNOTATION = "kubernetes.io/service-account.name"


def _find_token_secret(k8s: K8sClient, sa_name: str, sa_namespace: str) -> Any:
    """Locate the token Secret bound to a service account."""
    try:
        sa = k8s.core_v1.read_namespaced_service_account(sa_name, sa_namespace)
    except ApiException as e:
        if e.status == 404:
            raise NotFoundError("ServiceAccount", sa_name, sa_namespace) from e
        raise RemoteError(
            f"Failed to get ServiceAccount '{sa_name}': {e.reason}", status=e.status
        ) from e

    try:
        # Clusters before 1.24 list the token Secret on the service account
        for ref in sa.secrets or []:
            secret = k8s.core_v1.read_namespaced_secret(ref.name, sa_namespace)
            if secret.type == SERVICE_ACCOUNT_TOKEN_TYPE:
                return secret

        secrets = k8s.core_v1.list_namespaced_secret(
            sa_namespace, field_selector=f"type={SERVICE_ACCOUNT_TOKEN_TYPE}"
        )
    except ApiException as e:
        raise RemoteError(
            f"Failed to read token Secret of ServiceAccount '{sa_name}': {e.reason}",
            status=e.status,
        ) from e
    for secret in secrets.items:
        annotations = secret.metadata.annotations or {}
        if annotations.get(SERVICE_ACCOUNT_NAME_ANNOTATION) == sa_name:
            return secret

    raise ConfigurationError(
        f"No token Secret found for ServiceAccount {sa_namespace}/{sa_name}"
    )


def server_url(k8s: K8sClient, api_server: APIServerConfig) -> str:
    """API server URL written into the kubeconfig.

    Falls back to the address the local client uses when none is configured.
    """
    if api_server.address:
        return f"https://{api_server.address}:{api_server.port}"
    return k8s.host


def create_kubeconfig(
    k8s: K8sClient,
    api_server: APIServerConfig,
    sa_name: str,
    sa_namespace: str,
    context_namespace: str | None = None,
) -> str:
    """Build a kubeconfig document for a service account of the home cluster.

    Args:
        k8s: Connected client of the home cluster.
        api_server: How the foreign cluster reaches our API server.
        sa_name: Service account whose token is embedded.
        sa_namespace: Namespace of the service account.
        context_namespace: Default namespace of the kubeconfig context.

    Returns:
        The kubeconfig as a YAML string.

    Raises:
        NotFoundError: If the service account does not exist.
        ConfigurationError: If no usable token can be found.
        RemoteError: On any other API failure.
    """
    secret = _find_token_secret(k8s, sa_name, sa_namespace)
    data = secret.data or {}
    if not data.get("token"):
        raise ConfigurationError(
            f"Token Secret {secret.metadata.name} of ServiceAccount {sa_name} has no token"
        )
    token = base64.b64decode(data["token"]).decode("utf-8")

    cluster: dict[str, Any] = {"server": server_url(k8s, api_server)}
    if api_server.trusted_ca:
        logger.debug("API server CA is publicly trusted, not embedding it in the kubeconfig")
    elif data.get("ca.crt"):
        cluster["certificate-authority-data"] = data["ca.crt"]

    context: dict[str, Any] = {"cluster": "home", "user": sa_name}
    if context_namespace:
        context["namespace"] = context_namespace

    kubeconfig = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": "home", "cluster": cluster}],
        "users": [{"name": sa_name, "user": {"token": token}}],
        "contexts": [{"name": "home", "context": context}],
        "current-context": "home",
    }
    return str(yaml.safe_dump(kubeconfig, default_flow_style=False))
