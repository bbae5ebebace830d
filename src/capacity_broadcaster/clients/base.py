"""Kubernetes client wrapper used for both the home and the foreign cluster."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config  # type: ignore[import-untyped]
from kubernetes.client import ApiException  # type: ignore[import-untyped]
from kubernetes.dynamic import DynamicClient  # type: ignore[import-untyped]
from kubernetes.dynamic.exceptions import ResourceNotFoundError  # type: ignore[import-untyped]
from urllib3.exceptions import HTTPError

from capacity_broadcaster.utils.errors import (
    BroadcasterError,
    ConflictError,
    ListFailedError,
    NotFoundError,
    RemoteError,
    ResourceExistsError,
)

logger = logging.getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


@dataclass(frozen=True)
class CRDDefinition:
    """Identifies a resource type served by the API server."""

    group: str
    version: str
    plural: str
    kind: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        """Full apiVersion string (just the version for the core group)."""
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"


class CoreResources:
    """Core API resources accessed through the same generic operations as CRDs."""

    SECRET = CRDDefinition(group="", version="v1", plural="secrets", kind="Secret")


def _translate(
    e: ApiException,
    operation: str,
    kind: str,
    name: str,
    namespace: str | None = None,
) -> BroadcasterError:
    """Map an ApiException to the broadcaster error taxonomy."""
    if e.status == 404:
        return NotFoundError(kind, name, namespace)
    if e.status == 409:
        if operation == "create":
            return ResourceExistsError(kind, name, namespace)
        return ConflictError(kind, name, namespace)
    return RemoteError(f"Failed to {operation} {kind} '{name}': {e.reason}", status=e.status)


class K8sClient:
    """Thin wrapper around the Kubernetes API used by the broadcaster.

    Custom resources and Secrets are handled through the dynamic client and
    exchanged as plain dictionaries in their wire shape. Nodes and pods are
    listed through CoreV1Api and returned as typed client models.
    """

    def __init__(self, api_client: Any | None = None, cluster_name: str = "local") -> None:
        self._api_client = api_client
        self._core_v1: Any | None = None
        self._dynamic_client: Any | None = None
        self._crd_cache: dict[str, Any] = {}
        self.cluster_name = cluster_name

    @classmethod
    def from_kubeconfig_path(cls, path: str | None, cluster_name: str = "local") -> K8sClient:
        """Build a client from a kubeconfig file, or from in-cluster config if no path."""
        if path:
            api_client = config.new_client_from_config(config_file=path)
        else:
            configuration = client.Configuration()
            config.load_incluster_config(client_configuration=configuration)
            api_client = client.ApiClient(configuration)
        return cls(api_client, cluster_name=cluster_name)

    @classmethod
    def from_kubeconfig_dict(cls, kubeconfig: dict[str, Any], cluster_name: str) -> K8sClient:
        """Build a client from an already-parsed kubeconfig document."""
        api_client = config.new_client_from_config_dict(config_dict=kubeconfig)
        return cls(api_client, cluster_name=cluster_name)

    def connect(self) -> None:
        """Create the typed and dynamic clients.

        Creating the dynamic client runs API discovery, so a successful
        connect means the API server is reachable with these credentials.
        """
        if self._api_client is None:
            raise RuntimeError(f"No API client configured for cluster {self.cluster_name}")
        self._core_v1 = client.CoreV1Api(self._api_client)
        self._dynamic_client = DynamicClient(self._api_client)
        logger.debug(f"Connected to cluster {self.cluster_name}")

    def disconnect(self) -> None:
        """Release the underlying connection pool."""
        if self._api_client is not None:
            self._api_client.close()
        self._core_v1 = None
        self._dynamic_client = None
        self._crd_cache.clear()

    @property
    def is_connected(self) -> bool:
        return self._core_v1 is not None and self._dynamic_client is not None

    @property
    def host(self) -> str:
        """API server URL this client talks to."""
        if self._api_client is None:
            return ""
        host: str = self._api_client.configuration.host
        return host

    @property
    def core_v1(self) -> Any:
        """Typed CoreV1Api client.

        Raises:
            RuntimeError: If the client is not connected.
        """
        if self._core_v1 is None:
            raise RuntimeError(f"Not connected to cluster {self.cluster_name}")
        return self._core_v1

    # -------------------------------------------------------------------------
    # Generic resource operations
    # -------------------------------------------------------------------------

    def get_resource(self, crd: CRDDefinition) -> Any:
        """Return the dynamic resource handle for a resource type."""
        if self._dynamic_client is None:
            raise RuntimeError(f"Not connected to cluster {self.cluster_name}")
        cache_key = f"{crd.api_version}/{crd.plural}"
        if cache_key not in self._crd_cache:
            try:
                self._crd_cache[cache_key] = self._dynamic_client.resources.get(
                    api_version=crd.api_version, kind=crd.kind
                )
            except ResourceNotFoundError as e:
                raise RemoteError(
                    f"{crd.kind} ({crd.api_version}) is not served by cluster {self.cluster_name}"
                ) from e
        return self._crd_cache[cache_key]

    def get(self, crd: CRDDefinition, name: str, namespace: str | None = None) -> dict[str, Any]:
        """Get a resource by name.

        Raises:
            NotFoundError: If the resource does not exist.
            RemoteError: On any other API failure.
        """
        try:
            obj = self.get_resource(crd).get(name=name, namespace=namespace)
        except ApiException as e:
            raise _translate(e, "get", crd.kind, name, namespace) from e
        except HTTPError as e:
            raise self._unreachable("get", crd.kind, name, e) from e
        result: dict[str, Any] = obj.to_dict()
        return result

    def create(
        self, crd: CRDDefinition, body: dict[str, Any], namespace: str | None = None
    ) -> dict[str, Any]:
        """Create a resource.

        Raises:
            ResourceExistsError: If a resource with the same name exists.
            RemoteError: On any other API failure.
        """
        name = body.get("metadata", {}).get("name", "")
        try:
            obj = self.get_resource(crd).create(body=body, namespace=namespace)
        except ApiException as e:
            raise _translate(e, "create", crd.kind, name, namespace) from e
        except HTTPError as e:
            raise self._unreachable("create", crd.kind, name, e) from e
        result: dict[str, Any] = obj.to_dict()
        return result

    def update(
        self, crd: CRDDefinition, body: dict[str, Any], namespace: str | None = None
    ) -> dict[str, Any]:
        """Replace a resource; metadata.resourceVersion is the concurrency token.

        Raises:
            NotFoundError: If the resource does not exist.
            ConflictError: If the resourceVersion is stale.
            RemoteError: On any other API failure.
        """
        name = body.get("metadata", {}).get("name", "")
        try:
            obj = self.get_resource(crd).replace(body=body, namespace=namespace)
        except ApiException as e:
            raise _translate(e, "update", crd.kind, name, namespace) from e
        except HTTPError as e:
            raise self._unreachable("update", crd.kind, name, e) from e
        result: dict[str, Any] = obj.to_dict()
        return result

    def patch(
        self,
        crd: CRDDefinition,
        name: str,
        body: dict[str, Any],
        namespace: str | None = None,
    ) -> dict[str, Any]:
        """Apply a JSON merge patch to a resource."""
        try:
            obj = self.get_resource(crd).patch(
                body=body, name=name, namespace=namespace, content_type=MERGE_PATCH
            )
        except ApiException as e:
            raise _translate(e, "patch", crd.kind, name, namespace) from e
        except HTTPError as e:
            raise self._unreachable("patch", crd.kind, name, e) from e
        result: dict[str, Any] = obj.to_dict()
        return result

    def delete(self, crd: CRDDefinition, name: str, namespace: str | None = None) -> None:
        """Delete a resource.

        Raises:
            NotFoundError: If the resource does not exist.
            RemoteError: On any other API failure.
        """
        try:
            self.get_resource(crd).delete(name=name, namespace=namespace)
        except ApiException as e:
            raise _translate(e, "delete", crd.kind, name, namespace) from e
        except HTTPError as e:
            raise self._unreachable("delete", crd.kind, name, e) from e

    def watch(
        self,
        crd: CRDDefinition,
        name: str,
        namespace: str | None = None,
        timeout: int | None = None,
    ) -> Iterator[tuple[str, dict[str, Any]]]:
        """Stream (event type, object) pairs for a single named resource.

        Raises:
            RemoteError: If the watch cannot be started or is interrupted.
        """
        try:
            resource = self.get_resource(crd)
            for event in resource.watch(name=name, namespace=namespace, timeout=timeout):
                yield event["type"], event["raw_object"]
        except ApiException as e:
            raise _translate(e, "watch", crd.kind, name, namespace) from e
        except HTTPError as e:
            raise self._unreachable("watch", crd.kind, name, e) from e

    def _unreachable(self, operation: str, kind: str, name: str, e: HTTPError) -> RemoteError:
        return RemoteError(
            f"Failed to {operation} {kind} '{name}': cluster {self.cluster_name} "
            f"is unreachable: {e}"
        )

    # -------------------------------------------------------------------------
    # Core listings
    # -------------------------------------------------------------------------

    def list_nodes(self, label_selector: str | None = None) -> list[Any]:
        """List nodes.

        Raises:
            ListFailedError: If the listing cannot be retrieved.
        """
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            nodes = self.core_v1.list_node(**kwargs)
        except ApiException as e:
            raise ListFailedError(
                f"Failed to list nodes of cluster {self.cluster_name}: {e.reason}", status=e.status
            ) from e
        except HTTPError as e:
            raise ListFailedError(f"Failed to list nodes of cluster {self.cluster_name}: {e}") from e
        return list(nodes.items)

    def list_pods(self, field_selector: str | None = None) -> list[Any]:
        """List pods across all namespaces.

        Raises:
            ListFailedError: If the listing cannot be retrieved.
        """
        kwargs: dict[str, Any] = {}
        if field_selector:
            kwargs["field_selector"] = field_selector
        try:
            pods = self.core_v1.list_pod_for_all_namespaces(**kwargs)
        except ApiException as e:
            raise ListFailedError(
                f"Failed to list pods of cluster {self.cluster_name}: {e.reason}", status=e.status
            ) from e
        except HTTPError as e:
            raise ListFailedError(f"Failed to list pods of cluster {self.cluster_name}: {e}") from e
        return list(pods.items)
