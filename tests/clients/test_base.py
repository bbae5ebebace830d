"""Tests for the Kubernetes client wrapper."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client import ApiException  # type: ignore[import-untyped]
from urllib3.exceptions import MaxRetryError, ProtocolError

from capacity_broadcaster.clients.base import CoreResources, CRDDefinition, K8sClient
from capacity_broadcaster.utils.errors import (
    ConflictError,
    ListFailedError,
    NotFoundError,
    RemoteError,
    ResourceExistsError,
)

WIDGET = CRDDefinition(group="example.io", version="v1", plural="widgets", kind="Widget")


class TestCRDDefinition:
    """Tests for resource type definitions."""

    def test_api_version(self) -> None:
        """Test the apiVersion joins group and version."""
        assert WIDGET.api_version == "example.io/v1"

    def test_core_api_version(self) -> None:
        """Test core resources use the bare version."""
        assert CoreResources.SECRET.api_version == "v1"


class TestK8sClient:
    """Tests for K8sClient operations with mocked API clients."""

    @pytest.fixture
    def resource(self) -> MagicMock:
        """Dynamic resource handle."""
        return MagicMock()

    @pytest.fixture
    def k8s(self, resource: MagicMock) -> K8sClient:
        """Client with mocked typed and dynamic clients."""
        k8s = K8sClient(MagicMock(), cluster_name="test")
        k8s._core_v1 = MagicMock()
        k8s._dynamic_client = MagicMock()
        k8s._dynamic_client.resources.get.return_value = resource
        return k8s

    def test_not_connected(self) -> None:
        """Test operations fail before connect()."""
        k8s = K8sClient(MagicMock())

        assert not k8s.is_connected
        with pytest.raises(RuntimeError, match="Not connected"):
            _ = k8s.core_v1

    def test_get_returns_dict(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test resources are returned in their wire shape."""
        resource.get.return_value.to_dict.return_value = {"metadata": {"name": "w"}}

        result = k8s.get(WIDGET, "w", namespace="ns")

        assert result == {"metadata": {"name": "w"}}
        resource.get.assert_called_once_with(name="w", namespace="ns")

    def test_resource_handle_cached(self, k8s: K8sClient) -> None:
        """Test discovery runs once per resource type."""
        k8s.get_resource(WIDGET)
        k8s.get_resource(WIDGET)

        k8s._dynamic_client.resources.get.assert_called_once_with(
            api_version="example.io/v1", kind="Widget"
        )

    def test_get_not_found(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test 404 becomes NotFoundError."""
        resource.get.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(NotFoundError) as exc_info:
            k8s.get(WIDGET, "missing")

        assert exc_info.value.name == "missing"

    def test_create_exists(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test 409 on create becomes ResourceExistsError."""
        resource.create.side_effect = ApiException(status=409, reason="AlreadyExists")

        with pytest.raises(ResourceExistsError):
            k8s.create(WIDGET, {"metadata": {"name": "w"}})

    def test_update_conflict(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test 409 on update becomes ConflictError."""
        resource.replace.side_effect = ApiException(status=409, reason="Conflict")

        with pytest.raises(ConflictError) as exc_info:
            k8s.update(WIDGET, {"metadata": {"name": "w", "resourceVersion": "1"}})

        assert exc_info.value.status == 409

    def test_other_errors_are_remote(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test other API failures become RemoteError with the status."""
        resource.delete.side_effect = ApiException(status=503, reason="Unavailable")

        with pytest.raises(RemoteError) as exc_info:
            k8s.delete(WIDGET, "w")

        assert exc_info.value.status == 503
        assert not isinstance(exc_info.value, NotFoundError)

    @pytest.mark.parametrize("operation", ["get", "create", "update", "patch", "delete"])
    def test_transport_errors_are_remote(
        self, k8s: K8sClient, resource: MagicMock, operation: str
    ) -> None:
        """Test an unreachable API server surfaces as RemoteError."""
        error = MaxRetryError(None, "/apis", "connection refused")
        for method in ("get", "create", "replace", "patch", "delete"):
            getattr(resource, method).side_effect = error
        body = {"metadata": {"name": "w"}}
        calls = {
            "get": lambda: k8s.get(WIDGET, "w", "ns"),
            "create": lambda: k8s.create(WIDGET, body, "ns"),
            "update": lambda: k8s.update(WIDGET, body, "ns"),
            "patch": lambda: k8s.patch(WIDGET, "w", {}, "ns"),
            "delete": lambda: k8s.delete(WIDGET, "w", "ns"),
        }

        with pytest.raises(RemoteError, match="unreachable"):
            calls[operation]()

    def test_discovery_transport_error_is_remote(self, k8s: K8sClient) -> None:
        """Test a failed API discovery surfaces as RemoteError."""
        k8s._dynamic_client.resources.get.side_effect = MaxRetryError(None, "/apis")

        with pytest.raises(RemoteError):
            k8s.get(WIDGET, "w", "ns")

    def test_interrupted_watch_is_remote(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test a watch stream cut by the server surfaces as RemoteError."""
        resource.watch.side_effect = ProtocolError("Connection broken")

        with pytest.raises(RemoteError):
            list(k8s.watch(WIDGET, "w"))

    def test_patch_uses_merge_patch(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test patches are sent as JSON merge patches."""
        resource.patch.return_value.to_dict.return_value = {}

        k8s.patch(WIDGET, "w", {"status": {"phase": "Ready"}})

        resource.patch.assert_called_once_with(
            body={"status": {"phase": "Ready"}},
            name="w",
            namespace=None,
            content_type="application/merge-patch+json",
        )

    def test_watch_yields_type_and_object(self, k8s: K8sClient, resource: MagicMock) -> None:
        """Test watch events are reduced to (type, raw object)."""
        resource.watch.return_value = iter(
            [{"type": "ADDED", "raw_object": {"a": 1}, "object": MagicMock()}]
        )

        events = list(k8s.watch(WIDGET, "w", timeout=5))

        assert events == [("ADDED", {"a": 1})]
        resource.watch.assert_called_once_with(name="w", namespace=None, timeout=5)

    def test_list_pods_field_selector(self, k8s: K8sClient) -> None:
        """Test the field selector is forwarded to the listing."""
        k8s.core_v1.list_pod_for_all_namespaces.return_value.items = ["pod"]

        assert k8s.list_pods(field_selector="status.phase!=Failed") == ["pod"]
        k8s.core_v1.list_pod_for_all_namespaces.assert_called_once_with(
            field_selector="status.phase!=Failed"
        )

    def test_list_nodes_failure(self, k8s: K8sClient) -> None:
        """Test listing failures become ListFailedError."""
        k8s.core_v1.list_node.side_effect = ApiException(status=500, reason="boom")

        with pytest.raises(ListFailedError):
            k8s.list_nodes()

    def test_list_pods_transport_error(self, k8s: K8sClient) -> None:
        """Test an unreachable API server fails the listing with ListFailedError."""
        k8s.core_v1.list_pod_for_all_namespaces.side_effect = MaxRetryError(None, "/api/v1/pods")

        with pytest.raises(ListFailedError, match="test"):
            k8s.list_pods()
