"""Tests for AdvertisementSynchronizer."""

import base64
import logging
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from capacity_broadcaster.domains.advertisement.builder import build_advertisement
from capacity_broadcaster.domains.advertisement.client import AdvertisementSynchronizer
from capacity_broadcaster.domains.advertisement.crds import AdvertisementCRDs
from capacity_broadcaster.domains.advertisement.models import Advertisement, CredentialSecret
from capacity_broadcaster.domains.peering.models import SyncTarget
from capacity_broadcaster.domains.resources.models import ResourceEnvelope
from capacity_broadcaster.utils.errors import ConflictError, NotFoundError, RemoteError
from tests.factories import FOREIGN_CLUSTER_ID, FOREIGN_NAMESPACE, HOME_CLUSTER_ID
from tests.fake_k8s import FakeK8sClient

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
ADV = AdvertisementCRDs.ADVERTISEMENT
SECRET = AdvertisementCRDs.SECRET
ADV_NAME = f"adv-{HOME_CLUSTER_ID}"
SECRET_NAME = f"vk-secret-{HOME_CLUSTER_ID}"


def make_secret(kubeconfig: str = "kind: Config\n") -> CredentialSecret:
    return CredentialSecret.for_cluster(HOME_CLUSTER_ID, FOREIGN_NAMESPACE, kubeconfig)


def make_adv(cpu: str = "2") -> Advertisement:
    return build_advertisement(
        HOME_CLUSTER_ID,
        ResourceEnvelope(availability={"cpu": Decimal(cpu)}),
        [],
        {},
        {"cpu": 1.0},
        {},
        make_secret().reference,
        now=NOW,
    )


@pytest.fixture
def remote() -> FakeK8sClient:
    return FakeK8sClient(cluster_name=FOREIGN_CLUSTER_ID)


@pytest.fixture
def synchronizer(remote: FakeK8sClient) -> AdvertisementSynchronizer:
    return AdvertisementSynchronizer(SyncTarget(remote, FOREIGN_CLUSTER_ID), HOME_CLUSTER_ID)


def stored_secret(remote: FakeK8sClient) -> dict:
    secret = remote.stored(SECRET, SECRET_NAME, FOREIGN_NAMESPACE)
    assert secret is not None
    return secret


def stored_adv(remote: FakeK8sClient) -> dict:
    adv = remote.stored(ADV, ADV_NAME)
    assert adv is not None
    return adv


class TestPublishCredential:
    """Tests for publishing the credential Secret."""

    def test_creates_secret(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test a missing Secret is created with the kubeconfig."""
        result = synchronizer.publish_credential(make_secret())

        secret = stored_secret(remote)
        assert base64.b64decode(secret["data"]["kubeconfig"]) == b"kind: Config\n"
        assert result.kubeconfig == "kind: Config\n"
        assert remote.calls_of("create", "Secret") == [("create", "Secret", SECRET_NAME)]

    def test_create_clears_stale_identity(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test version and UID left from an earlier Secret are not sent on create."""
        secret = make_secret()
        secret.metadata.resource_version = "42"
        secret.metadata.uid = "old-uid"

        synchronizer.publish_credential(secret)

        assert stored_secret(remote)["metadata"]["uid"] != "old-uid"

    def test_create_drops_stale_owner_references(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test a recreated Secret does not point at an Advertisement that is gone."""
        secret = make_secret()
        synchronizer.publish_credential(secret)
        synchronizer.publish_advertisement(make_adv())
        synchronizer.publish_credential(secret)
        remote.delete(ADV, ADV_NAME)

        synchronizer.publish_credential(secret)

        assert "ownerReferences" not in stored_secret(remote)["metadata"]

    def test_identical_update_is_noop(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test republishing the same Secret keeps its version."""
        synchronizer.publish_credential(make_secret())
        version = stored_secret(remote)["metadata"]["resourceVersion"]

        synchronizer.publish_credential(make_secret())

        assert stored_secret(remote)["metadata"]["resourceVersion"] == version
        assert len(remote.calls_of("update", "Secret")) == 1

    def test_update_replaces_content(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test a changed kubeconfig is written over the existing Secret."""
        synchronizer.publish_credential(make_secret())

        synchronizer.publish_credential(make_secret("kind: Config\nusers: []\n"))

        secret = stored_secret(remote)
        assert base64.b64decode(secret["data"]["kubeconfig"]) == b"kind: Config\nusers: []\n"

    def test_update_keeps_owner_reference(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test refreshing the credential keeps the link to the Advertisement."""
        synchronizer.publish_credential(make_secret())
        synchronizer.publish_advertisement(make_adv())

        synchronizer.publish_credential(make_secret("kind: Config\nusers: []\n"))

        owners = stored_secret(remote)["metadata"]["ownerReferences"]
        assert owners[0]["uid"] == stored_adv(remote)["metadata"]["uid"]

    def test_get_failure_propagates(
        self,
        synchronizer: AdvertisementSynchronizer,
        remote: FakeK8sClient,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test errors other than not-found surface and are logged."""
        remote.fail_next("get", "Secret", RemoteError("connection refused"))

        with caplog.at_level(logging.ERROR), pytest.raises(RemoteError):
            synchronizer.publish_credential(make_secret())

        assert FOREIGN_CLUSTER_ID in caplog.text
        assert remote.count(SECRET) == 0


class TestPublishAdvertisement:
    """Tests for publishing the Advertisement."""

    @pytest.fixture(autouse=True)
    def _credential(self, synchronizer: AdvertisementSynchronizer) -> None:
        synchronizer.publish_credential(make_secret())

    def test_creates_and_links_secret(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test the first publish creates the Advertisement and makes it own the Secret."""
        result = synchronizer.publish_advertisement(make_adv())

        adv = stored_adv(remote)
        assert result.metadata.uid == adv["metadata"]["uid"]
        assert adv["spec"]["resourceQuota"]["hard"] == {"cpu": "2"}
        owners = stored_secret(remote)["metadata"]["ownerReferences"]
        assert owners == [
            {
                "apiVersion": "sharing.liqo.io/v1alpha1",
                "kind": "Advertisement",
                "name": ADV_NAME,
                "uid": adv["metadata"]["uid"],
                "controller": False,
                "blockOwnerDeletion": False,
            }
        ]

    def test_publish_twice_is_idempotent(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test the same content published twice leaves one unchanged record."""
        adv = make_adv()
        synchronizer.publish_advertisement(adv)
        first = stored_adv(remote)

        synchronizer.publish_advertisement(adv)

        assert remote.count(ADV) == 1
        assert stored_adv(remote) == first
        assert len(remote.calls_of("update", "Advertisement")) == 1

    def test_update_overwrites_spec_and_keeps_identity(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test an update replaces the content but keeps remote metadata and status."""
        synchronizer.publish_advertisement(make_adv("2"))
        remote.objects[("Advertisement", "", ADV_NAME)]["status"] = {
            "advertisementStatus": "ACCEPTED"
        }
        remote.objects[("Advertisement", "", ADV_NAME)]["metadata"]["finalizers"] = ["peer"]
        uid = stored_adv(remote)["metadata"]["uid"]

        synchronizer.publish_advertisement(make_adv("3"))

        adv = stored_adv(remote)
        assert adv["spec"]["resourceQuota"]["hard"] == {"cpu": "3"}
        assert adv["metadata"]["uid"] == uid
        assert adv["metadata"]["finalizers"] == ["peer"]
        assert adv["status"] == {"advertisementStatus": "ACCEPTED"}
        assert remote.count(ADV) == 1

    def test_recreates_after_remote_deletion(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test a deleted Advertisement is created again and relinked."""
        synchronizer.publish_advertisement(make_adv())
        old_uid = stored_adv(remote)["metadata"]["uid"]
        remote.remove(ADV, ADV_NAME)

        synchronizer.publish_advertisement(make_adv())

        adv = stored_adv(remote)
        assert adv["metadata"]["uid"] != old_uid
        owners = stored_secret(remote)["metadata"]["ownerReferences"]
        assert [o["uid"] for o in owners] == [adv["metadata"]["uid"]]
        assert len(remote.calls_of("create", "Advertisement")) == 2

    def test_stale_version_conflict_surfaces(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test a concurrent change is reported as a retryable conflict."""
        synchronizer.publish_advertisement(make_adv())
        remote.fail_next("update", "Advertisement", ConflictError("Advertisement", ADV_NAME))

        with pytest.raises(ConflictError):
            synchronizer.publish_advertisement(make_adv("3"))

    def test_create_requires_secret(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test no Advertisement is created when the Secret is missing."""
        remote.remove(SECRET, SECRET_NAME, FOREIGN_NAMESPACE)

        with pytest.raises(NotFoundError):
            synchronizer.publish_advertisement(make_adv())

        assert remote.count(ADV) == 0

    def test_link_failure_is_not_fatal(
        self,
        synchronizer: AdvertisementSynchronizer,
        remote: FakeK8sClient,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a failed owner reference update leaves the Advertisement in place."""
        remote.fail_next("update", "Secret", RemoteError("forbidden", status=403))

        with caplog.at_level(logging.ERROR):
            result = synchronizer.publish_advertisement(make_adv())

        assert result.name == ADV_NAME
        assert remote.count(ADV) == 1
        assert "ownerReferences" not in stored_secret(remote)["metadata"]
        assert "owner reference" in caplog.text
        assert FOREIGN_CLUSTER_ID in caplog.text

    def test_link_programming_error_propagates(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test only remote and validation failures of the link are tolerated."""
        remote.fail_next("update", "Secret", RuntimeError("not connected"))

        with pytest.raises(RuntimeError):
            synchronizer.publish_advertisement(make_adv())

    def test_get_failure_propagates(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test a failed lookup aborts without writing anything."""
        remote.fail_next("get", "Advertisement", RemoteError("timeout"))

        with pytest.raises(RemoteError):
            synchronizer.publish_advertisement(make_adv())

        assert remote.calls_of("create", "Advertisement") == []

    def test_runs_under_lock(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test remote calls happen inside the critical section."""
        observed = []
        original_get = remote.get

        def get(*args, **kwargs):
            observed.append(synchronizer._lock.locked())
            return original_get(*args, **kwargs)

        remote.get = get  # type: ignore[method-assign]

        synchronizer.publish_advertisement(make_adv())

        assert observed and all(observed)


class TestRetractAdvertisement:
    """Tests for retracting the Advertisement."""

    def test_deletes_advertisement_and_secret(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test retraction removes the Advertisement and its dependent Secret."""
        synchronizer.publish_credential(make_secret())
        synchronizer.publish_advertisement(make_adv())

        synchronizer.retract_advertisement()

        assert remote.count(ADV) == 0
        assert remote.count(SECRET) == 0
        assert remote.calls_of("delete") == [("delete", "Advertisement", ADV_NAME)]

    def test_missing_advertisement_is_success(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test retracting twice does not fail."""
        synchronizer.retract_advertisement()
        synchronizer.retract_advertisement()

        assert len(remote.calls_of("delete")) == 2

    def test_other_errors_propagate(
        self, synchronizer: AdvertisementSynchronizer, remote: FakeK8sClient
    ) -> None:
        """Test failures other than not-found surface."""
        remote.fail_next("delete", "Advertisement", RemoteError("unavailable", status=503))

        with pytest.raises(RemoteError):
            synchronizer.retract_advertisement()
