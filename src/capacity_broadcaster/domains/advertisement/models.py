"""Pydantic models for the Advertisement and its credential Secret."""

from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from capacity_broadcaster.domains.advertisement.crds import AdvertisementCRDs
from capacity_broadcaster.domains.resources.models import ContainerImage
from capacity_broadcaster.models.common import (
    OwnerReference,
    ResourceMetadata,
    SecretReference,
    format_timestamp,
    parse_timestamp,
)
from capacity_broadcaster.utils.labels import ResourceNames
from capacity_broadcaster.utils.quantity import (
    ResourceList,
    to_quantity_strings,
    to_resource_list,
)


class Advertisement(BaseModel):
    """Spare capacity of the home cluster offered to one foreign cluster."""

    metadata: ResourceMetadata
    cluster_id: str = Field(..., description="Home cluster identity")
    images: list[ContainerImage] = Field(default_factory=list, description="Image inventory")
    limits: ResourceList = Field(default_factory=dict, description="Limit range max")
    availability: ResourceList = Field(default_factory=dict, description="Resource quota hard")
    labels: dict[str, str] = Field(default_factory=dict, description="Advertised labels")
    neighbors: dict[str, ResourceList] = Field(
        default_factory=dict, description="Virtual node name to its allocatable resources"
    )
    prices: dict[str, float] = Field(default_factory=dict, description="Price per resource")
    kubeconfig_ref: SecretReference = Field(..., description="Credential Secret reference")
    timestamp: datetime = Field(..., description="When this Advertisement was built")
    time_to_live: datetime = Field(..., description="When this Advertisement expires")
    status: dict[str, Any] = Field(default_factory=dict, description="Status set by the peer")

    @property
    def name(self) -> str:
        return self.metadata.name

    def to_body(self) -> dict[str, Any]:
        """Render the Advertisement in its wire shape."""
        return {
            "apiVersion": AdvertisementCRDs.ADVERTISEMENT.api_version,
            "kind": AdvertisementCRDs.ADVERTISEMENT.kind,
            "metadata": self.metadata.to_dict(),
            "spec": {
                "clusterId": self.cluster_id,
                "images": [image.to_dict() for image in self.images],
                "limitRange": {"limits": [{"type": "", "max": to_quantity_strings(self.limits)}]},
                "resourceQuota": {"hard": to_quantity_strings(self.availability)},
                "labels": dict(sorted(self.labels.items())),
                "neighbors": {
                    name: to_quantity_strings(resources)
                    for name, resources in sorted(self.neighbors.items())
                },
                "prices": dict(sorted(self.prices.items())),
                "kubeConfigRef": self.kubeconfig_ref.to_dict(),
                "timestamp": format_timestamp(self.timestamp),
                "timeToLive": format_timestamp(self.time_to_live),
            },
        }

    def owner_reference(self) -> OwnerReference:
        """Build an owner reference pointing at this (already created) Advertisement.

        Raises:
            ValueError: If the Advertisement has no UID yet.
        """
        if not self.metadata.uid:
            raise ValueError(f"Advertisement {self.name} has no UID; it was not created yet")
        return OwnerReference(
            api_version=AdvertisementCRDs.ADVERTISEMENT.api_version,
            kind=AdvertisementCRDs.ADVERTISEMENT.kind,
            name=self.name,
            uid=self.metadata.uid,
        )

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> Advertisement:
        """Create from a wire-shaped Advertisement."""
        spec = resource.get("spec") or {}
        limit_items = (spec.get("limitRange") or {}).get("limits") or [{}]
        kubeconfig_ref = spec.get("kubeConfigRef") or {}
        timestamp = parse_timestamp(spec.get("timestamp")) or datetime.now(timezone.utc)
        return cls(
            metadata=ResourceMetadata.from_dict(resource.get("metadata")),
            cluster_id=spec.get("clusterId", ""),
            images=[ContainerImage.from_dict(image) for image in spec.get("images") or []],
            limits=to_resource_list(limit_items[0].get("max")),
            availability=to_resource_list((spec.get("resourceQuota") or {}).get("hard")),
            labels=dict(spec.get("labels") or {}),
            neighbors={
                name: to_resource_list(resources)
                for name, resources in (spec.get("neighbors") or {}).items()
            },
            prices={name: float(price) for name, price in (spec.get("prices") or {}).items()},
            kubeconfig_ref=SecretReference(
                namespace=kubeconfig_ref.get("namespace", ""),
                name=kubeconfig_ref.get("name", ""),
            ),
            timestamp=timestamp,
            time_to_live=parse_timestamp(spec.get("timeToLive")) or timestamp,
            status=dict(resource.get("status") or {}),
        )


class CredentialSecret(BaseModel):
    """Secret carrying the kubeconfig the foreign cluster uses to reach us."""

    metadata: ResourceMetadata
    kubeconfig: str = Field(..., description="Kubeconfig document")

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace or ""

    @property
    def reference(self) -> SecretReference:
        return SecretReference(namespace=self.namespace, name=self.name)

    @classmethod
    def for_cluster(cls, home_cluster_id: str, namespace: str, kubeconfig: str) -> CredentialSecret:
        """Build the credential Secret published by a home cluster."""
        return cls(
            metadata=ResourceMetadata(
                name=ResourceNames.credential_secret(home_cluster_id), namespace=namespace
            ),
            kubeconfig=kubeconfig,
        )

    def to_body(self) -> dict[str, Any]:
        """Render the Secret in its wire shape."""
        return {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": self.metadata.to_dict(),
            "stringData": {ResourceNames.KUBECONFIG_KEY: self.kubeconfig},
        }

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> CredentialSecret:
        """Create from a wire-shaped Secret, decoding the kubeconfig field."""
        data = resource.get("data") or {}
        string_data = resource.get("stringData") or {}
        if ResourceNames.KUBECONFIG_KEY in string_data:
            kubeconfig = string_data[ResourceNames.KUBECONFIG_KEY]
        else:
            encoded = data.get(ResourceNames.KUBECONFIG_KEY, "")
            kubeconfig = base64.b64decode(encoded).decode("utf-8") if encoded else ""
        return cls(
            metadata=ResourceMetadata.from_dict(resource.get("metadata")),
            kubeconfig=kubeconfig,
        )
