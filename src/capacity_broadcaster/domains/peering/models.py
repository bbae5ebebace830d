"""Models for the peering relationship with a foreign cluster."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from capacity_broadcaster.domains.resources.labels import LabelPolicy
from capacity_broadcaster.models.common import SecretReference
from capacity_broadcaster.utils.errors import ConfigurationError

if TYPE_CHECKING:
    from capacity_broadcaster.clients.base import K8sClient


@dataclass(frozen=True)
class SyncTarget:
    """Connection to the foreign cluster plus its identity. Immutable once established."""

    remote: K8sClient
    foreign_cluster_id: str


class PeeringRequest(BaseModel):
    """Request of a foreign cluster to receive our Advertisement.

    The record is named after the foreign cluster id.
    """

    name: str = Field(..., description="PeeringRequest name (foreign cluster id)")
    namespace: str = Field(..., description="Namespace on the foreign cluster for our records")
    kubeconfig_ref: SecretReference = Field(
        ..., description="Local Secret holding the kubeconfig for the foreign cluster"
    )

    @property
    def foreign_cluster_id(self) -> str:
        return self.name

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> PeeringRequest:
        """Create from a wire-shaped PeeringRequest.

        Raises:
            ConfigurationError: If the record lacks the namespace or secret reference.
        """
        metadata = resource.get("metadata") or {}
        spec = resource.get("spec") or {}
        ref = spec.get("kubeConfigRef") or {}
        name = metadata.get("name", "")
        if not spec.get("namespace") or not ref.get("name") or not ref.get("namespace"):
            raise ConfigurationError(
                f"PeeringRequest {name} does not define a namespace and a kubeconfig reference"
            )
        return cls(
            name=name,
            namespace=spec["namespace"],
            kubeconfig_ref=SecretReference(namespace=ref["namespace"], name=ref["name"]),
        )


class SharingConfig(BaseModel):
    """Sharing settings of the home cluster, re-read on every tick."""

    sharing_percentage: int = Field(..., ge=0, le=100, description="Share of allocatable")
    label_policies: list[LabelPolicy] = Field(default_factory=list, description="Label policies")

    @classmethod
    def from_cluster_config(
        cls, resource: dict[str, Any], default: SharingConfig
    ) -> SharingConfig:
        """Read the advertisement section of a ClusterConfig, keeping defaults for gaps.

        Raises:
            ConfigurationError: If the section holds invalid values.
        """
        spec = resource.get("spec") or {}
        adv_config = spec.get("advertisementConfig") or {}
        outgoing = adv_config.get("outgoingConfig") or {}
        percentage = outgoing.get("resourceSharingPercentage", default.sharing_percentage)
        policies = adv_config.get("labelPolicies")
        try:
            return cls(
                sharing_percentage=percentage,
                label_policies=(
                    [LabelPolicy.model_validate(p) for p in policies]
                    if policies is not None
                    else default.label_policies
                ),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid advertisement configuration: {e}") from e
