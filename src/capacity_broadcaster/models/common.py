"""Common Pydantic models shared across published records."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


class ResourceMetadata(BaseModel):
    """Identity and version metadata of a record as stored by the API server."""

    name: str = Field(..., description="Resource name")
    namespace: str | None = Field(None, description="Resource namespace")
    uid: str | None = Field(None, description="Kubernetes UID")
    resource_version: str | None = Field(None, description="Optimistic concurrency token")
    owner_references: list["OwnerReference"] = Field(
        default_factory=list, description="Owners of this resource"
    )

    @classmethod
    def from_dict(cls, metadata: dict[str, Any] | None) -> "ResourceMetadata":
        """Create from a wire-shaped metadata dictionary."""
        metadata = metadata or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace"),
            uid=metadata.get("uid"),
            resource_version=metadata.get("resourceVersion"),
            owner_references=[
                OwnerReference.from_dict(ref) for ref in metadata.get("ownerReferences") or []
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Render as wire-shaped metadata, omitting unset fields."""
        result: dict[str, Any] = {"name": self.name}
        if self.namespace:
            result["namespace"] = self.namespace
        if self.uid:
            result["uid"] = self.uid
        if self.resource_version:
            result["resourceVersion"] = self.resource_version
        if self.owner_references:
            result["ownerReferences"] = [ref.to_dict() for ref in self.owner_references]
        return result


class OwnerReference(BaseModel):
    """Kubernetes owner reference."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = False
    block_owner_deletion: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OwnerReference":
        """Create from a wire-shaped owner reference."""
        return cls(
            api_version=data["apiVersion"],
            kind=data["kind"],
            name=data["name"],
            uid=data["uid"],
            controller=bool(data.get("controller", False)),
            block_owner_deletion=bool(data.get("blockOwnerDeletion", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": self.controller,
            "blockOwnerDeletion": self.block_owner_deletion,
        }


class SecretReference(BaseModel):
    """Reference to a Secret by namespace and name."""

    namespace: str = Field(..., description="Secret namespace")
    name: str = Field(..., description="Secret name")

    def to_dict(self) -> dict[str, str]:
        return {"namespace": self.namespace, "name": self.name}


def format_timestamp(value: datetime) -> str:
    """Render a datetime the way the API server does (RFC 3339, UTC, seconds)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an RFC 3339 timestamp as returned by the API server."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


ResourceMetadata.model_rebuild()
