"""Models for resource accounting snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from capacity_broadcaster.utils.quantity import ResourceList


class ContainerImage(BaseModel):
    """A container image present on a physical node."""

    reference: str = Field(..., description="Image reference (first name reported by the node)")
    size: int = Field(0, ge=0, description="Image size in bytes")

    def to_dict(self) -> dict[str, Any]:
        """Render in the Kubernetes container image shape."""
        return {"names": [self.reference], "sizeBytes": self.size}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContainerImage:
        names = data.get("names") or [""]
        return cls(reference=names[0], size=data.get("sizeBytes") or 0)


@dataclass
class NodeSet:
    """Cluster nodes split into physical and virtual partitions."""

    physical: list[Any] = field(default_factory=list)
    virtual: list[Any] = field(default_factory=list)

    @property
    def virtual_names(self) -> set[str]:
        return {node.metadata.name for node in self.virtual}


@dataclass
class ResourceEnvelope:
    """Exportable resources.

    ``availability`` is the shareable part of the allocatable capacity minus
    what pods already request; ``limits`` is the sum of pod limits.
    """

    availability: ResourceList = field(default_factory=dict)
    limits: ResourceList = field(default_factory=dict)


@dataclass
class ResourceSnapshot:
    """Everything the accountant derived from one read of the cluster."""

    nodes: NodeSet
    envelope: ResourceEnvelope
    images: list[ContainerImage] = field(default_factory=list)
