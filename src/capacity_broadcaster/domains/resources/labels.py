"""Label policies deriving Advertisement labels from physical node labels."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from kubernetes.utils import parse_quantity  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field


class LabelAggregation(str, Enum):
    """How the values found on several nodes are combined into one label value."""

    FIRST = "first"
    ANY_TRUE = "any-true"
    ALL_TRUE = "all-true"
    MIN = "min"
    MAX = "max"


class LabelPolicy(BaseModel):
    """Maps a physical node label to an Advertisement label."""

    model_config = ConfigDict(populate_by_name=True)

    source_key: str = Field(..., alias="sourceKey", description="Node label to read")
    target_key: str | None = Field(
        None, alias="targetKey", description="Advertisement label to set (defaults to source)"
    )
    value: str | None = Field(None, description="Only consider nodes carrying this value")
    aggregation: LabelAggregation = Field(
        LabelAggregation.FIRST, description="How values from several nodes are combined"
    )

    @property
    def target(self) -> str:
        return self.target_key or self.source_key


def _matching_values(policy: LabelPolicy, nodes: Iterable[Any]) -> list[str]:
    values: list[str] = []
    for node in nodes:
        labels = node.metadata.labels or {}
        if policy.source_key not in labels:
            continue
        value = labels[policy.source_key]
        if policy.value is not None and value != policy.value:
            continue
        values.append(value)
    return values


def _numeric(value: str) -> Decimal | None:
    try:
        result: Decimal = parse_quantity(value)
    except (ValueError, InvalidOperation):
        return None
    return result


def _resolve(policy: LabelPolicy, nodes: Sequence[Any]) -> str | None:
    values = _matching_values(policy, nodes)
    if not values:
        return None

    if policy.aggregation == LabelAggregation.FIRST:
        return values[0]
    if policy.aggregation == LabelAggregation.ANY_TRUE:
        return "true" if any(v.lower() == "true" for v in values) else "false"
    if policy.aggregation == LabelAggregation.ALL_TRUE:
        # Nodes lacking the label count as false
        all_true = len(values) == len(nodes) and all(v.lower() == "true" for v in values)
        return "true" if all_true else "false"

    numeric = [(n, v) for v in values if (n := _numeric(v)) is not None]
    if not numeric:
        return None
    if policy.aggregation == LabelAggregation.MIN:
        return min(numeric, key=lambda item: item[0])[1]
    return max(numeric, key=lambda item: item[0])[1]


def compute_labels(
    physical_nodes: Iterable[Any], policies: Sequence[LabelPolicy]
) -> dict[str, str]:
    """Resolve the Advertisement labels.

    Nodes are visited in name order so the result does not depend on listing
    order. Policies are applied in the given order; the first policy that
    resolves a target key wins.
    """
    nodes = sorted(physical_nodes, key=lambda n: n.metadata.name or "")
    labels: dict[str, str] = {}
    for policy in policies:
        if policy.target in labels:
            continue
        value = _resolve(policy, nodes)
        if value is not None:
            labels[policy.target] = value
    return labels
