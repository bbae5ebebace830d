"""Resource quantity helpers.

Quantities are parsed with ``kubernetes.utils.parse_quantity`` into
``Decimal`` values so that repeated additions never drift, and rendered
back to Kubernetes quantity strings only at the wire boundary.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from kubernetes.utils import parse_quantity  # type: ignore[import-untyped]

ResourceList = dict[str, Decimal]

ZERO = Decimal(0)


def to_resource_list(raw: Mapping[str, Any] | None) -> ResourceList:
    """Parse a mapping of resource name to quantity string."""
    if not raw:
        return {}
    return {str(name): parse_quantity(value) for name, value in raw.items()}


def add_resource_lists(dst: ResourceList, to_add: Mapping[str, Decimal]) -> None:
    """Add every quantity of ``to_add`` into ``dst`` in place.

    A resource class seen for the first time starts from zero.
    """
    for name, value in to_add.items():
        dst[name] = dst.get(name, ZERO) + value


def max_resource_lists(dst: ResourceList, other: Mapping[str, Decimal]) -> None:
    """Raise every quantity of ``dst`` to at least the value found in ``other``."""
    for name, value in other.items():
        current = dst.get(name)
        if current is None or value > current:
            dst[name] = value


def format_quantity(value: Decimal) -> str:
    """Render a Decimal as a Kubernetes quantity string."""
    if value == value.to_integral_value():
        return str(int(value))
    milli = value * 1000
    if milli == milli.to_integral_value():
        return f"{int(milli)}m"
    return format(value.normalize(), "f")


def to_quantity_strings(resources: Mapping[str, Decimal]) -> dict[str, str]:
    """Render a resource list for the wire, sorted by resource name."""
    return {name: format_quantity(resources[name]) for name in sorted(resources)}
