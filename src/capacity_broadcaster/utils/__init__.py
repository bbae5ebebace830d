"""Utility functions and helpers for the capacity broadcaster."""

from capacity_broadcaster.utils.errors import (
    BroadcasterError,
    ConfigurationError,
    ConflictError,
    ListFailedError,
    NotFoundError,
    RemoteError,
    ResourceExistsError,
    StartupError,
)
from capacity_broadcaster.utils.labels import PeeringLabels, ResourceNames
from capacity_broadcaster.utils.quantity import (
    ResourceList,
    add_resource_lists,
    format_quantity,
    max_resource_lists,
    to_quantity_strings,
    to_resource_list,
)

__all__ = [
    # Errors
    "BroadcasterError",
    "NotFoundError",
    "RemoteError",
    "ConflictError",
    "ResourceExistsError",
    "ListFailedError",
    "ConfigurationError",
    "StartupError",
    # Labels and names
    "PeeringLabels",
    "ResourceNames",
    # Quantities
    "ResourceList",
    "add_resource_lists",
    "max_resource_lists",
    "format_quantity",
    "to_quantity_strings",
    "to_resource_list",
]
