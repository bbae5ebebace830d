"""Resource accounting, label policies and pricing for the home cluster."""

from capacity_broadcaster.domains.resources.accounting import ResourceAccountant, account
from capacity_broadcaster.domains.resources.labels import (
    LabelAggregation,
    LabelPolicy,
    compute_labels,
)
from capacity_broadcaster.domains.resources.models import (
    ContainerImage,
    NodeSet,
    ResourceEnvelope,
    ResourceSnapshot,
)
from capacity_broadcaster.domains.resources.prices import (
    FlatRatePricing,
    ImageSizePricing,
    PricingPolicy,
    PricingPolicyName,
    compute_prices,
    get_pricing_policy,
)

__all__ = [
    "ResourceAccountant",
    "account",
    "LabelAggregation",
    "LabelPolicy",
    "compute_labels",
    "ContainerImage",
    "NodeSet",
    "ResourceEnvelope",
    "ResourceSnapshot",
    "FlatRatePricing",
    "ImageSizePricing",
    "PricingPolicy",
    "PricingPolicyName",
    "compute_prices",
    "get_pricing_policy",
]
