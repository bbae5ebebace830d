"""Pricing policies for advertised resources."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Protocol

from capacity_broadcaster.domains.resources.models import ContainerImage

GIB = 1024**3


class PricingPolicyName(str, Enum):
    """Available pricing policies."""

    FLAT = "flat"
    IMAGE_SIZE = "image-size"


class PricingPolicy(Protocol):
    """Derives a price per resource class from the image inventory."""

    def compute(self, images: Sequence[ContainerImage]) -> dict[str, float]: ...


class FlatRatePricing:
    """Fixed prices for cpu and memory, and the same price for every image."""

    def __init__(self, cpu: float = 1.0, memory: float = 0.002, image: float = 5.0) -> None:
        self.cpu = cpu
        self.memory = memory
        self.image = image

    def compute(self, images: Sequence[ContainerImage]) -> dict[str, float]:
        prices = {"cpu": self.cpu, "memory": self.memory}
        for image in images:
            prices[image.reference] = self.image
        return dict(sorted(prices.items()))


class ImageSizePricing:
    """Images are priced by size: pulling a large image elsewhere costs more."""

    def __init__(
        self,
        cpu: float = 1.0,
        memory: float = 0.002,
        image_base: float = 1.0,
        per_gib: float = 2.0,
    ) -> None:
        self.cpu = cpu
        self.memory = memory
        self.image_base = image_base
        self.per_gib = per_gib

    def compute(self, images: Sequence[ContainerImage]) -> dict[str, float]:
        prices = {"cpu": self.cpu, "memory": self.memory}
        for image in images:
            prices[image.reference] = round(self.image_base + self.per_gib * image.size / GIB, 4)
        return dict(sorted(prices.items()))


def get_pricing_policy(name: PricingPolicyName | str) -> PricingPolicy:
    """Return the pricing policy registered under a name."""
    policy = PricingPolicyName(name)
    if policy == PricingPolicyName.IMAGE_SIZE:
        return ImageSizePricing()
    return FlatRatePricing()


def compute_prices(
    images: Sequence[ContainerImage], policy: PricingPolicy | None = None
) -> dict[str, float]:
    """Compute the price mapping, using flat-rate pricing by default."""
    return (policy or FlatRatePricing()).compute(images)
