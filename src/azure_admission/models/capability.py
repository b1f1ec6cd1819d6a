"""
Pydantic models for Azure Resource SKU capabilities.

The Resource SKU API describes each VM size as a list of heterogeneous
name/value capability pairs. ``ResourceSku`` mirrors that wire shape and
``CapabilityRecord`` is the typed view the admission policies consume.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

from azure_admission.constants import (
    CAPABILITY_ACCELERATED_NETWORKING,
    CAPABILITY_CPUS,
    CAPABILITY_MEMORY,
    CAPABILITY_PREMIUM_IO,
    CAPABILITY_SUPPORTED,
)
from azure_admission.errors import InvalidRequestError, UpstreamInvalidResponseError


class SkuCapability(BaseModel):
    """Single name/value capability pair."""

    name: str
    value: str = ""


class SkuLocationInfo(BaseModel):
    """Zones offered for a SKU in one location."""

    model_config = {"populate_by_name": True}

    location: str = ""
    zones: list[str] = Field(default_factory=list)


class ResourceSku(BaseModel):
    """Resource SKU entry as returned by the Azure Compute SKU API."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str = Field(..., description="VM size, e.g. Standard_D4s_v3")
    resource_type: str = Field("virtualMachines", alias="resourceType")
    locations: list[str] = Field(default_factory=list)
    location_info: list[SkuLocationInfo] = Field(
        default_factory=list, alias="locationInfo"
    )
    capabilities: list[SkuCapability] = Field(default_factory=list)

    def capability(self, name: str) -> str | None:
        """Return the raw value of the named capability, or None when absent."""
        for capability in self.capabilities:
            if capability.name == name:
                return capability.value
        return None

    def numeric_capability(self, name: str) -> int:
        """Return a capability that must be an integer.

        Raises:
            UpstreamInvalidResponseError: If the capability is absent or not
                an integer
        """
        raw = self.capability(name)
        if raw is None:
            raise UpstreamInvalidResponseError(
                "Azure Resource SKU API",
                f"capability '{name}' missing for VM size '{self.name}'",
            )
        try:
            return int(raw)
        except ValueError as e:
            raise UpstreamInvalidResponseError(
                "Azure Resource SKU API",
                f"capability '{name}' of VM size '{self.name}' is not an integer: {raw!r}",
                cause=e,
            ) from e

    def has_capability(self, name: str) -> bool:
        value = self.capability(name)
        return value is not None and value.lower() == CAPABILITY_SUPPORTED.lower()

    def zones(self, region: str) -> frozenset[str]:
        """Availability zones offered for this SKU in the given region."""
        for info in self.location_info:
            if info.location.lower() == region.lower():
                return frozenset(info.zones)
        return frozenset()


@dataclass(frozen=True)
class CapabilityKey:
    """Cache key; both parts must be non-empty."""

    region: str
    instance_type: str

    @classmethod
    def of(cls, region: str, instance_type: str) -> CapabilityKey:
        if not region:
            raise InvalidRequestError("region must not be empty", field="region")
        if not instance_type:
            raise InvalidRequestError(
                "instance type must not be empty", field="instanceType"
            )
        return cls(region=region, instance_type=instance_type)


@dataclass(frozen=True)
class CapabilityRecord:
    """Typed hardware facts for one VM size in one region."""

    instance_type: str
    memory_gb: int
    vcpus: int
    supports_premium_storage: bool
    supports_accelerated_networking: bool
    availability_zones: frozenset[str]

    @classmethod
    def from_sku(cls, sku: ResourceSku, region: str) -> CapabilityRecord:
        return cls(
            instance_type=sku.name,
            memory_gb=sku.numeric_capability(CAPABILITY_MEMORY),
            vcpus=sku.numeric_capability(CAPABILITY_CPUS),
            supports_premium_storage=sku.has_capability(CAPABILITY_PREMIUM_IO),
            supports_accelerated_networking=sku.has_capability(
                CAPABILITY_ACCELERATED_NETWORKING
            ),
            availability_zones=sku.zones(region),
        )
