"""
VM capability lookups backed by the Azure Resource SKU inventory.
"""

from .cache import VMCapabilityCache
from .source import AzureResourceSkuSource, CapabilitySource

__all__ = [
    "VMCapabilityCache",
    "CapabilitySource",
    "AzureResourceSkuSource",
]
