"""
Per-region memoisation of VM capabilities.

The cache is populated wholesale per region on first access and never
expires. It is constructed once per process and handed to the policy
handlers; it is the only mutable state shared between admission reviews.

Concurrency model: all access happens on the kopf event loop. A region table
is built completely before it is published with a single dict assignment,
and published tables are read-only ``MappingProxyType`` views, so a lookup
either sees no table or a complete one. Populating a region is serialised by
a per-region ``asyncio.Lock`` that exists only while some task is fetching or
waiting on that region; cache hits never touch the lock. Regions that offer no
VM sizes are not cached, so unknown region names leave no state behind.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from types import MappingProxyType

from azure_admission.constants import (
    CAPABILITY_CPUS,
    CAPABILITY_MEMORY,
)
from azure_admission.errors import InvalidRequestError, SkuNotFoundError
from azure_admission.models.capability import (
    CapabilityKey,
    CapabilityRecord,
    ResourceSku,
)
from azure_admission.observability.metrics import metrics_collector
from azure_admission.vmcapabilities.source import CapabilitySource

logger = logging.getLogger(__name__)


def location_filter(region: str) -> str:
    return f"location eq '{region}'"


class VMCapabilityCache:
    """Typed capability queries over a lazily fetched SKU inventory."""

    def __init__(self, source: CapabilitySource, fetch_timeout: float | None = None):
        """
        Initialize the cache.

        Args:
            source: Capability source queried on a region miss
            fetch_timeout: Deadline in seconds for one region fetch, or None
        """
        self._source = source
        self._fetch_timeout = fetch_timeout
        self._regions: dict[str, Mapping[str, ResourceSku]] = {}
        self._region_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    async def _populate(self, region: str) -> Mapping[str, ResourceSku]:
        lock = self._region_locks.get(region)
        if lock is None:
            lock = self._region_locks[region] = asyncio.Lock()
        self._lock_users[region] = self._lock_users.get(region, 0) + 1
        try:
            async with lock:
                # Another task may have populated the region while we waited
                table = self._regions.get(region)
                if table:
                    return table
                return await self._fetch(region)
        finally:
            self._lock_users[region] -= 1
            if not self._lock_users[region]:
                del self._lock_users[region]
                del self._region_locks[region]

    async def _fetch(self, region: str) -> Mapping[str, ResourceSku]:
        filter_expr = location_filter(region)
        logger.debug(
            f"Initializing capability cache for region {region} with filter: {filter_expr}",
            extra={"region": region},
        )
        start_time = time.perf_counter()
        success = False
        try:
            async with asyncio.timeout(self._fetch_timeout):
                skus = await self._source.list_capabilities(region, filter_expr)
            success = True
        finally:
            metrics_collector.record_capability_fetch(
                success, time.perf_counter() - start_time
            )

        table = MappingProxyType({sku.name: sku for sku in skus})
        if not table:
            logger.debug(
                f"No VM sizes offered in region {region}, not caching",
                extra={"region": region},
            )
            return table

        self._regions[region] = table
        logger.info(
            f"Cached {len(table)} VM sizes for region {region}",
            extra={"region": region, "sku_count": len(table)},
        )
        return table

    async def _sku(self, region: str, instance_type: str) -> ResourceSku:
        key = CapabilityKey.of(region, instance_type)

        table = self._regions.get(key.region)
        if table:
            metrics_collector.record_capability_lookup(hit=True)
        else:
            metrics_collector.record_capability_lookup(hit=False)
            table = await self._populate(key.region)

        sku = table.get(key.instance_type)
        if sku is None:
            raise SkuNotFoundError(key.region, key.instance_type)
        return sku

    async def resolve(self, region: str, instance_type: str) -> CapabilityRecord:
        """
        Resolve the full capability record of a VM size.

        Raises:
            InvalidRequestError: If region or instance type is empty
            SkuNotFoundError: If the region does not offer the VM size
            UpstreamInvalidResponseError: If memory or vCPUs are not integers
            UpstreamUnavailableError: If the region could not be fetched
        """
        sku = await self._sku(region, instance_type)
        return CapabilityRecord.from_sku(sku, region)

    async def memory(self, region: str, instance_type: str) -> int:
        """Memory of the VM size in GB."""
        sku = await self._sku(region, instance_type)
        return sku.numeric_capability(CAPABILITY_MEMORY)

    async def cpus(self, region: str, instance_type: str) -> int:
        """Number of vCPUs of the VM size."""
        sku = await self._sku(region, instance_type)
        return sku.numeric_capability(CAPABILITY_CPUS)

    async def capability(
        self, region: str, instance_type: str, name: str
    ) -> str | None:
        """Raw capability value, or None when the SKU does not report it."""
        if not name:
            raise InvalidRequestError(
                "capability name must not be empty", field="capability"
            )
        sku = await self._sku(region, instance_type)
        return sku.capability(name)

    async def has_capability(self, region: str, instance_type: str, name: str) -> bool:
        """
        Whether the VM size reports the named capability as supported.

        The name matches exactly; the value is compared to "True" ignoring case.
        """
        if not name:
            raise InvalidRequestError(
                "capability name must not be empty", field="capability"
            )
        sku = await self._sku(region, instance_type)
        return sku.has_capability(name)

    async def supported_zones(self, region: str, instance_type: str) -> list[str]:
        """Availability zones of the VM size in the region, sorted."""
        sku = await self._sku(region, instance_type)
        return sorted(sku.zones(region))

    def cached_regions(self) -> list[str]:
        return sorted(region for region, table in self._regions.items() if table)
