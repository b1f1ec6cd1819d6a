"""
Unit tests for the VM capability cache.

The capability source is a stub that counts fetches, so cache behaviour is
observable without talking to Azure.
"""

import asyncio

import pytest

from azure_admission.errors import (
    InvalidRequestError,
    SkuNotFoundError,
    UpstreamInvalidResponseError,
    UpstreamUnavailableError,
    is_invalid_request,
    is_not_found,
    is_upstream_invalid_response,
)
from azure_admission.vmcapabilities import VMCapabilityCache
from azure_admission.vmcapabilities.cache import location_filter
from tests.fixtures.resources import LOCATION, sku
from tests.fixtures.stubs import StubCapabilitySource


@pytest.fixture
def cache(capability_source):
    return VMCapabilityCache(capability_source)


class TestLookups:
    """Typed capability queries."""

    @pytest.mark.asyncio
    async def test_memory_and_cpus(self, cache):
        assert await cache.memory(LOCATION, "Standard_D4s_v3") == 16
        assert await cache.cpus(LOCATION, "Standard_D4s_v3") == 4

    @pytest.mark.asyncio
    async def test_region_fetched_with_location_filter(self, cache, capability_source):
        await cache.memory(LOCATION, "Standard_D4s_v3")

        assert capability_source.calls == [(LOCATION, "location eq 'westeurope'")]
        assert location_filter("eastus") == "location eq 'eastus'"

    @pytest.mark.asyncio
    async def test_has_capability(self, cache):
        assert await cache.has_capability(LOCATION, "Standard_D4s_v3", "PremiumIO")
        assert not await cache.has_capability(LOCATION, "Standard_D4_v3", "PremiumIO")

    @pytest.mark.asyncio
    async def test_has_capability_value_is_case_insensitive(self):
        entry = sku("Standard_X", premium_io=False)
        entry["capabilities"].append({"name": "EphemeralOSDiskSupported", "value": "TRUE"})
        cache = VMCapabilityCache(StubCapabilitySource({LOCATION: [entry]}))

        assert await cache.has_capability(LOCATION, "Standard_X", "EphemeralOSDiskSupported")

    @pytest.mark.asyncio
    async def test_has_capability_name_is_exact(self, cache):
        assert not await cache.has_capability(LOCATION, "Standard_D4s_v3", "premiumio")

    @pytest.mark.asyncio
    async def test_absent_capability_is_none(self, cache):
        assert await cache.capability(LOCATION, "Standard_D4s_v3", "GPUs") is None
        assert await cache.capability(LOCATION, "Standard_D4s_v3", "vCPUs") == "4"

    @pytest.mark.asyncio
    async def test_resolve_builds_record(self, cache):
        record = await cache.resolve(LOCATION, "Standard_F8")

        assert record.instance_type == "Standard_F8"
        assert record.memory_gb == 16
        assert record.vcpus == 8
        assert record.supports_premium_storage
        assert not record.supports_accelerated_networking
        assert record.availability_zones == frozenset({"1", "2"})

    @pytest.mark.asyncio
    async def test_supported_zones_sorted(self, cache):
        assert await cache.supported_zones(LOCATION, "Standard_D4s_v3") == ["1", "2", "3"]
        assert await cache.supported_zones(LOCATION, "Standard_D2s_v3") == []


class TestInvalidKeys:
    """Empty keys fail before the cache or the source is touched."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "region,instance_type", [("", "Standard_D4s_v3"), (LOCATION, ""), ("", "")]
    )
    async def test_empty_key_rejected(self, cache, capability_source, region, instance_type):
        with pytest.raises(InvalidRequestError) as exc_info:
            await cache.memory(region, instance_type)

        assert is_invalid_request(exc_info.value)
        assert capability_source.calls == []

    @pytest.mark.asyncio
    async def test_empty_capability_name_rejected(self, cache, capability_source):
        with pytest.raises(InvalidRequestError):
            await cache.has_capability(LOCATION, "Standard_D4s_v3", "")
        assert capability_source.calls == []


class TestCaching:
    """Region tables are fetched once and reused."""

    @pytest.mark.asyncio
    async def test_sequential_lookups_fetch_once(self, cache, capability_source):
        first = await cache.memory(LOCATION, "Standard_D4s_v3")
        second = await cache.memory(LOCATION, "Standard_D4s_v3")
        await cache.cpus(LOCATION, "Standard_F8")

        assert first == second
        assert len(capability_source.calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_type_in_known_region_is_not_found(self, cache, capability_source):
        await cache.memory(LOCATION, "Standard_D4s_v3")

        with pytest.raises(SkuNotFoundError) as exc_info:
            await cache.memory(LOCATION, "Standard_Nonexistent")

        assert is_not_found(exc_info.value)
        assert exc_info.value.instance_type == "Standard_Nonexistent"
        assert len(capability_source.calls) == 1

    @pytest.mark.asyncio
    async def test_regions_cached_independently(self, capability_source):
        capability_source.regions["eastus"] = [
            sku("Standard_D4s_v3", memory_gb=32, location="eastus")
        ]
        cache = VMCapabilityCache(capability_source)

        assert await cache.memory(LOCATION, "Standard_D4s_v3") == 16
        assert await cache.memory("eastus", "Standard_D4s_v3") == 32
        assert cache.cached_regions() == ["eastus", LOCATION]
        assert len(capability_source.calls) == 2

    @pytest.mark.asyncio
    async def test_empty_region_table_is_refetched(self, capability_source):
        cache = VMCapabilityCache(capability_source)

        for _ in range(2):
            with pytest.raises(SkuNotFoundError):
                await cache.memory("northpole", "Standard_D4s_v3")

        assert len(capability_source.calls) == 2
        assert cache.cached_regions() == []

    @pytest.mark.asyncio
    async def test_unknown_regions_leave_no_state(self, cache, capability_source):
        for i in range(200):
            with pytest.raises(SkuNotFoundError):
                await cache.memory(f"bogus-{i}", "Standard_D4s_v3")
        with pytest.raises(SkuNotFoundError):
            await cache.memory("bogus-0", "Standard_D4s_v3")

        assert cache._region_locks == {}
        assert cache._regions == {}
        assert len(capability_source.calls) == 201

    @pytest.mark.asyncio
    async def test_region_lock_released_after_concurrent_access(
        self, cache, capability_source
    ):
        capability_source.delay = 0.05

        await asyncio.gather(
            *(cache.memory(LOCATION, "Standard_D4s_v3") for _ in range(5)),
            *(cache.memory("bogus", "Standard_D4s_v3") for _ in range(5)),
            return_exceptions=True,
        )

        assert cache._region_locks == {}
        assert cache.cached_regions() == [LOCATION]

    @pytest.mark.asyncio
    async def test_concurrent_first_access_fetches_once(self, cache, capability_source):
        capability_source.delay = 0.05

        results = await asyncio.gather(
            *(cache.cpus(LOCATION, "Standard_D4s_v3") for _ in range(20))
        )

        assert results == [4] * 20
        assert len(capability_source.calls) == 1


class TestFailures:
    """Upstream failures propagate and leave the cache untouched."""

    @pytest.mark.asyncio
    async def test_non_numeric_cpus_is_invalid_response(self):
        entry = sku("Standard_Broken", vcpus="four")
        cache = VMCapabilityCache(StubCapabilitySource({LOCATION: [entry]}))

        with pytest.raises(UpstreamInvalidResponseError) as exc_info:
            await cache.cpus(LOCATION, "Standard_Broken")

        assert is_upstream_invalid_response(exc_info.value)
        # Memory of the same SKU still parses
        assert await cache.memory(LOCATION, "Standard_Broken") == 16

    @pytest.mark.asyncio
    async def test_fractional_memory_is_invalid_response(self):
        entry = sku("Standard_B1ls", memory_gb="0.5")
        cache = VMCapabilityCache(StubCapabilitySource({LOCATION: [entry]}))

        with pytest.raises(UpstreamInvalidResponseError):
            await cache.memory(LOCATION, "Standard_B1ls")

    @pytest.mark.asyncio
    async def test_missing_numeric_capability_is_invalid_response(self):
        entry = sku("Standard_X")
        entry["capabilities"] = [c for c in entry["capabilities"] if c["name"] != "MemoryGB"]
        cache = VMCapabilityCache(StubCapabilitySource({LOCATION: [entry]}))

        with pytest.raises(UpstreamInvalidResponseError):
            await cache.memory(LOCATION, "Standard_X")

    @pytest.mark.asyncio
    async def test_failed_fetch_is_not_cached(self, cache, capability_source):
        capability_source.failures_remaining = 1

        with pytest.raises(UpstreamUnavailableError):
            await cache.memory(LOCATION, "Standard_D4s_v3")
        assert cache.cached_regions() == []

        assert await cache.memory(LOCATION, "Standard_D4s_v3") == 16
        assert len(capability_source.calls) == 2

    @pytest.mark.asyncio
    async def test_fetch_timeout_surfaces_and_is_not_cached(self, capability_source):
        capability_source.delay = 1.0
        cache = VMCapabilityCache(capability_source, fetch_timeout=0.01)

        with pytest.raises(TimeoutError):
            await cache.memory(LOCATION, "Standard_D4s_v3")

        assert cache.cached_regions() == []

    @pytest.mark.asyncio
    async def test_caller_cancellation_surfaces(self, cache, capability_source):
        capability_source.delay = 1.0

        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.01):
                await cache.memory(LOCATION, "Standard_D4s_v3")

        capability_source.delay = 0.0
        assert await cache.memory(LOCATION, "Standard_D4s_v3") == 16
        assert len(capability_source.calls) == 2
        assert cache._region_locks == {}
