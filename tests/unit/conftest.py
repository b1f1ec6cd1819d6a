"""Shared pytest fixtures for the decision engine and webhook tests."""

import kopf
import pytest

from azure_admission.releases import ReleaseUpgradeValidator, VersionCatalogReader
from azure_admission.vmcapabilities import VMCapabilityCache
from azure_admission.webhooks.common import AdmissionEngines
from tests.fixtures.resources import BASE_DOMAIN, LOCATION, release, sku
from tests.fixtures.stubs import InMemoryObjectStore, StubCapabilitySource

DEFAULT_RELEASES = ["12.0.0", "12.1.0", "13.0.0", "13.0.1", "13.1.0", "14.0.0"]

DEFAULT_SKUS = [
    sku("Standard_D4s_v3", memory_gb=16, vcpus=4, zones=["1", "2", "3"]),
    sku("Standard_D2s_v3", memory_gb=8, vcpus=2),
    sku("Standard_E2s_v3", memory_gb=16, vcpus=2),
    sku("Standard_D4_v3", memory_gb=16, vcpus=4, premium_io=False, zones=["1"]),
    sku(
        "Standard_F8",
        memory_gb=16,
        vcpus=8,
        accelerated_networking=False,
        zones=["1", "2"],
    ),
]


@pytest.fixture
def object_store():
    return InMemoryObjectStore({"Release": [release(v) for v in DEFAULT_RELEASES]})


@pytest.fixture
def capability_source():
    return StubCapabilitySource({LOCATION: DEFAULT_SKUS})


@pytest.fixture
def engines(object_store, capability_source):
    """Engines wired to in-memory stubs, as built at controller startup."""
    catalog = VersionCatalogReader(object_store)
    return AdmissionEngines(
        store=object_store,
        catalog=catalog,
        upgrades=ReleaseUpgradeValidator(catalog),
        capabilities=VMCapabilityCache(capability_source),
        installation_location=LOCATION,
        base_domain=BASE_DOMAIN,
        admission_timeout=5.0,
    )


@pytest.fixture
def memo(engines):
    memo = kopf.Memo()
    memo.engines = engines
    return memo
