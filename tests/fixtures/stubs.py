"""
In-memory stand-ins for the object store and the capability source.

Both record their calls so tests can assert how often upstreams were hit.
"""

import asyncio
from typing import Any

from azure_admission.errors import UpstreamUnavailableError
from azure_admission.models.capability import ResourceSku


class InMemoryObjectStore:
    """Object store serving fixed resources, recording every call."""

    def __init__(self, objects: dict[str, list[dict[str, Any]]] | None = None):
        self.objects = objects or {}
        self.list_calls: list[str] = []
        self.get_calls: list[tuple[str, str, str | None]] = []
        self.fail_with: Exception | None = None

    async def list(self, kind: str, namespace: str | None = None):
        self.list_calls.append(kind)
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.objects.get(kind, []))

    async def get(self, kind: str, name: str, namespace: str | None = None):
        self.get_calls.append((kind, name, namespace))
        if self.fail_with is not None:
            raise self.fail_with
        for obj in self.objects.get(kind, []):
            if obj["metadata"]["name"] == name:
                return obj
        return None


class StubCapabilitySource:
    """Capability source serving fixed SKU lists per region."""

    def __init__(self, regions: dict[str, list[dict[str, Any]]] | None = None):
        self.regions = regions or {}
        self.calls: list[tuple[str, str]] = []
        self.delay = 0.0
        self.failures_remaining = 0

    async def list_capabilities(self, region: str, filter_expr: str):
        self.calls.append((region, filter_expr))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failures_remaining:
            self.failures_remaining -= 1
            raise UpstreamUnavailableError("Azure Resource SKU API", "connection refused")
        return [ResourceSku.model_validate(item) for item in self.regions.get(region, [])]
