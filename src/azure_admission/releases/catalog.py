"""
Version catalog reader.

Reads Release records from the object store and turns them into catalog
entries for the upgrade validator. A single unparseable release name fails
the whole read: skip detection is only sound over a fully parsed catalog.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import ValidationError

from azure_admission.constants import (
    KIND_RELEASE,
    RELEASE_COMPONENTS_CACHE_TTL,
    RELEASE_NAME_PREFIX,
)
from azure_admission.errors import NotFoundError, UpstreamInvalidResponseError
from azure_admission.models.release import ReleaseRecord
from azure_admission.releases.version import SemanticVersion

logger = logging.getLogger(__name__)

SERVICE_NAME = "Release catalog"


class ObjectStoreReader(Protocol):
    """Read access to stored resources by kind."""

    async def list(self, kind: str) -> list[dict[str, Any]]: ...

    async def get(
        self, kind: str, name: str, namespace: str | None = None
    ) -> dict[str, Any] | None: ...


@dataclass(frozen=True)
class ReleaseCatalogEntry:
    """One known release."""

    version: SemanticVersion
    raw_name: str
    ignored: bool = False


def release_name(version: str) -> str:
    """Release records are always named with a leading "v"."""
    if version.startswith(RELEASE_NAME_PREFIX):
        return version
    return f"{RELEASE_NAME_PREFIX}{version}"


def _decode_release(raw: dict[str, Any]) -> ReleaseRecord:
    try:
        return ReleaseRecord.model_validate(raw)
    except ValidationError as e:
        raise UpstreamInvalidResponseError(
            SERVICE_NAME, f"malformed Release record: {e}", cause=e
        ) from e


class VersionCatalogReader:
    """
    Lists known releases and their component versions.

    Component versions are memoised per release for ``components_cache_ttl``
    seconds; releases are immutable once published.
    """

    def __init__(
        self,
        store: ObjectStoreReader,
        components_cache_ttl: float = RELEASE_COMPONENTS_CACHE_TTL,
    ):
        self._store = store
        self._components_cache_ttl = components_cache_ttl
        self._components: dict[str, tuple[float, dict[str, str]]] = {}
        self._components_lock = asyncio.Lock()

    async def list_releases(self) -> list[ReleaseCatalogEntry]:
        """
        Read the full release catalog.

        Returns:
            Catalog entries in store order

        Raises:
            UpstreamUnavailableError: If listing releases failed
            UpstreamInvalidResponseError: If any release name is not a version
        """
        records = await self._store.list(KIND_RELEASE)
        entries = []
        for raw in records:
            record = _decode_release(raw)
            try:
                version = SemanticVersion.parse(record.name)
            except ValueError as e:
                raise UpstreamInvalidResponseError(
                    SERVICE_NAME,
                    f"release name '{record.name}' is not a semantic version",
                    cause=e,
                ) from e
            entries.append(
                ReleaseCatalogEntry(
                    version=version, raw_name=record.name, ignored=record.ignored
                )
            )
        logger.debug(f"Read {len(entries)} releases from catalog")
        return entries

    def _cached_components(self, name: str) -> dict[str, str] | None:
        cached = self._components.get(name)
        if cached is None:
            return None
        stored_at, components = cached
        if time.monotonic() - stored_at >= self._components_cache_ttl:
            return None
        return components

    async def component_versions(self, release_version: str) -> dict[str, str]:
        """
        Map component name to version for one release.

        Args:
            release_version: Release version with or without the "v" prefix

        Raises:
            NotFoundError: If no such release exists
        """
        name = release_name(release_version)
        components = self._cached_components(name)
        if components is not None:
            return dict(components)

        async with self._components_lock:
            components = self._cached_components(name)
            if components is None:
                raw = await self._store.get(KIND_RELEASE, name)
                if raw is None:
                    raise NotFoundError(
                        f"Release {name} was not found in this installation",
                        user_action="Use a release version that exists in the installation",
                    )
                components = _decode_release(raw).component_versions()
                self._components[name] = (time.monotonic(), components)
        return dict(components)

    async def contains_component(self, release_version: str, component: str) -> bool:
        components = await self.component_versions(release_version)
        return component in components
