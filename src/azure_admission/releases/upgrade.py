"""
Release upgrade compatibility validation.

Rules are applied in order and the first match wins:

1. ``old == new`` is allowed without reading the catalog.
2. A target release missing from the catalog is denied.
3. Transitions touching an ignored release are allowed.
4. Downgrades are denied.
5. Crossing between an alpha and a non-alpha release is denied.
6. Patch upgrades within one minor line are allowed.
7. Major/minor upgrades are denied when a non-alpha, non-ignored release
   with a different minor line lies strictly between old and new.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from azure_admission.errors import UpgradeDeniedError
from azure_admission.releases.catalog import ReleaseCatalogEntry, VersionCatalogReader
from azure_admission.releases.version import SemanticVersion

logger = logging.getLogger(__name__)


class UpgradeReason(str, Enum):
    EQUAL = "equal"
    SUCCESS = "success"
    RELEASE_NOT_FOUND = "release-not-found"
    DOWNGRADE = "downgrade"
    ALPHA_BOUNDARY = "alpha-boundary"
    RELEASE_SKIPPED = "release-skipped"


@dataclass(frozen=True)
class UpgradeDecision:
    """Outcome of validating one release transition."""

    allowed: bool
    reason: UpgradeReason
    old: SemanticVersion
    new: SemanticVersion
    skipped: SemanticVersion | None = None

    @property
    def message(self) -> str:
        if self.reason == UpgradeReason.RELEASE_NOT_FOUND:
            return f"Release {self.new} was not found in this installation"
        if self.reason == UpgradeReason.DOWNGRADE:
            return (
                f"Downgrading is not allowed "
                f"(attempted to downgrade from {self.old} to {self.new})"
            )
        if self.reason == UpgradeReason.ALPHA_BOUNDARY:
            return (
                f"It is not possible to upgrade to or from an alpha release "
                f"(attempted to upgrade from {self.old} to {self.new})"
            )
        if self.reason == UpgradeReason.RELEASE_SKIPPED:
            return (
                f"Upgrading from {self.old} to {self.new} is not allowed "
                f"(skipped release {self.skipped})"
            )
        return f"Upgrade from {self.old} to {self.new} is allowed"

    def raise_for_denial(self) -> None:
        """Raise UpgradeDeniedError when the transition was denied."""
        if not self.allowed:
            raise UpgradeDeniedError(self)


def _allowed(reason, old, new) -> UpgradeDecision:
    return UpgradeDecision(allowed=True, reason=reason, old=old, new=new)


def _denied(reason, old, new, skipped=None) -> UpgradeDecision:
    return UpgradeDecision(
        allowed=False, reason=reason, old=old, new=new, skipped=skipped
    )


def validate_upgrade(
    old: SemanticVersion,
    new: SemanticVersion,
    catalog: Iterable[ReleaseCatalogEntry],
) -> UpgradeDecision:
    """
    Decide whether a cluster may move from release ``old`` to ``new``.

    Pure function over an already read catalog. Catalog order does not affect
    the outcome; when several releases are skipped the lowest one is reported.
    """
    if old == new:
        return _allowed(UpgradeReason.EQUAL, old, new)

    entries = list(catalog)
    if not any(entry.version == new for entry in entries):
        return _denied(UpgradeReason.RELEASE_NOT_FOUND, old, new)

    ignored = {entry.version for entry in entries if entry.ignored}
    if old in ignored or new in ignored:
        return _allowed(UpgradeReason.SUCCESS, old, new)

    if new < old:
        return _denied(UpgradeReason.DOWNGRADE, old, new)

    if old.is_alpha != new.is_alpha:
        return _denied(UpgradeReason.ALPHA_BOUNDARY, old, new)

    if old.major_minor == new.major_minor:
        return _allowed(UpgradeReason.SUCCESS, old, new)

    candidates = sorted(
        entry.version
        for entry in entries
        if not entry.ignored and not entry.version.is_alpha
    )
    for release in candidates:
        if release == old or release == new:
            continue
        if (
            old < release < new
            and release.major_minor != old.major_minor
            and release.major_minor != new.major_minor
        ):
            return _denied(UpgradeReason.RELEASE_SKIPPED, old, new, skipped=release)

    return _allowed(UpgradeReason.SUCCESS, old, new)


class ReleaseUpgradeValidator:
    """Validates release transitions against the live catalog."""

    def __init__(self, catalog_reader: VersionCatalogReader):
        self._catalog_reader = catalog_reader

    async def validate(
        self, old: SemanticVersion, new: SemanticVersion
    ) -> UpgradeDecision:
        """
        Validate a release transition.

        Equal versions are allowed before the catalog is read. Catalog read
        failures propagate; no decision is made without a full catalog.
        """
        if old == new:
            return _allowed(UpgradeReason.EQUAL, old, new)

        catalog = await self._catalog_reader.list_releases()
        decision = validate_upgrade(old, new, catalog)
        logger.debug(
            f"Release transition {old} -> {new}: {decision.reason.value}",
            extra={"allowed": decision.allowed, "reason": decision.reason.value},
        )
        return decision
