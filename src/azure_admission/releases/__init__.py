"""
Release catalog access and upgrade path validation.
"""

from .catalog import ReleaseCatalogEntry, VersionCatalogReader
from .upgrade import (
    ReleaseUpgradeValidator,
    UpgradeDecision,
    UpgradeReason,
    validate_upgrade,
)
from .version import SemanticVersion

__all__ = [
    "SemanticVersion",
    "ReleaseCatalogEntry",
    "VersionCatalogReader",
    "ReleaseUpgradeValidator",
    "UpgradeDecision",
    "UpgradeReason",
    "validate_upgrade",
]
