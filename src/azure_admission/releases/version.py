"""
Semantic versions for platform releases.

Release names are parsed tolerantly: a leading ``v`` is stripped and missing
minor or patch components are filled with zero, so ``v13``, ``13.1`` and
``13.1.0`` are all accepted. Ordering follows SemVer 2.0 precedence with
build metadata ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering

# Numeric prerelease identifiers must not carry leading zeros
_PRERELEASE_IDENTIFIER = r"(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)"

_TOLERANT_VERSION = re.compile(
    r"^v?(0|[1-9]\d*)(?:\.(0|[1-9]\d*))?(?:\.(0|[1-9]\d*))?"
    rf"(?:-({_PRERELEASE_IDENTIFIER}(?:\.{_PRERELEASE_IDENTIFIER})*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def _prerelease_key(prerelease: str | None) -> tuple:
    # A version without prerelease outranks any prerelease of the same core
    if prerelease is None:
        return (1,)
    identifiers = []
    for part in prerelease.split("."):
        if part.isdigit():
            identifiers.append((0, int(part), ""))
        else:
            identifiers.append((1, 0, part))
    return (0, tuple(identifiers))


@total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """Immutable semantic version ordered by SemVer precedence."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str | None = None
    build: str | None = field(default=None, compare=False)

    @classmethod
    def parse(cls, text: str) -> SemanticVersion:
        """Parse a release name or version string.

        Raises:
            ValueError: If the text is not a (tolerant) semantic version
        """
        match = _TOLERANT_VERSION.match(text.strip()) if text else None
        if not match:
            raise ValueError(f"Invalid semantic version: {text!r}")
        major, minor, patch, prerelease, build = match.groups()
        return cls(
            major=int(major),
            minor=int(minor or 0),
            patch=int(patch or 0),
            prerelease=prerelease,
            build=build,
        )

    @property
    def is_alpha(self) -> bool:
        return self.prerelease is not None and "alpha" in self.prerelease

    @property
    def major_minor(self) -> tuple[int, int]:
        return (self.major, self.minor)

    def _precedence(self) -> tuple:
        return (self.major, self.minor, self.patch, _prerelease_key(self.prerelease))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._precedence() < other._precedence()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text
