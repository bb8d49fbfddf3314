"""
Version ordering and version requirements.

Toolchain versions are semantic versions. Nightly builds carry a dev
component and build metadata (``0.14.0-dev.3028+cdc9d65b0``); they sort above
the stable release they follow, below the release they lead up to, and two
nightlies compare by dev build number and then build identifier.
Comparison is delegated to ``packaging.version``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from packaging.version import InvalidVersion, Version

from zigkit.core.exceptions import InvalidVersionError

LATEST_STABLE_ALIASES = ("latest", "stable")
LATEST_NIGHTLY_ALIASES = ("master", "nightly")


class Channel(str, Enum):
    """Release track."""

    STABLE = "stable"
    NIGHTLY = "nightly"


class RequirementKind(str, Enum):
    EXACT = "exact"
    MINIMUM = "minimum"
    LATEST_STABLE = "latest-stable"
    LATEST_NIGHTLY = "latest-nightly"


def parse_version(text: str) -> Version:
    """
    Parse a version string.

    Raises:
        InvalidVersionError: If the string is not a valid version
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidVersionError(f"Invalid version: {text!r}")
    try:
        return Version(text.strip())
    except InvalidVersion as e:
        raise InvalidVersionError(f"Invalid version: {text!r}") from e


def is_valid_version(text: str) -> bool:
    try:
        parse_version(text)
        return True
    except InvalidVersionError:
        return False


def version_channel(text: str) -> Channel:
    """Channel a concrete version is published on."""
    return Channel.NIGHTLY if parse_version(text).is_prerelease else Channel.STABLE


def versions_equal(a: str, b: str) -> bool:
    """Compare two version strings semantically (``0.13`` == ``0.13.0``)."""
    return parse_version(a) == parse_version(b)


def sort_versions(versions: Iterable[str]) -> List[str]:
    """Sort version strings ascending."""
    return sorted(versions, key=parse_version)


@dataclass(frozen=True)
class VersionRequirement:
    """
    A requested toolchain version.

    Example:
        >>> VersionRequirement.parse("0.13.0")
        VersionRequirement(kind=<RequirementKind.EXACT: 'exact'>, version='0.13.0')
        >>> VersionRequirement.parse("master").kind
        <RequirementKind.LATEST_NIGHTLY: 'latest-nightly'>
    """

    kind: RequirementKind
    version: Optional[str] = None

    def __post_init__(self):
        needs_version = self.kind in (RequirementKind.EXACT, RequirementKind.MINIMUM)
        if needs_version:
            parse_version(self.version)
        elif self.version is not None:
            raise ValueError(f"{self.kind.value} requirement takes no version")

    @classmethod
    def exact(cls, version: str) -> "VersionRequirement":
        return cls(RequirementKind.EXACT, version.strip())

    @classmethod
    def minimum(cls, version: str) -> "VersionRequirement":
        return cls(RequirementKind.MINIMUM, version.strip())

    @classmethod
    def latest_stable(cls) -> "VersionRequirement":
        return cls(RequirementKind.LATEST_STABLE)

    @classmethod
    def latest_nightly(cls) -> "VersionRequirement":
        return cls(RequirementKind.LATEST_NIGHTLY)

    @classmethod
    def parse(cls, text: str) -> "VersionRequirement":
        """
        Parse a user-supplied version: a concrete version or a sentinel.

        Raises:
            InvalidVersionError: If text is neither
        """
        value = (text or "").strip()
        if value.lower() in LATEST_STABLE_ALIASES:
            return cls.latest_stable()
        if value.lower() in LATEST_NIGHTLY_ALIASES:
            return cls.latest_nightly()
        return cls.exact(value)

    @property
    def channel(self) -> Channel:
        """Channel whose index should be consulted first."""
        if self.kind == RequirementKind.LATEST_NIGHTLY:
            return Channel.NIGHTLY
        if self.kind == RequirementKind.LATEST_STABLE:
            return Channel.STABLE
        return version_channel(self.version)

    def satisfied_by(self, version: str) -> bool:
        """Whether a concrete version meets this requirement."""
        candidate = parse_version(version)
        if self.kind == RequirementKind.EXACT:
            return candidate == parse_version(self.version)
        if self.kind == RequirementKind.MINIMUM:
            return candidate >= parse_version(self.version)
        if self.kind == RequirementKind.LATEST_NIGHTLY:
            return candidate.is_prerelease
        return not candidate.is_prerelease

    def __str__(self) -> str:
        if self.kind == RequirementKind.EXACT:
            return self.version
        if self.kind == RequirementKind.MINIMUM:
            return f">={self.version}"
        return self.kind.value


__all__ = [
    "Channel",
    "RequirementKind",
    "VersionRequirement",
    "is_valid_version",
    "parse_version",
    "sort_versions",
    "version_channel",
    "versions_equal",
]
