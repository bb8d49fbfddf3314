"""
Version resolution.

Determines which toolchain version a project wants, consulting sources in
priority order (first match wins):

1. Pin file at the project root (``.zigversion``)
2. Minimum version declared in the project manifest (``build.zig.zon``)
3. The ``version`` option of the configuration store
4. Latest stable release

Without a project root only sources 3 and 4 are consulted. ``select_release``
then turns the requirement into a concrete entry of a release index.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

from zigkit.core.exceptions import InvalidVersionError, NoSatisfyingVersion
from zigkit.core.interfaces import (
    ConfigurationStore,
    ManifestMinimumVersion,
    ManifestReader,
)
from zigkit.toolchain.index import ReleaseEntry, ReleaseIndex
from zigkit.toolchain.project import PinFile, ZonManifestReader
from zigkit.toolchain.versions import (
    Channel,
    RequirementKind,
    VersionRequirement,
    parse_version,
)

logger = logging.getLogger(__name__)


class VersionSource(str, Enum):
    """Where a wanted version came from."""

    PINNED_FILE = "pinned-file"
    MANIFEST_MINIMUM = "manifest-minimum"
    CONFIG_OPTION = "config-option"
    LATEST_STABLE = "latest-stable"
    EXPLICIT_PATH = "explicit-path"


class IndexSource(Protocol):
    def fetch_index(self, channel: Union[Channel, str]) -> ReleaseIndex: ...


class VersionResolver:
    """
    Resolves the wanted version from project files and configuration.

    Example:
        >>> resolver = VersionResolver(store, project_root=Path("."))
        >>> requirement, source = resolver.resolve()
        >>> print(requirement, source.value)
        0.13.0 pinned-file
    """

    def __init__(
        self,
        config_store: ConfigurationStore,
        project_root: Optional[Path] = None,
        pin_file_name: str = ".zigversion",
        manifest_file_name: str = "build.zig.zon",
        manifest_reader: Optional[ManifestReader] = None,
    ):
        """
        Initialize resolver.

        Args:
            config_store: Configuration store holding the ``version`` option
            project_root: Project root, or None when no project is open
            pin_file_name: Name of the pin file at the project root
            manifest_file_name: Name of the manifest at the project root
            manifest_reader: Manifest reader override (default reads
                ``manifest_file_name`` under ``project_root``)
        """
        self.config_store = config_store
        self.project_root = Path(project_root) if project_root else None
        self.pin_file = (
            PinFile(self.project_root / pin_file_name) if self.project_root else None
        )
        if manifest_reader is None and self.project_root is not None:
            manifest_reader = ZonManifestReader(self.project_root / manifest_file_name)
        self.manifest_reader = manifest_reader

    def resolve(self) -> Tuple[VersionRequirement, VersionSource]:
        """
        Determine the wanted version.

        Unparseable values are logged and the next source is consulted.
        """
        if self.pin_file is not None:
            pinned = self.pin_file.read()
            if pinned:
                try:
                    return VersionRequirement.parse(pinned), VersionSource.PINNED_FILE
                except InvalidVersionError as e:
                    logger.warning(f"Ignoring {self.pin_file.path}: {e}")

        if self.project_root is not None:
            minimum = self.manifest_minimum()
            if minimum is not None:
                return (
                    VersionRequirement.minimum(minimum.version),
                    VersionSource.MANIFEST_MINIMUM,
                )

        configured = self.config_store.get_version()
        if configured:
            try:
                return VersionRequirement.parse(configured), VersionSource.CONFIG_OPTION
            except InvalidVersionError as e:
                logger.warning(f"Ignoring configured version: {e}")

        return VersionRequirement.latest_stable(), VersionSource.LATEST_STABLE

    def manifest_minimum(self) -> Optional[ManifestMinimumVersion]:
        if self.manifest_reader is None:
            return None
        return self.manifest_reader.read_minimum_version()

    def check_minimum(self, version: str) -> Optional[str]:
        """
        Check an installed version against the manifest's minimum.

        Returns:
            A warning message when the version is below the declared minimum,
            None otherwise
        """
        minimum = self.manifest_minimum()
        if minimum is None:
            return None
        if parse_version(version) >= parse_version(minimum.version):
            return None
        return (
            f"Version {version} does not satisfy the minimum version "
            f"{minimum.version} declared in {minimum.location}"
        )

    def save_wanted_version(
        self, version: str, source: Optional[VersionSource] = None
    ) -> VersionSource:
        """
        Persist a chosen version where the wanted version is read from.

        Args:
            version: Version (or sentinel) to save
            source: Where to save it; defaults to the pin file when a project
                is open, otherwise the configuration store

        Returns:
            The source that was written
        """
        requirement = VersionRequirement.parse(version)

        if source is None:
            source = (
                VersionSource.PINNED_FILE
                if self.pin_file is not None
                else VersionSource.CONFIG_OPTION
            )

        if source == VersionSource.PINNED_FILE:
            if self.pin_file is None:
                raise ValueError("Cannot write a pin file without a project root")
            self.pin_file.write(version)
        elif source == VersionSource.MANIFEST_MINIMUM:
            if self.manifest_reader is None:
                raise ValueError("No manifest available to update")
            if requirement.kind != RequirementKind.EXACT:
                raise ValueError("A minimum version must be a concrete version")
            self.manifest_reader.replace_minimum_version(version)
        elif source == VersionSource.CONFIG_OPTION:
            self.config_store.set_version(version)
        else:
            raise ValueError(f"Cannot save a version to source '{source.value}'")

        return source


def select_release(
    requirement: VersionRequirement, indexes: IndexSource, host_triple: str
) -> ReleaseEntry:
    """
    Pick the release entry that satisfies a requirement.

    - exact: the listed version (nightly index for prerelease versions)
    - minimum: newest stable release at or above the bound, else the newest
      nightly build if it satisfies the bound
    - latest-stable / latest-nightly: newest entry of that channel

    Raises:
        NoSatisfyingVersion: If no entry satisfies the requirement or the
            chosen entry has no artifact for ``host_triple``
        IndexUnavailable: If a needed index cannot be fetched
    """
    entry = _select_entry(requirement, indexes)

    if entry.artifact_for(host_triple) is None:
        raise NoSatisfyingVersion(
            requirement, f"{entry.version} has no build for {host_triple}"
        )

    logger.info(f"Selected version {entry.version} for requirement {requirement}")
    return entry


def _select_entry(
    requirement: VersionRequirement, indexes: IndexSource
) -> ReleaseEntry:
    if requirement.kind == RequirementKind.EXACT:
        index = indexes.fetch_index(requirement.channel)
        entry = index.get(requirement.version)
        if entry is None:
            raise NoSatisfyingVersion(
                requirement,
                f"{requirement.version} is not listed in the {index.channel.value} index",
            )
        return entry

    if requirement.kind == RequirementKind.MINIMUM:
        stable = indexes.fetch_index(Channel.STABLE)
        candidates = [e for e in stable if requirement.satisfied_by(e.version)]
        if candidates:
            return candidates[-1]

        nightly = indexes.fetch_index(Channel.NIGHTLY).latest()
        if nightly is not None and requirement.satisfied_by(nightly.version):
            return nightly
        raise NoSatisfyingVersion(requirement, "no stable or nightly release is recent enough")

    index = indexes.fetch_index(requirement.channel)
    latest = index.latest()
    if latest is None:
        raise NoSatisfyingVersion(
            requirement, f"the {index.channel.value} index lists no versions"
        )
    return latest


__all__ = ["VersionSource", "VersionResolver", "select_release"]
