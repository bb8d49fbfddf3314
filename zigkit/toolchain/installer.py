"""
Toolchain installation.

Installs one release entry into the managed install directory:

1. Download the host archive (canonical URL, then each mirror)
2. Verify its minisign signature against the trusted key
3. Extract into a fresh directory under ``staging/``
4. Check the extracted executable reports the expected version
5. Rename the extracted tree to ``versions/<version>`` and repoint ``current``
6. Remove the previously current version (best effort)

Nothing under ``versions/`` or ``current`` changes before step 5, and step 5
runs under the install directory's file lock, so an interrupted install
leaves the previous toolchain active.
"""

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from zigkit.core.directory import InstallLayout
from zigkit.core.download import (
    ChecksumError,
    DownloadError,
    DownloadProgress,
    download_file,
    fetch_bytes,
)
from zigkit.core.exceptions import (
    ConfigError,
    DownloadFailed,
    ExtractionFailed,
    InstallError,
    MinisignFormatError,
    SignatureInvalid,
    VersionMismatch,
)
from zigkit.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    extract_archive,
    make_unique_directory,
    safe_rmtree,
)
from zigkit.core.locking import LockManager
from zigkit.core.platform import PlatformInfo, detect_platform
from zigkit.toolchain.index import HostArtifact, ReleaseEntry
from zigkit.toolchain.linking import CurrentPointer
from zigkit.toolchain.minisign import PublicKey, parse_public_key, verify
from zigkit.toolchain.query import VersionQueryError, query_version
from zigkit.toolchain.resolver import VersionSource
from zigkit.toolchain.state import ResolvedToolchain
from zigkit.toolchain.versions import is_valid_version, sort_versions, versions_equal

logger = logging.getLogger(__name__)


class Installer:
    """
    Installs, activates and removes toolchain versions in an install directory.

    Example:
        >>> installer = Installer.from_settings(load_settings())
        >>> toolchain = installer.install(entry, "0.13.0")
        >>> print(toolchain.exe_path)
        /home/me/.zigkit/toolchains/versions/0.13.0/zig
    """

    def __init__(
        self,
        install_dir: Path,
        public_key: Union[str, PublicKey],
        mirrors: Optional[List[str]] = None,
        exe_name: str = "zig",
        version_arg: str = "version",
        platform: Optional[PlatformInfo] = None,
        download_timeout: float = 60,
        download_retries: int = 2,
        query_timeout: float = 10,
        cleanup_previous: bool = True,
        lock_timeout: float = 300,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ):
        """
        Initialize installer.

        Args:
            install_dir: Managed install directory
            public_key: Trusted minisign public key
            mirrors: Mirror base URLs serving ``<base>/<archive filename>``
            exe_name: Executable name without platform suffix
            version_arg: Argument making the executable print its version
            platform: Host platform (auto-detected if None)
            download_timeout: Per-request timeout for archive downloads
            download_retries: Attempts per archive source
            query_timeout: Timeout for the version query
            cleanup_previous: Remove the previously current version after
                a successful install
            lock_timeout: Seconds to wait for the install lock
            progress_callback: Receives archive download progress

        Raises:
            ConfigError: If the public key is not a minisign public key
        """
        self.layout = InstallLayout(Path(install_dir))
        if isinstance(public_key, PublicKey):
            self.public_key = public_key
        else:
            try:
                self.public_key = parse_public_key(public_key)
            except MinisignFormatError as e:
                raise ConfigError(f"Invalid trusted public key: {e}") from e

        self.mirrors = [m.rstrip("/") for m in (mirrors or [])]
        self.platform = platform or detect_platform()
        self.exe_filename = self.platform.executable_name(exe_name)
        self.version_arg = version_arg
        self.download_timeout = download_timeout
        self.download_retries = download_retries
        self.query_timeout = query_timeout
        self.cleanup_previous = cleanup_previous
        self.lock_timeout = lock_timeout
        self.progress_callback = progress_callback
        self.pointer = CurrentPointer(self.layout.current_link, self.platform)

    @classmethod
    def from_settings(cls, settings, platform: Optional[PlatformInfo] = None, **kwargs):
        """Create an installer from EngineSettings."""
        return cls(
            install_dir=settings.install_dir,
            public_key=settings.public_key,
            mirrors=settings.mirrors,
            exe_name=settings.exe_name,
            version_arg=settings.version_arg,
            platform=platform,
            download_timeout=settings.download_timeout,
            download_retries=settings.download_retries,
            query_timeout=settings.version_query_timeout,
            cleanup_previous=settings.cleanup_previous,
            **kwargs,
        )

    @property
    def host_triple(self) -> str:
        return self.platform.host_triple()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exe_path(self, version: str) -> Path:
        return self.layout.version_dir(version).absolute() / self.exe_filename

    def is_installed(self, version: str) -> bool:
        return self.exe_path(version).is_file()

    def find_installed(self, version: str) -> Optional[str]:
        """Name of the installed slot holding ``version`` (``0.13`` finds ``0.13.0``)."""
        if self.is_installed(version):
            return version
        if not is_valid_version(version):
            return None
        for name in self.installed_versions():
            if versions_equal(name, version) and self.is_installed(name):
                return name
        return None

    def installed_versions(self) -> List[str]:
        """Installed versions, ascending."""
        versions_dir = self.layout.versions_dir
        if not versions_dir.is_dir():
            return []
        names = [
            p.name
            for p in versions_dir.iterdir()
            if p.is_dir() and not p.is_symlink() and is_valid_version(p.name)
        ]
        return sort_versions(names)

    def current_version(self) -> Optional[str]:
        """Version ``current`` points at, or None if unset or broken."""
        current = self._current_dir()
        return current.name if current is not None else None

    def _current_dir(self) -> Optional[Path]:
        target = self.pointer.resolve()
        if target is None or not target.is_dir():
            return None
        versions_dir = Path(os.path.normpath(self.layout.versions_dir.absolute()))
        if target.absolute().parent != versions_dir:
            logger.warning(f"'current' points outside the versions directory: {target}")
            return None
        return target

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(
        self,
        entry: ReleaseEntry,
        version: Optional[str] = None,
        source: Optional[VersionSource] = None,
    ) -> ResolvedToolchain:
        """
        Install a release and make it current.

        An already installed version that reports the right version is
        activated without downloading.

        Args:
            entry: Release entry to install
            version: Version name for the install slot (default: entry.version)
            source: Where the wanted version came from

        Returns:
            The installed toolchain

        Raises:
            InstallError: If the entry has no artifact for this host
            DownloadFailed: If no source delivered the archive and signature
            SignatureInvalid: If the archive signature does not verify
            ExtractionFailed: If extraction fails or no executable is found
            VersionMismatch: If the executable reports another version
        """
        version = version or entry.version
        artifact = entry.artifact_for(self.host_triple)
        if artifact is None:
            raise InstallError(f"{entry.version} has no build for {self.host_triple}")

        if self.is_installed(version):
            try:
                logger.info(f"Version {version} is already installed")
                return self.activate(version, source)
            except (VersionMismatch, VersionQueryError) as e:
                logger.warning(f"Reinstalling broken installation of {version}: {e}")

        self.layout.ensure()
        work_dir = make_unique_directory(self.layout.staging_dir, prefix=f"{version}-")
        try:
            archive_path, archive_url, signature = self._download(artifact, work_dir)
            self._verify_signature(archive_path, archive_url, signature)

            extract_dir = work_dir / "extract"
            self._extract(archive_path, extract_dir)
            archive_path.unlink()

            root = self._locate_root(extract_dir)
            self._check_version(root / self.exe_filename, version)

            target = self._publish(root, version, work_dir)
        finally:
            self._discard(work_dir)

        logger.info(f"Installed version {version} to {target}")
        return ResolvedToolchain(
            version=version, exe_path=self.exe_path(version), source=source
        )

    def _archive_sources(self, artifact: HostArtifact) -> List[str]:
        return [artifact.url] + [f"{m}/{artifact.filename}" for m in self.mirrors]

    def _download(
        self, artifact: HostArtifact, work_dir: Path
    ) -> Tuple[Path, str, bytes]:
        """
        Download the archive and its signature from the first working source.

        The signature comes from the same source as the archive unless the
        index embeds it.
        """
        archive_path = work_dir / artifact.filename
        failures = []

        for url in self._archive_sources(artifact):
            try:
                download_file(
                    url,
                    archive_path,
                    expected_sha256=artifact.shasum,
                    progress_callback=self.progress_callback,
                    timeout=self.download_timeout,
                    max_retries=self.download_retries,
                )
                signature = artifact.embedded_signature()
                if signature is None:
                    signature = fetch_bytes(
                        artifact.signature_url(url), timeout=self.download_timeout
                    )
                return archive_path, url, signature
            except (DownloadError, ChecksumError) as e:
                logger.warning(f"Archive source failed: {e}")
                failures.append(f"{url}: {e}")
                archive_path.unlink(missing_ok=True)

        raise DownloadFailed(
            f"Could not download {artifact.filename} from any source ({'; '.join(failures)})"
        )

    def _verify_signature(self, archive_path: Path, url: str, signature: bytes) -> None:
        if verify(self.public_key, archive_path.read_bytes(), signature):
            logger.debug(f"Signature verified for {archive_path.name}")
            return

        archive_path.unlink(missing_ok=True)
        logger.error(
            f"Signature verification failed for {archive_path.name} downloaded from {url}"
        )
        raise SignatureInvalid(
            f"Signature of {archive_path.name} from {url} does not verify "
            f"against key {self.public_key.key_id_hex}"
        )

    def _extract(self, archive_path: Path, extract_dir: Path) -> None:
        try:
            extract_archive(
                archive_path, extract_dir, archive_format=self.platform.archive_format()
            )
        except ArchiveExtractionError as e:
            raise ExtractionFailed(str(e)) from e

    def _locate_root(self, extract_dir: Path) -> Path:
        """Find the directory holding the executable: the root or one level down."""
        if (extract_dir / self.exe_filename).is_file():
            return extract_dir

        for child in sorted(extract_dir.iterdir()):
            if child.is_dir() and (child / self.exe_filename).is_file():
                return child

        raise ExtractionFailed(
            f"Archive does not contain '{self.exe_filename}' at its root or one level down"
        )

    def _check_version(self, exe_path: Path, expected: str) -> None:
        try:
            actual = query_version(exe_path, self.version_arg, timeout=self.query_timeout)
        except VersionQueryError as e:
            raise ExtractionFailed(f"Extracted executable is not usable: {e}") from e
        if not versions_equal(actual, expected):
            raise VersionMismatch(expected, actual)

    def _publish(self, root: Path, version: str, work_dir: Path) -> Path:
        """
        Move the extracted tree into its slot and repoint ``current``.

        A stale slot is moved aside into ``work_dir`` rather than deleted, so
        ``current`` never names a missing directory. It is put back if the new
        tree cannot be moved in, and otherwise discarded with ``work_dir``.
        """
        target = self.layout.version_dir(version)

        with self._lock():
            previous = self._current_dir()

            replaced = None
            if target.exists() or target.is_symlink():
                logger.warning(f"Replacing stale installation at {target}")
                replaced = work_dir / "replaced"
                target.rename(replaced)

            try:
                root.rename(target)
            except OSError:
                if replaced is not None:
                    replaced.rename(target)
                    logger.warning(f"Restored previous installation at {target}")
                raise

            self.pointer.point_to(target)

            if (
                self.cleanup_previous
                and previous is not None
                and previous.name != target.name
            ):
                try:
                    self._remove(previous)
                    logger.info(f"Removed previous version {previous.name}")
                except InstallError as e:
                    logger.warning(f"Could not remove previous version: {e}")

        return target

    def _discard(self, work_dir: Path) -> None:
        try:
            safe_rmtree(work_dir, require_prefix=self.layout.staging_dir)
        except FilesystemError as e:
            logger.warning(f"Could not clean staging directory {work_dir}: {e}")

    # ------------------------------------------------------------------
    # Other operations
    # ------------------------------------------------------------------

    def activate(
        self, version: str, source: Optional[VersionSource] = None
    ) -> ResolvedToolchain:
        """
        Make an installed version current without network access.

        Raises:
            InstallError: If the version is not installed
            VersionMismatch: If the installed executable reports another version
            VersionQueryError: If the installed executable cannot be run
        """
        exe_path = self.exe_path(version)
        if not exe_path.is_file():
            raise InstallError(f"Version {version} is not installed")

        actual = query_version(exe_path, self.version_arg, timeout=self.query_timeout)
        if not versions_equal(actual, version):
            raise VersionMismatch(version, actual)

        self.layout.ensure()
        with self._lock():
            if self.current_version() != version:
                self.pointer.point_to(self.layout.version_dir(version))

        logger.info(f"Activated version {version}")
        return ResolvedToolchain(version=version, exe_path=exe_path, source=source)

    def uninstall(self, version: str) -> None:
        """
        Remove an installed version.

        Raises:
            InstallError: If the version is not installed or is current
        """
        target = self.layout.version_dir(version)
        if not target.is_dir():
            raise InstallError(f"Version {version} is not installed")

        self.layout.ensure()
        with self._lock():
            if self.current_version() == version:
                raise InstallError(
                    f"Version {version} is the current version and cannot be removed"
                )
            self._remove(target)

        logger.info(f"Uninstalled version {version}")

    def cleanup_staging(self) -> int:
        """
        Remove downloads and extractions left behind by interrupted installs.

        Must not run while another process is installing into the same
        directory.

        Returns:
            Number of entries removed
        """
        staging = self.layout.staging_dir
        if not staging.is_dir():
            return 0

        removed = 0
        with self._lock():
            for child in staging.iterdir():
                try:
                    if child.is_dir() and not child.is_symlink():
                        safe_rmtree(child, require_prefix=staging)
                    else:
                        child.unlink()
                    removed += 1
                except (FilesystemError, OSError) as e:
                    logger.warning(f"Could not remove {child}: {e}")

        logger.info(f"Removed {removed} leftover staging entries")
        return removed

    def _remove(self, version_dir: Path) -> None:
        try:
            safe_rmtree(version_dir, require_prefix=self.layout.versions_dir)
        except (FilesystemError, ValueError) as e:
            raise InstallError(f"Failed to remove {version_dir}: {e}") from e

    def _lock(self):
        return LockManager(self.layout.lock_dir).install_lock(timeout=self.lock_timeout)


__all__ = ["Installer"]
