"""
Directory layout for zigkit.

Data directory (~/.zigkit/ or %USERPROFILE%\\.zigkit\\, overridable with
ZIGKIT_HOME):
    - config.yaml     : Engine settings (index URLs, mirrors, public key, ...)
    - settings.yaml   : Configuration store (wanted version, explicit path)
    - toolchains/     : Default install directory

Install directory (settings ``install_dir``):
    - versions/<v>/   : One extracted toolchain per installed version
    - current         : Atomic pointer to the active version directory
    - staging/        : Scratch space for downloads and extractions
    - lock/           : Cross-process lock files
"""

import os
from dataclasses import dataclass
from pathlib import Path


class DirectoryError(Exception):
    """Base exception for directory-related errors."""

    pass


def get_data_dir() -> Path:
    """
    Get the zigkit data directory.

    Returns:
        Path: ``$ZIGKIT_HOME`` when set, otherwise
            - Windows: %USERPROFILE%\\.zigkit
            - Linux/macOS: ~/.zigkit/
    """
    override = os.environ.get("ZIGKIT_HOME")
    if override:
        return Path(override)

    if os.name == "nt":
        user_profile = os.environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine zigkit data directory."
            )
        return Path(user_profile) / ".zigkit"
    return Path.home() / ".zigkit"


@dataclass(frozen=True)
class InstallLayout:
    """Paths inside an install directory."""

    root: Path

    @property
    def versions_dir(self) -> Path:
        return self.root / "versions"

    @property
    def current_link(self) -> Path:
        return self.root / "current"

    @property
    def staging_dir(self) -> Path:
        return self.root / "staging"

    @property
    def lock_dir(self) -> Path:
        return self.root / "lock"

    def version_dir(self, version: str) -> Path:
        return self.versions_dir / version

    def ensure(self) -> "InstallLayout":
        """Create the directory structure if it doesn't exist."""
        for path in (self.versions_dir, self.staging_dir, self.lock_dir):
            path.mkdir(parents=True, exist_ok=True)
        return self


__all__ = ["DirectoryError", "InstallLayout", "get_data_dir"]
