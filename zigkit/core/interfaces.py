"""
Collaborator interfaces for zigkit.

The engine consumes a configuration store and a project manifest reader
without knowing how either is persisted or surfaced to the user. Editor
integrations supply their own implementations; zigkit ships file-backed
ones for the CLI.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class ConfigurationStore(ABC):
    """
    Key-value source for the user's wanted version and explicit executable path.
    """

    @abstractmethod
    def get_version(self) -> Optional[str]:
        """Return the configured version string, or None when unset."""
        pass

    @abstractmethod
    def set_version(self, version: Optional[str]) -> None:
        """Store a version string (None clears it)."""
        pass

    @abstractmethod
    def get_path(self) -> Optional[str]:
        """Return the configured executable path, or None when unset."""
        pass

    @abstractmethod
    def set_path(self, path: Optional[str]) -> None:
        """Store an executable path (None clears it)."""
        pass


@dataclass(frozen=True)
class ManifestMinimumVersion:
    """Minimum version declared in a project manifest."""

    version: str
    location: Path
    """Manifest file the version was read from"""

    span: tuple[int, int]
    """Character offsets of the version text, for editing it in place"""


class ManifestReader(ABC):
    """
    Reads (and edits) the minimum toolchain version a project manifest declares.
    """

    @abstractmethod
    def read_minimum_version(self) -> Optional[ManifestMinimumVersion]:
        """Return the declared minimum version, or None if absent."""
        pass

    @abstractmethod
    def replace_minimum_version(self, version: str) -> None:
        """Rewrite the declared minimum version in place."""
        pass


__all__ = ["ConfigurationStore", "ManifestMinimumVersion", "ManifestReader"]
