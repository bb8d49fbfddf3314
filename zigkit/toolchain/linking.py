"""
Atomic "current version" pointer.

The install directory holds a ``current`` entry pointing at one of the
``versions/<v>`` directories. Repointing never exposes an intermediate
state: on Unix-like systems a new symlink is created beside the old one and
renamed over it (rename(2) is atomic); on Windows, where symlinks need extra
privileges, ``current`` is a marker file holding the relative target and is
replaced with an atomic rename as well.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from zigkit.core.filesystem import atomic_write
from zigkit.core.platform import PlatformInfo, detect_platform

logger = logging.getLogger(__name__)


class CurrentPointer:
    """Manages the atomic pointer to the active version directory."""

    def __init__(self, link_path: Path, platform: Optional[PlatformInfo] = None):
        """
        Initialize pointer.

        Args:
            link_path: Location of the pointer (``<install_dir>/current``)
            platform: PlatformInfo instance (auto-detected if None)
        """
        self.link_path = Path(link_path)
        self.platform = platform or detect_platform()
        self._use_marker = self.platform.os == "windows"

    def point_to(self, target: Path) -> None:
        """
        Atomically repoint to ``target``.

        Raises:
            FileNotFoundError: If target doesn't exist
            OSError: If the pointer cannot be replaced
        """
        target = Path(target)
        if not target.is_dir():
            raise FileNotFoundError(f"Target does not exist: {target}")

        self.link_path.parent.mkdir(parents=True, exist_ok=True)
        relative = os.path.relpath(target.absolute(), self.link_path.parent.absolute())

        if self._use_marker:
            atomic_write(self.link_path, relative)
        else:
            self._replace_symlink(relative)

        logger.info(f"Current version now points to {target}")

    def _replace_symlink(self, relative_target: str) -> None:
        temp_link = self.link_path.with_name(
            f".{self.link_path.name}.{uuid.uuid4().hex}.tmp"
        )
        try:
            os.symlink(relative_target, temp_link, target_is_directory=True)
            os.replace(temp_link, self.link_path)
        except OSError as e:
            logger.error(f"Failed to repoint {self.link_path}: {e}")
            if temp_link.is_symlink():
                temp_link.unlink()
            raise

    def resolve(self) -> Optional[Path]:
        """
        Return the directory the pointer names, or None if unset.

        The returned path may not exist if the pointer is broken.
        """
        try:
            if self.link_path.is_symlink():
                target = os.readlink(self.link_path)
            elif self.link_path.is_file():
                target = self.link_path.read_text(encoding="utf-8").strip()
            else:
                return None
        except OSError as e:
            logger.debug(f"Failed to read pointer {self.link_path}: {e}")
            return None

        if not target:
            return None
        path = Path(target)
        if not path.is_absolute():
            path = self.link_path.parent / path
        return Path(os.path.normpath(path))

    def is_valid(self) -> bool:
        """True if the pointer is set and its target directory exists."""
        target = self.resolve()
        return target is not None and target.is_dir()

    def clear(self) -> bool:
        """
        Remove the pointer.

        Returns:
            True if a pointer was removed
        """
        if self.link_path.is_symlink() or self.link_path.is_file():
            self.link_path.unlink()
            logger.info(f"Removed pointer: {self.link_path}")
            return True
        return False


__all__ = ["CurrentPointer"]
