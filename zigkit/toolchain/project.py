"""
Project files that declare a wanted toolchain version.

- The pin file (``.zigversion``) holds a single version or sentinel.
- The manifest (``build.zig.zon``) may declare ``.minimum_zig_version``.
  It is located with a text search rather than a full parser, which is
  enough to read the value and rewrite it in place.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from zigkit.core.exceptions import ConfigError
from zigkit.core.filesystem import atomic_write
from zigkit.core.interfaces import ManifestMinimumVersion, ManifestReader
from zigkit.toolchain.versions import is_valid_version

logger = logging.getLogger(__name__)

MINIMUM_VERSION_PATTERN = re.compile(
    r'^\s*\.minimum_zig_version\s*=\s*"([^"\n]*)"', re.MULTILINE
)


class PinFile:
    """A file at the project root naming the wanted version."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        """Return the pinned value, or None if the file is absent or blank."""
        if not self.path.is_file():
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return None

        for line in text.splitlines():
            if line.strip():
                return line.strip()
        return None

    def write(self, version: str) -> None:
        atomic_write(self.path, f"{version}\n")
        logger.info(f"Pinned version {version} in {self.path}")


class ZonManifestReader(ManifestReader):
    """Reads ``.minimum_zig_version`` from a ``build.zig.zon`` manifest."""

    def __init__(self, manifest_path: Path):
        self.manifest_path = Path(manifest_path)

    def read_minimum_version(self) -> Optional[ManifestMinimumVersion]:
        if not self.manifest_path.is_file():
            return None

        try:
            text = self.manifest_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {self.manifest_path}: {e}")
            return None

        match = MINIMUM_VERSION_PATTERN.search(text)
        if not match:
            return None

        version = match.group(1)
        if not is_valid_version(version):
            logger.warning(
                f"Ignoring invalid minimum version '{version}' in {self.manifest_path}"
            )
            return None

        return ManifestMinimumVersion(
            version=version,
            location=self.manifest_path,
            span=(match.start(1), match.end(1)),
        )

    def replace_minimum_version(self, version: str) -> None:
        """
        Rewrite the declared minimum version, leaving the rest of the file intact.

        Raises:
            ConfigError: If the manifest declares no minimum version
        """
        current = self.read_minimum_version()
        if current is None:
            raise ConfigError(
                f"{self.manifest_path} does not declare a minimum version to update"
            )

        text = self.manifest_path.read_text(encoding="utf-8")
        start, end = current.span
        atomic_write(self.manifest_path, text[:start] + version + text[end:])
        logger.info(f"Updated minimum version to {version} in {self.manifest_path}")


__all__ = ["PinFile", "ZonManifestReader", "MINIMUM_VERSION_PATTERN"]
