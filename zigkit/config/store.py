"""
Configuration store implementations.

``YamlConfigurationStore`` persists the wanted version and explicit
executable path to a small YAML file; ``MemoryConfigurationStore`` keeps them
in memory for embedding and tests.
"""

import logging
import threading
from pathlib import Path
from typing import Optional

import yaml

from zigkit.core.directory import get_data_dir
from zigkit.core.exceptions import ConfigError
from zigkit.core.filesystem import atomic_write
from zigkit.core.interfaces import ConfigurationStore

logger = logging.getLogger(__name__)


class MemoryConfigurationStore(ConfigurationStore):
    """In-memory configuration store."""

    def __init__(self, version: Optional[str] = None, path: Optional[str] = None):
        self._version = version
        self._path = path

    def get_version(self) -> Optional[str]:
        return self._version

    def set_version(self, version: Optional[str]) -> None:
        self._version = version

    def get_path(self) -> Optional[str]:
        return self._path

    def set_path(self, path: Optional[str]) -> None:
        self._path = path


class YamlConfigurationStore(ConfigurationStore):
    """
    Configuration store backed by a YAML file.

    The file holds two optional keys, ``version`` and ``path``. It is re-read
    on every access so edits made by other processes are picked up, and
    written with an atomic rename.

    Example:
        >>> store = YamlConfigurationStore()
        >>> store.set_version("0.13.0")
        >>> store.get_version()
        '0.13.0'
    """

    def __init__(self, file_path: Optional[Path] = None):
        self.file_path = Path(file_path) if file_path else get_data_dir() / "settings.yaml"
        self._lock = threading.Lock()

    def _load(self) -> dict:
        if not self.file_path.exists():
            return {}

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax in {self.file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self.file_path} must contain a mapping")
        return data

    def _get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        if value is None or value == "":
            return None
        return str(value)

    def _set(self, key: str, value: Optional[str]) -> None:
        with self._lock:
            data = self._load()
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            atomic_write(self.file_path, yaml.safe_dump(data, default_flow_style=False))
        logger.debug(f"Updated '{key}' in {self.file_path}")

    def get_version(self) -> Optional[str]:
        return self._get("version")

    def set_version(self, version: Optional[str]) -> None:
        self._set("version", version)

    def get_path(self) -> Optional[str]:
        return self._get("path")

    def set_path(self, path: Optional[str]) -> None:
        self._set("path", path)


__all__ = ["MemoryConfigurationStore", "YamlConfigurationStore"]
