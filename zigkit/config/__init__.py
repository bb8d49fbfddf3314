"""
Configuration for zigkit: engine settings and the configuration store.
"""

from zigkit.config.settings import (
    DEFAULT_INDEX_URLS,
    DEFAULT_MIRRORS,
    ZIG_PUBLIC_KEY,
    EngineSettings,
    default_config_path,
    load_settings,
    parse_settings,
)
from zigkit.config.store import MemoryConfigurationStore, YamlConfigurationStore

__all__ = [
    "DEFAULT_INDEX_URLS",
    "DEFAULT_MIRRORS",
    "ZIG_PUBLIC_KEY",
    "EngineSettings",
    "default_config_path",
    "load_settings",
    "parse_settings",
    "MemoryConfigurationStore",
    "YamlConfigurationStore",
]
