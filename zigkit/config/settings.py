"""YAML engine settings for zigkit.

This module provides parsing and validation for the engine's config.yaml:
where toolchains are installed, where release indexes and archives come
from, and which key signs them. Every value has a default targeting the
official Zig distribution, so an absent file is a valid configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from zigkit.core.directory import get_data_dir
from zigkit.core.exceptions import ConfigError

# https://ziglang.org/download
ZIG_PUBLIC_KEY = "RWSGOq2NVecA2UPNdBUZykf1CCb147pkmdtYxgb3Ti+JO/wCYvhbAb/U"

DEFAULT_INDEX_URLS = {
    "stable": "https://ziglang.org/download/index.json",
    "nightly": "https://ziglang.org/download/index.json",
}

# Community mirrors, taken from https://github.com/mlugg/setup-zig/blob/main/mirrors.json
DEFAULT_MIRRORS = [
    "https://pkg.machengine.org/zig",
    "https://zigmirror.hryx.net/zig",
    "https://zig.linus.dev/zig",
    "https://fs.liujiacai.net/zigbuilds",
    "https://zigmirror.nesovic.dev/zig",
]


def default_config_path() -> Path:
    return get_data_dir() / "config.yaml"


@dataclass
class EngineSettings:
    """Complete engine configuration."""

    install_dir: Path = field(default_factory=lambda: get_data_dir() / "toolchains")
    index_urls: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_INDEX_URLS)
    )
    mirrors: List[str] = field(default_factory=lambda: list(DEFAULT_MIRRORS))
    public_key: str = ZIG_PUBLIC_KEY
    exe_name: str = "zig"
    version_arg: str = "version"
    index_timeout: float = 15.0
    download_timeout: float = 60.0
    download_retries: int = 2
    version_query_timeout: float = 10.0
    debounce_seconds: float = 0.2
    cleanup_previous: bool = True
    pin_file: str = ".zigversion"
    manifest_file: str = "build.zig.zon"


def load_settings(config_path: Optional[Path] = None) -> EngineSettings:
    """
    Load engine settings from a YAML file.

    Args:
        config_path: Path to config.yaml (default: <data dir>/config.yaml).
            A missing default file yields the defaults; a missing explicitly
            named file is an error.

    Returns:
        Parsed and validated settings

    Raises:
        ConfigError: If configuration is invalid
    """
    explicit = config_path is not None
    config_path = Path(config_path) if explicit else default_config_path()

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return EngineSettings()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if data is None:
        return EngineSettings()

    return parse_settings(data, base_dir=config_path.parent)


def parse_settings(data: dict, base_dir: Optional[Path] = None) -> EngineSettings:
    """
    Build settings from an already-loaded mapping.

    Relative ``install_dir`` values are resolved against ``base_dir``.

    Raises:
        ConfigError: If a value has the wrong type or an unknown key is present
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    settings = EngineSettings()
    known = set(settings.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    if "install_dir" in data:
        install_dir = Path(str(data["install_dir"])).expanduser()
        if not install_dir.is_absolute() and base_dir is not None:
            install_dir = base_dir / install_dir
        settings.install_dir = install_dir

    if "index_urls" in data:
        settings.index_urls = _parse_index_urls(data["index_urls"])

    if "mirrors" in data:
        mirrors = data["mirrors"] or []
        if not isinstance(mirrors, list) or not all(
            isinstance(m, str) for m in mirrors
        ):
            raise ConfigError("'mirrors' must be a list of URLs")
        settings.mirrors = [m.rstrip("/") for m in mirrors]

    for key in ("public_key", "exe_name", "version_arg", "pin_file", "manifest_file"):
        if key in data:
            value = data[key]
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"'{key}' must be a non-empty string")
            setattr(settings, key, value.strip())

    for key in (
        "index_timeout",
        "download_timeout",
        "version_query_timeout",
        "debounce_seconds",
    ):
        if key in data:
            setattr(settings, key, _parse_number(key, data[key]))

    if "download_retries" in data:
        retries = data["download_retries"]
        if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
            raise ConfigError("'download_retries' must be a positive integer")
        settings.download_retries = retries

    if "cleanup_previous" in data:
        if not isinstance(data["cleanup_previous"], bool):
            raise ConfigError("'cleanup_previous' must be true or false")
        settings.cleanup_previous = data["cleanup_previous"]

    return settings


def _parse_index_urls(data) -> Dict[str, str]:
    if not isinstance(data, dict):
        raise ConfigError("'index_urls' must be a mapping of channel to URL")

    urls = dict(DEFAULT_INDEX_URLS)
    for channel, url in data.items():
        if channel not in ("stable", "nightly"):
            raise ConfigError(
                f"Unknown channel '{channel}' in index_urls (use 'stable' or 'nightly')"
            )
        if not isinstance(url, str) or not url:
            raise ConfigError(f"index_urls.{channel} must be a URL")
        urls[channel] = url
    return urls


def _parse_number(key: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(f"'{key}' must be a non-negative number")
    return float(value)


__all__ = [
    "DEFAULT_INDEX_URLS",
    "DEFAULT_MIRRORS",
    "ZIG_PUBLIC_KEY",
    "EngineSettings",
    "default_config_path",
    "load_settings",
    "parse_settings",
]
