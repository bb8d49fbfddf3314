"""
Core functionality for zigkit.

This package contains the foundational modules that other components depend on.
"""

from .directory import DirectoryError, InstallLayout, get_data_dir

from .locking import LockManager, LockTimeout

from .platform import PlatformInfo, detect_platform, clear_platform_cache

from .interfaces import ConfigurationStore, ManifestMinimumVersion, ManifestReader

from .exceptions import (
    ZigkitError,
    ConfigError,
    ResolutionError,
    InvalidVersionError,
    NoSatisfyingVersion,
    IndexUnavailable,
    IndexParseError,
    InstallError,
    DownloadFailed,
    SignatureInvalid,
    ExtractionFailed,
    VersionMismatch,
    PathInvalid,
    MinisignFormatError,
)

__all__ = [
    # Directory
    "DirectoryError",
    "InstallLayout",
    "get_data_dir",
    # Locking
    "LockManager",
    "LockTimeout",
    # Platform
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
    # Interfaces
    "ConfigurationStore",
    "ManifestMinimumVersion",
    "ManifestReader",
    # Exceptions
    "ZigkitError",
    "ConfigError",
    "ResolutionError",
    "InvalidVersionError",
    "NoSatisfyingVersion",
    "IndexUnavailable",
    "IndexParseError",
    "InstallError",
    "DownloadFailed",
    "SignatureInvalid",
    "ExtractionFailed",
    "VersionMismatch",
    "PathInvalid",
    "MinisignFormatError",
]
