"""
Host platform detection for zigkit.

Release indexes key their downloadable artifacts by a host triple such as
``x86_64-linux`` or ``aarch64-macos``. This module detects the current host
and produces that triple, along with the archive format the host's releases
are published in.

Usage:
    from zigkit.core.platform import detect_platform

    platform_info = detect_platform()
    print(platform_info.host_triple())  # e.g. 'x86_64-linux'
"""

import functools
import platform
from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformInfo:
    """
    Host platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos', 'freebsd')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm', 'riscv64', ...)
        os_version: OS version string (kernel release, macOS version, ...)
    """

    os: str
    arch: str
    os_version: str = ""

    def platform_string(self) -> str:
        """
        Get canonical platform string (e.g., 'linux-x64', 'macos-arm64').

        Example:
            >>> PlatformInfo('linux', 'x64').platform_string()
            'linux-x64'
        """
        return f"{self.os}-{self.arch}"

    def host_triple(self) -> str:
        """
        Get the host identifier used as a key in release indexes.

        Example:
            >>> PlatformInfo('linux', 'x64').host_triple()
            'x86_64-linux'
            >>> PlatformInfo('macos', 'arm64').host_triple()
            'aarch64-macos'
        """
        arch_map = {
            "x64": "x86_64",
            "arm64": "aarch64",
            "x86": "x86",
            "arm": "armv7a",
        }
        return f"{arch_map.get(self.arch, self.arch)}-{self.os}"

    def archive_format(self) -> str:
        """Archive format releases for this host are published in."""
        return "zip" if self.os == "windows" else "tar.xz"

    def executable_name(self, name: str) -> str:
        """Append the platform executable suffix to a bare program name."""
        if self.os == "windows" and not name.lower().endswith(".exe"):
            return f"{name}.exe"
        return name

    def __str__(self) -> str:
        parts = [self.platform_string()]
        if self.os_version:
            parts.append(f"v{self.os_version}")
        return " ".join(parts)


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    This function is cached - it only runs detection once per process.

    Example:
        >>> platform_info = detect_platform()
        >>> print(f"Running on {platform_info.host_triple()}")
        Running on x86_64-linux
    """
    return PlatformInfo(
        os=_detect_os(), arch=_detect_architecture(), os_version=_detect_os_version()
    )


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'windows', 'linux', 'macos', 'freebsd'

    Raises:
        RuntimeError: If OS is not supported
    """
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    elif system == "freebsd":
        return "freebsd"
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'arm64', 'x86', 'arm', 'riscv64', ...
    """
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    elif machine in ("ppc64le", "powerpc64le"):
        return "powerpc64le"
    else:
        # riscv64, loongarch64, ... are used as-is by release indexes
        return machine


def _detect_os_version() -> str:
    system = platform.system().lower()

    if system == "darwin":
        version = platform.mac_ver()[0]
        return version if version else "unknown"
    elif system == "windows":
        return platform.version()
    return platform.release()


def clear_platform_cache():
    """
    Clear the platform detection cache.

    This forces the next call to detect_platform() to re-detect.
    Useful for testing.
    """
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "clear_platform_cache",
]
