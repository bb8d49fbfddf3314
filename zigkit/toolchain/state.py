"""
Provider states and the resolved toolchain.

Every value here is immutable; observers receive the full state on each
transition and may keep it without copying.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from zigkit.toolchain.resolver import VersionSource
from zigkit.toolchain.versions import VersionRequirement


@dataclass(frozen=True)
class ResolvedToolchain:
    """A usable toolchain executable and the version it reports."""

    version: str
    exe_path: Path
    source: Optional[VersionSource] = None
    warnings: Tuple[str, ...] = ()

    def with_warning(self, message: str) -> "ResolvedToolchain":
        return ResolvedToolchain(
            version=self.version,
            exe_path=self.exe_path,
            source=self.source,
            warnings=self.warnings + (message,),
        )


@dataclass(frozen=True)
class Uninitialized:
    name: str = field(default="uninitialized", init=False)


@dataclass(frozen=True)
class Installing:
    requirement: VersionRequirement
    source: Optional[VersionSource] = None
    name: str = field(default="installing", init=False)


@dataclass(frozen=True)
class Ready:
    toolchain: ResolvedToolchain
    name: str = field(default="ready", init=False)


@dataclass(frozen=True)
class Failed:
    error: Exception
    name: str = field(default="failed", init=False)

    @property
    def reason(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


ProviderState = Union[Uninitialized, Installing, Ready, Failed]


__all__ = [
    "ResolvedToolchain",
    "Uninitialized",
    "Installing",
    "Ready",
    "Failed",
    "ProviderState",
]
