"""
Toolchain management module for zigkit.

This module provides functionality for:
- Version resolution from project files and configuration
- Release index retrieval with mirror fallback
- Minisign signature verification
- Atomic installation and activation of versions
- The provider state machine that ties them together
"""

from zigkit.toolchain.index import (
    HostArtifact,
    MemoizedIndexFetcher,
    ReleaseEntry,
    ReleaseIndex,
    ReleaseIndexFetcher,
    parse_index,
)
from zigkit.toolchain.installer import Installer
from zigkit.toolchain.linking import CurrentPointer
from zigkit.toolchain.minisign import (
    PublicKey,
    Signature,
    parse_public_key,
    parse_signature,
    verify,
)
from zigkit.toolchain.project import PinFile, ZonManifestReader
from zigkit.toolchain.provider import Subscription, ToolchainProvider
from zigkit.toolchain.query import VersionQueryError, query_version
from zigkit.toolchain.resolver import VersionResolver, VersionSource, select_release
from zigkit.toolchain.state import (
    Failed,
    Installing,
    ProviderState,
    Ready,
    ResolvedToolchain,
    Uninitialized,
)
from zigkit.toolchain.versions import (
    Channel,
    RequirementKind,
    VersionRequirement,
    parse_version,
    sort_versions,
)

__all__ = [
    # Index
    "HostArtifact",
    "MemoizedIndexFetcher",
    "ReleaseEntry",
    "ReleaseIndex",
    "ReleaseIndexFetcher",
    "parse_index",
    # Installation
    "Installer",
    "CurrentPointer",
    # Signatures
    "PublicKey",
    "Signature",
    "parse_public_key",
    "parse_signature",
    "verify",
    # Resolution
    "PinFile",
    "ZonManifestReader",
    "VersionResolver",
    "VersionSource",
    "select_release",
    "Channel",
    "RequirementKind",
    "VersionRequirement",
    "parse_version",
    "sort_versions",
    # Provider
    "Subscription",
    "ToolchainProvider",
    "VersionQueryError",
    "query_version",
    "Failed",
    "Installing",
    "ProviderState",
    "Ready",
    "ResolvedToolchain",
    "Uninitialized",
]
