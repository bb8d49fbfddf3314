"""
Shared utilities for CLI commands.

Builds the engine objects every command needs from the global options and
keeps output formatting consistent across commands.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from zigkit.config.settings import EngineSettings, load_settings
from zigkit.config.store import YamlConfigurationStore
from zigkit.core.download import DownloadProgress, format_progress
from zigkit.toolchain.index import ReleaseIndexFetcher
from zigkit.toolchain.installer import Installer
from zigkit.toolchain.provider import ToolchainProvider
from zigkit.toolchain.resolver import VersionResolver
from zigkit.toolchain.state import Failed, Installing, ProviderState, Ready

logger = logging.getLogger(__name__)


# ============================================================================
# Engine Construction
# ============================================================================


def load_engine_settings(args) -> EngineSettings:
    """Load settings from ``--config`` or the default location."""
    return load_settings(getattr(args, "config", None))


def resolve_project_root(path: Optional[Path] = None) -> Path:
    if path is None:
        path = Path.cwd()
    return Path(path).resolve()


def create_store() -> YamlConfigurationStore:
    return YamlConfigurationStore()


def create_resolver(args, settings: EngineSettings, store=None) -> VersionResolver:
    return VersionResolver(
        store or create_store(),
        project_root=resolve_project_root(getattr(args, "project_root", None)),
        pin_file_name=settings.pin_file,
        manifest_file_name=settings.manifest_file,
    )


def create_fetcher(settings: EngineSettings) -> ReleaseIndexFetcher:
    return ReleaseIndexFetcher(
        settings.index_urls, settings.mirrors, timeout=settings.index_timeout
    )


def create_installer(args, settings: EngineSettings) -> Installer:
    show_progress = not getattr(args, "quiet", False) and sys.stderr.isatty()
    return Installer.from_settings(
        settings, progress_callback=print_progress if show_progress else None
    )


def create_provider(args, settings: EngineSettings, store=None) -> ToolchainProvider:
    store = store or create_store()
    return ToolchainProvider(
        create_resolver(args, settings, store),
        create_fetcher(settings),
        create_installer(args, settings),
        store,
        debounce_seconds=settings.debounce_seconds,
        version_arg=settings.version_arg,
        query_timeout=settings.version_query_timeout,
    )


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def print_progress(progress: DownloadProgress):
    """Render download progress on a single stderr line."""
    end = "\n" if progress.bytes_downloaded >= progress.total_bytes else ""
    print(f"\r  {format_progress(progress)}", end=end, file=sys.stderr, flush=True)


def describe_state(state: ProviderState) -> str:
    """One-line description of a provider state."""
    if isinstance(state, Installing):
        return f"Installing {state.requirement}"
    if isinstance(state, Ready):
        toolchain = state.toolchain
        source = toolchain.source.value if toolchain.source else "command line"
        return f"Ready: {toolchain.version} at {toolchain.exe_path} (from {source})"
    if isinstance(state, Failed):
        return f"Failed: {state.reason}"
    return "Not initialized"


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)
