"""
List command implementation.

Lists versions published in the release index for the host, or the
installed versions.
"""

import logging

from zigkit.cli.utils import (
    create_fetcher,
    create_installer,
    load_engine_settings,
    print_error,
)
from zigkit.core.exceptions import IndexUnavailable
from zigkit.toolchain.versions import Channel

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments with:
            - nightly: List the nightly channel
            - installed: List installed versions only

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    settings = load_engine_settings(args)
    installer = create_installer(args, settings)
    current = installer.current_version()
    installed = set(installer.installed_versions())

    if args.installed:
        for version in installer.installed_versions():
            print(_format_line(version, version in installed, version == current))
        return 0

    channel = Channel.NIGHTLY if args.nightly else Channel.STABLE
    try:
        index = create_fetcher(settings).fetch_index(channel)
    except IndexUnavailable as e:
        print_error("Release index unavailable", str(e))
        return 1

    host = installer.host_triple
    entries = [entry for entry in index if entry.artifact_for(host) is not None]
    if not entries:
        print(f"No {channel.value} versions available for {host}")
        return 0

    for entry in reversed(entries):
        line = _format_line(entry.version, entry.version in installed, entry.version == current)
        if entry.date:
            line += f"  ({entry.date})"
        print(line)

    return 0


def _format_line(version: str, is_installed: bool, is_current: bool) -> str:
    marker = "*" if is_current else ("+" if is_installed else " ")
    return f"{marker} {version}"
