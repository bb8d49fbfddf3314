"""
Status command implementation.

Shows the wanted version and where it came from, the active toolchain and
the installed versions. Never touches the network.
"""

import logging

from zigkit.cli.utils import (
    create_installer,
    create_resolver,
    create_store,
    load_engine_settings,
    print_warning,
)

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the status command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    settings = load_engine_settings(args)
    store = create_store()
    resolver = create_resolver(args, settings, store)
    installer = create_installer(args, settings)

    requirement, source = resolver.resolve()
    current = installer.current_version()
    installed = installer.installed_versions()

    print(f"Wanted version:   {requirement} (from {source.value})")

    minimum = resolver.manifest_minimum()
    if minimum is not None:
        print(f"Minimum version:  {minimum.version} ({minimum.location})")

    explicit_path = store.get_path()
    if explicit_path:
        print(f"Explicit path:    {explicit_path}")

    print(f"Current version:  {current or 'none'}")
    if current:
        print(f"Executable:       {installer.exe_path(current)}")
        warning = resolver.check_minimum(current)
        if warning:
            print_warning(warning)

    print(f"Install dir:      {settings.install_dir}")
    print(f"Host:             {installer.host_triple}")

    if installed:
        print("Installed versions:")
        for version in installed:
            marker = "*" if version == current else " "
            print(f"  {marker} {version}")
    else:
        print("Installed versions: none")

    return 0
