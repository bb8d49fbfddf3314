"""
Cleanup command implementation.

Removes downloads and extractions left behind by interrupted installs, and
optionally uninstalls versions other than the current one.
"""

import logging

from zigkit.cli.utils import create_installer, load_engine_settings, print_error
from zigkit.core.exceptions import InstallError

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the cleanup command.

    Args:
        args: Parsed command-line arguments with:
            - remove_version: Versions to uninstall
            - unused: Uninstall every non-current version
            - dry_run: Only report what would be removed

    Returns:
        Exit code (0 for success, non-zero if a removal failed)
    """
    settings = load_engine_settings(args)
    installer = create_installer(args, settings)
    current = installer.current_version()

    to_remove = list(args.remove_version or [])
    if args.unused:
        to_remove.extend(
            v for v in installer.installed_versions() if v != current and v not in to_remove
        )

    if args.dry_run:
        staging = installer.layout.staging_dir
        leftovers = list(staging.iterdir()) if staging.is_dir() else []
        print(f"Would remove {len(leftovers)} leftover staging entries")
        for version in to_remove:
            print(f"Would uninstall {version}")
        return 0

    removed = installer.cleanup_staging()
    print(f"Removed {removed} leftover staging entries")

    exit_code = 0
    for version in to_remove:
        try:
            installer.uninstall(version)
            print(f"Uninstalled {version}")
        except InstallError as e:
            print_error(str(e))
            exit_code = 1

    return exit_code
