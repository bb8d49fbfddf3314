"""
Pin command implementation.

Saves the wanted version to the pin file, the manifest's minimum version
field or the configuration store.
"""

import logging

from zigkit.cli.utils import (
    create_resolver,
    load_engine_settings,
    print_error,
)
from zigkit.core.exceptions import ConfigError, InvalidVersionError
from zigkit.toolchain.resolver import VersionSource

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the pin command.

    Args:
        args: Parsed command-line arguments with:
            - version: Version or sentinel to save
            - to: Destination source name (optional)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    settings = load_engine_settings(args)
    resolver = create_resolver(args, settings)
    source = VersionSource(args.to) if args.to else None

    try:
        saved_to = resolver.save_wanted_version(args.version, source)
    except InvalidVersionError as e:
        print_error(str(e))
        return 1
    except (ConfigError, ValueError) as e:
        print_error(f"Could not save version {args.version}", str(e))
        return 1

    print(f"Pinned {args.version} ({saved_to.value})")
    return 0
