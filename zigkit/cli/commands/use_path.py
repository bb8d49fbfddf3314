"""
Use-path command implementation.

Points zigkit at a pre-installed executable, validated with the version
query, or clears that setting.
"""

import logging

from zigkit.cli.utils import (
    create_provider,
    create_store,
    describe_state,
    load_engine_settings,
    print_error,
)
from zigkit.toolchain.state import Ready

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the use-path command.

    Args:
        args: Parsed command-line arguments with:
            - path: Executable, its directory or a command on PATH
            - clear: Remove the configured path

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    store = create_store()

    if args.clear:
        store.set_path(None)
        print("Cleared explicit toolchain path")
        return 0

    if not args.path:
        print_error("Specify PATH or --clear")
        return 1

    settings = load_engine_settings(args)
    with create_provider(args, settings, store) as provider:
        state = provider.resolve_explicit_path(args.path)

    if not isinstance(state, Ready):
        print_error(describe_state(state))
        return 1

    store.set_path(str(state.toolchain.exe_path))
    print(describe_state(state))
    return 0
