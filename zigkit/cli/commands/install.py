"""
Install command implementation.

Without a version, runs the provider pipeline for the project (wanted version
from the pin file, manifest, configuration, or latest stable). With a version,
installs that version directly.
"""

import logging

from zigkit.cli.utils import (
    create_fetcher,
    create_installer,
    create_provider,
    create_resolver,
    create_store,
    describe_state,
    load_engine_settings,
    print_error,
    print_warning,
)
from zigkit.core.exceptions import InvalidVersionError, ZigkitError
from zigkit.toolchain.index import MemoizedIndexFetcher
from zigkit.toolchain.resolver import select_release
from zigkit.toolchain.state import Failed, Ready
from zigkit.toolchain.versions import VersionRequirement

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments with:
            - version: Version to install (optional)
            - save: Persist the version as the project's wanted version

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    settings = load_engine_settings(args)

    if args.version:
        return _install_version(args, settings)

    if args.save:
        print_error("--save requires a VERSION")
        return 1

    return _install_wanted(args, settings)


def _install_wanted(args, settings) -> int:
    with create_provider(args, settings) as provider:
        subscription = provider.subscribe()
        provider.trigger()
        provider.wait_idle()

        for state in subscription.drain():
            logger.debug(describe_state(state))
        state = provider.state

    if isinstance(state, Ready):
        for warning in state.toolchain.warnings:
            print_warning(warning)
        print(describe_state(state))
        return 0

    if isinstance(state, Failed):
        print_error(describe_state(state))
    return 1


def _install_version(args, settings) -> int:
    try:
        requirement = VersionRequirement.parse(args.version)
    except InvalidVersionError as e:
        print_error(str(e))
        return 1

    store = create_store()
    resolver = create_resolver(args, settings, store)
    installer = create_installer(args, settings)

    try:
        indexes = MemoizedIndexFetcher(create_fetcher(settings))
        entry = select_release(requirement, indexes, installer.host_triple)
        toolchain = installer.install(entry, entry.version)
    except ZigkitError as e:
        print_error(f"Could not install {requirement}", str(e))
        return 1

    print(f"Installed {toolchain.version} at {toolchain.exe_path}")

    warning = resolver.check_minimum(toolchain.version)
    if warning:
        print_warning(warning)

    if args.save:
        source = resolver.save_wanted_version(args.version)
        print(f"Saved {args.version} ({source.value})")

    if store.get_path():
        print_warning(
            f"An explicit toolchain path is configured ({store.get_path()}); "
            "run 'zigkit use-path --clear' to use managed installations"
        )
    return 0
