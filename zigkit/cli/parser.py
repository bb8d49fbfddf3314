"""
zigkit CLI argument parser.

This module implements the command-line interface for zigkit using argparse.
"""

import argparse
import importlib
import logging
import sys
import traceback
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

try:
    __version__ = version("zigkit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

COMMAND_MODULES = {
    "install": "zigkit.cli.commands.install",
    "status": "zigkit.cli.commands.status",
    "list": "zigkit.cli.commands.list",
    "use-path": "zigkit.cli.commands.use_path",
    "pin": "zigkit.cli.commands.pin",
    "verify": "zigkit.cli.commands.verify",
    "cleanup": "zigkit.cli.commands.cleanup",
}


class CLI:
    """zigkit command-line interface."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="zigkit",
            description="zigkit - verified Zig toolchain installer and version manager",
            epilog='Use "zigkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"zigkit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to engine configuration (default: ~/.zigkit/config.yaml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=None,
            help="Project root directory (default: current directory)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_status_command(subparsers)
        self._add_list_command(subparsers)
        self._add_use_path_command(subparsers)
        self._add_pin_command(subparsers)
        self._add_verify_command(subparsers)
        self._add_cleanup_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        parser = subparsers.add_parser(
            "install",
            help="Install and activate a toolchain",
            description=(
                "Install the version the project wants, or VERSION when given "
                "(a version, 'latest'/'stable' or 'master'/'nightly')"
            ),
        )
        parser.add_argument("version", nargs="?", metavar="VERSION", help="Version to install")
        parser.add_argument(
            "--save",
            action="store_true",
            help="Save VERSION where the project's wanted version is read from",
        )

    def _add_status_command(self, subparsers):
        subparsers.add_parser(
            "status",
            help="Show wanted and active toolchain",
            description="Show the wanted version, its source and the installed versions",
        )

    def _add_list_command(self, subparsers):
        parser = subparsers.add_parser(
            "list",
            help="List available versions",
            description="List versions published in the release index",
        )
        group = parser.add_mutually_exclusive_group()
        group.add_argument(
            "--nightly", action="store_true", help="List nightly builds instead of releases"
        )
        group.add_argument(
            "--installed", action="store_true", help="List installed versions only"
        )

    def _add_use_path_command(self, subparsers):
        parser = subparsers.add_parser(
            "use-path",
            help="Use a pre-installed toolchain",
            description="Use an existing executable instead of a managed installation",
        )
        parser.add_argument(
            "path", nargs="?", metavar="PATH", help="Executable, its directory or a command on PATH"
        )
        parser.add_argument(
            "--clear",
            action="store_true",
            help="Forget the configured path and return to managed installations",
        )

    def _add_pin_command(self, subparsers):
        parser = subparsers.add_parser(
            "pin",
            help="Pin the wanted version",
            description="Persist the wanted version for this project or globally",
        )
        parser.add_argument("version", metavar="VERSION", help="Version or sentinel to pin")
        parser.add_argument(
            "--to",
            choices=["pinned-file", "manifest-minimum", "config-option"],
            default=None,
            metavar="SOURCE",
            help=(
                "Where to save (pinned-file|manifest-minimum|config-option) "
                "[default: pinned-file inside a project, else config-option]"
            ),
        )

    def _add_verify_command(self, subparsers):
        parser = subparsers.add_parser(
            "verify",
            help="Verify a minisign signature",
            description="Verify FILE against a minisign signature and public key",
        )
        parser.add_argument("file", type=Path, metavar="FILE", help="Signed file")
        parser.add_argument(
            "--signature",
            type=Path,
            metavar="SIG",
            help="Signature file (default: FILE.minisig)",
        )
        parser.add_argument(
            "--public-key",
            metavar="KEY",
            help="Public key or path to a .pub file (default: configured key)",
        )

    def _add_cleanup_command(self, subparsers):
        parser = subparsers.add_parser(
            "cleanup",
            help="Remove leftovers and unused versions",
            description="Remove interrupted downloads and, optionally, installed versions",
        )
        parser.add_argument(
            "--version",
            dest="remove_version",
            action="append",
            metavar="VERSION",
            help="Uninstall a specific version (can be used multiple times)",
        )
        parser.add_argument(
            "--unused",
            action="store_true",
            help="Uninstall every version except the current one",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be removed without removing",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """Configure logging based on verbose/quiet flags."""
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(level=level, format=format_str, force=True)

    def _dispatch_command(self, args) -> int:
        module_name = COMMAND_MODULES.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
