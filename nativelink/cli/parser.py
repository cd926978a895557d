"""
nativelink CLI argument parser.

This module implements the command-line interface for nativelink using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from nativelink.core.exceptions import NativeLinkError
from nativelink.core.locking import LockTimeout
from nativelink.cross.targets import ALL_TARGETS, CONFIGURATIONS
from nativelink.linking.naming import NAMING_CHOICES

# Get version from package
try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("nativelink")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

COMMAND_MODULES = {
    "link": "nativelink.cli.commands.link",
    "list": "nativelink.cli.commands.list",
    "info": "nativelink.cli.commands.info",
    "build": "nativelink.cli.commands.build",
    "restore-links": "nativelink.cli.commands.restore_links",
}


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


class CLI:
    """nativelink command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="nativelink",
            description="nativelink - Cross-compile and auto-link native modules",
            epilog='Use "nativelink COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"nativelink {__version__}"
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
            help="Path to configuration file (default: <app root>/nativelink.yaml)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_link_command(subparsers)
        self._add_list_command(subparsers)
        self._add_info_command(subparsers)
        self._add_build_command(subparsers)
        self._add_restore_links_command(subparsers)

        return parser

    def _add_naming_options(self, parser):
        """Add --package-name/--path-suffix to a subcommand."""
        parser.add_argument(
            "--package-name",
            choices=NAMING_CHOICES,
            help="Package name in library names (strip|keep|omit) [default: strip]",
        )
        parser.add_argument(
            "--path-suffix",
            choices=NAMING_CHOICES,
            help="Module path in library names (strip|keep|omit) [default: strip]",
        )

    def _add_link_command(self, subparsers):
        """Add 'link' subcommand."""
        parser = subparsers.add_parser(
            "link",
            help="Auto-link native modules",
            description="Copy the native modules of all dependencies into the autolink directories",
        )
        parser.add_argument(
            "path",
            nargs="?",
            type=Path,
            default=Path.cwd(),
            help="Some path inside the app package (default: current directory)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Relink every module, ignoring timestamps",
        )
        parser.add_argument(
            "--prune",
            dest="prune",
            action="store_true",
            default=None,
            help="Delete linked modules that are no longer depended on (default)",
        )
        parser.add_argument(
            "--no-prune",
            dest="prune",
            action="store_false",
            help="Keep linked modules that are no longer depended on",
        )
        parser.add_argument("--android", action="store_true", help="Link Android modules")
        parser.add_argument("--apple", action="store_true", help="Link Apple modules")
        self._add_naming_options(parser)
        parser.add_argument(
            "--output-dir",
            type=Path,
            metavar="DIR",
            help="Autolink root (default: <app root>/.nativelink/auto-linked)",
        )
        parser.add_argument(
            "--max-workers",
            type=_positive_int,
            metavar="N",
            help="Maximum modules linked concurrently",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List native modules",
            description="List the native modules found among the app's dependencies",
        )
        parser.add_argument(
            "from_path",
            nargs="?",
            type=Path,
            default=Path.cwd(),
            metavar="from-path",
            help="Some path inside the app package (default: current directory)",
        )
        parser.add_argument("--json", action="store_true", help="Output as JSON")
        self._add_naming_options(parser)

    def _add_info_command(self, subparsers):
        """Add 'info' subcommand."""
        parser = subparsers.add_parser(
            "info",
            help="Show how a module is named",
            description="Print the resolved path, package and library name of one module",
        )
        parser.add_argument("path", type=Path, help="Path to a native module")
        parser.add_argument("--json", action="store_true", help="Output as JSON")
        self._add_naming_options(parser)

    def _add_build_command(self, subparsers):
        """Add 'build' subcommand."""
        parser = subparsers.add_parser(
            "build",
            help="Cross-compile a Rust crate",
            description="Build a Rust crate for Android and Apple targets against the weak runtime",
        )
        parser.add_argument(
            "crate_path",
            nargs="?",
            type=Path,
            default=Path.cwd(),
            metavar="crate-path",
            help="Directory containing Cargo.toml (default: current directory)",
        )
        parser.add_argument(
            "--target",
            "-t",
            dest="targets",
            action="append",
            choices=list(ALL_TARGETS),
            metavar="TRIPLE",
            help="Target triple to build (repeatable)",
        )
        parser.add_argument(
            "--android", action="store_true", help="Build all default Android targets"
        )
        parser.add_argument(
            "--apple", action="store_true", help="Build all default Apple targets"
        )
        parser.add_argument(
            "--configuration",
            choices=CONFIGURATIONS,
            help="Build configuration (debug|release) [default: release]",
        )
        parser.add_argument("--ndk-version", metavar="VERSION", help="Android NDK version")
        parser.add_argument(
            "--android-api-level",
            type=_positive_int,
            metavar="LEVEL",
            help="Android API level [default: 24]",
        )
        parser.add_argument(
            "--prebuild-root",
            type=Path,
            metavar="DIR",
            help="Directory holding the weak runtime prebuilds",
        )
        parser.add_argument(
            "--output",
            type=Path,
            metavar="DIR",
            help="Assemble the Android libraries into a .android.node directory here",
        )
        parser.add_argument(
            "--max-workers",
            type=_positive_int,
            metavar="N",
            help="Maximum targets built concurrently",
        )

    def _add_restore_links_command(self, subparsers):
        """Add 'restore-links' subcommand."""
        parser = subparsers.add_parser(
            "restore-links",
            help="Restore weak runtime framework symlinks",
            description="Rebuild the symlinks of the weak runtime's macOS frameworks",
        )
        parser.add_argument(
            "path",
            nargs="?",
            type=Path,
            default=Path.cwd(),
            help="Some path inside the app package (default: current directory)",
        )
        parser.add_argument(
            "--prebuild-root",
            type=Path,
            metavar="DIR",
            help="Directory holding the weak runtime prebuilds",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
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

        # Configure logging
        self._configure_logging(parsed_args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except (NativeLinkError, LockTimeout) as e:
            logger.error(f"Error: {e}")
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
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
