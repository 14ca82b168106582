# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for shipwright.

Every operation is a subcommand of `shipwright`. The global options
(--config, --log-level, --dry-run) are inherited by every subcommand
through argparse's parent parser mechanism.

Usage:
    shipwright build linux 10.3.0 --config release.yaml
    shipwright paths darwin
    shipwright sizes dist/linux/packages
    shipwright doctor linux
"""

import argparse
import sys

from shipwright.cli.commands import handle_build, handle_doctor, handle_paths, handle_sizes
from shipwright.cli.exit_codes import USER_ERROR
from shipwright.release.platforms.registry import VALID_PLATFORMS


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False so its help does not collide with the subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=None,
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level (overrides the config file).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Log what would run without running it.",
    )
    parent.add_argument(
        "--root",
        type=str,
        default=None,
        help="Workspace root. Discovered from the current directory when omitted.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    build = subparsers.add_parser(
        "build", parents=[parent], help="Stage, pack and verify the desktop app."
    )
    build.add_argument("platform", choices=VALID_PLATFORMS, help="Target platform.")
    build.add_argument("version", help="Version the built app must report.")
    build.add_argument(
        "--strict-packaging",
        action="store_true",
        default=False,
        dest="strict_packaging",
        help="Abort when the bundler fails instead of continuing to verification.",
    )
    build.set_defaults(func=handle_build)

    paths = subparsers.add_parser(
        "paths", parents=[parent], help="Show where a platform's build outputs live."
    )
    paths.add_argument("platform", choices=VALID_PLATFORMS, help="Target platform.")
    paths.add_argument(
        "--arch",
        type=str,
        default=None,
        help="CPU architecture to resolve for (defaults to the host).",
    )
    paths.set_defaults(func=handle_paths)

    sizes = subparsers.add_parser(
        "sizes", parents=[parent], help="Report per-package disk usage of a folder."
    )
    sizes.add_argument("directory", help="Folder whose immediate children are measured.")
    sizes.set_defaults(func=handle_sizes)

    doctor = subparsers.add_parser(
        "doctor", parents=[parent], help="Check the host has what a release build needs."
    )
    doctor.add_argument(
        "platform",
        nargs="?",
        choices=VALID_PLATFORMS,
        default=None,
        help="Platform to check for (defaults to the host).",
    )
    doctor.set_defaults(func=handle_doctor)


def main() -> None:
    """
    Main CLI entrypoint, the target of [project.scripts].

    No subcommand shows help and exits with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="shipwright",
        description="shipwright: desktop application release pipeline.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args()

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
