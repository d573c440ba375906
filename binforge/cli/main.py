# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for binforge.

Every operation is a subcommand of `binforge`. The global options
(--config, --log-level, --dry-run) are inherited by every subcommand through
argparse's parent parser mechanism.

Usage:
    binforge <subcommand> [options]
    binforge plan --config release.yaml
    binforge release --config release.yaml --tag v1.2.3
    binforge release --config release.yaml --tag-from-env
    binforge verify --artifact-dir binaries/ubuntu
"""

import argparse
import sys

from binforge.cli.commands import (
    handle_info,
    handle_package,
    handle_plan,
    handle_release,
    handle_verify,
)
from binforge.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    Uses add_help=False so help text doesn't collide between the parent and
    the subcommand parsers.
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
        help="Set the logging verbosity level (overrides the config).",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Plan and validate without building or uploading anything.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register all subcommands with their handler functions and options."""
    commands = [
        ("plan", "Show the build jobs each platform would run.", handle_plan),
        ("release", "Build, package, and publish a tagged release.", handle_release),
        ("package", "Package one prebuilt binary.", handle_package),
        ("verify", "Verify artifact checksums.", handle_verify),
        ("info", "Display environment and toolchain info.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    for name in ("plan", "release"):
        parser = subparsers.choices[name]
        parser.add_argument(
            "--platform",
            action="append",
            default=None,
            help="Only run this platform (repeatable).",
        )
        parser.add_argument(
            "--base-dir",
            type=str,
            default=None,
            dest="base_dir",
            help="Directory that relative config paths are resolved against (default: cwd).",
        )

    plan_parser = subparsers.choices["plan"]
    plan_parser.add_argument(
        "--version",
        type=str,
        default=None,
        help="Use this version instead of reading the manifest.",
    )

    release_parser = subparsers.choices["release"]
    release_parser.add_argument("--tag", type=str, default=None, help="Tag that triggered the run.")
    release_parser.add_argument(
        "--tag-from-env",
        action="store_true",
        default=False,
        dest="tag_from_env",
        help="Read the tag from BINFORGE_TAG or GITHUB_REF.",
    )

    package_parser = subparsers.choices["package"]
    package_parser.add_argument("--binary", type=str, default=None)
    package_parser.add_argument("--platform", type=str, default=None, dest="platform_name")
    package_parser.add_argument("--cpu-target", type=str, default=None, dest="cpu_target")
    package_parser.add_argument("--features", type=str, default=None)
    package_parser.add_argument("--version", type=str, default=None)
    package_parser.add_argument("--project", type=str, default=None)
    package_parser.add_argument("--output-dir", type=str, default=None, dest="output_dir")

    verify_parser = subparsers.choices["verify"]
    verify_parser.add_argument(
        "--artifact-dir",
        type=str,
        default=None,
        dest="artifact_dir",
        help="Directory holding artifacts and their .sha256 records.",
    )


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()
    root_parser = argparse.ArgumentParser(
        prog="binforge",
        description="binforge — tag-driven release builds for native binaries.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)
    return root_parser


def main(argv: list[str] | None = None) -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, we show help and exit with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
