# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the binforge CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code from binforge.cli.exit_codes. No print() calls. Everything goes through
the structured logger; the full run report is written as JSON next to the
artifacts.
"""

import argparse
import logging
import signal
from pathlib import Path

from binforge.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    USER_ERROR,
    VALIDATION_ERROR,
)
from binforge.config.exceptions import ConfigError
from binforge.config.loader import load_config
from binforge.config.schema import BinforgeConfig
from binforge.exceptions import InvalidMatrixError, PackageError, VersionError
from binforge.logging.logger import get_logger
from binforge.runtime.bootstrap import bootstrap

DEFAULT_LOG_LEVEL = "INFO"


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, BinforgeConfig | None, logging.Logger]:
    """
    The shared setup that every command needs: load config, run bootstrap.

    Returns a tuple of (exit_code, config, logger). If exit_code is not SUCCESS,
    the caller should return it immediately — something went wrong during setup.
    """
    log_level = args.log_level or DEFAULT_LOG_LEVEL
    logger = get_logger(f"binforge.cli.{command_name}", log_level=log_level)

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None:
        bootstrap(config.global_config, log_level=args.log_level)
        logger = get_logger(
            f"binforge.cli.{command_name}",
            log_level=args.log_level or config.global_config.log_level,
        )
    else:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )

    return SUCCESS, config, logger


def _missing_release_config(logger: logging.Logger, command_name: str) -> int:
    logger.error(
        "A config with a 'release' section is required",
        extra={"command": command_name},
    )
    return CONFIG_ERROR


def _base_dir(args: argparse.Namespace) -> Path:
    return Path(args.base_dir) if getattr(args, "base_dir", None) else Path.cwd()


def handle_plan(args: argparse.Namespace) -> int:
    """Validate the config and log the planned jobs for every platform."""
    exit_code, config, logger = _load_and_bootstrap(args, "plan")
    if exit_code != SUCCESS:
        return exit_code
    if config is None or config.release is None:
        return _missing_release_config(logger, "plan")

    from binforge.orchestration.orchestrator import Orchestrator
    from binforge.release.naming import artifact_filename, is_name_safe_version

    try:
        orchestrator = Orchestrator(
            config.global_config,
            config.release,
            base_dir=_base_dir(args),
            platforms=args.platform,
        )
        version = args.version or orchestrator.resolve_version()
        if not is_name_safe_version(version):
            raise VersionError(f"Version {version!r} cannot be used in artifact names")
        plans = orchestrator.plan(version)
    except ValueError as err:
        logger.error("Invalid platform selection", extra={"error": str(err)})
        return USER_ERROR
    except (InvalidMatrixError, VersionError) as err:
        logger.error("Planning failed", extra={"error": str(err)})
        return VALIDATION_ERROR

    for platform_name, jobs in plans.items():
        for job in jobs:
            logger.info(
                "Planned job",
                extra={
                    **job.log_context(),
                    "artifact": artifact_filename(
                        config.global_config.project_name, job, version
                    ),
                },
            )
        logger.info(
            "Platform plan",
            extra={"platform": platform_name, "job_count": len(jobs)},
        )
    return SUCCESS


def handle_release(args: argparse.Namespace) -> int:
    """Run a full release for a tag: plan, build, package, publish, report."""
    exit_code, config, logger = _load_and_bootstrap(args, "release")
    if exit_code != SUCCESS:
        return exit_code
    if config is None or config.release is None:
        return _missing_release_config(logger, "release")

    from binforge.orchestration.orchestrator import Orchestrator
    from binforge.orchestration.report import RunOutcome
    from binforge.orchestration.trigger import parse_trigger, tag_from_environment

    tag = args.tag
    if tag is None and args.tag_from_env:
        tag = tag_from_environment()
    if not tag:
        logger.error("No tag given — use --tag or --tag-from-env")
        return USER_ERROR

    try:
        orchestrator = Orchestrator(
            config.global_config,
            config.release,
            base_dir=_base_dir(args),
            platforms=args.platform,
        )
    except ValueError as err:
        logger.error("Invalid platform selection", extra={"error": str(err)})
        return USER_ERROR

    if args.dry_run:
        trigger = parse_trigger(tag, config.release.tag_pattern)
        if trigger is None:
            logger.info("Dry run — tag would be ignored", extra={"tag": tag})
            return SUCCESS
        try:
            version = orchestrator.resolve_version(trigger)
            plans = orchestrator.plan(version)
        except (InvalidMatrixError, VersionError) as err:
            logger.error("Dry run — planning failed", extra={"error": str(err)})
            return VALIDATION_ERROR
        logger.info(
            "Dry run — would build",
            extra={
                "tag": tag,
                "version": version,
                "jobs": {name: [job.label for job in jobs] for name, jobs in plans.items()},
            },
        )
        return SUCCESS

    # CI runners send SIGTERM when a run is superseded; stop the compilers.
    def _on_signal(signum: int, frame: object) -> None:
        logger.warning("Signal received, cancelling builds", extra={"signal": signum})
        orchestrator.cancel()

    previous = {
        sig: signal.signal(sig, _on_signal) for sig in (signal.SIGTERM, signal.SIGINT)
    }
    try:
        report = orchestrator.handle(tag)
    except Exception as err:
        logger.error("Release failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if report is None:
        return SUCCESS

    outcome = report.outcome()
    if outcome is RunOutcome.ABORTED:
        return VALIDATION_ERROR
    if outcome in (RunOutcome.CANCELLED, RunOutcome.FAILED):
        return RUNTIME_ERROR
    if outcome is RunOutcome.PARTIAL and config.release.fail_on_partial:
        return RUNTIME_ERROR
    return SUCCESS


def handle_package(args: argparse.Namespace) -> int:
    """Package one prebuilt binary into an artifact and checksum record."""
    exit_code, config, logger = _load_and_bootstrap(args, "package")
    if exit_code != SUCCESS:
        return exit_code

    missing = [
        flag
        for flag, value in (
            ("--binary", args.binary),
            ("--platform", args.platform_name),
            ("--cpu-target", args.cpu_target),
            ("--version", args.version),
        )
        if not value
    ]
    if missing:
        logger.error("Missing required options", extra={"missing": missing})
        return USER_ERROR

    from binforge.matrix.models import BuildJob
    from binforge.release.packaging.packager import package

    project = args.project or (
        config.global_config.project_name if config is not None else "binforge"
    )
    job = BuildJob(
        platform=args.platform_name,
        cpu_target=args.cpu_target,
        feature_set=args.features,
        version=args.version,
    )
    output_dir = Path(args.output_dir) if args.output_dir else Path.cwd()

    if args.dry_run:
        logger.info("Dry run — would package binary", extra={**job.log_context()})
        return SUCCESS

    try:
        artifact = package(Path(args.binary), job, args.version, output_dir, project)
    except PackageError as err:
        logger.error("Packaging failed", extra={"error": str(err)})
        return VALIDATION_ERROR

    logger.info(
        "Package complete",
        extra={"artifact": str(artifact.path), "sha256": artifact.checksum},
    )
    return SUCCESS


def handle_verify(args: argparse.Namespace) -> int:
    """Verify every *.sha256 record in an artifact directory."""
    exit_code, config, logger = _load_and_bootstrap(args, "verify")
    if exit_code != SUCCESS:
        return exit_code

    if args.artifact_dir is None:
        logger.info("No artifact directory given, nothing to verify")
        return SUCCESS

    from binforge.release.checksums.integrity import verify_directory

    result = verify_directory(Path(args.artifact_dir))
    if not result.is_valid:
        logger.error(
            "Verification failed",
            extra={
                "mismatches": result.mismatches,
                "missing": result.missing_files,
                "errors": result.errors,
            },
        )
        return VALIDATION_ERROR

    logger.info("Verification complete", extra={"checked": result.checked_count})
    return SUCCESS


def handle_info(args: argparse.Namespace) -> int:
    """Display environment, config, and toolchain availability."""
    exit_code, config, logger = _load_and_bootstrap(args, "info")
    if exit_code != SUCCESS:
        return exit_code

    from binforge import __version__
    from binforge.runtime.environment import get_system_info, which_toolchain

    system_info = get_system_info()
    toolchains: dict[str, str | None] = {}
    if config is not None and config.release is not None:
        for platform in config.release.platforms:
            program = platform.toolchain.command[0]
            toolchains[platform.name] = which_toolchain(program)

    logger.info(
        "System information",
        extra={
            "binforge_version": __version__,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "hostname": system_info.hostname,
            "config": args.config,
            "toolchains": toolchains,
        },
    )
    return SUCCESS
