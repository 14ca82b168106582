# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the shipwright CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code from cli.exit_codes. Handlers never raise; every failure is logged and
mapped to a code so CI can tell a broken config from a broken build.

No print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path

from shipwright.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    USER_ERROR,
    VALIDATION_ERROR,
)
from shipwright.config.exceptions import ConfigError
from shipwright.config.loader import load_config
from shipwright.config.schema import BuildConfig, ShipwrightConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import (
    IntegrityError,
    ReleaseStageError,
    SmokeTestFailure,
    StaticAssetError,
    VersionMismatchError,
)
from shipwright.runtime.bootstrap import bootstrap

# Gates that ran against a finished build and rejected it.
_VALIDATION_FAILURES = (VersionMismatchError, StaticAssetError, IntegrityError, SmokeTestFailure)


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, ShipwrightConfig | None, logging.Logger]:
    """
    The shared setup that every command needs: load config, run bootstrap.

    Returns a tuple of (exit_code, config, logger). If exit_code is not SUCCESS,
    the caller should return it immediately.
    """
    logger = get_logger(f"shipwright.cli.{command_name}", log_level=args.log_level)

    config_path = Path(args.config) if args.config is not None else None
    try:
        config = load_config(config_path)
    except ConfigError as err:
        logger.error(
            "Configuration error",
            extra={"command": command_name, "error": str(err)},
        )
        return CONFIG_ERROR, None, logger

    if config_path is None:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )

    try:
        bootstrap(config.global_config, log_level=args.log_level)
    except RuntimeError as err:
        logger.error("Bootstrap failed", extra={"command": command_name, "error": str(err)})
        return RUNTIME_ERROR, None, logger

    return SUCCESS, config, logger


def _resolve_root(args: argparse.Namespace) -> Path:
    from shipwright.utils.paths import resolve_workspace_root

    if args.root is not None:
        return Path(args.root).resolve()
    return resolve_workspace_root()


def handle_build(args: argparse.Namespace) -> int:
    """Stage, pack and verify the app for one platform."""
    exit_code, config, logger = _load_and_bootstrap(args, "build")
    if exit_code != SUCCESS or config is None:
        return exit_code

    from shipwright.release.environment.validator import validate_environment
    from shipwright.release.pipeline import build_app
    from shipwright.release.platforms.registry import check_platform
    from shipwright.release.verification.display import VirtualDisplay

    build_config = config.build
    if args.strict_packaging:
        build_config = build_config.model_copy(update={"strict_packaging": True})

    try:
        root_dir = _resolve_root(args)
    except RuntimeError as err:
        logger.error("Workspace not found", extra={"command": "build", "error": str(err)})
        return USER_ERROR

    display = VirtualDisplay(build_config.virtual_display)
    platform_id = check_platform(args.platform)
    validate_environment(
        platform_id, build_config, needs_display=display.is_needed(), check_path=root_dir
    )

    logger.info(
        "Starting release build",
        extra={
            "command": "build",
            "platform": args.platform,
            "version": args.version,
            "root": str(root_dir),
            "dry_run": args.dry_run,
        },
    )

    if args.dry_run:
        return _log_plan(args, build_config, root_dir, logger)

    try:
        result = build_app(
            args.platform,
            args.version,
            config=build_config,
            root_dir=root_dir,
            display=display,
        )
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "build", "error": str(err)})
        return CONFIG_ERROR
    except _VALIDATION_FAILURES as err:
        logger.error(
            "Release verification failed",
            extra={"command": "build", "stage": err.stage, "error": str(err)},
        )
        return VALIDATION_ERROR
    except ReleaseStageError as err:
        logger.error(
            "Release stage failed",
            extra={"command": "build", "stage": err.stage, "error": str(err)},
        )
        return RUNTIME_ERROR
    except Exception as err:
        logger.error("Build failed", extra={"command": "build", "error": str(err)}, exc_info=True)
        return RUNTIME_ERROR

    if not result.fully_successful:
        logger.warning(
            "Build finished with warnings",
            extra={"command": "build", "warnings": result.warnings},
        )
    else:
        logger.info("Build completed", extra={"command": "build"})
    return SUCCESS


def _log_plan(
    args: argparse.Namespace,
    build_config: BuildConfig,
    root_dir: Path,
    logger: logging.Logger,
) -> int:
    """Dry run: log where the build would write and what it would invoke."""
    from shipwright.release.packaging.packager import build_packager_args
    from shipwright.release.platforms.registry import (
        BuildContext,
        build_app_dir,
        build_root_dir,
        icon_path,
    )
    from shipwright.runtime.environment import detect_arch

    context = BuildContext.create(
        platform=args.platform,
        version=args.version,
        root_dir=root_dir,
        arch=detect_arch(),
        product_name=build_config.product_name,
    )
    packager_args = build_packager_args(
        context.dist_dir,
        build_root_dir(context),
        icon_path(context, build_config),
        build_config.runtime_version or "<resolved at build time>",
    )
    logger.info(
        "Dry run, would build",
        extra={
            "dist_dir": str(context.dist_dir),
            "app_dir": str(build_app_dir(context)),
            "build_command": " ".join(build_config.build_command),
            "packager_command": " ".join(
                [*build_config.packager_command, *packager_args]
            ),
        },
    )
    return SUCCESS


def handle_paths(args: argparse.Namespace) -> int:
    """Log every output location for one platform without building anything."""
    exit_code, config, logger = _load_and_bootstrap(args, "paths")
    if exit_code != SUCCESS or config is None:
        return exit_code

    from shipwright.release.platforms.registry import (
        BuildContext,
        build_app_dir,
        build_app_executable,
        build_dir,
        icon_path,
        zip_dir,
    )
    from shipwright.runtime.environment import detect_arch

    try:
        root_dir = _resolve_root(args)
    except RuntimeError as err:
        logger.error("Workspace not found", extra={"command": "paths", "error": str(err)})
        return USER_ERROR

    try:
        context = BuildContext.create(
            platform=args.platform,
            version="",
            root_dir=root_dir,
            arch=args.arch or detect_arch(),
            product_name=config.build.product_name,
        )
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "paths", "error": str(err)})
        return CONFIG_ERROR

    logger.info(
        "Platform paths",
        extra={
            "platform": context.platform.value,
            "arch": context.arch,
            "dist_dir": str(context.dist_dir),
            "build_dir": str(build_dir(context)),
            "app_dir": str(build_app_dir(context)),
            "executable": str(build_app_executable(context)),
            "zip_dir": str(zip_dir(context)),
            "icon": str(icon_path(context, config.build)),
        },
    )
    return SUCCESS


def handle_sizes(args: argparse.Namespace) -> int:
    """Report the disk usage of each folder directly under a directory."""
    exit_code, config, logger = _load_and_bootstrap(args, "sizes")
    if exit_code != SUCCESS or config is None:
        return exit_code

    from shipwright.release.platforms.registry import BuildContext
    from shipwright.release.reporting.sizes import report_sizes
    from shipwright.runtime.environment import detect_arch, detect_host_platform

    directory = Path(args.directory)
    if not directory.is_dir():
        logger.error("Not a directory", extra={"command": "sizes", "directory": str(directory)})
        return USER_ERROR

    try:
        context = BuildContext.create(
            platform=detect_host_platform(),
            version="",
            root_dir=directory,
            arch=detect_arch(),
            product_name=config.build.product_name,
        )
        report = report_sizes(directory.resolve(), context, config.build)
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "sizes", "error": str(err)})
        return CONFIG_ERROR
    except ReleaseStageError as err:
        logger.error("Size report failed", extra={"command": "sizes", "error": str(err)})
        return RUNTIME_ERROR

    logger.info(
        "Size report complete",
        extra={"command": "sizes", "packages": len(report.sizes), "total_kib": report.total_kib()},
    )
    return SUCCESS


def handle_doctor(args: argparse.Namespace) -> int:
    """Run the pre-flight checks on their own; VALIDATION_ERROR if any fail."""
    exit_code, config, logger = _load_and_bootstrap(args, "doctor")
    if exit_code != SUCCESS or config is None:
        return exit_code

    from shipwright.release.environment.validator import validate_environment
    from shipwright.release.platforms.registry import check_platform
    from shipwright.release.verification.display import VirtualDisplay
    from shipwright.runtime.environment import detect_host_platform

    try:
        platform_id = check_platform(args.platform or detect_host_platform())
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": "doctor", "error": str(err)})
        return CONFIG_ERROR

    display = VirtualDisplay(config.build.virtual_display)
    checks = validate_environment(platform_id, config.build, needs_display=display.is_needed())
    failed = [check.name for check in checks if not check.passed]
    if failed:
        logger.warning("Environment is not ready", extra={"command": "doctor", "failed": failed})
        return VALIDATION_ERROR

    logger.info("Environment ready", extra={"command": "doctor", "platform": platform_id.value})
    return SUCCESS
