# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Packager: hands the staged tree to electron-builder.

The argument contract is fixed:

    --publish=never
    --c.electronVersion=<runtime version>
    --c.directories.app=<staged app dir>
    --c.directories.output=<build root>
    --c.icon=<platform icon>
    --c.asar=false

asar stays off because electron-builder does not copy nested
packages/*/node_modules folders into the archive; the staging stage has
already put them in place.

A failed bundler run does not raise here. pack() returns PackagedWithWarning
carrying a PackagingFailure, and the pipeline driver decides whether that
aborts the run (strict mode) or is logged and left for the verification
gates to judge.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import PackagingFailure
from shipwright.release.platforms.registry import BuildContext
from shipwright.utils.process import CommandRunner, run_command

_logger = get_logger(__name__)

_STAGE = "electronPackAndSign"


@dataclass(frozen=True)
class Packed:
    """The bundler exited cleanly."""

    output_dir: Path


@dataclass(frozen=True)
class PackagedWithWarning:
    """The bundler failed; the run continues only if the driver allows it."""

    output_dir: Path
    cause: PackagingFailure


PackOutcome = Union[Packed, PackagedWithWarning]


def build_packager_args(
    app_dir: Path,
    output_dir: Path,
    icon_path: Path,
    runtime_version: str,
) -> list[str]:
    """The electron-builder flags, in the order they are passed."""
    return [
        "--publish=never",
        f"--c.electronVersion={runtime_version}",
        f"--c.directories.app={app_dir}",
        f"--c.directories.output={output_dir}",
        f"--c.icon={icon_path}",
        "--c.asar=false",
    ]


def pack(
    app_dir: Path,
    output_dir: Path,
    icon_path: Path,
    runtime_version: str,
    context: BuildContext,
    config: BuildConfig,
    runner: CommandRunner = run_command,
) -> PackOutcome:
    """
    Run the bundler over the staged app.

    Returns:
        Packed on a clean exit, PackagedWithWarning otherwise.
    """
    args = build_packager_args(app_dir, output_dir, icon_path, runtime_version)
    _logger.info(
        "Running bundler",
        extra={
            "stage": _STAGE,
            "platform": context.platform.value,
            "command": " ".join([*config.packager_command, *args]),
            "output_dir": str(output_dir),
        },
    )

    result = runner(
        [*config.packager_command, *args],
        cwd=context.root_dir,
        timeout=config.timeouts.pack,
    )
    if result.ok:
        return Packed(output_dir=output_dir)

    failure = PackagingFailure(_STAGE, context.platform.value, result.describe())
    _logger.error(
        "Bundler failed",
        extra={
            "stage": _STAGE,
            "platform": context.platform.value,
            "exit_code": result.exit_code,
            "stderr": result.stderr[-2000:],
        },
    )
    return PackagedWithWarning(output_dir=output_dir, cause=failure)


def list_build_dir(build_dir: Path) -> list[str]:
    """Names in the platform build folder, logged after packing for the CI record."""
    if not build_dir.is_dir():
        _logger.warning("Build folder does not exist", extra={"build_dir": str(build_dir)})
        return []
    entries = sorted(entry.name for entry in build_dir.iterdir())
    _logger.info("In build folder", extra={"build_dir": str(build_dir), "entries": entries})
    return entries
