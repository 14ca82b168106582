# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pre-flight environment validation.

Before a release run starts, check:
- Python version
- every external tool the run will call is on PATH
- free disk space for the staging and build trees

A missing tool found here costs a second. The same tool missing at the
bundler step costs a full monorepo build first.
"""

import shutil
from dataclasses import dataclass
from pathlib import Path

from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.platforms.registry import PlatformId, resolve_layout
from shipwright.runtime.environment import check_minimum_python, get_python_version

_logger = get_logger(__name__)

MIN_DISK_SPACE_BYTES: int = 5_368_709_120  # 5 GB


@dataclass(frozen=True)
class EnvironmentCheck:
    """Result of a single environment check."""

    name: str
    passed: bool
    message: str
    value: str


def check_python_version() -> EnvironmentCheck:
    """The interpreter gate from bootstrap, reported instead of raised."""
    version = ".".join(str(part) for part in get_python_version())
    try:
        check_minimum_python()
    except RuntimeError as err:
        return EnvironmentCheck(name="python_version", passed=False, message=str(err), value=version)
    return EnvironmentCheck(
        name="python_version", passed=True, message=f"Python {version} is supported", value=version
    )


def required_tools(platform: PlatformId, config: BuildConfig, needs_display: bool) -> list[str]:
    """Executables a release run for `platform` will spawn, in call order."""
    layout = resolve_layout(platform)
    tools = [
        config.build_command[0],
        config.install_command[0],
        config.version_command[0],
        config.packager_command[0],
    ]
    if needs_display:
        tools.append(config.virtual_display.command[0])
    if layout.verifies_signature:
        tools.append(config.integrity_command[0])
    if layout.reports_sizes:
        tools.append(config.disk_usage_command[0])
    # keep first occurrence order, drop duplicates
    return list(dict.fromkeys(tools))


def check_tool(tool: str) -> EnvironmentCheck:
    """Check that an executable is on PATH."""
    location = shutil.which(tool)
    if location is None:
        return EnvironmentCheck(
            name=f"tool:{tool}",
            passed=False,
            message=f"{tool} not found on PATH",
            value="missing",
        )
    return EnvironmentCheck(
        name=f"tool:{tool}",
        passed=True,
        message=f"{tool} found at {location}",
        value=location,
    )


def check_disk_space(path: Path | None = None) -> EnvironmentCheck:
    """
    Check there is room for the staging tree and the bundler output.

    Args:
        path: Any directory on the target filesystem. Defaults to the cwd.
    """
    target = path or Path.cwd()
    minimum_gb = MIN_DISK_SPACE_BYTES / 1024**3
    try:
        free = shutil.disk_usage(target).free
    except OSError as err:
        return EnvironmentCheck(
            name="disk_space",
            passed=False,
            message=f"disk usage of {target} unavailable: {err}",
            value="error",
        )

    free_gb = free / 1024**3
    passed = free >= MIN_DISK_SPACE_BYTES
    verdict = "enough" if passed else "not enough"
    return EnvironmentCheck(
        name="disk_space",
        passed=passed,
        message=f"{free_gb:.1f} GB free at {target}, {verdict} for a {minimum_gb:.0f} GB build",
        value=f"{free_gb:.1f}GB",
    )


def validate_environment(
    platform: PlatformId,
    config: BuildConfig,
    needs_display: bool = False,
    check_path: Path | None = None,
) -> list[EnvironmentCheck]:
    """
    Run every pre-flight check for a `platform` build and log the outcome.

    Failed checks are logged as warnings and returned; nothing here raises.
    The `doctor` command turns failures into an exit code.
    """
    checks = [check_python_version()]
    checks.extend(check_tool(tool) for tool in required_tools(platform, config, needs_display))
    checks.append(check_disk_space(check_path))

    for check in checks:
        log = _logger.info if check.passed else _logger.warning
        log(check.message, extra={"check": check.name, "platform": platform.value})

    failed = [check.name for check in checks if not check.passed]
    _logger.info(
        "Pre-flight checks done",
        extra={"platform": platform.value, "total": len(checks), "failed": failed},
    )
    return checks
