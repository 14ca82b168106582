# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release pipeline driver.

`build_app(platform, version)` is the single entry point. It runs every
stage in order, each one finishing before the next starts:

    checkPlatform          requested platform must be the host platform
    resolveRuntime         bundler runtime + embedded Node versions
    stage                  dist/<platform>/ (see staging.stager)
    strip                  drop *.ts, rewrite symlinked requires
    testVersion (dist)     staged app reports the version being built
    testStaticAssets       runtime files are present
    removeCyAndBinFolders  dev leftovers out before packing
    electronPackAndSign    bundler; a failure is downgraded unless strict
    testVersion (build)    packed app reports the version being built
    runSmokeTests          packed binary starts and exits cleanly
    verifyAppCanOpen       gatekeeper, only where the layout signs
    printPackageSizes      only where the layout reports sizes

Fatal errors propagate unchanged to the caller. The one downgrade is a
failed bundler run: it is logged as a warning, recorded on the BuildResult,
and `fully_successful` is False, so callers cannot mistake it for a clean
release.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from shipwright.config.exceptions import PlatformMismatchError
from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import StagingError
from shipwright.release.packaging.packager import (
    PackagedWithWarning,
    PackOutcome,
    list_build_dir,
    pack,
)
from shipwright.release.packaging.runtime import resolve_runtime_versions
from shipwright.release.platforms.registry import (
    BuildContext,
    build_app_dir,
    build_app_executable,
    build_dir,
    build_root_dir,
    check_platform,
    icon_path,
    resolve_layout,
)
from shipwright.release.reporting.sizes import DiskUsageReport, report_sizes
from shipwright.release.staging.stager import StagedManifest, stage_packages
from shipwright.release.staging.stripper import prune_dev_artifacts, strip
from shipwright.release.verification.display import DisplayResource, VirtualDisplay
from shipwright.release.verification.verifier import (
    check_code_integrity,
    check_static_assets,
    check_version,
    run_smoke_test,
)
from shipwright.runtime.environment import detect_arch, detect_host_platform
from shipwright.utils.paths import resolve_workspace_root
from shipwright.utils.process import CommandRunner, run_command

_logger = get_logger(__name__)


@dataclass(frozen=True)
class BuildResult:
    """What a finished release run produced."""

    context: BuildContext
    manifest: StagedManifest
    pack_outcome: PackOutcome
    integrity_checked: bool
    size_report: DiskUsageReport | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def fully_successful(self) -> bool:
        return not isinstance(self.pack_outcome, PackagedWithWarning)


def _log_stage(context: BuildContext, stage: str, **extra: object) -> None:
    _logger.info(
        "Stage started",
        extra={"stage": stage, "platform": context.platform.value, **extra},
    )


@contextmanager
def _filesystem_stage(context: BuildContext, stage: str) -> Iterator[None]:
    """Stages that only touch the staged tree fail as StagingError."""
    _log_stage(context, stage)
    try:
        yield
    except (OSError, ValueError) as err:
        raise StagingError(
            stage, context.platform.value, f"{type(err).__name__}: {err}"
        ) from err


def build_app(
    platform: str,
    version: str,
    config: BuildConfig | None = None,
    root_dir: Path | None = None,
    runner: CommandRunner = run_command,
    display: DisplayResource | None = None,
    host_platform: str | None = None,
    arch: str | None = None,
) -> BuildResult:
    """
    Stage, pack and verify the desktop app for `platform` at `version`.

    Args:
        platform: "darwin", "linux" or "win32"; must match the host.
        version: The version the app must report.
        config: Build settings; defaults when omitted.
        root_dir: Workspace root; discovered from the cwd when omitted.
        runner: Command runner used for every external call.
        display: Display provider for the smoke test; Xvfb when omitted.
        host_platform: Override for host detection.
        arch: Override for host CPU architecture detection.

    Raises:
        ConfigurationError: Unknown platform, or PlatformMismatchError.
        ReleaseStageError: Any fatal stage failure (see release.exceptions).
    """
    config = config or BuildConfig()

    platform_id = check_platform(platform)
    host = host_platform or detect_host_platform()
    _logger.info("Stage started", extra={"stage": "checkPlatform", "platform": platform_id.value})
    if platform_id.value != host:
        raise PlatformMismatchError(platform_id.value, host)

    context = BuildContext.create(
        platform=platform_id,
        version=version,
        root_dir=root_dir or resolve_workspace_root(),
        arch=arch or detect_arch(),
        product_name=config.product_name,
    )
    layout = resolve_layout(context.platform)
    warnings: list[str] = []

    runtime = resolve_runtime_versions(context, config, runner)
    manifest = stage_packages(context, config, runtime, runner)

    with _filesystem_stage(context, "transformSymlinkRequires"):
        strip(
            context.dist_dir,
            suffixes=tuple(config.source_suffixes),
            scope=config.workspace_scope,
        )

    _log_stage(context, "testVersion", app_dir=str(context.dist_dir))
    check_version(context.dist_dir, version, context, config, runner)

    _log_stage(context, "testStaticAssets")
    check_static_assets(context.dist_dir, context, config)

    with _filesystem_stage(context, "removeCyAndBinFolders"):
        prune_dev_artifacts(context.dist_dir, config.pre_pack_prune_patterns)

    _log_stage(context, "electronPackAndSign")
    icon = icon_path(context, config)
    _logger.info(
        "Using icon",
        extra={"platform": context.platform.value, "icon": str(icon)},
    )
    outcome = pack(
        context.dist_dir,
        build_root_dir(context),
        icon,
        runtime.runtime_version,
        context,
        config,
        runner,
    )
    if isinstance(outcome, PackagedWithWarning):
        if config.strict_packaging:
            raise outcome.cause
        warnings.append(str(outcome.cause))
        _logger.warning(
            "PACKAGED WITH WARNING: bundler failed, continuing to verification",
            extra={
                "stage": "electronPackAndSign",
                "platform": context.platform.value,
                "cause": outcome.cause.cause,
            },
        )

    list_build_dir(build_dir(context))

    packed_app_dir = build_app_dir(context)
    _log_stage(context, "testVersion", app_dir=str(packed_app_dir))
    check_version(packed_app_dir, version, context, config, runner)

    _log_stage(context, "runSmokeTests")
    run_smoke_test(
        build_app_executable(context),
        context,
        config,
        display or VirtualDisplay(config.virtual_display),
        runner,
    )

    _log_stage(context, "verifyAppCanOpen")
    integrity_checked = check_code_integrity(context, config, runner)

    size_report = None
    if layout.reports_sizes:
        packages_dir = context.dist_dir / config.size_report_subdir
        _log_stage(context, "printPackageSizes", app_dir=str(packages_dir))
        size_report = report_sizes(packages_dir, context, config, runner)

    result = BuildResult(
        context=context,
        manifest=manifest,
        pack_outcome=outcome,
        integrity_checked=integrity_checked,
        size_report=size_report,
        warnings=warnings,
    )
    _logger.info(
        "Release build finished",
        extra={
            "platform": context.platform.value,
            "version": version,
            "fully_successful": result.fully_successful,
            "warnings": warnings,
        },
    )
    return result
