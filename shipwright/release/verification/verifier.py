# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release verification gates.

Each gate is independent and raises its own error kind on failure:

  1. check_version       : `node index.js --version` must print exactly the
                            version being built (staged dir and packed app)
  2. check_static_assets : files the app loads at runtime must exist
  3. check_code_integrity: darwin only: gatekeeper (`spctl`) must accept
                            the signed bundle
  4. run_smoke_test      : the packed binary must start and exit cleanly,
                            under a virtual display when the host has none

All four are fatal. Nothing here retries.
"""

import random
from pathlib import Path

from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import (
    IntegrityError,
    SmokeTestFailure,
    StaticAssetError,
    VersionMismatchError,
)
from shipwright.release.platforms.registry import BuildContext, resolve_layout, zip_dir
from shipwright.release.verification.display import DisplayResource
from shipwright.utils.process import CommandResult, CommandRunner, run_command

_logger = get_logger(__name__)


def check_version(
    app_dir: Path,
    expected: str,
    context: BuildContext,
    config: BuildConfig,
    runner: CommandRunner = run_command,
) -> str:
    """
    Ask the app in `app_dir` for its version and compare with `expected`.

    Only the trailing newline is dropped from stdout; anything else must
    match byte for byte.

    Returns:
        The reported version.

    Raises:
        VersionMismatchError: On a failed command, empty output or a different version.
    """
    stage = "testVersion"
    platform = context.platform.value
    _logger.info(
        "Testing built version",
        extra={"stage": stage, "platform": platform, "app_dir": str(app_dir)},
    )

    result = runner(config.version_command, cwd=app_dir, timeout=config.timeouts.version_check)
    if not result.ok:
        raise VersionMismatchError(stage, platform, f"{app_dir}: {result.describe()}")

    reported = result.stdout.rstrip("\r\n")
    if not reported:
        raise VersionMismatchError(
            stage, platform, f"{app_dir}: missing output when getting built version"
        )
    if reported != expected:
        raise VersionMismatchError(
            stage,
            platform,
            f"{app_dir}: different version reported {reported!r}, expected {expected!r}",
        )

    _logger.info(
        "Built version matches",
        extra={"stage": stage, "platform": platform, "version": reported},
    )
    return reported


def check_static_assets(
    app_dir: Path,
    context: BuildContext,
    config: BuildConfig,
) -> list[Path]:
    """
    Verify every configured static asset exists under `app_dir`.

    Raises:
        StaticAssetError: Listing every missing path, not just the first.
    """
    expected = [app_dir / relative for relative in config.static_assets]
    missing = [path for path in expected if not path.exists()]
    if missing:
        raise StaticAssetError(
            "testStaticAssets",
            context.platform.value,
            "missing static assets: " + ", ".join(str(path) for path in missing),
        )
    _logger.info(
        "Static assets present",
        extra={"platform": context.platform.value, "count": len(expected)},
    )
    return expected


def check_code_integrity(
    context: BuildContext,
    config: BuildConfig,
    runner: CommandRunner = run_command,
) -> bool:
    """
    Run the gatekeeper assessment on platforms that sign their bundle.

    Returns:
        True if the check ran and passed, False if the platform skips it.

    Raises:
        IntegrityError: If the verification tool rejects the bundle.
    """
    stage = "verifyAppCanOpen"
    platform = context.platform.value
    if not resolve_layout(context.platform).verifies_signature:
        _logger.debug("Skipping integrity check", extra={"stage": stage, "platform": platform})
        return False

    bundle = zip_dir(context)
    result = runner(
        [*config.integrity_command, str(bundle)],
        timeout=config.timeouts.integrity,
    )
    if not result.ok:
        raise IntegrityError(
            stage, platform, f"Verifying app via gatekeeper failed: {result.describe()}"
        )

    _logger.info("Gatekeeper accepted bundle", extra={"stage": stage, "bundle": str(bundle)})
    return True


def run_smoke_test(
    executable: Path,
    context: BuildContext,
    config: BuildConfig,
    display: DisplayResource,
    runner: CommandRunner = run_command,
) -> CommandResult:
    """
    Launch the packed app and require a clean exit.

    The display is started only if it reports being needed, and is stopped
    on every way out of this function once started.

    Raises:
        SmokeTestFailure: If the display cannot start, the app exits non-zero
            or times out, or the ping is not echoed back.
    """
    stage = "runSmokeTests"
    platform = context.platform.value
    args = [str(executable), *config.smoke_args]
    ping: str | None = None
    if config.smoke_ping:
        ping = str(random.randint(1000, 999_999))
        args.extend(["--smoke-test", f"--ping={ping}"])

    using_display = display.is_needed()
    if using_display:
        try:
            display.start()
        except (RuntimeError, OSError) as err:
            raise SmokeTestFailure(stage, platform, f"virtual display: {err}") from err

    try:
        _logger.info(
            "Running smoke test",
            extra={"stage": stage, "platform": platform, "command": " ".join(args)},
        )
        result = runner(
            args,
            env=display.env if using_display else None,
            timeout=config.timeouts.smoke_test,
        )
    finally:
        if using_display:
            display.stop()

    if not result.ok:
        raise SmokeTestFailure(stage, platform, result.describe())
    if ping is not None and ping not in result.stdout:
        raise SmokeTestFailure(
            stage, platform, f"expected ping {ping} in output, got {result.stdout.strip()!r}"
        )

    _logger.info("Smoke test passed", extra={"stage": stage, "platform": platform})
    return result
