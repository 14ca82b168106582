# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Bundler runtime version discovery.

The staged manifest records which Electron version the app is packed with
and which Node version that Electron embeds. The bundler is pinned to the
same runtime version. Both come from config when pinned; otherwise the
runtime version is read from the runtime package installed in the workspace
and the Node version is asked from the runtime binary itself.
"""

from dataclasses import dataclass

from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import StagingError
from shipwright.release.platforms.registry import BuildContext
from shipwright.utils.filesystem import read_json
from shipwright.utils.process import CommandRunner, run_command

_logger = get_logger(__name__)

_STAGE = "resolveRuntime"


@dataclass(frozen=True)
class RuntimeVersions:
    runtime_version: str
    node_version: str


def resolve_runtime_versions(
    context: BuildContext,
    config: BuildConfig,
    runner: CommandRunner = run_command,
) -> RuntimeVersions:
    """
    Work out the bundler runtime version and its embedded Node version.

    Raises:
        StagingError: If the runtime package is missing or cannot be probed.
    """
    platform = context.platform.value
    package_dir = context.root_dir / "node_modules" / config.runtime_package

    runtime_version = config.runtime_version
    if runtime_version is None:
        try:
            runtime_version = str(read_json(package_dir / "package.json")["version"])
        except (OSError, ValueError, KeyError) as err:
            raise StagingError(
                _STAGE, platform, f"cannot read {config.runtime_package} version: {err}"
            ) from err

    node_version = config.runtime_node_version
    if node_version is None:
        try:
            relative_binary = (package_dir / "path.txt").read_text(encoding="utf-8").strip()
        except OSError as err:
            raise StagingError(
                _STAGE, platform, f"cannot locate the {config.runtime_package} binary: {err}"
            ) from err

        result = runner(
            [str(package_dir / "dist" / relative_binary), "-p", "process.versions.node"],
            env={"ELECTRON_RUN_AS_NODE": "1"},
            timeout=config.timeouts.runtime_probe,
        )
        node_version = result.stdout.strip()
        if not result.ok or not node_version:
            raise StagingError(_STAGE, platform, result.describe())

    _logger.info(
        "Resolved bundler runtime",
        extra={
            "stage": _STAGE,
            "platform": platform,
            "runtime_version": runtime_version,
            "node_version": node_version,
        },
    )
    return RuntimeVersions(runtime_version=runtime_version, node_version=node_version)
