# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
End-to-end tests for build_app with every external command faked.
"""

import json
from pathlib import Path

import pytest

from shipwright.config.exceptions import ConfigurationError, PlatformMismatchError
from shipwright.config.schema import BuildConfig
from shipwright.release.exceptions import (
    PackagingFailure,
    SmokeTestFailure,
    StaticAssetError,
    VersionMismatchError,
)
from shipwright.release.packaging.packager import Packed, PackagedWithWarning
from shipwright.release.pipeline import build_app

DU_OUTPUT = "120\t/x/packages\n40\t/x/packages/electron\n15\t/x/packages/server\n"


@pytest.fixture()
def config() -> BuildConfig:
    return BuildConfig(product_name="Cypress", package_name="cypress")


@pytest.fixture()
def runner(fake_runner):
    fake_runner.respond("process.versions.node", stdout="12.16.3\n")
    fake_runner.respond("index.js --version", stdout="10.3.0\n")
    fake_runner.respond("du -k -d 1", stdout=DU_OUTPUT)
    return fake_runner


def _build(platform: str, workspace: Path, config: BuildConfig, runner, display, **kwargs):
    options = {"host_platform": platform, "arch": "x64", **kwargs}
    return build_app(
        platform,
        "10.3.0",
        config=config,
        root_dir=workspace,
        runner=runner,
        display=display,
        **options,
    )


def _stages(runner) -> list[str]:
    labels = []
    for call in runner.calls:
        command = call.command
        if "process.versions.node" in command:
            labels.append("probe")
        elif "build-prod" in command:
            labels.append("build")
        elif "--production" in command:
            labels.append("install")
        elif "--version" in command:
            labels.append("version")
        elif command.startswith("electron-builder"):
            labels.append("pack")
        elif command.startswith("spctl"):
            labels.append("integrity")
        elif command.startswith("du"):
            labels.append("sizes")
        else:
            labels.append("smoke")
    return labels


class TestLinux:
    def test_full_run(self, workspace: Path, config: BuildConfig, runner, fake_display) -> None:
        result = _build("linux", workspace, config, runner, fake_display)

        assert _stages(runner) == [
            "probe", "build", "install", "version", "pack", "version", "smoke", "sizes",
        ]
        assert result.fully_successful
        assert result.integrity_checked is False
        assert isinstance(result.pack_outcome, Packed)
        assert result.size_report is not None
        assert result.size_report.names() == ["server", "electron"]
        assert result.manifest.version == "10.3.0"
        assert result.manifest.electron_version == "10.1.5"
        assert (fake_display.starts, fake_display.stops) == (1, 1)

    def test_version_checked_in_dist_then_packed_app(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        result = _build("linux", workspace, config, runner, fake_display)
        cwds = [call.cwd for call in runner.calls_matching("--version")]
        build_root = result.context.build_dir / "linux-unpacked"
        assert cwds == [result.context.dist_dir, build_root / "resources" / "app"]

    def test_staged_tree_is_stripped_and_pruned(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        result = _build("linux", workspace, config, runner, fake_display)
        server_lib = result.context.dist_dir / "packages" / "server" / "lib"
        assert not (server_lib / "types.ts").exists()
        app = (server_lib / "app.js").read_text(encoding="utf-8")
        assert "require('../../https-proxy/lib/proxy')" in app

    def test_packager_args(self, workspace: Path, config: BuildConfig, runner, fake_display) -> None:
        result = _build("linux", workspace, config, runner, fake_display)
        (call,) = runner.calls_matching("electron-builder")
        assert f"--c.directories.app={result.context.dist_dir}" in call.args
        assert f"--c.directories.output={result.context.build_dir}" in call.args
        assert "--c.electronVersion=10.1.5" in call.args
        assert any(arg.endswith("icon_512x512.png") for arg in call.args)

    def test_size_report_measures_staged_packages(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        result = _build("linux", workspace, config, runner, fake_display)
        (call,) = runner.calls_matching("du -k")
        assert call.args[-1] == str(result.context.dist_dir / "packages")


class TestDarwin:
    def test_runs_integrity_after_smoke(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        fake_display.needed = False
        result = _build("darwin", workspace, config, runner, fake_display)
        stages = _stages(runner)
        assert stages[-3:] == ["smoke", "integrity", "sizes"]
        assert result.integrity_checked is True
        (smoke,) = [c for c in runner.calls if c.command.endswith("MacOS/Cypress")]
        assert smoke.env is None


class TestWindows:
    def test_completes_without_size_report(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        fake_display.needed = False
        result = _build("win32", workspace, config, runner, fake_display, arch="ia32")

        assert runner.calls_matching("du ") == []
        assert result.size_report is None
        assert result.integrity_checked is False
        assert result.fully_successful
        (call,) = runner.calls_matching("electron-builder")
        assert any(arg.endswith("app.ico") for arg in call.args)
        cwds = [c.cwd for c in runner.calls_matching("--version")]
        assert cwds[-1] == result.context.build_dir / "win-ia32-unpacked" / "resources" / "app"


class TestPlatformChecks:
    def test_mismatch_raises_before_any_command(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        with pytest.raises(PlatformMismatchError):
            build_app(
                "darwin", "10.3.0", config=config, root_dir=workspace, runner=runner,
                display=fake_display, host_platform="linux",
            )
        assert runner.calls == []
        assert not (workspace / "dist").exists()

    def test_unknown_platform(self, workspace: Path, config: BuildConfig, runner) -> None:
        with pytest.raises(ConfigurationError, match="solaris"):
            build_app("solaris", "10.3.0", config=config, root_dir=workspace, runner=runner)
        assert runner.calls == []


class TestPackagingPolicy:
    def test_failure_downgraded_by_default(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        runner.respond("electron-builder", exit_code=1, stderr="code signing failed")
        result = _build("linux", workspace, config, runner, fake_display)

        assert isinstance(result.pack_outcome, PackagedWithWarning)
        assert not result.fully_successful
        assert len(result.warnings) == 1
        assert "code signing failed" in result.warnings[0]
        # verification still ran against whatever the bundler left behind
        assert "smoke" in _stages(runner)

    def test_strict_mode_raises(self, workspace: Path, runner, fake_display) -> None:
        strict = BuildConfig(product_name="Cypress", strict_packaging=True)
        runner.respond("electron-builder", exit_code=1, stderr="code signing failed")
        with pytest.raises(PackagingFailure, match="code signing failed"):
            _build("linux", workspace, strict, runner, fake_display)
        assert runner.calls_matching("du ") == []


class TestFatalGates:
    def test_wrong_version_in_dist_stops_before_pack(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        runner.respond("index.js --version", stdout="10.3.1\n")
        with pytest.raises(VersionMismatchError):
            _build("linux", workspace, config, runner, fake_display)
        assert runner.calls_matching("electron-builder") == []

    def test_missing_static_asset(self, workspace: Path, runner, fake_display) -> None:
        config = BuildConfig(static_assets=["package.json", "packages/server/missing.js"])
        with pytest.raises(StaticAssetError, match="missing.js"):
            _build("linux", workspace, config, runner, fake_display)

    def test_smoke_failure_releases_display(
        self, workspace: Path, config: BuildConfig, runner, fake_display
    ) -> None:
        runner.respond("linux-unpacked/Cypress", exit_code=139)
        with pytest.raises(SmokeTestFailure):
            _build("linux", workspace, config, runner, fake_display)
        assert (fake_display.starts, fake_display.stops) == (1, 1)
        assert runner.calls_matching("du ") == []


def test_staged_manifest_written(workspace: Path, config: BuildConfig, runner, fake_display) -> None:
    result = _build("linux", workspace, config, runner, fake_display)
    data = json.loads((result.context.dist_dir / "package.json").read_text(encoding="utf-8"))
    assert data["productName"] == "Cypress"
    assert data["dependencies"] == {"@packages/server": "0.0.0-development"}
