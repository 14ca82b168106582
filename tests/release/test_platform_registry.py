# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the platform registry and path helpers.
"""

from pathlib import Path

import pytest

from shipwright.config.exceptions import ConfigurationError, UnknownPlatformError
from shipwright.config.schema import BuildConfig
from shipwright.release.platforms.registry import (
    LAYOUTS,
    VALID_PLATFORMS,
    BuildContext,
    PlatformId,
    build_app_dir,
    build_app_executable,
    build_dir,
    check_platform,
    dist_dir,
    icon_path,
    resolve_layout,
    zip_dir,
)


def _context(tmp_path: Path, platform: str, arch: str = "x64") -> BuildContext:
    return BuildContext.create(
        platform=platform,
        version="10.3.0",
        root_dir=tmp_path,
        arch=arch,
        product_name="Cypress",
    )


class TestCheckPlatform:
    @pytest.mark.parametrize("value", ["darwin", "linux", "win32"])
    def test_accepts_known_platforms(self, value: str) -> None:
        assert check_platform(value).value == value

    def test_accepts_enum_member(self) -> None:
        assert check_platform(PlatformId.LINUX) is PlatformId.LINUX

    def test_rejects_unknown_platform_naming_valid_set(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            check_platform("solaris")
        message = str(excinfo.value)
        assert "solaris" in message
        for platform in VALID_PLATFORMS:
            assert platform in message

    def test_unknown_platform_is_configuration_error(self) -> None:
        assert issubclass(UnknownPlatformError, ConfigurationError)

    def test_every_platform_has_a_layout(self) -> None:
        assert set(LAYOUTS) == set(PlatformId)


class TestBuildContext:
    def test_derives_dist_and_build_dirs(self, tmp_path: Path) -> None:
        context = _context(tmp_path, "linux")
        assert context.dist_dir == tmp_path.resolve() / "dist" / "linux"
        assert context.build_dir == tmp_path.resolve() / "build"

    def test_is_frozen(self, tmp_path: Path) -> None:
        context = _context(tmp_path, "linux")
        with pytest.raises(AttributeError):
            context.version = "1.0.0"  # type: ignore[misc]

    def test_create_rejects_unknown_platform(self, tmp_path: Path) -> None:
        with pytest.raises(UnknownPlatformError):
            _context(tmp_path, "beos")


class TestPaths:
    def test_darwin_nests_under_mac_bundle(self, tmp_path: Path) -> None:
        context = _context(tmp_path, "darwin")
        root = tmp_path.resolve()
        assert build_dir(context) == root / "build" / "mac"
        assert build_app_dir(context) == (
            root / "build" / "mac" / "Cypress.app" / "Contents" / "resources" / "app"
        )
        assert build_app_executable(context) == (
            root / "build" / "mac" / "Cypress.app" / "Contents" / "MacOS" / "Cypress"
        )
        assert zip_dir(context) == root / "build" / "mac" / "Cypress.app"

    def test_linux_nests_under_unpacked(self, tmp_path: Path) -> None:
        context = _context(tmp_path, "linux")
        root = tmp_path.resolve()
        assert build_app_dir(context) == root / "build" / "linux-unpacked" / "resources" / "app"
        assert build_app_executable(context) == root / "build" / "linux-unpacked" / "Cypress"
        assert zip_dir(context) == root / "build" / "linux-unpacked"

    @pytest.mark.parametrize(
        ("arch", "subdir"),
        [("x64", "win-unpacked"), ("ia32", "win-ia32-unpacked"), ("arm64", "win-ia32-unpacked")],
    )
    def test_win32_subdir_depends_on_arch(self, tmp_path: Path, arch: str, subdir: str) -> None:
        context = _context(tmp_path, "win32", arch=arch)
        assert build_dir(context) == tmp_path.resolve() / "build" / subdir

    def test_parts_are_appended(self, tmp_path: Path) -> None:
        context = _context(tmp_path, "linux")
        assert build_app_dir(context, "package.json").name == "package.json"
        assert dist_dir(context, "packages", "server") == context.dist_dir / "packages" / "server"

    def test_paths_are_deterministic(self, tmp_path: Path) -> None:
        first = _context(tmp_path, "darwin")
        second = _context(tmp_path, "darwin")
        assert build_app_dir(first) == build_app_dir(second)
        assert not (tmp_path / "build").exists()

    def test_bogus_platform_on_hand_built_context_is_rejected(self, tmp_path: Path) -> None:
        context = BuildContext(
            platform="plan9",  # type: ignore[arg-type]
            version="1.0.0",
            root_dir=tmp_path,
            dist_dir=tmp_path / "dist" / "plan9",
            build_dir=tmp_path / "build",
            arch="x64",
            product_name="Cypress",
        )
        with pytest.raises(ConfigurationError):
            build_app_dir(context)
        with pytest.raises(ConfigurationError):
            dist_dir(context)


class TestLayoutRules:
    def test_only_darwin_verifies_signature(self) -> None:
        assert [p for p, rules in LAYOUTS.items() if rules.verifies_signature] == [
            PlatformId.DARWIN
        ]

    def test_windows_skips_size_report(self) -> None:
        assert resolve_layout("win32").reports_sizes is False
        assert resolve_layout("linux").reports_sizes is True

    def test_icon_defaults_per_platform(self, tmp_path: Path) -> None:
        config = BuildConfig()
        icons = tmp_path.resolve() / "packages" / "icons" / "dist" / "icons"
        assert icon_path(_context(tmp_path, "darwin"), config) == icons / "app.icns"
        assert icon_path(_context(tmp_path, "linux"), config) == icons / "icon_512x512.png"
        assert icon_path(_context(tmp_path, "win32"), config) == icons / "app.ico"

    def test_icon_override_from_config(self, tmp_path: Path) -> None:
        config = BuildConfig(icons={"linux": "icon_256x256.png"})
        assert icon_path(_context(tmp_path, "linux"), config).name == "icon_256x256.png"
