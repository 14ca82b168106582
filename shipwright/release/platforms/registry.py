# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Supported platforms and where everything lives for each of them.

The output tree looks like this:

    <root>/
    ├─ dist/<platform>/          staged, not yet packed
    └─ build/
       ├─ mac/                   darwin (electron-builder names it "mac")
       │  └─ <Product>.app/Contents/{resources/app, MacOS/<Product>}
       ├─ linux-unpacked/        linux
       │  └─ {resources/app, <Product>}
       └─ win-unpacked/          win32 on x64, win-ia32-unpacked otherwise
          └─ {resources/app, <Product>}

Every path function here is pure: it only combines the BuildContext with the
layout table below and never touches the filesystem. All per-platform
differences live in LAYOUTS, including which optional gates a platform runs;
nothing else branches on the platform name.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from shipwright.config.exceptions import UnknownPlatformError
from shipwright.config.schema import BuildConfig


class PlatformId(str, Enum):
    """Canonical platform ids, spelled the way Node's os.platform() reports them."""

    DARWIN = "darwin"
    LINUX = "linux"
    WINDOWS = "win32"

    def __str__(self) -> str:
        return self.value


VALID_PLATFORMS: tuple[str, ...] = tuple(member.value for member in PlatformId)


@dataclass(frozen=True)
class PlatformLayoutRules:
    """
    Bundler output layout for one platform.

    Sub-paths are tuples of path segments relative to the platform build
    dir; "{product}" is replaced with the product name.
    """

    build_subdir: str
    app_resources: tuple[str, ...]
    executable: tuple[str, ...]
    zip_source: tuple[str, ...]
    icon_filename: str
    # gatekeeper assessment of the signed bundle after packing
    verifies_signature: bool = False
    # `du` is available to measure package sizes
    reports_sizes: bool = True
    # arch -> build_subdir override; arches not listed use arch_fallback_subdir
    arch_subdirs: dict[str, str] = field(default_factory=dict)
    arch_fallback_subdir: str | None = None

    def subdir_for(self, arch: str) -> str:
        if not self.arch_subdirs:
            return self.build_subdir
        if arch in self.arch_subdirs:
            return self.arch_subdirs[arch]
        return self.arch_fallback_subdir or self.build_subdir


LAYOUTS: dict[PlatformId, PlatformLayoutRules] = {
    PlatformId.DARWIN: PlatformLayoutRules(
        build_subdir="mac",
        app_resources=("{product}.app", "Contents", "resources", "app"),
        executable=("{product}.app", "Contents", "MacOS", "{product}"),
        zip_source=("{product}.app",),
        icon_filename="app.icns",
        verifies_signature=True,
    ),
    PlatformId.LINUX: PlatformLayoutRules(
        build_subdir="linux-unpacked",
        app_resources=("resources", "app"),
        executable=("{product}",),
        zip_source=(),
        icon_filename="icon_512x512.png",
    ),
    PlatformId.WINDOWS: PlatformLayoutRules(
        build_subdir="win-unpacked",
        app_resources=("resources", "app"),
        executable=("{product}",),
        zip_source=(),
        icon_filename="app.ico",
        reports_sizes=False,
        arch_subdirs={"x64": "win-unpacked"},
        # any non-x64 host is treated as 32 bit
        arch_fallback_subdir="win-ia32-unpacked",
    ),
}


def check_platform(value: object) -> PlatformId:
    """
    Validate a platform id.

    Raises:
        UnknownPlatformError: (a ConfigurationError) naming the bad value and the valid set.
    """
    if isinstance(value, PlatformId):
        return value
    try:
        return PlatformId(value)
    except ValueError:
        raise UnknownPlatformError(value, VALID_PLATFORMS) from None


def resolve_layout(platform: object) -> PlatformLayoutRules:
    """Return the layout rules for a platform, validating it first."""
    return LAYOUTS[check_platform(platform)]


@dataclass(frozen=True)
class BuildContext:
    """
    Everything a release run needs to locate its inputs and outputs.

    Created once by the pipeline driver and handed, read-only, to every
    stage. dist_dir and build_dir are derived at creation time; arch is
    captured once so paths cannot shift mid-run.
    """

    platform: PlatformId
    version: str
    root_dir: Path
    dist_dir: Path
    build_dir: Path
    arch: str
    product_name: str

    @classmethod
    def create(
        cls,
        platform: object,
        version: str,
        root_dir: Path,
        arch: str,
        product_name: str,
    ) -> "BuildContext":
        platform_id = check_platform(platform)
        root = root_dir.resolve()
        return cls(
            platform=platform_id,
            version=version,
            root_dir=root,
            dist_dir=root / "dist" / platform_id.value,
            build_dir=root / "build",
            arch=arch,
            product_name=product_name,
        )


def _expand(segments: tuple[str, ...], product_name: str) -> list[str]:
    return [segment.replace("{product}", product_name) for segment in segments]


def build_root_dir(context: BuildContext) -> Path:
    """The bundler output root shared by all platforms."""
    return context.build_dir


def build_dir(context: BuildContext, *parts: str) -> Path:
    """Path inside the platform-specific unpacked build folder."""
    layout = resolve_layout(context.platform)
    return context.build_dir.joinpath(layout.subdir_for(context.arch), *parts)


def dist_dir(context: BuildContext, *parts: str) -> Path:
    """Path inside the staging tree for this platform."""
    check_platform(context.platform)
    return context.dist_dir.joinpath(*parts)


def build_app_dir(context: BuildContext, *parts: str) -> Path:
    """Path inside the packed app's resources/app directory."""
    layout = resolve_layout(context.platform)
    return build_dir(context, *_expand(layout.app_resources, context.product_name), *parts)


def build_app_executable(context: BuildContext) -> Path:
    """The launchable binary of the packed app."""
    layout = resolve_layout(context.platform)
    return build_dir(context, *_expand(layout.executable, context.product_name))


def zip_dir(context: BuildContext) -> Path:
    """The folder that gets archived for upload (and signature-checked on darwin)."""
    layout = resolve_layout(context.platform)
    return build_dir(context, *_expand(layout.zip_source, context.product_name))


def icon_path(context: BuildContext, config: BuildConfig) -> Path:
    """Icon handed to the bundler; config.icons overrides the per-platform file name."""
    layout = resolve_layout(context.platform)
    filename = config.icons.get(context.platform.value, layout.icon_filename)
    return context.root_dir / config.icons_dir / filename
