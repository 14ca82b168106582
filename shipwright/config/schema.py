# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for shipwright.

Every section of the YAML file maps to a frozen pydantic model. Frozen means
a config object cannot be mutated once built; a release run reads its
settings once at start-up and never changes them.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

Every external command is a list of arguments, never a shell string.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GlobalConfig(BaseModel):
    """Cross-cutting settings: config identity and observability."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="shipwright", description="Human-readable project identifier"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class TimeoutConfig(BaseModel):
    """
    Per-call timeout budget, in seconds, for every external command.

    None means wait forever, which is what the monorepo build usually
    needs on a cold cache.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    build_packages: Optional[int] = Field(default=3600, gt=0)
    install: Optional[int] = Field(default=1800, gt=0)
    runtime_probe: Optional[int] = Field(default=60, gt=0)
    pack: Optional[int] = Field(default=3600, gt=0)
    version_check: Optional[int] = Field(default=60, gt=0)
    smoke_test: Optional[int] = Field(default=300, gt=0)
    integrity: Optional[int] = Field(default=300, gt=0)
    disk_usage: Optional[int] = Field(default=120, gt=0)


class VirtualDisplayConfig(BaseModel):
    """Settings for the Xvfb server started around the smoke test on headless hosts."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    command: list[str] = Field(default_factory=lambda: ["Xvfb"])
    display: str = Field(default=":99", pattern=r"^:\d+$")
    screen: str = Field(default="1280x1024x24")
    startup_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Grace period after spawning Xvfb before the display is used",
    )


class BuildConfig(BaseModel):
    """
    Everything the release pipeline needs to know about the workspace and
    the external tools it drives. The defaults describe a yarn + lerna
    monorepo packed with electron-builder.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    product_name: str = Field(
        default="App",
        min_length=1,
        description="Display name; also names the .app bundle and the executable",
    )
    package_name: str = Field(default="app", min_length=1)
    description: Optional[str] = Field(
        default=None,
        description="Overrides the root manifest description in the staged manifest",
    )

    # Workspace discovery and staging
    workspace_globs: list[str] = Field(
        default_factory=lambda: ["packages/*", "npm/*"],
        description="Globs (relative to the workspace root) matching package directories",
    )
    local_package_globs: list[str] = Field(
        default_factory=lambda: ["npm/*"],
        description="Workspace-local package dirs that are dropped unless referenced",
    )
    excluded_packages: list[str] = Field(
        default_factory=lambda: ["cli"],
        description="Package directory names never staged",
    )
    build_output_dirs: list[str] = Field(default_factory=lambda: ["dist"])
    lockfile: str = Field(default="yarn.lock")
    manifest_omit_fields: list[str] = Field(
        default_factory=lambda: ["scripts", "devDependencies", "lint-staged", "engines"],
    )
    workspace_version_placeholders: list[str] = Field(
        default_factory=lambda: ["0.0.0-development", "*", "workspace:*"],
    )
    prune_patterns: list[str] = Field(
        default_factory=lambda: [
            "**/image-q/demo",
            "**/gifwrap/test",
            "**/pixelmatch/test",
            "**/@jimp/tiff/test",
            "**/@cypress/icons/**/*.ai",
            "**/@cypress/icons/**/*.eps",
            "**/esprima/test",
            "**/bmp-js/test",
            "**/exif-parser/test",
        ],
        description="Large or non-essential vendored subtrees removed after install",
    )
    pre_pack_prune_patterns: list[str] = Field(
        default_factory=lambda: [
            "node_modules/.bin",
            "packages/*/node_modules/.bin",
            "packages/server/.cy",
            "packages/electron/dist",
        ],
        description="Development leftovers removed after verification, before packing",
    )

    # Source stripping
    source_suffixes: list[str] = Field(default_factory=lambda: [".ts"])
    workspace_scope: str = Field(
        default="@packages/",
        description="Module prefix resolved through development symlinks",
    )

    # Bootstrap
    server_entry: str = Field(default="./packages/server")
    environment_variable: str = Field(default="APP_INTERNAL_ENV")

    # External commands
    build_command: list[str] = Field(
        default_factory=lambda: [
            "yarn", "lerna", "run", "build-prod", "--stream", "--ignore", "cli",
        ],
    )
    install_command: list[str] = Field(default_factory=lambda: ["yarn", "--production"])
    packager_command: list[str] = Field(default_factory=lambda: ["electron-builder"])
    version_command: list[str] = Field(
        default_factory=lambda: ["node", "index.js", "--version"],
    )
    integrity_command: list[str] = Field(default_factory=lambda: ["spctl", "-a", "-vvvv"])
    disk_usage_command: list[str] = Field(default_factory=lambda: ["du", "-k", "-d", "1"])

    # Bundler runtime
    runtime_package: str = Field(default="electron")
    runtime_version: Optional[str] = Field(
        default=None,
        description="Pinned bundler runtime version; read from node_modules when unset",
    )
    runtime_node_version: Optional[str] = Field(
        default=None,
        description="Pinned embedded Node version; probed from the runtime when unset",
    )

    # Icons
    icons_dir: str = Field(default="packages/icons/dist/icons")
    icons: dict[str, str] = Field(
        default_factory=dict,
        description="Per-platform icon file name overrides, keyed by platform id",
    )

    # Verification
    static_assets: list[str] = Field(
        default_factory=lambda: ["package.json", "index.js", "packages/server/package.json"],
        description="Paths (relative to the app dir) that must exist after staging",
    )
    smoke_args: list[str] = Field(default_factory=list)
    smoke_ping: bool = Field(
        default=False,
        description="Append --smoke-test --ping=<n> and require the number echoed back",
    )
    size_report_subdir: str = Field(default="packages")
    strict_packaging: bool = Field(
        default=False,
        description="Abort instead of continuing when the bundler exits non-zero",
    )

    virtual_display: VirtualDisplayConfig = Field(default_factory=VirtualDisplayConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)

    @field_validator(
        "build_command",
        "install_command",
        "packager_command",
        "version_command",
        "integrity_command",
        "disk_usage_command",
    )
    @classmethod
    def _command_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must contain at least the executable name")
        return value


class ShipwrightConfig(BaseModel):
    """
    Top-level config container.

    A YAML file needs at least a `global:` section; `build:` falls back to
    the defaults above when omitted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    build: BuildConfig = Field(default_factory=BuildConfig)


def default_config() -> ShipwrightConfig:
    """The configuration used when no config file is given."""
    return ShipwrightConfig.model_validate({"global": {"config_version": "1.0.0"}})
