# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Package stager: assembles dist/<platform>/ from the built workspace.

The staged tree is what the bundler packs, so it must contain exactly the
runtime pieces of every workspace package and nothing from development:

    dist/<platform>/
    ├─ package.json        StagedManifest (dev fields stripped, release fields added)
    ├─ yarn.lock           copied from the workspace for a reproducible install
    ├─ index.js            bootstrap: production env flag, then the server entry
    ├─ node_modules/       production-only install
    └─ packages/<name>/    package.json + declared files + build output

Every failure in here is fatal and raised as StagingError. The tree is
disposable, so a failed run leaves it as is and the next run wipes it.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Iterator

from shipwright.config.schema import BuildConfig
from shipwright.logging.logger import get_logger
from shipwright.release.exceptions import StagingError
from shipwright.release.packaging.runtime import RuntimeVersions
from shipwright.release.platforms.registry import BuildContext
from shipwright.utils.filesystem import (
    atomic_write,
    copy_path,
    delete_globs,
    read_json,
    remove_path,
    write_json,
)
from shipwright.utils.paths import validate_path_within
from shipwright.utils.process import CommandResult, CommandRunner, run_command

_logger = get_logger(__name__)

# dependency sections whose workspace references get pinned
_PINNED_SECTIONS: tuple[str, ...] = ("dependencies", "optionalDependencies")


@dataclass(frozen=True)
class WorkspacePackage:
    """One package of the monorepo, as found on disk before staging."""

    name: str
    version: str
    relative_dir: PurePosixPath
    manifest: dict[str, Any] = field(repr=False)


@dataclass(frozen=True)
class StagedManifest:
    """
    The root package.json of the staged app.

    `retained` holds whatever survived from the workspace root manifest
    after development-only fields were dropped; the release fields are
    layered on top of it.
    """

    name: str
    product_name: str
    description: str | None
    version: str
    electron_version: str
    electron_node_version: str
    main: str = "index.js"
    env: str = "production"
    retained: dict[str, Any] = field(default_factory=dict, repr=False)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.retained)
        data.update(
            {
                "name": self.name,
                "productName": self.product_name,
                "description": self.description,
                "version": self.version,
                "electronVersion": self.electron_version,
                "electronNodeVersion": self.electron_node_version,
                "main": self.main,
                "scripts": {},
                "env": self.env,
            }
        )
        if self.description is None:
            del data["description"]
        return data


@dataclass(frozen=True)
class PinResult:
    """What replace_local_npm_versions changed."""

    touched_manifests: list[Path]
    referenced_packages: frozenset[str]


@contextmanager
def _step(context: BuildContext, stage: str) -> Iterator[None]:
    """Log a staging step and turn filesystem or JSON failures into StagingError."""
    _logger.info("Staging step", extra={"stage": stage, "platform": context.platform.value})
    try:
        yield
    except StagingError:
        raise
    except (OSError, ValueError, KeyError) as err:
        raise StagingError(
            stage, context.platform.value, f"{type(err).__name__}: {err}"
        ) from err


def _require_success(result: CommandResult, context: BuildContext, stage: str) -> None:
    if not result.ok:
        raise StagingError(stage, context.platform.value, result.describe())


def discover_workspace_packages(root_dir: Path, config: BuildConfig) -> list[WorkspacePackage]:
    """Find every package matched by the workspace globs, minus the excluded ones."""
    packages: list[WorkspacePackage] = []
    seen: set[Path] = set()
    for pattern in config.workspace_globs:
        for package_dir in sorted(root_dir.glob(pattern)):
            manifest_path = package_dir / "package.json"
            if package_dir in seen or not manifest_path.is_file():
                continue
            if package_dir.name in config.excluded_packages:
                continue
            seen.add(package_dir)
            manifest = read_json(manifest_path)
            packages.append(
                WorkspacePackage(
                    name=str(manifest.get("name", package_dir.name)),
                    version=str(manifest.get("version", "0.0.0")),
                    relative_dir=PurePosixPath(package_dir.relative_to(root_dir).as_posix()),
                    manifest=manifest,
                )
            )
    return packages


def _package_entries(package: WorkspacePackage, config: BuildConfig) -> list[str]:
    """The package-relative globs that make up a package's runtime payload."""
    entries = ["package.json"]
    for entry in package.manifest.get("files", []):
        # npm negation patterns only narrow what a pack would include
        if isinstance(entry, str) and not entry.startswith("!"):
            entries.append(entry.rstrip("/"))
    main = package.manifest.get("main")
    if isinstance(main, str):
        entries.append(main)
    entries.extend(config.build_output_dirs)
    return entries


def copy_package_to_dist(
    package: WorkspacePackage,
    root_dir: Path,
    dist_dir: Path,
    config: BuildConfig,
) -> int:
    """
    Copy one package's manifest, declared files, main entry and build output.

    Returns:
        Number of top-level entries copied.
    """
    source_dir = root_dir / package.relative_dir
    target_dir = dist_dir / package.relative_dir
    copied = 0
    for entry in _package_entries(package, config):
        for match in sorted(source_dir.glob(entry)):
            validate_path_within(match, source_dir)
            copy_path(match, target_dir / match.relative_to(source_dir))
            copied += 1
    return copied


def omit_development_fields(manifest: dict[str, Any], fields: list[str]) -> dict[str, Any]:
    """Return a copy of the manifest without the given top-level fields."""
    return {key: value for key, value in manifest.items() if key not in fields}


def replace_local_npm_versions(
    dist_dir: Path,
    packages: list[WorkspacePackage],
    config: BuildConfig,
) -> PinResult:
    """
    Pin workspace references in every staged manifest to literal versions.

    A dependency on another workspace package declared with a placeholder
    version ("0.0.0-development", "*", "workspace:*") becomes that package's
    real version. Manifests are only rewritten when something changed.
    """
    versions = {package.name: package.version for package in packages}
    placeholders = set(config.workspace_version_placeholders)
    manifest_paths = [dist_dir / "package.json"]
    manifest_paths.extend(dist_dir / package.relative_dir / "package.json" for package in packages)

    touched: list[Path] = []
    referenced: set[str] = set()
    for manifest_path in manifest_paths:
        if not manifest_path.is_file():
            continue
        manifest = read_json(manifest_path)
        changed = False
        for section in _PINNED_SECTIONS:
            dependencies = manifest.get(section)
            if not isinstance(dependencies, dict):
                continue
            for dependency, declared in dependencies.items():
                if dependency not in versions:
                    continue
                referenced.add(dependency)
                pinned = versions[dependency]
                if declared in placeholders and declared != pinned:
                    dependencies[dependency] = pinned
                    changed = True
        if changed:
            write_json(manifest_path, manifest)
            touched.append(manifest_path)

    _logger.debug(
        "Pinned workspace versions",
        extra={"touched": [str(path) for path in touched], "referenced": sorted(referenced)},
    )
    return PinResult(touched_manifests=touched, referenced_packages=frozenset(referenced))


def remove_local_npm_dirs(
    dist_dir: Path,
    packages: list[WorkspacePackage],
    referenced: frozenset[str],
    config: BuildConfig,
) -> list[Path]:
    """Delete staged workspace-local packages that no staged manifest depends on."""
    removed: list[Path] = []
    for package in packages:
        is_local = any(package.relative_dir.match(pattern) for pattern in config.local_package_globs)
        if not is_local or package.name in referenced:
            continue
        target = dist_dir / package.relative_dir
        if target.exists():
            remove_path(target)
            removed.append(target)
    return removed


def build_staged_manifest(
    root_manifest: dict[str, Any],
    context: BuildContext,
    config: BuildConfig,
    runtime: RuntimeVersions,
) -> StagedManifest:
    """Combine the stripped root manifest with the release fields."""
    return StagedManifest(
        name=config.package_name,
        product_name=config.product_name,
        description=config.description or root_manifest.get("description"),
        version=context.version,
        electron_version=runtime.runtime_version,
        electron_node_version=runtime.node_version,
        retained=omit_development_fields(root_manifest, config.manifest_omit_fields),
    )


def render_bootstrap(config: BuildConfig) -> str:
    """The index.js that the packed app starts from."""
    variable = config.environment_variable
    return (
        f"process.env.{variable} = process.env.{variable} || 'production'\n"
        f"require('{config.server_entry}')\n"
    )


def stage_packages(
    context: BuildContext,
    config: BuildConfig,
    runtime: RuntimeVersions,
    runner: CommandRunner = run_command,
) -> StagedManifest:
    """
    Build the workspace and assemble the staging tree at context.dist_dir.

    Raises:
        StagingError: On any filesystem, manifest or subprocess failure.
    """
    root_dir = context.root_dir
    target = context.dist_dir

    with _step(context, "cleanupPlatform"):
        if target.exists():
            remove_path(target)

    with _step(context, "buildPackages"):
        result = runner(config.build_command, cwd=root_dir, timeout=config.timeouts.build_packages)
        _require_success(result, context, "buildPackages")

    with _step(context, "copyPackages"):
        packages = discover_workspace_packages(root_dir, config)
        for package in packages:
            count = copy_package_to_dist(package, root_dir, target, config)
            _logger.debug(
                "Copied package",
                extra={"package": package.name, "entries": count},
            )
        root_manifest = read_json(root_dir / "package.json")
        write_json(
            target / "package.json",
            omit_development_fields(root_manifest, config.manifest_omit_fields),
        )

    with _step(context, "copyLockfile"):
        copy_path(root_dir / config.lockfile, target / config.lockfile)

    with _step(context, "replaceLocalNpmVersions"):
        pins = replace_local_npm_versions(target, packages, config)

    with _step(context, "removeLocalNpmDirs"):
        removed = remove_local_npm_dirs(target, packages, pins.referenced_packages, config)
        if removed:
            _logger.info(
                "Removed unreferenced local packages",
                extra={"removed": [str(path) for path in removed]},
            )

    with _step(context, "installProduction"):
        result = runner(config.install_command, cwd=target, timeout=config.timeouts.install)
        _require_success(result, context, "installProduction")

    with _step(context, "removeExtraDirs"):
        pruned = delete_globs(target, config.prune_patterns)
        _logger.info("Deleted excess directories", extra={"count": len(pruned)})

    with _step(context, "createRootPackage"):
        # the staged copy carries the pinned dependency versions
        pinned_root = read_json(target / "package.json")
        manifest = build_staged_manifest(pinned_root, context, config, runtime)
        write_json(target / "package.json", manifest.to_dict())
        atomic_write(target / "index.js", render_bootstrap(config))

    _logger.info(
        "Staging complete",
        extra={
            "platform": context.platform.value,
            "dist_dir": str(target),
            "packages": len(packages),
            "pinned_manifests": len(pins.touched_manifests),
        },
    )
    return manifest
