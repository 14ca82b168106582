# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Source stripper: makes the staged tree runtime-only and portable.

Two passes over dist/<platform>/:

  1. Delete uncompiled sources (*.ts) that belong to our packages. Anything
     below a node_modules segment is third-party and left alone; the
     decision is made from the path, never from a manifest.

  2. Rewrite module specifiers that only resolve through development
     symlinks (`require('@packages/server/lib/x')`) into literal relative
     paths (`require('../../server/lib/x')`). Once packed, the app has no
     node_modules/@packages link farm to resolve them through.

The rewrite is idempotent: after one pass no scoped specifier is left, so a
second pass finds nothing to change.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from shipwright.logging.logger import get_logger
from shipwright.utils.filesystem import delete_globs

_logger = get_logger(__name__)

_VENDOR_SEGMENT = "node_modules"
_SCRIPT_SUFFIXES: tuple[str, ...] = (".js", ".cjs", ".mjs")


@dataclass(frozen=True)
class StripResult:
    removed_sources: list[Path]
    rewritten_files: list[Path]


def _iter_own_files(root: Path, suffixes: tuple[str, ...]) -> Iterator[Path]:
    """Yield files under root with one of the suffixes, skipping vendored trees."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name != _VENDOR_SEGMENT)
        for filename in sorted(filenames):
            if filename.endswith(suffixes):
                yield Path(dirpath) / filename


def strip_sources(dist_dir: Path, suffixes: tuple[str, ...] = (".ts",)) -> list[Path]:
    """Delete source files of our own packages; vendored copies are kept."""
    removed: list[Path] = []
    for path in _iter_own_files(dist_dir, suffixes):
        path.unlink()
        removed.append(path)
    _logger.info(
        "Removed uncompiled sources",
        extra={"dist_dir": str(dist_dir), "count": len(removed)},
    )
    return removed


def _specifier_pattern(scope: str) -> re.Pattern[str]:
    # require('x'), import('x'), from 'x', plus bare `import 'x'`
    return re.compile(
        r"(?P<lead>\brequire\s*\(\s*|\bimport\s*\(\s*|\bfrom\s+|\bimport\s+)"
        r"(?P<quote>['\"])"
        + re.escape(scope)
        + r"(?P<package>[^'\"/]+)(?P<rest>/[^'\"]*)?(?P=quote)"
    )


def _relative_specifier(source_file: Path, target: Path) -> str:
    relative = Path(os.path.relpath(target, source_file.parent)).as_posix()
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative


def rewrite_specifiers(text: str, source_file: Path, packages_dir: Path, scope: str) -> str:
    """Return `text` with every scoped specifier replaced by a relative path."""
    pattern = _specifier_pattern(scope)

    def _replace(match: re.Match[str]) -> str:
        target = packages_dir / match.group("package")
        rest = match.group("rest") or ""
        if rest:
            target = target / rest.lstrip("/")
        quote = match.group("quote")
        return f"{match.group('lead')}{quote}{_relative_specifier(source_file, target)}{quote}"

    return pattern.sub(_replace, text)


def transform_requires(dist_dir: Path, scope: str = "@packages/") -> list[Path]:
    """
    Replace symlink-dependent module specifiers with relative paths.

    Returns:
        Files that were rewritten. Empty on a second run.
    """
    packages_dir = dist_dir / "packages"
    rewritten: list[Path] = []
    for path in _iter_own_files(dist_dir, _SCRIPT_SUFFIXES):
        original = path.read_text(encoding="utf-8")
        if scope not in original:
            continue
        updated = rewrite_specifiers(original, path, packages_dir, scope)
        if updated != original:
            path.write_text(updated, encoding="utf-8")
            rewritten.append(path)
            _logger.debug("Rewrote requires", extra={"file": str(path)})
    _logger.info(
        "Transformed symlink requires",
        extra={"dist_dir": str(dist_dir), "files": len(rewritten)},
    )
    return rewritten


def strip(
    dist_dir: Path,
    suffixes: tuple[str, ...] = (".ts",),
    scope: str = "@packages/",
) -> StripResult:
    """Run both passes: drop sources, then rewrite requires."""
    removed = strip_sources(dist_dir, suffixes)
    rewritten = transform_requires(dist_dir, scope)
    return StripResult(removed_sources=removed, rewritten_files=rewritten)


def prune_dev_artifacts(dist_dir: Path, patterns: list[str]) -> list[Path]:
    """
    Remove development leftovers before packing.

    Covers .bin link folders, the server's dev cache and the development
    Electron app whose symlinks would break code signing.
    """
    removed = delete_globs(dist_dir, patterns)
    _logger.info(
        "Removed development leftovers",
        extra={"dist_dir": str(dist_dir), "removed": [str(path) for path in removed]},
    )
    return removed
