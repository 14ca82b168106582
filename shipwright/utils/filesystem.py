# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Filesystem operations shared by the release stages.

Manifest writes are atomic: content goes to a temporary file in the same
directory, which is then renamed over the target. Rename on the same
filesystem is atomic on POSIX, so a crash leaves either the old manifest or
the new one, never half of one.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Callable, Iterable


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write content to a file atomically.

    Raises:
        OSError: If the write or rename fails.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    # delete=False because the file has to survive closing so we can rename it
    temp_fd = tempfile.NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=str(target_path.parent),
        prefix=".shipwright_tmp_",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(content)
        temp_fd.flush()
        temp_fd.close()
        temp_path.replace(target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise


def read_json(file_path: Path) -> dict[str, Any]:
    """
    Read a JSON object from disk.

    Raises:
        FileNotFoundError: If the path doesn't exist.
        json.JSONDecodeError: If the content isn't JSON.
        ValueError: If the JSON root isn't an object.
    """
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")
    data = json.loads(file_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{file_path} must contain a JSON object, got {type(data).__name__}")
    return data


def write_json(file_path: Path, data: dict[str, Any]) -> None:
    """Write a JSON object with two-space indentation, the way npm formats manifests."""
    atomic_write(file_path, json.dumps(data, indent=2) + "\n")


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree. Symlinks are unlinked, never followed."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def copy_path(source: Path, destination: Path) -> None:
    """
    Copy a file or a directory tree, creating parent directories.

    Symlinks inside directory trees are copied as symlinks.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


def delete_globs(
    root: Path,
    patterns: Iterable[str],
    keep: Callable[[Path], bool] | None = None,
) -> list[Path]:
    """
    Delete everything under `root` that matches any of the glob patterns.

    Args:
        root: Directory the patterns are relative to.
        patterns: pathlib-style globs, e.g. "**/esprima/test".
        keep: Optional predicate; matches for which it returns True survive.

    Returns:
        The paths that were removed, in removal order.
    """
    removed: list[Path] = []
    for pattern in patterns:
        for match in sorted(root.glob(pattern)):
            if keep is not None and keep(match):
                continue
            # an earlier match may have taken this one's parent with it
            if not match.exists() and not match.is_symlink():
                continue
            remove_path(match)
            removed.append(match)
    return removed
