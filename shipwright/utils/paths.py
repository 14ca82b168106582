# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for shipwright.

  - the workspace root is discovered, never assumed to be the cwd
  - paths taken from manifests must not escape the package they belong to
"""

import json
from pathlib import Path


def resolve_workspace_root(start: Path | None = None) -> Path:
    """
    Walk up from `start` (default: the current directory) to the workspace root.

    The workspace root is the first directory holding a package.json that
    declares `workspaces`, or failing that, the first one holding both a
    package.json and a lockfile.

    Raises:
        RuntimeError: If no ancestor looks like a workspace root.
    """
    current = (start or Path.cwd()).resolve()
    fallback: Path | None = None
    for candidate in (current, *current.parents):
        manifest = candidate / "package.json"
        if not manifest.is_file():
            continue
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            # an unreadable manifest does not mark a workspace root
            continue
        if isinstance(data, dict) and "workspaces" in data:
            return candidate
        if fallback is None and (candidate / "yarn.lock").is_file():
            fallback = candidate
    if fallback is not None:
        return fallback
    raise RuntimeError(
        f"Cannot find the workspace root. No package.json with workspaces above {current}."
    )


def validate_path_within(target: Path, root: Path) -> Path:
    """
    Make sure a path doesn't escape `root`.

    A package's `files` entry like "../../etc" would otherwise copy
    arbitrary host files into the release.

    Raises:
        ValueError: If the path resolves outside root.
    """
    resolved_target = target.resolve()
    resolved_root = root.resolve()

    if resolved_target != resolved_root and resolved_root not in resolved_target.parents:
        raise ValueError(
            f"Path '{target}' resolves to '{resolved_target}' which is outside "
            f"'{resolved_root}'. This is not allowed."
        )

    return resolved_target
