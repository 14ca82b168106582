# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Config loader: turns a release YAML file into a frozen ShipwrightConfig.

No file means the built-in defaults, which describe a stock yarn + lerna +
electron-builder monorepo. A file that is given but unusable is an error;
a release run never falls back to defaults behind the caller's back.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from shipwright.config.exceptions import ConfigLoadError, ConfigValidationError
from shipwright.config.schema import ShipwrightConfig, default_config


def _read_yaml_file(config_path: Path) -> dict[str, Any]:
    """
    Parse a YAML mapping from disk.

    Raises:
        ConfigLoadError: Missing path, a directory, an unreadable file,
            broken YAML, or a document that is not a mapping.
    """
    if not config_path.is_file():
        reason = "is a directory" if config_path.is_dir() else "not found"
        raise ConfigLoadError(f"Config file {reason}: {config_path}")

    try:
        document = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as err:
        raise ConfigLoadError(f"Cannot read {config_path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"{config_path} is not valid YAML: {err}") from err

    if not isinstance(document, dict):
        raise ConfigLoadError(
            f"{config_path} must hold a YAML mapping at the top level, "
            f"found {type(document).__name__}"
        )
    return document


def load_config(config_path: Path | None) -> ShipwrightConfig:
    """
    Load and validate the release config.

    Args:
        config_path: YAML file, or None for the defaults.

    Raises:
        ConfigLoadError: The file cannot be read or parsed.
        ConfigValidationError: Missing fields, wrong types or unknown keys.
    """
    if config_path is None:
        return default_config()

    raw_data = _read_yaml_file(config_path)
    try:
        return ShipwrightConfig.model_validate(raw_data)
    except ValidationError as err:
        raise ConfigValidationError(f"{config_path} failed validation:\n{err}") from err
