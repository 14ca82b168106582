# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for shipwright.

One-time setup before any command does real work:
  1. Validate the interpreter version
  2. Apply the configured log level and log file to every logger
  3. Log what machine we are on

Every CLI command goes through this first.
"""

from pathlib import Path

from shipwright.config.schema import GlobalConfig
from shipwright.logging.logger import configure_package_logging, get_logger
from shipwright.runtime.environment import check_minimum_python, detect_arch, get_system_info


def bootstrap(config: GlobalConfig, log_level: str | None = None) -> None:
    """
    Run the bootstrap sequence.

    Args:
        config: The validated global configuration.
        log_level: CLI override; wins over config.log_level when given.
    """
    check_minimum_python()

    level = log_level or config.log_level
    log_file = Path(config.log_file) if config.log_file is not None else None
    logger = get_logger("shipwright.runtime", log_level=level)
    configure_package_logging(level, log_file)

    system_info = get_system_info()
    logger.info(
        "shipwright bootstrap complete",
        extra={
            "project": config.project_name,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": detect_arch(),
        },
    )
