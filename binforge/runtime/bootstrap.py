# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for binforge.

The one-time setup that happens before any real work begins:
  1. Validate the environment (Python version)
  2. Bring every logger to the configured level and log file
  3. Log what we're running on

Every CLI command that loads a config goes through this first.
"""

from pathlib import Path

from binforge.config.schema import GlobalConfig
from binforge.logging.logger import configure_logging, get_logger
from binforge.runtime.environment import check_minimum_python, get_system_info


def bootstrap(config: GlobalConfig, log_level: str | None = None) -> None:
    """
    Run the bootstrap sequence.

    Args:
        config: The validated global configuration.
        log_level: Explicit level from the command line; overrides the config.
    """
    check_minimum_python()

    level = log_level or config.log_level
    log_file = Path(config.log_file) if config.log_file is not None else None
    configure_logging(level, log_file)

    logger = get_logger("binforge.runtime", log_level=level)
    system_info = get_system_info()
    logger.info(
        "binforge bootstrap complete",
        extra={
            "project": config.project_name,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
        },
    )
