"""
Loguru logger setup.

Every module imports ``logger`` from here and logs with structured extras:

    logger.info("Lock acquired", event_type="lock_acquired", holder=holder)
"""

import sys
from typing import Any

from loguru import logger

HUMAN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[app_name]}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(config: dict[str, Any]) -> None:
    """
    Replace loguru's default sink with one built from ``Settings.logging_config``.

    Args:
        config: Mapping with ``app_name``, ``log_level`` and ``json_logs`` keys.
    """
    logger.remove()
    logger.configure(extra={"app_name": config.get("app_name", "changekeeper")})

    if config.get("json_logs"):
        logger.add(sys.stderr, level=config.get("log_level", "INFO"), serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=config.get("log_level", "INFO"),
            format=HUMAN_FORMAT,
            colorize=True,
        )


__all__ = ["logger", "configure_logging"]
