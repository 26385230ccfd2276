"""
Loguru sink configuration.

Library modules only do ``from loguru import logger``; the scripts call
``setup_logging`` once at startup.
"""

import sys

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", serialize: bool = False) -> None:
    """
    Replace loguru's default handler.
    
    Args:
        level: Minimum level to emit
        serialize: Emit JSON records instead of formatted lines
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
        serialize=serialize,
        backtrace=False,
        diagnose=False,
    )
    logger.debug(f"Logging configured: level={level.upper()} serialize={serialize}")
