"""
Logging configuration for Day Planner.
Everything goes through loguru; stdlib loggers are intercepted.
"""

import functools
import logging
import sys
import time
from typing import Optional

from loguru import logger

from .config import settings


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward loguru."""

    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# Libraries whose INFO output drowns planner logs
QUIET_LOGGERS = (
    "aiohttp",
    "aiosqlite",
    "asyncio",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
)


def setup_logging(log_level: Optional[str] = None) -> None:
    """Send planner and library logs to stderr through loguru."""
    level = (log_level or settings.log_level).upper()

    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=settings.debug
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    configure_external_loggers()

    logger.debug(f"Logging configured - Level: {level}, Environment: {settings.environment}")


def configure_external_loggers():
    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    if settings.is_development and settings.debug:
        logging.getLogger("dayplanner").setLevel(logging.DEBUG)


def get_logger(name: str) -> "logger":
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logger.bind(name=name)


# =============================================================================
# LOGGING UTILITIES
# =============================================================================

def log_async_function_call(func):
    """Decorator to log async function calls with parameters and execution time."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_logger = get_logger(func.__module__)
        start_time = time.time()

        if settings.debug:
            func_logger.debug(f"Calling async {func.__name__} with args={args[1:]}, kwargs={kwargs}")

        try:
            result = await func(*args, **kwargs)
            execution_time = time.time() - start_time

            if settings.debug:
                func_logger.debug(f"Async {func.__name__} completed in {execution_time:.3f}s")

            return result

        except Exception as e:
            execution_time = time.time() - start_time
            func_logger.error(
                f"Async {func.__name__} failed after {execution_time:.3f}s: {str(e)}"
            )
            raise

    return wrapper


# =============================================================================
# INITIALIZATION
# =============================================================================

# Setup logging when module is imported
setup_logging()
