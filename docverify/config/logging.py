"""Loguru sink setup for stores, the pipeline runner and the CLI."""

import sys

from loguru import logger

from docverify.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <level>{message}</level>"
)


def configure_logging() -> None:
    """Colorized lines on an interactive console, JSON records otherwise."""
    logger.remove()
    logger.configure(extra={"component": "docverify"})

    if sys.stderr.isatty() and settings.log_format.lower() == "console":
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=settings.log_level, colorize=True)
    else:
        logger.add(
            sys.stdout,
            format="{message}",
            level=settings.log_level,
            serialize=True,
            diagnose=False,
        )


def get_logger(component: str):
    """Logger bound to ``component``, e.g. ``get_logger("PipelineRunner")``."""
    return logger.bind(component=component)


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging"]
