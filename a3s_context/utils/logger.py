"""Logging configuration using Loguru."""

import sys
from pathlib import Path

from loguru import logger

from a3s_context.config import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[module]}:{function}:{line} - {message}"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure Loguru sinks: colorized console plus optional rotated JSON file."""
    config = config or LoggingConfig()
    logger.remove()
    logger.configure(extra={"module": "a3s_context"})

    logger.add(
        sys.stderr,
        level=config.level,
        format=CONSOLE_FORMAT,
        colorize=True,
        serialize=False,
    )

    if config.log_to_file:
        log_path = Path(config.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path / "a3s_{time:YYYY-MM-DD}.log",
            level=config.level,
            format=FILE_FORMAT,
            rotation=config.file_rotation,
            retention=config.file_retention,
            compression=config.compression,
            serialize=config.serialize,
            enqueue=True,
        )


def get_logger(name: str):
    """Get a logger instance for a module."""
    return logger.bind(module=name)
