"""
Centralized logging configuration for the monitor using Loguru.
Standard library loggers (werkzeug, uvicorn, httpx) are routed into the same sinks.
"""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

if TYPE_CHECKING:
    from types import FrameType

    from monitor.utils.config_loader import LoggingConfig


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records to loguru, keeping the caller's frame."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        depth: int = 1
        frame: Optional[FrameType] = sys._getframe(depth)
        while frame and (frame.f_code.co_filename == logging.__file__ or frame.f_code.co_filename == __file__):
            depth += 1
            try:
                frame = sys._getframe(depth)
            except ValueError:
                break

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class LoggerSetup:
    """Process-wide logger setup driven by LoggingConfig."""

    _initialized: bool = False

    @classmethod
    def setup_logger(cls, logging_config: Optional["LoggingConfig"]) -> None:
        if cls._initialized:
            return

        logger.remove()

        level = logging_config.level if logging_config else "INFO"

        if logging_config and logging_config.file:
            try:
                Path(logging_config.file).parent.mkdir(parents=True, exist_ok=True)
                logger.add(
                    logging_config.file,
                    level=level,
                    format=logging_config.format,
                    rotation=logging_config.rotation,
                    compression=logging_config.compression,
                    retention=logging_config.retention,
                    enqueue=True,
                    backtrace=False,
                    diagnose=False,
                    catch=True,
                    serialize=False,
                )
            except Exception as e:
                logger.opt(raw=True).error(
                    f"CRITICAL: Failed to set up file logger: {e}\nLogging will proceed to console only.\n"
                )

        if logging_config:
            logger.add(
                sys.stderr,
                level=level,
                format=logging_config.format,
                colorize=True,
                backtrace=False,
                diagnose=False,
                catch=True,
            )
        else:
            logger.add(sys.stderr, level=level, backtrace=False, diagnose=False, catch=True)

        logging.basicConfig(handlers=[InterceptHandler()], level=getattr(logging, level), force=True)

        # werkzeug logs every scrape at INFO
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

        cls._initialized = True
        logger.info(f"Logging initialized at level {level}")

    @classmethod
    def reset(cls) -> None:
        """Allow setup_logger to run again. Intended for tests."""
        cls._initialized = False


LOGGER = logger
__all__ = ["logger", "LOGGER", "LoggerSetup", "InterceptHandler"]
