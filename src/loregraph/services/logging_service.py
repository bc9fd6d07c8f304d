"""Logging service for loregraph.

Configures loguru sinks from the ``logging`` configuration section: a
colorized console sink on stderr and, when ``logging.file`` is set, a file
sink with rotation and retention.
"""

import sys
from typing import Any, Dict, List, Optional

from loguru import logger

from ..utils.config import get_logging_config
from ..utils.path_manager import PathManager
from .base_service import BaseService

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


class LoggingService(BaseService):
    """Owns the loguru sinks installed for loregraph."""

    def __init__(self):
        super().__init__("logging")
        self._handler_ids: List[int] = []
        self._default_removed = False

    def default_config(self) -> Dict[str, Any]:
        return get_logging_config()

    async def _start(self, cfg: Dict[str, Any]) -> None:
        level = str(cfg.get("level") or "INFO").upper()

        # Replace loguru's default stderr sink the first time, our own sinks after that
        if not self._default_removed:
            logger.remove()
            self._default_removed = True
        self._remove_handlers()

        self._handler_ids.append(logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True))

        log_file = cfg.get("file")
        if log_file:
            PathManager.prepare_file_path(log_file)
            self._handler_ids.append(logger.add(
                log_file,
                level=level,
                format=FILE_FORMAT,
                rotation=cfg.get("rotation") or "10 MB",
                retention=cfg.get("retention") or "1 week",
                backtrace=True,
                diagnose=False,
            ))

        logger.info(f"Logging configured at level {level}" + (f", writing to {log_file}" if log_file else ""))

    async def _stop(self) -> None:
        self._remove_handlers()

    def _remove_handlers(self) -> None:
        for handler_id in self._handler_ids:
            logger.remove(handler_id)
        self._handler_ids = []


_logging_service: Optional[LoggingService] = None


def get_logging_service() -> LoggingService:
    """Get the process-wide logging service."""
    global _logging_service
    if _logging_service is None:
        _logging_service = LoggingService()
    return _logging_service
