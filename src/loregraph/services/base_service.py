"""Service lifecycle for loregraph.

A service is a process-wide component (such as log sinks) configured from one
section of the loaded configuration. Subclasses implement :meth:`_start` and
:meth:`_stop`; :class:`BaseService` resolves the configuration, tracks state
and reports failures through the return value instead of raising.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from loguru import logger


class BaseService(ABC):
    """Base class for loregraph services."""

    def __init__(self, name: str):
        self.name = name
        self._initialized = False
        self._config: Optional[Dict[str, Any]] = None

    def default_config(self) -> Dict[str, Any]:
        """Configuration used when :meth:`initialize` gets none."""
        return {}

    @abstractmethod
    async def _start(self, cfg: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def _stop(self) -> None:
        pass

    async def initialize(self, cfg: Optional[Dict[str, Any]] = None) -> bool:
        """Start (or restart) the service.

        Args:
            cfg: Service configuration (defaults to :meth:`default_config`)

        Returns:
            True if the service started, False otherwise
        """
        try:
            cfg = dict(cfg) if cfg is not None else self.default_config()
            self._config = cfg
            await self._start(cfg)
        except Exception as e:
            logger.error(f"Failed to initialize {self.name} service: {e}")
            return False

        self._initialized = True
        logger.debug(f"{self.name} service initialized")
        return True

    async def shutdown(self) -> bool:
        """Stop the service.

        Returns:
            True if the service stopped cleanly, False otherwise
        """
        try:
            await self._stop()
        except Exception as e:
            logger.error(f"Failed to shutdown {self.name} service: {e}")
            return False

        self._initialized = False
        return True

    def is_initialized(self) -> bool:
        return self._initialized

    def get_config(self) -> Optional[Dict[str, Any]]:
        return self._config

    async def __aenter__(self) -> "BaseService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()
