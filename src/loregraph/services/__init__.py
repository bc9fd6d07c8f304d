"""Services for loregraph."""

from .base_service import BaseService
from .logging_service import LoggingService, get_logging_service
from .memory_guard import MemoryGuard

__all__ = [
    # Base classes
    "BaseService",

    # Core services
    "LoggingService",
    "get_logging_service",

    # Resilience
    "MemoryGuard",
]
