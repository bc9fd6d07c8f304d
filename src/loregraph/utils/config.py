"""Configuration management for loregraph.

This module provides a simple configuration system built on OmegaConf. The
packaged ``config/default.yaml`` is always loaded first; a user YAML file and
dotted overrides are merged on top of it. Environment variables (including
those from a ``.env`` file) are available through ``${oc.env:...}``
interpolation.

It also includes helper functions for accessing individual values.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import dotenv
from loguru import logger
from omegaconf import DictConfig, OmegaConf

from ..models.config import (
    DEFAULT_CONTEXT_LIMIT,
    DEFAULT_DB_PATH,
    DEFAULT_EMBEDDING_DIM,
    DEFAULT_MAX_VISITED,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_SEARCH_LIMIT,
)
from ..models.core import StoreBackend

dotenv.load_dotenv()

DEFAULT_CONFIG_FILE = Path(__file__).resolve().parent.parent / "config" / "default.yaml"

Overrides = Union[Mapping[str, Any], List[str], None]


def _get_config() -> Dict[str, Any]:
    """Get the configuration from the cache or load it.

    Returns:
        Configuration dictionary
    """
    return config_manager.get_config()


class ConfigManager:
    """Configuration manager for loregraph.

    This class provides a singleton instance for accessing the configuration.
    The configuration is loaded lazily from the packaged defaults on first
    access unless it has been set or loaded explicitly.
    """

    _instance = None
    _cfg: Optional[Dict[str, Any]] = None

    def __new__(cls):
        """Create a singleton instance."""
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def load(self, config_path: Optional[Union[str, Path]] = None, overrides: Overrides = None) -> Dict[str, Any]:
        """Load the defaults, merge a user file and overrides, and activate the result.

        Args:
            config_path: Path to a YAML file merged over the defaults (optional)
            overrides: Mapping or ``key.path=value`` strings merged last (optional)

        Returns:
            Resolved configuration dictionary
        """
        cfg = OmegaConf.load(DEFAULT_CONFIG_FILE)

        if config_path is not None:
            logger.debug(f"Merging configuration file {config_path}")
            cfg = OmegaConf.merge(cfg, OmegaConf.load(str(config_path)))

        if overrides:
            if isinstance(overrides, Mapping):
                cfg = OmegaConf.merge(cfg, OmegaConf.create(dict(overrides)))
            else:
                cfg = OmegaConf.merge(cfg, OmegaConf.from_dotlist(list(overrides)))

        self.set_config(cfg)
        return self.get_config()

    def set_config(self, cfg: Any):
        """Set the configuration.

        Args:
            cfg: Configuration object (DictConfig or dict)
        """
        if isinstance(cfg, DictConfig):
            ConfigManager._cfg = OmegaConf.to_container(cfg, resolve=True)
        else:
            ConfigManager._cfg = dict(cfg)

        logger.debug("Configuration set successfully")

    def get_config(self) -> Dict[str, Any]:
        """Get the configuration, loading the defaults on first use.

        Returns:
            Configuration dictionary
        """
        if ConfigManager._cfg is None:
            self.load()
        return ConfigManager._cfg

    def reset(self):
        """Drop the active configuration so the next access reloads the defaults."""
        ConfigManager._cfg = None

    def get_store_backend(self) -> StoreBackend:
        """Get the store backend from configuration.

        Returns:
            Store backend
        """
        config = self.get_config()
        backend_str = config.get("store", {}).get("backend", StoreBackend.SQLITE.value)
        try:
            return StoreBackend(backend_str)
        except ValueError:
            logger.warning(f"Unknown store backend: {backend_str}")
            logger.warning(
                f"Using default store backend: {StoreBackend.SQLITE.value}")
            return StoreBackend.SQLITE

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Configuration dictionary
        """
        return self.get_config()


# Helper functions for accessing configuration values

def get_db_path() -> str:
    """Get the SQLite database path.

    Returns:
        The database path
    """
    config = _get_config()
    return config.get("store", {}).get("db_path") or DEFAULT_DB_PATH


def get_embedding_dim() -> int:
    """Get the embedding dimension the semantic index is provisioned with.

    Returns:
        The embedding dimension
    """
    config = _get_config()
    return int(config.get("store", {}).get("embedding_dim", DEFAULT_EMBEDDING_DIM))


def get_operation_timeout() -> float:
    """Get the default per-operation deadline.

    Returns:
        Timeout in seconds (0 disables it)
    """
    config = _get_config()
    return float(config.get("store", {}).get("operation_timeout", DEFAULT_OPERATION_TIMEOUT) or 0)


def get_search_limit() -> int:
    """Get the default result cap for session log searches.

    Returns:
        The search limit
    """
    config = _get_config()
    return int(config.get("session_store", {}).get("search_limit", DEFAULT_SEARCH_LIMIT))


def get_max_visited() -> int:
    """Get the hard cap on nodes visited by one traversal.

    Returns:
        The visited-node cap
    """
    config = _get_config()
    return int(config.get("knowledge_graph", {}).get("max_visited", DEFAULT_MAX_VISITED))


def get_context_limit() -> int:
    """Get the result cap for full-text graph RAG queries.

    Returns:
        The context limit
    """
    config = _get_config()
    return int(config.get("graph_rag", {}).get("context_limit", DEFAULT_CONTEXT_LIMIT))


def get_logging_config() -> Dict[str, Any]:
    """Get the logging section.

    Returns:
        Logging configuration dictionary
    """
    config = _get_config()
    return config.get("logging", {}) or {}


# Create a singleton instance of the configuration manager
config_manager = ConfigManager()
