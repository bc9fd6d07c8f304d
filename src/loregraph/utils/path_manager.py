"""
Path management utilities for loregraph.

Resolves the database location and makes sure its parent directory exists
before SQLite tries to open the file.
"""

import os
from pathlib import Path
from typing import Union

from loguru import logger

MEMORY_DB = ":memory:"


class PathManager:
    """
    A centralized manager for path operations in loregraph.
    """

    @classmethod
    def ensure_directory(cls, directory_path: Union[str, Path], exist_ok: bool = True) -> Path:
        """
        Ensure a directory exists, creating it if necessary.

        Args:
            directory_path: Path to the directory to ensure exists
            exist_ok: If True, don't raise an error if the directory already exists

        Returns:
            Path object for the created/existing directory
        """
        path = Path(directory_path)
        if not path.is_dir():
            logger.debug(f"Creating directory: {path.absolute()}")
        os.makedirs(path, exist_ok=exist_ok)

        return path

    @classmethod
    def prepare_file_path(cls, db_path: Union[str, Path]) -> str:
        """
        Normalize a file path and create its parent directory.

        Args:
            db_path: Database or log file path, or ``:memory:``

        Returns:
            Path string suitable for ``sqlite3.connect`` or a log sink
        """
        db_path = str(db_path)
        if db_path == MEMORY_DB:
            return db_path

        path = Path(db_path).expanduser()
        if str(path.parent):
            cls.ensure_directory(path.parent)
        return str(path)
