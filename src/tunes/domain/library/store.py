"""
Persisted library index.

The index lives as a pretty-printed JSON document inside the music
directory. Loading and saving only; reconciliation lives in reconciler.py.
"""

import json
from pathlib import Path
from typing import Union

from loguru import logger

from tunes.exceptions import LibraryStoreError

from .models import Library

LIBRARY_FILE = "library.json"


def library_path(directory: Union[str, Path]) -> Path:
    """Get the path of the index file for a music directory."""
    return Path(directory) / LIBRARY_FILE


def load_library(directory: Union[str, Path]) -> Library:
    """Load the persisted library.

    Args:
        directory: Music directory holding the index file

    Returns:
        The persisted Library, or an empty one if no index exists yet

    Raises:
        LibraryStoreError: If the index exists but cannot be read or parsed
    """
    path = library_path(directory)
    if not path.exists():
        logger.debug(f"No library index at {path}, starting empty")
        return Library()

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise LibraryStoreError(path, f"Failed to read library: {e}") from e

    try:
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        return Library.from_dict(data)
    except (ValueError, KeyError, TypeError) as e:
        raise LibraryStoreError(path, f"Failed to parse library: {e}") from e


def save_library(directory: Union[str, Path], library: Library) -> None:
    """Write the library index, replacing any previous one.

    Raises:
        LibraryStoreError: If the index cannot be written
    """
    path = library_path(directory)
    content = json.dumps(library.to_dict(), indent=2, ensure_ascii=False)

    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise LibraryStoreError(path, f"Failed to write library: {e}") from e

    logger.debug(f"Saved {len(library.tracks)} tracks to {path}")
