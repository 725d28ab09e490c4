"""
Library reconciliation.

Brings the persisted index in line with the files in the music directory:
stale records are dropped, new files are read and added, known files are
left untouched. The result is sorted and saved on every pass.
"""

import os
from pathlib import Path
from typing import Callable, Optional, Union

from loguru import logger

from tunes.core.config import Config
from tunes.exceptions import LibraryScanError, LibraryStoreError

from .metadata import read_tags
from .models import Library, Track
from .store import LIBRARY_FILE, load_library, save_library

SUPPORTED_EXTENSIONS = ("mp3", "flac", "wav", "m4a", "ogg", "aac")

MetadataReader = Callable[[Path], Optional[Track]]


def has_supported_extension(path: Union[str, Path]) -> bool:
    """Check if a path names a supported audio file.

    Only looks at the name, so it also works for files that were just deleted.
    The library index file is never considered audio.
    """
    path = Path(path)
    if path.name == LIBRARY_FILE:
        return False
    return path.suffix[1:].lower() in SUPPORTED_EXTENSIONS


def get_music_directory(config: Config) -> Path:
    """Get the music directory (default: ~/Music/tunes)."""
    if config.library.music_dir:
        return Path(config.library.music_dir).expanduser()
    return Path.home() / "Music" / "tunes"


def ensure_music_directory(config: Config) -> Path:
    """Get the music directory, creating it if needed.

    Raises:
        LibraryScanError: If the directory cannot be created
    """
    directory = get_music_directory(config)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LibraryScanError(f"Failed to create music directory {directory}: {e}") from e
    return directory


def list_audio_files(directory: Path) -> list[Path]:
    """List supported audio files directly inside a directory (non-recursive).

    Raises:
        LibraryScanError: If the directory cannot be read
    """
    try:
        with os.scandir(directory) as entries:
            names = sorted(entry.name for entry in entries)
    except OSError as e:
        raise LibraryScanError(f"Failed to read directory {directory}: {e}") from e

    files = []
    for name in names:
        path = directory / name
        if not path.is_file():
            continue
        if has_supported_extension(path):
            files.append(path)
    return files


def reconcile_library(
    directory: Union[str, Path], read_metadata: MetadataReader = read_tags
) -> Library:
    """Synchronize the persisted index with the files in a directory.

    Args:
        directory: Music directory to scan
        read_metadata: Reader returning a Track for a file, or None on failure

    Returns:
        The reconciled, sorted and saved Library

    Raises:
        LibraryScanError: If the directory cannot be read
        LibraryStoreError: If the index cannot be saved
    """
    directory = Path(directory).expanduser().absolute()

    try:
        library = load_library(directory)
    except LibraryStoreError as e:
        logger.warning(f"{e}; rebuilding library from scratch")
        library = Library()

    current_files = list_audio_files(directory)
    current_paths = {str(path) for path in current_files}

    # Drop tracks whose files are gone (deleted or renamed)
    tracks = [track for track in library.tracks if track.path in current_paths]
    removed = len(library.tracks) - len(tracks)

    known_paths = {track.path for track in tracks}
    added = 0
    for file_path in current_files:
        if str(file_path) in known_paths:
            continue
        track = read_metadata(file_path)
        if track is None:
            # Retried on the next scan
            logger.debug(f"Skipping unreadable file: {file_path}")
            continue
        tracks.append(track)
        known_paths.add(track.path)
        added += 1

    # Stable sort keeps the existing order for equal keys
    tracks.sort(key=lambda track: track.sort_key)
    library = Library(tracks=tracks)

    save_library(directory, library)

    logger.info(
        f"Library reconciled: {len(tracks)} tracks ({added} added, {removed} removed) in {directory}"
    )
    return library


def scan_library(config: Config, read_metadata: MetadataReader = read_tags) -> Library:
    """Ensure the music directory exists, then reconcile it."""
    directory = ensure_music_directory(config)
    return reconcile_library(directory, read_metadata=read_metadata)


def find_track(library: Library, path: Optional[str]) -> Optional[int]:
    """Get the index of a track by path, or None if it is not in the library."""
    if path is None:
        return None
    for i, track in enumerate(library.tracks):
        if track.path == path:
            return i
    return None


def next_track(library: Library, path: Optional[str]) -> Optional[Track]:
    """Get the track after the given one, or None at the end of the library."""
    index = find_track(library, path)
    if index is None or index + 1 >= len(library.tracks):
        return None
    return library.tracks[index + 1]


def previous_track(library: Library, path: Optional[str]) -> Optional[Track]:
    """Get the track before the given one, or None at the start of the library."""
    index = find_track(library, path)
    if index is None or index == 0:
        return None
    return library.tracks[index - 1]
