"""Library domain - music file discovery, metadata and index sync.

This domain handles:
- Track and library data models
- Metadata extraction from audio files
- Persisting the library index
- Reconciling the index with the music directory
- Watching the directory and rescanning on change
"""

# Models
from .models import Track, Library

# Metadata extraction
from .metadata import (
    track_id_for_path,
    read_tags,
    parse_year,
    parse_track_number,
    format_duration,
)

# Persistence
from .store import LIBRARY_FILE, library_path, load_library, save_library

# Reconciliation
from .reconciler import (
    SUPPORTED_EXTENSIONS,
    has_supported_extension,
    get_music_directory,
    ensure_music_directory,
    list_audio_files,
    reconcile_library,
    scan_library,
    find_track,
    next_track,
    previous_track,
)

# Watching
from .watcher import (
    LibraryEvent,
    LibraryChangeHandler,
    DirectoryWatcher,
    Debouncer,
    LibrarySync,
)

__all__ = [
    # Models
    "Track",
    "Library",
    # Metadata
    "track_id_for_path",
    "read_tags",
    "parse_year",
    "parse_track_number",
    "format_duration",
    # Store
    "LIBRARY_FILE",
    "library_path",
    "load_library",
    "save_library",
    # Reconciler
    "SUPPORTED_EXTENSIONS",
    "has_supported_extension",
    "get_music_directory",
    "ensure_music_directory",
    "list_audio_files",
    "reconcile_library",
    "scan_library",
    "find_track",
    "next_track",
    "previous_track",
    # Watcher
    "LibraryEvent",
    "LibraryChangeHandler",
    "DirectoryWatcher",
    "Debouncer",
    "LibrarySync",
]
