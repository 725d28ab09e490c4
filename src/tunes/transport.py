"""
Command surface for the outer shell.

Translates user intents into playback commands and library scans. Every
method either returns a value or raises a TunesError subclass with a
human-readable message.
"""

import threading
from typing import Optional

from loguru import logger

from tunes.core.config import Config
from tunes.domain.library.metadata import read_tags
from tunes.domain.library.models import Library
from tunes.domain.library.reconciler import MetadataReader, get_music_directory, scan_library
from tunes.domain.library.watcher import LibraryListener, LibrarySync
from tunes.domain.playback.engine import PlaybackHandle
from tunes.domain.playback.state import PlaybackState


class Transport:
    """Library and playback operations exposed to the shell."""

    def __init__(
        self,
        config: Config,
        playback: Optional[PlaybackHandle] = None,
        read_metadata: MetadataReader = read_tags,
    ):
        self.config = config
        self.read_metadata = read_metadata
        self.playback = playback or PlaybackHandle.start(config=config.player)
        self.library_sync: Optional[LibrarySync] = None
        self._reconcile_lock = threading.Lock()

    def get_music_directory(self) -> str:
        return str(get_music_directory(self.config))

    def scan_library(self) -> Library:
        """Rescan the music directory, waiting for any rescan already running."""
        with self._reconcile_lock:
            return scan_library(self.config, read_metadata=self.read_metadata)

    def play_track(self, path: str, title: str, artist: str, duration_secs: float = 0.0) -> None:
        """Queue a track for playback.

        Returns once the command is queued; open or decode failures are
        logged by the engine and show up as STOPPED on the next state query.
        """
        self.playback.play(path, title, artist, duration_secs)

    def pause(self) -> None:
        self.playback.pause()

    def resume(self) -> None:
        self.playback.resume()

    def stop(self) -> None:
        self.playback.stop()

    def get_playback_state(self) -> PlaybackState:
        return self.playback.get_state()

    def watch_library(self, listener: LibraryListener) -> None:
        """Rescan on filesystem changes and send each fresh library to listener.

        Raises:
            LibraryScanError: If the music directory cannot be created
            WatcherError: If the directory cannot be watched
        """
        if self.library_sync is not None:
            self.library_sync.add_listener(listener)
            return

        library_sync = LibrarySync(
            self.config,
            [listener],
            read_metadata=self.read_metadata,
            lock=self._reconcile_lock,
        )
        library_sync.start()
        self.library_sync = library_sync

    def close(self) -> None:
        if self.library_sync is not None:
            self.library_sync.stop()
            self.library_sync = None
        self.playback.shutdown()
        logger.debug("Transport closed")
