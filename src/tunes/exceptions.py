"""Exceptions raised by the library and playback layers."""


class TunesError(Exception):
    """Base exception for all Tunes operations."""

    pass


class LibraryError(TunesError):
    """Base exception for library operations."""

    pass


class LibraryScanError(LibraryError):
    """Raised when the music directory cannot be created or read."""

    pass


class LibraryStoreError(LibraryError):
    """Raised when the persisted library cannot be read, parsed or written."""

    def __init__(self, path, message: str):
        self.path = path
        super().__init__(message)


class WatcherError(LibraryError):
    """Raised when the filesystem watcher cannot be started."""

    pass


class PlaybackError(TunesError):
    """Base exception for playback operations."""

    pass


class OutputDeviceError(PlaybackError):
    """Raised when the audio output device cannot be opened."""

    pass


class DecodeError(PlaybackError):
    """Raised when an audio file cannot be decoded."""

    pass


class PlaybackUnavailableError(PlaybackError):
    """Raised when the playback engine is no longer accepting commands."""

    def __init__(self, message: str = None):
        super().__init__(message or "Playback engine is not running")
