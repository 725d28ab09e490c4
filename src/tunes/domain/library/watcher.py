"""
Library directory watching with debounced rescans.

Three pieces, each on its own thread:
- LibraryChangeHandler runs on the watchdog observer thread and only
  enqueues a CHANGED signal for relevant events.
- Debouncer drains that queue and fires once activity has been quiet
  for the configured window.
- LibrarySync ties both to reconcile_library and notifies listeners
  with the fresh library.
"""

import queue
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from tunes.core.config import Config
from tunes.exceptions import TunesError, WatcherError

from .metadata import read_tags
from .models import Library
from .reconciler import (
    MetadataReader,
    ensure_music_directory,
    has_supported_extension,
    reconcile_library,
)


class LibraryEvent(Enum):
    CHANGED = "changed"


# Put on the event queue to stop the debounce loop
CLOSED = object()

LibraryListener = Callable[[Library], None]


class LibraryChangeHandler(FileSystemEventHandler):
    """Turns filesystem events on audio files into CHANGED signals."""

    def __init__(self, events: queue.Queue):
        super().__init__()
        self.events = events

    def _is_relevant(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(path and has_supported_extension(path) for path in paths)

    def _signal(self, event: FileSystemEvent) -> None:
        if self._is_relevant(event):
            self.events.put(LibraryEvent.CHANGED)

    def on_created(self, event: FileSystemEvent) -> None:
        self._signal(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._signal(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._signal(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Renames count as modifications of both names
        self._signal(event)


class DirectoryWatcher:
    """Watches a single directory (non-recursive) with a watchdog Observer."""

    def __init__(self, directory: Path, events: queue.Queue):
        self.directory = Path(directory)
        self.events = events
        self._observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start watching.

        Raises:
            WatcherError: If the observer cannot be started
        """
        if self._observer is not None:
            return

        observer = Observer()
        try:
            observer.schedule(
                LibraryChangeHandler(self.events), str(self.directory), recursive=False
            )
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatcherError(f"Failed to watch directory {self.directory}: {e}") from e

        self._observer = observer
        logger.info(f"Watching library directory: {self.directory}")

    def stop(self) -> None:
        """Stop watching and wait for the observer thread."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        logger.info("Library watcher stopped")


class Debouncer:
    """Collapses bursts of CHANGED signals into a single callback.

    The callback fires once the last signal is at least quiet_window
    seconds old, checked every poll_interval seconds. The loop ends when
    CLOSED is received.
    """

    def __init__(
        self,
        events: queue.Queue,
        on_settled: Callable[[], None],
        quiet_window: float = 0.5,
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.events = events
        self.on_settled = on_settled
        self.quiet_window = quiet_window
        self.poll_interval = poll_interval
        self.clock = clock
        self.pending = False
        self.last_event = clock()

    def record_event(self, now: float) -> None:
        self.pending = True
        self.last_event = now

    def should_fire(self, now: float) -> bool:
        return self.pending and now - self.last_event >= self.quiet_window

    def fire(self, now: float) -> None:
        """Run the callback and push the clock far enough back to not repeat."""
        self.pending = False
        self.last_event = now - self.quiet_window - 1.0
        try:
            self.on_settled()
        except Exception:
            logger.exception("Library change callback failed")

    def run(self) -> None:
        """Debounce loop. Blocks until CLOSED is received."""
        while True:
            try:
                item = self.events.get(timeout=self.poll_interval)
            except queue.Empty:
                now = self.clock()
                if self.should_fire(now):
                    self.fire(now)
                continue

            if item is CLOSED:
                logger.debug("Library event queue closed, debounce loop exiting")
                return
            self.record_event(self.clock())

    def close(self) -> None:
        self.events.put(CLOSED)


class LibrarySync:
    """Keeps the persisted library in sync with its directory.

    Rescans after filesystem activity settles and emits the fresh library
    to every listener.
    """

    def __init__(
        self,
        config: Config,
        listeners: Optional[list[LibraryListener]] = None,
        read_metadata: MetadataReader = read_tags,
        lock: Optional[threading.Lock] = None,
    ):
        self.config = config
        self.read_metadata = read_metadata
        self.listeners: list[LibraryListener] = list(listeners or [])
        # Held for the whole reconcile pass, shared with on-demand scans
        self.lock = lock or threading.Lock()
        self.events: queue.Queue = queue.Queue()
        self.directory: Optional[Path] = None
        self.watcher: Optional[DirectoryWatcher] = None
        self.debouncer = Debouncer(
            self.events,
            self._on_settled,
            quiet_window=config.watcher.quiet_window_ms / 1000.0,
            poll_interval=config.watcher.poll_interval_ms / 1000.0,
        )
        self._thread: Optional[threading.Thread] = None

    def add_listener(self, listener: LibraryListener) -> None:
        self.listeners.append(listener)

    def start(self) -> None:
        """Start the watcher and the debounce thread.

        Raises:
            LibraryScanError: If the music directory cannot be created
            WatcherError: If the directory cannot be watched
        """
        if self._thread is not None:
            return

        self.directory = ensure_music_directory(self.config)
        self.watcher = DirectoryWatcher(self.directory, self.events)
        self.watcher.start()

        self._thread = threading.Thread(
            target=self.debouncer.run, name="library-sync", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop watching and let the debounce loop drain out."""
        if self.watcher:
            self.watcher.stop()
            self.watcher = None
        if self._thread is not None:
            self.debouncer.close()
            self._thread.join(timeout=5.0)
            self._thread = None

    def _on_settled(self) -> None:
        try:
            with self.lock:
                library = reconcile_library(self.directory, read_metadata=self.read_metadata)
        except TunesError as e:
            logger.error(f"Library rescan failed: {e}")
            return

        for listener in list(self.listeners):
            try:
                listener(library)
            except Exception:
                logger.exception("Library listener failed")
