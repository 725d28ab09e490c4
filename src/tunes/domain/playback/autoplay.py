"""
Autoplay: advance to the next track when the current one finishes.

The engine never pushes a "finished" event; a finished track shows up as
STOPPED on the next state poll. The poller remembers what it last saw and
treats PLAYING -> STOPPED as a natural finish.
"""

import threading
from typing import Callable, Optional, Protocol

from loguru import logger

from tunes.domain.library.models import Library, Track
from tunes.domain.library.reconciler import next_track
from tunes.exceptions import TunesError

from .state import PlaybackState, PlaybackStatus


class Player(Protocol):
    def play_track(self, path: str, title: str, artist: str, duration_secs: float) -> None: ...

    def get_playback_state(self) -> PlaybackState: ...


class AutoplayPoller:
    """Polls the player and plays the next library track after a natural finish."""

    def __init__(
        self,
        player: Player,
        get_library: Callable[[], Library],
        interval: float = 1.0,
        on_change: Optional[Callable[[Optional[Track]], None]] = None,
    ):
        self.player = player
        self.get_library = get_library
        self.interval = interval
        self.on_change = on_change
        self.current_path: Optional[str] = None
        self.last_status = PlaybackStatus.STOPPED
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def select(self, track: Track) -> None:
        """Start a track and remember it as the current selection."""
        self.player.play_track(
            track.path, track.display_title, track.display_artist, track.duration_secs
        )
        with self._lock:
            self.current_path = track.path
            self.last_status = PlaybackStatus.PLAYING

    def note_status(self, status: PlaybackStatus) -> None:
        """Record a status change made outside the poller (pause, stop)."""
        with self._lock:
            self.last_status = status

    def poll_once(self) -> None:
        state = self.player.get_playback_state()

        with self._lock:
            finished = (
                state.status is PlaybackStatus.STOPPED
                and self.last_status is PlaybackStatus.PLAYING
                and self.current_path is not None
            )
            current_path = self.current_path
            if not finished:
                self.last_status = state.status
                return

        upcoming = next_track(self.get_library(), current_path)
        if upcoming is not None:
            logger.info(f"Autoplay: {upcoming.display_title}")
            self.select(upcoming)
        else:
            logger.info("Autoplay: reached the end of the library")
            with self._lock:
                self.current_path = None
                self.last_status = PlaybackStatus.STOPPED

        if self.on_change:
            self.on_change(upcoming)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.poll_once()
            except TunesError as e:
                logger.debug(f"Autoplay poll failed: {e}")
            except Exception:
                logger.exception("Autoplay poll failed")

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="autoplay", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1.0)
            self._thread = None
