"""
Playback engine.

A single thread owns the audio output device and the active sink. Everything
else talks to it through PlaybackHandle, which puts commands on an ordered,
unbounded queue. Commands are handled one at a time in arrival order, so a
GetState always sees the effect of every command sent before it.
"""

import queue
import threading
from typing import Any, BinaryIO, Callable, NamedTuple, Optional

from loguru import logger

from tunes.core.config import PlayerConfig
from tunes.exceptions import DecodeError, OutputDeviceError, PlaybackUnavailableError

from . import audio
from .state import STOPPED_STATE, PlaybackState, PlaybackStatus


class Play(NamedTuple):
    path: str
    title: str
    artist: str
    duration_secs: float = 0.0


class Pause(NamedTuple):
    pass


class Resume(NamedTuple):
    pass


class Stop(NamedTuple):
    pass


class GetState(NamedTuple):
    reply: queue.Queue


# Put on the command queue to end the engine loop
SHUTDOWN = object()

DeviceFactory = Callable[[], Any]
Decoder = Callable[[BinaryIO], audio.DecodedAudio]


def default_device_factory(config: Optional[PlayerConfig] = None) -> DeviceFactory:
    """Build a factory opening the configured sounddevice output."""
    config = config or PlayerConfig()

    def open_device() -> audio.OutputDevice:
        return audio.OutputDevice.open(
            sample_rate=config.sample_rate,
            channels=config.channels,
            blocksize=config.blocksize,
            device=config.output_device,
        )

    return open_device


class PlaybackEngine:
    """Command loop owning the output device and the current sink.

    Only run() touches the device, the sink and the current-track fields,
    and run() executes on the engine thread.
    """

    def __init__(
        self,
        channel: "CommandChannel",
        open_device: DeviceFactory,
        decode: Decoder = audio.decode,
    ):
        self.channel = channel
        self.open_device = open_device
        self.decode = decode
        self.device = None
        self.sink = None
        self.current_path: Optional[str] = None
        self.current_title: Optional[str] = None
        self.current_artist: Optional[str] = None
        self.current_duration: float = 0.0

    def run(self) -> None:
        try:
            self.device = self.open_device()
        except OutputDeviceError as e:
            logger.error(f"Playback disabled: {e}")
            self.channel.close(reject_pending=True)
            return
        except Exception:
            logger.exception("Playback disabled: unexpected error opening the output device")
            self.channel.close(reject_pending=True)
            return

        while True:
            command = self.channel.queue.get()
            if command is SHUTDOWN:
                logger.debug("Playback command channel closed, engine exiting")
                break
            try:
                self.handle(command)
            except Exception:
                logger.exception(f"Playback command failed: {command!r}")

        self._stop_sink()
        close = getattr(self.device, "close", None)
        if close is not None:
            close()

    def handle(self, command: Any) -> None:
        if isinstance(command, Play):
            self._play(command)
        elif isinstance(command, Pause):
            if self.sink is not None:
                self.sink.pause()
        elif isinstance(command, Resume):
            if self.sink is not None:
                self.sink.play()
        elif isinstance(command, Stop):
            self._stop_sink()
            self._clear_current()
        elif isinstance(command, GetState):
            # Unbounded reply queue: never blocks, even if the caller gave up
            command.reply.put(self.snapshot())
        else:
            logger.warning(f"Unknown playback command: {command!r}")

    def _play(self, command: Play) -> None:
        self._stop_sink()

        try:
            with open(command.path, "rb") as f:
                decoded = self.decode(f)
        except OSError as e:
            logger.error(f"Failed to open file {command.path}: {e}")
            return
        except DecodeError as e:
            logger.error(f"Failed to decode {command.path}: {e}")
            return

        sink = self.device.connect()
        sink.append(decoded)
        self.sink = sink
        self.current_path = command.path
        self.current_title = command.title
        self.current_artist = command.artist
        # Untagged files arrive with duration 0
        self.current_duration = float(command.duration_secs or decoded.duration_secs)
        logger.info(f"Playing: {command.artist} - {command.title} ({command.path})")

    def _stop_sink(self) -> None:
        if self.sink is not None:
            self.sink.stop()
            self.sink = None

    def _clear_current(self) -> None:
        self.current_path = None
        self.current_title = None
        self.current_artist = None
        self.current_duration = 0.0

    def snapshot(self) -> PlaybackState:
        """Derive the current state from the sink.

        A drained sink reads as STOPPED with no track, but the current-track
        fields are kept until the next Play or Stop.
        """
        sink = self.sink
        if sink is None or sink.empty():
            return STOPPED_STATE

        status = PlaybackStatus.PAUSED if sink.is_paused() else PlaybackStatus.PLAYING
        return PlaybackState(
            status=status,
            current_track_path=self.current_path,
            current_track_title=self.current_title,
            current_track_artist=self.current_artist,
            position_secs=sink.position_secs(),
            duration_secs=self.current_duration,
        )


class CommandChannel:
    """Ordered command queue with a closed flag.

    The lock only covers the closed check and the put, so a command is either
    queued before close() or rejected.
    """

    def __init__(self):
        self.queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, command: Any) -> None:
        with self._lock:
            if self._closed:
                raise PlaybackUnavailableError()
            self.queue.put(command)

    def close(self, reject_pending: bool = False) -> None:
        """Stop accepting commands.

        With reject_pending, queued commands are dropped and any waiting
        GetState receives a PlaybackUnavailableError instead of a state.
        Otherwise SHUTDOWN is queued behind them.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if not reject_pending:
                self.queue.put(SHUTDOWN)
                return

        while True:
            try:
                command = self.queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(command, GetState):
                command.reply.put(PlaybackUnavailableError())


class PlaybackHandle:
    """Thread-safe entry point to the playback engine."""

    def __init__(self, channel: CommandChannel, thread: Optional[threading.Thread] = None):
        self.channel = channel
        self.thread = thread

    @classmethod
    def start(
        cls,
        open_device: Optional[DeviceFactory] = None,
        decode: Decoder = audio.decode,
        config: Optional[PlayerConfig] = None,
    ) -> "PlaybackHandle":
        """Spawn the engine thread and return a handle to it."""
        channel = CommandChannel()
        engine = PlaybackEngine(
            channel,
            open_device or default_device_factory(config),
            decode,
        )
        thread = threading.Thread(target=engine.run, name="playback-engine", daemon=True)
        thread.start()
        return cls(channel, thread)

    @property
    def is_available(self) -> bool:
        return not self.channel.closed

    def send(self, command: Any) -> None:
        """Queue a command.

        Raises:
            PlaybackUnavailableError: If the engine is no longer running
        """
        self.channel.send(command)

    def play(self, path: str, title: str, artist: str, duration_secs: float = 0.0) -> None:
        self.send(Play(path, title, artist, duration_secs))

    def pause(self) -> None:
        self.send(Pause())

    def resume(self) -> None:
        self.send(Resume())

    def stop(self) -> None:
        self.send(Stop())

    def get_state(self, timeout: Optional[float] = None) -> PlaybackState:
        """Ask the engine for its state and wait for the reply.

        Raises:
            PlaybackUnavailableError: If the engine stopped before replying,
                or no reply arrived within timeout
        """
        reply: queue.Queue = queue.Queue()
        self.send(GetState(reply))
        try:
            state = reply.get(timeout=timeout)
        except queue.Empty:
            raise PlaybackUnavailableError("Failed to get state: no reply from playback engine")
        if isinstance(state, Exception):
            raise state
        return state

    def shutdown(self, timeout: float = 5.0) -> None:
        """Close the command channel and wait for the engine to finish."""
        self.channel.close()
        if self.thread is not None and self.thread.is_alive():
            self.thread.join(timeout=timeout)
