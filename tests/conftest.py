"""Shared fixtures: fake metadata reader, fake audio output, WAV writer."""

import wave
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest

from tunes.core.config import Config
from tunes.domain.library.metadata import track_id_for_path
from tunes.domain.library.models import Track
from tunes.domain.playback.audio import DecodedAudio
from tunes.domain.playback.engine import PlaybackHandle
from tunes.exceptions import DecodeError


class FakeReader:
    """Metadata reader returning canned titles by filename."""

    def __init__(self, titles: Optional[dict[str, str]] = None, failing: Optional[set[str]] = None):
        self.titles = titles or {}
        self.failing = failing or set()
        self.calls: list[str] = []

    def __call__(self, path: Path) -> Optional[Track]:
        path = Path(path)
        self.calls.append(path.name)
        if path.name in self.failing:
            return None
        return Track(
            id=track_id_for_path(str(path)),
            filename=path.name,
            path=str(path),
            title=self.titles.get(path.name),
            artist="Test Artist",
            duration_secs=120,
        )


class FakeSink:
    def __init__(self):
        self.appended: list[DecodedAudio] = []
        self.paused = False
        self.stopped = False
        self.finished = False

    def append(self, audio: DecodedAudio) -> None:
        self.appended.append(audio)

    def pause(self) -> None:
        self.paused = True

    def play(self) -> None:
        self.paused = False

    def stop(self) -> None:
        self.stopped = True

    def empty(self) -> bool:
        return self.stopped or self.finished

    def is_paused(self) -> bool:
        return self.paused

    def position_secs(self) -> float:
        return 1.5


class FakeDevice:
    def __init__(self):
        self.sinks: list[FakeSink] = []
        self.closed = False

    def connect(self) -> FakeSink:
        sink = FakeSink()
        self.sinks.append(sink)
        return sink

    def close(self) -> None:
        self.closed = True


def fake_decode(f) -> DecodedAudio:
    """Decoder accepting any file that does not start with BAD."""
    data = f.read()
    if data.startswith(b"BAD"):
        raise DecodeError("Failed to decode audio: unsupported format")
    return DecodedAudio(samples=np.zeros((10, 2), dtype=np.float32), sample_rate=44100)


@pytest.fixture
def fake_reader() -> Callable[..., FakeReader]:
    """Factory for FakeReader instances."""
    return FakeReader


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def decoder() -> Callable:
    return fake_decode


@pytest.fixture
def playback(fake_device: FakeDevice):
    """A running playback engine wired to the fake device."""
    handle = PlaybackHandle.start(open_device=lambda: fake_device, decode=fake_decode)
    yield handle
    handle.shutdown()


@pytest.fixture
def audio_file(tmp_path: Path) -> Callable[[str, bytes], Path]:
    """Factory writing a file with the given content into tmp_path."""

    def _write(name: str, content: bytes = b"audio") -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def write_wav() -> Callable[..., Path]:
    """Factory writing a silent 16-bit WAV file."""

    def _write(path: Path, seconds: float = 2.0, rate: int = 8000, channels: int = 1) -> Path:
        frames = int(seconds * rate)
        with wave.open(str(path), "wb") as wav:
            wav.setnchannels(channels)
            wav.setsampwidth(2)
            wav.setframerate(rate)
            wav.writeframes(b"\x00\x00" * frames * channels)
        return path

    return _write


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config pointing the music directory at a temp dir with fast debouncing."""
    cfg = Config()
    cfg.library.music_dir = str(tmp_path / "music")
    cfg.watcher.quiet_window_ms = 100
    cfg.watcher.poll_interval_ms = 20
    return cfg
