"""
Audio decode and output.

Decoding uses soundfile; output is a single sounddevice OutputStream whose
callback mixes every connected Sink. The playback engine only uses the
small surface below: OutputDevice.open, decode, device.connect and the
Sink transport methods.
"""

import threading
from typing import Any, BinaryIO, NamedTuple, Optional, Union

import numpy as np
import soundfile as sf
from loguru import logger

try:
    import sounddevice as sd
    _sounddevice_import_error = None
except OSError as e:
    # PortAudio shared library missing; playback reports the device as unavailable
    sd = None
    _sounddevice_import_error = e

from tunes.exceptions import DecodeError, OutputDeviceError


class DecodedAudio(NamedTuple):
    samples: np.ndarray  # float32, shape (frames, channels)
    sample_rate: int

    @property
    def duration_secs(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.samples.shape[0] / float(self.sample_rate)


def decode(source: Union[str, BinaryIO]) -> DecodedAudio:
    """Decode a whole audio file into float32 samples.

    Args:
        source: Path or open binary file object

    Raises:
        DecodeError: If the container or codec is not supported or the data is corrupt
    """
    try:
        samples, sample_rate = sf.read(source, dtype="float32", always_2d=True)
    except (RuntimeError, ValueError, TypeError) as e:
        # soundfile.LibsndfileError is a RuntimeError
        raise DecodeError(f"Failed to decode audio: {e}") from e
    return DecodedAudio(samples=samples, sample_rate=int(sample_rate))


def linear_resample(samples: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    """Linear resample of (frames, channels) audio."""
    if src_rate == dst_rate or samples.shape[0] <= 1:
        return samples
    n_src = samples.shape[0]
    n_dst = max(1, int(round(n_src * (dst_rate / float(src_rate)))))
    t_src = np.linspace(0.0, 1.0, n_src, endpoint=True, dtype=np.float64)
    t_dst = np.linspace(0.0, 1.0, n_dst, endpoint=True, dtype=np.float64)
    out = np.empty((n_dst, samples.shape[1]), dtype=np.float32)
    for c in range(samples.shape[1]):
        out[:, c] = np.interp(t_dst, t_src, samples[:, c].astype(np.float64))
    return out


def adapt_channels(samples: np.ndarray, channels: int) -> np.ndarray:
    """Adapt mono<->stereo, truncating or zero-padding other layouts."""
    if samples.ndim == 1:
        samples = samples.reshape(-1, 1)
    current = samples.shape[1]
    if current == channels:
        return samples
    if current == 1:
        return np.repeat(samples, channels, axis=1)
    if channels == 1:
        return samples.mean(axis=1, keepdims=True).astype(np.float32, copy=False)
    out = np.zeros((samples.shape[0], channels), dtype=np.float32)
    c = min(current, channels)
    out[:, :c] = samples[:, :c]
    return out


class Sink:
    """Queue of decoded audio feeding the output device.

    Transport methods are called from the playback thread, pull() from the
    audio callback thread.
    """

    def __init__(self, sample_rate: int, channels: int):
        self.sample_rate = sample_rate
        self.channels = channels
        self._lock = threading.Lock()
        self._buffer = np.zeros((0, channels), dtype=np.float32)
        self._position = 0
        self._paused = False
        self._stopped = False

    def append(self, audio: DecodedAudio) -> None:
        samples = adapt_channels(audio.samples, self.channels)
        samples = linear_resample(samples, audio.sample_rate, self.sample_rate)
        with self._lock:
            remaining = self._buffer[self._position:]
            self._buffer = np.concatenate([remaining, samples.astype(np.float32, copy=False)])
            self._position = 0

    def pause(self) -> None:
        with self._lock:
            self._paused = True

    def play(self) -> None:
        with self._lock:
            self._paused = False

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._buffer = np.zeros((0, self.channels), dtype=np.float32)
            self._position = 0

    def is_paused(self) -> bool:
        with self._lock:
            return self._paused

    def empty(self) -> bool:
        """True once every queued frame has been handed to the device."""
        with self._lock:
            return self._stopped or self._position >= self._buffer.shape[0]

    def position_secs(self) -> float:
        with self._lock:
            return self._position / float(self.sample_rate)

    def pull(self, frames: int) -> Optional[np.ndarray]:
        """Take up to `frames` frames, or None while paused or finished."""
        with self._lock:
            if self._paused or self._stopped:
                return None
            block = self._buffer[self._position:self._position + frames]
            self._position += block.shape[0]
        return block if block.shape[0] else None


def _parse_device(device: Optional[str]) -> Optional[Union[int, str]]:
    if device is None or device == "":
        return None
    return int(device) if str(device).isdigit() else device


class OutputDevice:
    """The process-wide audio output with a simple summing mixer."""

    def __init__(self, stream: Any, sample_rate: int, channels: int):
        self.stream = stream
        self.sample_rate = sample_rate
        self.channels = channels
        self._sinks: list[Sink] = []
        self._lock = threading.Lock()

    @classmethod
    def open(
        cls,
        sample_rate: int = 44100,
        channels: int = 2,
        blocksize: int = 1024,
        device: Optional[str] = None,
    ) -> "OutputDevice":
        """Open and start the default (or named) output device.

        Raises:
            OutputDeviceError: If no usable output device is available
        """
        if sd is None:
            raise OutputDeviceError(f"Audio output unavailable: {_sounddevice_import_error}")

        output = cls(None, sample_rate, channels)
        try:
            stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=channels,
                blocksize=blocksize,
                dtype="float32",
                device=_parse_device(device),
                callback=output._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError, OSError) as e:
            raise OutputDeviceError(f"Failed to open audio output: {e}") from e

        output.stream = stream
        logger.info(f"Audio output opened: {sample_rate} Hz, {channels} channel(s)")
        return output

    def connect(self) -> Sink:
        """Create a new sink mixed into this output."""
        sink = Sink(self.sample_rate, self.channels)
        with self._lock:
            self._sinks.append(sink)
        return sink

    def mix(self, frames: int) -> np.ndarray:
        """Sum the next block from every active sink."""
        out = np.zeros((frames, self.channels), dtype=np.float32)
        with self._lock:
            sinks = list(self._sinks)
        finished = []
        for sink in sinks:
            block = sink.pull(frames)
            if block is not None:
                out[:block.shape[0]] += block
            elif sink.empty():
                finished.append(sink)
        if finished:
            with self._lock:
                self._sinks = [s for s in self._sinks if s not in finished]
        np.clip(out, -1.0, 1.0, out=out)
        return out

    def _callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Audio output status: {status}")
        outdata[:] = self.mix(frames)

    def close(self) -> None:
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None
