"""
Tests for decoding, sinks and the output mixer.
"""

import numpy as np
import pytest

from tunes.domain.playback import audio
from tunes.domain.playback.audio import (
    DecodedAudio,
    OutputDevice,
    Sink,
    adapt_channels,
    decode,
    linear_resample,
)
from tunes.exceptions import DecodeError, OutputDeviceError


def tone(frames: int, channels: int = 2, value: float = 0.5, rate: int = 44100) -> DecodedAudio:
    return DecodedAudio(
        samples=np.full((frames, channels), value, dtype=np.float32), sample_rate=rate
    )


class TestDecode:
    """Test decoding files with soundfile."""

    def test_decode_wav(self, tmp_path, write_wav):
        path = write_wav(tmp_path / "tone.wav", seconds=1.0, rate=8000, channels=1)

        with open(path, "rb") as f:
            decoded = decode(f)

        assert decoded.sample_rate == 8000
        assert decoded.samples.shape == (8000, 1)
        assert decoded.samples.dtype == np.float32
        assert decoded.duration_secs == pytest.approx(1.0)

    def test_garbage_raises_decode_error(self, tmp_path):
        path = tmp_path / "noise.wav"
        path.write_bytes(b"definitely not a wav file" * 10)

        with open(path, "rb") as f, pytest.raises(DecodeError):
            decode(f)


class TestConversion:
    """Test sample rate and channel adaptation."""

    def test_resample_doubles_frames(self):
        samples = np.zeros((100, 2), dtype=np.float32)

        out = linear_resample(samples, 22050, 44100)

        assert out.shape == (200, 2)

    def test_resample_same_rate_is_identity(self):
        samples = np.ones((10, 1), dtype=np.float32)

        assert linear_resample(samples, 44100, 44100) is samples

    def test_mono_to_stereo(self):
        samples = np.arange(4, dtype=np.float32).reshape(-1, 1)

        out = adapt_channels(samples, 2)

        assert out.shape == (4, 2)
        assert np.array_equal(out[:, 0], out[:, 1])

    def test_stereo_to_mono_averages(self):
        samples = np.array([[0.2, 0.4]], dtype=np.float32)

        out = adapt_channels(samples, 1)

        assert out.shape == (1, 1)
        assert out[0, 0] == pytest.approx(0.3)

    def test_extra_channels_truncated(self):
        samples = np.ones((3, 6), dtype=np.float32)

        assert adapt_channels(samples, 2).shape == (3, 2)


class TestSink:
    """Test the per-track sample queue."""

    def test_new_sink_is_empty(self):
        assert Sink(44100, 2).empty()

    def test_pull_advances_position(self):
        sink = Sink(44100, 2)
        sink.append(tone(882))

        block = sink.pull(441)

        assert block.shape == (441, 2)
        assert sink.position_secs() == pytest.approx(0.01)
        assert not sink.empty()

    def test_drains_to_empty(self):
        sink = Sink(44100, 2)
        sink.append(tone(100))

        assert sink.pull(64).shape[0] == 64
        assert sink.pull(64).shape[0] == 36
        assert sink.pull(64) is None
        assert sink.empty()

    def test_paused_sink_yields_nothing(self):
        sink = Sink(44100, 2)
        sink.append(tone(100))

        sink.pause()
        assert sink.is_paused()
        assert sink.pull(10) is None
        assert not sink.empty()

        sink.play()
        assert sink.pull(10).shape[0] == 10

    def test_stop_discards_audio(self):
        sink = Sink(44100, 2)
        sink.append(tone(100))

        sink.stop()

        assert sink.empty()
        assert sink.pull(10) is None

    def test_append_adapts_format(self):
        """Test mono 22.05 kHz audio is converted to the sink's format."""
        sink = Sink(44100, 2)
        sink.append(tone(100, channels=1, rate=22050))

        assert sink.pull(1000).shape == (200, 2)


class TestOutputDevice:
    """Test the mixer without a real stream."""

    @pytest.fixture
    def device(self):
        return OutputDevice(None, 44100, 2)

    def test_silence_without_sinks(self, device):
        out = device.mix(16)

        assert out.shape == (16, 2)
        assert not out.any()

    def test_mix_pads_short_blocks(self, device):
        sink = device.connect()
        sink.append(tone(3, value=0.25))

        out = device.mix(5)

        assert np.allclose(out[:3], 0.25)
        assert not out[3:].any()

    def test_finished_sinks_removed(self, device):
        sink = device.connect()
        sink.append(tone(4))

        device.mix(8)
        device.mix(8)

        assert device._sinks == []

    def test_sum_is_clipped(self, device):
        for _ in range(2):
            device.connect().append(tone(4, value=0.8))

        out = device.mix(4)

        assert np.allclose(out, 1.0)

    def test_callback_fills_buffer(self, device):
        device.connect().append(tone(4, value=0.5))
        outdata = np.zeros((4, 2), dtype=np.float32)

        device._callback(outdata, 4, None, None)

        assert np.allclose(outdata, 0.5)

    def test_open_without_portaudio(self, monkeypatch):
        monkeypatch.setattr(audio, "sd", None)

        with pytest.raises(OutputDeviceError):
            OutputDevice.open()
