"""
Tests for the playback engine and its command channel.
"""

import queue

import pytest

from tunes.domain.playback.engine import (
    SHUTDOWN,
    CommandChannel,
    GetState,
    PlaybackEngine,
    PlaybackHandle,
    Play,
    Stop,
)
from tunes.domain.playback.state import STOPPED_STATE, PlaybackState, PlaybackStatus
from tunes.exceptions import OutputDeviceError, PlaybackUnavailableError


class TestPlay:
    """Test starting tracks."""

    def test_play_reports_playing(self, playback, audio_file):
        path = audio_file("song.mp3")

        playback.play(str(path), "Song", "Artist", 180)
        state = playback.get_state(timeout=2.0)

        assert state.status is PlaybackStatus.PLAYING
        assert state.current_track_path == str(path)
        assert state.current_track_title == "Song"
        assert state.current_track_artist == "Artist"
        assert state.position_secs == 1.5
        assert state.duration_secs == 180.0

    def test_missing_file_stays_stopped(self, playback, tmp_path):
        """Test an unopenable file is logged, not raised to the caller."""
        playback.play(str(tmp_path / "missing.mp3"), "Missing", "Nobody")

        assert playback.get_state(timeout=2.0) == STOPPED_STATE

    def test_undecodable_file_stops_previous(self, playback, audio_file, fake_device):
        """Test a failed play still silences the previous track."""
        good = audio_file("good.mp3")
        bad = audio_file("bad.mp3", b"BAD data")

        playback.play(str(good), "Good", "Artist")
        playback.play(str(bad), "Bad", "Artist")
        state = playback.get_state(timeout=2.0)

        assert state == STOPPED_STATE
        assert len(fake_device.sinks) == 1
        assert fake_device.sinks[0].stopped

    def test_new_play_replaces_current(self, playback, audio_file, fake_device):
        """Test only one track plays at a time."""
        first = audio_file("first.mp3")
        second = audio_file("second.mp3")

        playback.play(str(first), "First", "Artist")
        playback.play(str(second), "Second", "Artist")
        state = playback.get_state(timeout=2.0)

        assert state.current_track_path == str(second)
        assert [sink.stopped for sink in fake_device.sinks] == [True, False]

    def test_commands_apply_in_order(self, playback, audio_file):
        """Test a state request sees every earlier command."""
        path = audio_file("song.mp3")

        playback.play(str(path), "Song", "Artist")
        playback.pause()
        playback.resume()
        playback.stop()
        playback.play(str(path), "Song", "Artist")
        playback.pause()

        assert playback.get_state(timeout=2.0).status is PlaybackStatus.PAUSED


class TestTransport:
    """Test pause, resume and stop."""

    def test_pause_and_resume(self, playback, audio_file):
        playback.play(str(audio_file("song.mp3")), "Song", "Artist")

        playback.pause()
        assert playback.get_state(timeout=2.0).status is PlaybackStatus.PAUSED

        playback.resume()
        assert playback.get_state(timeout=2.0).status is PlaybackStatus.PLAYING

    def test_pause_without_track_is_noop(self, playback):
        playback.pause()
        playback.resume()

        assert playback.get_state(timeout=2.0) == STOPPED_STATE

    def test_stop_clears_track(self, playback, audio_file, fake_device):
        playback.play(str(audio_file("song.mp3")), "Song", "Artist")

        playback.stop()
        state = playback.get_state(timeout=2.0)

        assert state == STOPPED_STATE
        assert fake_device.sinks[0].stopped


class TestSnapshot:
    """Test deriving state from the sink."""

    @pytest.fixture
    def engine(self, fake_device, decoder):
        engine = PlaybackEngine(CommandChannel(), lambda: fake_device, decoder)
        engine.device = fake_device
        return engine

    def test_finished_track_reads_stopped(self, engine, fake_device, audio_file):
        """Test a drained sink reads as stopped while remembering the track."""
        path = str(audio_file("song.mp3"))
        engine.handle(Play(path, "Song", "Artist", 3))

        fake_device.sinks[0].finished = True

        assert engine.snapshot() == STOPPED_STATE
        assert engine.current_path == path
        assert engine.current_title == "Song"

    def test_untagged_duration_uses_decoded_length(self, engine, audio_file):
        """Test a track queued with duration 0 reports the decoded length."""
        engine.handle(Play(str(audio_file("song.mp3")), "Song", "Artist"))

        assert engine.snapshot().duration_secs == pytest.approx(10 / 44100)

    def test_stop_forgets_track(self, engine, audio_file):
        engine.handle(Play(str(audio_file("song.mp3")), "Song", "Artist"))
        engine.handle(Stop())

        assert engine.current_path is None
        assert engine.sink is None

    def test_get_state_replies_on_queue(self, engine):
        reply = queue.Queue()

        engine.handle(GetState(reply))

        assert reply.get_nowait() == STOPPED_STATE

    def test_unknown_command_ignored(self, engine):
        engine.handle("rewind")

        assert engine.snapshot() == STOPPED_STATE


class TestEngineLifecycle:
    """Test startup failures and shutdown."""

    def test_device_failure_makes_playback_unavailable(self):
        """Test commands fail instead of hanging when no device can be opened."""

        def no_device():
            raise OutputDeviceError("no output device")

        handle = PlaybackHandle.start(open_device=no_device)
        handle.thread.join(timeout=2.0)

        assert not handle.is_available
        with pytest.raises(PlaybackUnavailableError):
            handle.get_state(timeout=2.0)
        with pytest.raises(PlaybackUnavailableError):
            handle.play("/music/song.mp3", "Song", "Artist")

    def test_pending_state_request_rejected_on_failure(self):
        """Test a GetState queued before the failure gets an error reply."""
        channel = CommandChannel()
        reply = queue.Queue()
        channel.send(GetState(reply))

        def no_device():
            raise OutputDeviceError("no output device")

        PlaybackEngine(channel, no_device).run()

        assert isinstance(reply.get_nowait(), PlaybackUnavailableError)
        assert channel.closed

    def test_unexpected_open_error_makes_playback_unavailable(self):
        """Test any device open error closes the channel rather than leaving it dangling."""

        def broken_device():
            raise RuntimeError("PortAudio not initialized")

        handle = PlaybackHandle.start(open_device=broken_device)
        handle.thread.join(timeout=2.0)

        assert not handle.thread.is_alive()
        assert not handle.is_available
        with pytest.raises(PlaybackUnavailableError):
            handle.get_state(timeout=2.0)

    def test_shutdown_closes_device(self, fake_device, decoder, audio_file):
        handle = PlaybackHandle.start(open_device=lambda: fake_device, decode=decoder)
        handle.play(str(audio_file("song.mp3")), "Song", "Artist")

        handle.shutdown()

        assert not handle.thread.is_alive()
        assert fake_device.closed
        assert fake_device.sinks[0].stopped
        with pytest.raises(PlaybackUnavailableError):
            handle.stop()

    def test_shutdown_twice(self, playback):
        playback.shutdown()
        playback.shutdown()

        assert not playback.is_available

    def test_handler_error_keeps_engine_running(self, fake_device, audio_file):
        """Test an unexpected error in one command does not kill the loop."""

        def broken_decode(f):
            raise RuntimeError("decoder crashed")

        handle = PlaybackHandle.start(open_device=lambda: fake_device, decode=broken_decode)
        try:
            handle.play(str(audio_file("song.mp3")), "Song", "Artist")

            assert handle.get_state(timeout=2.0) == STOPPED_STATE
        finally:
            handle.shutdown()

    def test_no_reply_times_out(self):
        """Test a stalled engine surfaces as unavailable after the timeout."""
        channel = CommandChannel()
        handle = PlaybackHandle(channel)

        with pytest.raises(PlaybackUnavailableError):
            handle.get_state(timeout=0.05)


class TestCommandChannel:
    """Test the command queue's closed flag."""

    def test_close_queues_shutdown(self):
        channel = CommandChannel()
        channel.send(Stop())

        channel.close()

        assert channel.queue.get_nowait() == Stop()
        assert channel.queue.get_nowait() is SHUTDOWN

    def test_send_after_close_raises(self):
        channel = CommandChannel()
        channel.close()

        with pytest.raises(PlaybackUnavailableError):
            channel.send(Stop())


class TestPlaybackState:
    """Test the state snapshot type."""

    def test_to_dict_uses_status_name(self):
        state = PlaybackState(PlaybackStatus.PAUSED, "/m/a.mp3", "Alpha", "Ann", 12.5, 200.0)

        assert state.to_dict() == {
            "status": "Paused",
            "current_track_path": "/m/a.mp3",
            "current_track_title": "Alpha",
            "current_track_artist": "Ann",
            "position_secs": 12.5,
            "duration_secs": 200.0,
        }

    def test_stopped_state_is_empty(self):
        assert STOPPED_STATE.is_stopped
        assert STOPPED_STATE.current_track_path is None
