"""Playback domain - audio output and transport state.

This domain handles:
- Decoding files and mixing them to the output device
- The single-threaded playback engine and its command queue
- Playback state snapshots (stopped, playing, paused)
- Autoplay of the next library track
"""

# State
from .state import PlaybackStatus, PlaybackState, STOPPED_STATE

# Audio output
from .audio import DecodedAudio, Sink, OutputDevice, decode

# Engine
from .engine import (
    Play,
    Pause,
    Resume,
    Stop,
    GetState,
    CommandChannel,
    PlaybackEngine,
    PlaybackHandle,
    default_device_factory,
)

# Autoplay
from .autoplay import AutoplayPoller

__all__ = [
    # State
    "PlaybackStatus",
    "PlaybackState",
    "STOPPED_STATE",
    # Audio
    "DecodedAudio",
    "Sink",
    "OutputDevice",
    "decode",
    # Engine
    "Play",
    "Pause",
    "Resume",
    "Stop",
    "GetState",
    "CommandChannel",
    "PlaybackEngine",
    "PlaybackHandle",
    "default_device_factory",
    # Autoplay
    "AutoplayPoller",
]
