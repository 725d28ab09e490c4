"""
Playback state snapshots returned by the playback engine.
"""

from enum import Enum
from typing import Any, NamedTuple, Optional


class PlaybackStatus(str, Enum):
    STOPPED = "Stopped"
    PLAYING = "Playing"
    PAUSED = "Paused"


class PlaybackState(NamedTuple):
    """Immutable snapshot of the player.

    Track fields are only set while status is not STOPPED.
    """

    status: PlaybackStatus = PlaybackStatus.STOPPED
    current_track_path: Optional[str] = None
    current_track_title: Optional[str] = None
    current_track_artist: Optional[str] = None
    position_secs: float = 0.0
    duration_secs: float = 0.0

    @property
    def is_stopped(self) -> bool:
        return self.status is PlaybackStatus.STOPPED

    def to_dict(self) -> dict[str, Any]:
        data = self._asdict()
        data["status"] = self.status.value
        return data


STOPPED_STATE = PlaybackState()
