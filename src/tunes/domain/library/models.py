"""
Music library domain models.

Contains data structures for representing tracks and the persisted library index.
"""

from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

UNKNOWN_ARTIST = "Unknown Artist"


class Track(NamedTuple):
    """Represents an audio file in the library with its metadata.

    The id is derived from the path, so the same file keeps the same id
    across runs. A track is built once, when its file is first seen, and is
    not re-read while it stays in the library.
    """
    id: str
    filename: str
    path: str
    title: Optional[str] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    year: Optional[int] = None
    track_number: Optional[int] = None
    genre: Optional[str] = None
    duration_secs: int = 0

    @property
    def sort_key(self) -> str:
        """Case-insensitive title, falling back to the filename."""
        return (self.title or self.filename).lower()

    @property
    def display_title(self) -> str:
        return self.title or self.filename

    @property
    def display_artist(self) -> str:
        return self.artist or UNKNOWN_ARTIST

    def to_dict(self) -> dict[str, Any]:
        return self._asdict()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """Build a Track from its persisted form.

        Raises:
            KeyError: If id, filename or path is missing
        """
        return cls(
            id=data["id"],
            filename=data["filename"],
            path=data["path"],
            title=data.get("title"),
            artist=data.get("artist"),
            album=data.get("album"),
            year=data.get("year"),
            track_number=data.get("track_number"),
            genre=data.get("genre"),
            duration_secs=data.get("duration_secs") or 0,
        )


@dataclass
class Library:
    """Ordered list of tracks, sorted by Track.sort_key."""

    tracks: list[Track] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"tracks": [track.to_dict() for track in self.tracks]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Library":
        """Build a Library from its persisted form.

        Indexes written by earlier versions keep their tracks under "tunes".

        Raises:
            KeyError: If the document has no track list
            TypeError: If the track list is not a list
        """
        if "tracks" in data:
            items = data["tracks"]
        elif "tunes" in data:
            items = data["tunes"]
        else:
            raise KeyError("tracks")
        if not isinstance(items, list):
            raise TypeError(f"expected a list of tracks, got {type(items).__name__}")
        return cls(tracks=[Track.from_dict(item) for item in items])
