"""
Music metadata extraction and track information utilities.

Reads tags from audio files using Mutagen and builds Track records.
A file Mutagen cannot identify or parse yields no track; partially
tagged files yield a track with the missing fields left empty.
"""

from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger
from mutagen import File as MutagenFile

from .models import Track

_HASH_MASK = (1 << 64) - 1

# Easy tags (Vorbis/FLAC/EasyID3/EasyMP4) first, then raw ID3 and MP4 atoms
TITLE_TAGS = ["title", "TIT2", "\xa9nam", "TITLE"]
ARTIST_TAGS = ["artist", "TPE1", "\xa9ART", "ARTIST"]
ALBUM_TAGS = ["album", "TALB", "\xa9alb", "ALBUM"]
GENRE_TAGS = ["genre", "TCON", "\xa9gen", "GENRE"]
YEAR_TAGS = ["date", "year", "TDRC", "TYER", "\xa9day", "DATE", "YEAR"]
TRACK_NUMBER_TAGS = ["tracknumber", "TRCK", "trkn", "TRACKNUMBER"]


def track_id_for_path(path: str) -> str:
    """Return a stable identifier for a file path.

    Polynomial hash (base 31, wrapping at 64 bits) over the UTF-8 bytes of
    the path, rendered as lowercase hex.
    """
    value = 0
    for byte in path.encode("utf-8", "surrogateescape"):
        value = (value * 31 + byte) & _HASH_MASK
    return format(value, "x")


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[Any]:
    """Get tag value, trying multiple possible tag names."""
    tags = getattr(audio_file, "tags", None)
    if tags is None:
        return None

    for tag_name in tag_names:
        try:
            value = tags.get(tag_name)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
        if not value:
            continue
        if isinstance(value, list):
            value = value[0]
        # ID3 frames carry their text in a list
        text = getattr(value, "text", None)
        if isinstance(text, list):
            if not text:
                continue
            value = text[0]
        return value
    return None


def _as_text(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_year(value: Optional[Any]) -> Optional[int]:
    """Parse a year from tag values like "2001", "2001-05-04" or 2001."""
    if value is None:
        return None
    try:
        year = int(str(value).strip().split("-")[0])
    except (ValueError, TypeError):
        return None
    return year if year >= 0 else None


def parse_track_number(value: Optional[Any]) -> Optional[int]:
    """Parse a track number from "3", "3/12" or an MP4 (3, 12) tuple."""
    if value is None:
        return None
    if isinstance(value, tuple):
        value = value[0] if value else None
        if value is None:
            return None
    try:
        number = int(str(value).strip().split("/")[0])
    except (ValueError, TypeError):
        return None
    return number if number >= 0 else None


def read_tags(path: Union[str, Path]) -> Optional[Track]:
    """Read metadata from an audio file.

    Args:
        path: Path to the audio file

    Returns:
        Track with whatever metadata could be read, or None when the file
        cannot be identified or parsed as audio
    """
    path_str = str(path)
    filename = Path(path_str).name or "Unknown"

    try:
        audio_file = MutagenFile(path_str, easy=True)
    except Exception as e:
        logger.warning(f"Could not read metadata from {path_str}: {e}")
        return None

    if audio_file is None:
        logger.warning(f"Unrecognized audio format: {path_str}")
        return None

    duration_secs = 0
    info = getattr(audio_file, "info", None)
    length = getattr(info, "length", None)
    if length and length > 0:
        duration_secs = int(length)

    return Track(
        id=track_id_for_path(path_str),
        filename=filename,
        path=path_str,
        title=_as_text(get_tag_value(audio_file, TITLE_TAGS)),
        artist=_as_text(get_tag_value(audio_file, ARTIST_TAGS)),
        album=_as_text(get_tag_value(audio_file, ALBUM_TAGS)),
        year=parse_year(get_tag_value(audio_file, YEAR_TAGS)),
        track_number=parse_track_number(get_tag_value(audio_file, TRACK_NUMBER_TAGS)),
        genre=_as_text(get_tag_value(audio_file, GENRE_TAGS)),
        duration_secs=duration_secs,
    )


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human readable string."""
    if seconds <= 0:
        return "0:00"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    else:
        return f"{minutes}:{secs:02d}"
