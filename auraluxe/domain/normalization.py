from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

if TYPE_CHECKING:
    from .entities import Track


def format_duration(seconds: Optional[float]) -> Optional[str]:
    """Format a duration in seconds as ``M:SS``. Missing or zero durations stay absent."""
    if not seconds:
        return None
    try:
        seconds = float(seconds)
    except (TypeError, ValueError):
        return None
    if seconds <= 0 or math.isnan(seconds) or math.isinf(seconds):
        return None
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"


def duration_to_seconds(duration: Optional[str]) -> Optional[int]:
    """Parse an ``M:SS`` display string back into seconds."""
    if not duration:
        return None
    parts = duration.split(":")
    if len(parts) != 2:
        return None
    try:
        minutes, seconds = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if minutes < 0 or seconds < 0:
        return None
    return minutes * 60 + seconds


def build_dedup_key(track: "Track") -> Tuple[str, str]:
    # Exact case-insensitive match only; punctuation and spacing differences are kept.
    return ((track.title or "").lower(), (track.artist or "").lower())


def deduplicate_tracks(tracks: Iterable["Track"]) -> List["Track"]:
    """Drop later tracks whose (title, artist) pair was already seen. First occurrence wins."""
    seen = set()
    unique: List["Track"] = []
    for track in tracks:
        key = build_dedup_key(track)
        if key in seen:
            continue
        seen.add(key)
        unique.append(track)
    return unique


def split_track_id(track_id: str) -> Optional[Tuple[str, str]]:
    """Split ``<provider>-<native id>`` on the first dash. Returns None when malformed."""
    if not track_id or "-" not in track_id:
        return None
    provider, native_id = track_id.split("-", 1)
    if not provider or not native_id:
        return None
    return provider, native_id


def per_provider_limit(limit: int, provider_count: int) -> int:
    """Split a result limit evenly across providers using ceiling division."""
    if provider_count <= 0:
        return 0
    return -(-limit // provider_count)
