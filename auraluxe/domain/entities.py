from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidArgument
from .normalization import duration_to_seconds


PLACEHOLDER_IMAGE = "/placeholder.svg?height=300&width=300"
DEFAULT_DURATION = "3:00"
DEFAULT_TRACK_SECONDS = 180


def _parse_datetime(value: Optional[str]) -> datetime:
    if not value:
        return datetime.utcnow()
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class Track:
    """Domain entity representing a music track independent of providers.

    The id is provider-prefixed (``deezer-123``) so ids from different
    catalogs never collide.
    """

    id: str
    title: str
    artist: str
    album: Optional[str] = None
    image: Optional[str] = None
    duration: Optional[str] = None
    preview_url: Optional[str] = None
    source: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        """Serialize track to JSON."""
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "image": self.image,
            "duration": self.duration,
            "preview_url": self.preview_url,
            "source": self.source,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Track":
        """Deserialize and validate a track record.

        Accepts ``trackId`` as an alias for ``id`` since stored facts and
        client payloads use that key.
        """
        if not isinstance(data, dict):
            raise InvalidArgument("Track must be an object")
        track_id = data.get("id") or data.get("trackId")
        title = data.get("title")
        artist = data.get("artist")
        if not track_id or not title or not artist:
            raise InvalidArgument("Missing required track information")
        for key in ("album", "image", "duration", "preview_url", "source"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise InvalidArgument(f"Track field '{key}' must be a string")
        return cls(
            id=str(track_id),
            title=str(title),
            artist=str(artist),
            album=data.get("album"),
            image=data.get("image"),
            duration=data.get("duration"),
            preview_url=data.get("preview_url"),
            source=data.get("source"),
        )

    def with_display_defaults(self) -> "Track":
        """Return a copy with placeholder imagery and duration filled in."""
        return replace(
            self,
            image=self.image or PLACEHOLDER_IMAGE,
            duration=self.duration or DEFAULT_DURATION,
            preview_url=self.preview_url or "",
        )


class RepeatMode(str, Enum):
    """Repeat behaviour of the play queue."""

    OFF = "off"
    ONE = "one"
    ALL = "all"

    def next(self) -> "RepeatMode":
        order = [RepeatMode.OFF, RepeatMode.ONE, RepeatMode.ALL]
        return order[(order.index(self) + 1) % len(order)]


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class SearchResult:
    """Merged, deduplicated result of a multi-provider search."""

    tracks: List[Track]
    total: int
    query: str

    def to_json(self) -> Dict[str, Any]:
        return {
            "tracks": [t.to_json() for t in self.tracks],
            "total": self.total,
            "query": self.query,
        }


@dataclass
class NotificationSettings:
    email: bool = True
    push: bool = True


@dataclass
class Preferences:
    """Per-user playback and UI preferences."""

    theme: str = "dark"
    volume: float = 0.7
    autoplay: bool = True
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    def to_json(self) -> Dict[str, Any]:
        return {
            "theme": self.theme,
            "volume": self.volume,
            "autoplay": self.autoplay,
            "notifications": {
                "email": self.notifications.email,
                "push": self.notifications.push,
            },
        }

    @classmethod
    def from_json(cls, data: Optional[Dict[str, Any]]) -> "Preferences":
        data = data or {}
        notifications = data.get("notifications") or {}
        return cls(
            theme=data.get("theme", "dark"),
            volume=float(data.get("volume", 0.7)),
            autoplay=bool(data.get("autoplay", True)),
            notifications=NotificationSettings(
                email=bool(notifications.get("email", True)),
                push=bool(notifications.get("push", True)),
            ),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """A timestamped fact about a track in a user's history (liked or played)."""

    track: Track
    at: datetime = field(default_factory=datetime.utcnow)

    def to_json(self) -> Dict[str, Any]:
        return {
            "trackId": self.track.id,
            "title": self.track.title,
            "artist": self.track.artist,
            "image": self.track.image,
            "preview_url": self.track.preview_url,
            "at": self.at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(track=Track.from_json(data), at=_parse_datetime(data.get("at")))


@dataclass
class UserRecord:
    """Stored document for a single user."""

    user_id: str
    preferences: Preferences = field(default_factory=Preferences)
    liked_tracks: List[HistoryEntry] = field(default_factory=list)
    recently_played: List[HistoryEntry] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "preferences": self.preferences.to_json(),
            "likedTracks": [e.to_json() for e in self.liked_tracks],
            "recentlyPlayed": [e.to_json() for e in self.recently_played],
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "UserRecord":
        return cls(
            user_id=data["userId"],
            preferences=Preferences.from_json(data.get("preferences")),
            liked_tracks=[HistoryEntry.from_json(e) for e in data.get("likedTracks", [])],
            recently_played=[HistoryEntry.from_json(e) for e in data.get("recentlyPlayed", [])],
        )


@dataclass(frozen=True)
class PlaylistEntry:
    """A track stored in a playlist at a given position."""

    track: Track
    position: int
    added_at: datetime = field(default_factory=datetime.utcnow)

    def to_json(self) -> Dict[str, Any]:
        data = self.track.to_json()
        data.pop("id")
        data["trackId"] = self.track.id
        data["position"] = self.position
        data["addedAt"] = self.added_at.isoformat()
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PlaylistEntry":
        return cls(
            track=Track.from_json(data),
            position=int(data.get("position", 0)),
            added_at=_parse_datetime(data.get("addedAt")),
        )


@dataclass
class Playlist:
    """User-authored playlist."""

    id: str
    user_id: str
    name: str
    description: str = ""
    is_public: bool = False
    tracks: List[PlaylistEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    @property
    def total_duration(self) -> int:
        """Total length in seconds; entries without a usable duration count as three minutes."""
        total = 0
        for entry in self.tracks:
            seconds = duration_to_seconds(entry.track.duration)
            total += seconds if seconds is not None else DEFAULT_TRACK_SECONDS
        return total

    def find_entry(self, track_id: str) -> Optional[PlaylistEntry]:
        return next((e for e in self.tracks if e.track.id == track_id), None)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "isPublic": self.is_public,
            "tracks": [e.to_json() for e in self.tracks],
            "trackCount": self.track_count,
            "totalDuration": self.total_duration,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Playlist":
        return cls(
            id=data["id"],
            user_id=data["userId"],
            name=data["name"],
            description=data.get("description", ""),
            is_public=bool(data.get("isPublic", False)),
            tracks=[PlaylistEntry.from_json(e) for e in data.get("tracks", [])],
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )
