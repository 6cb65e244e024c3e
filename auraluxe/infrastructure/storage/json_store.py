import json
import logging
from dataclasses import replace
import os
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from auraluxe.domain.entities import (
    HistoryEntry, Playlist, PlaylistEntry, Preferences, Track, UserRecord
)
from auraluxe.domain.errors import DuplicateEntry, InvalidArgument, NotFound, PersistenceFailure


logger = logging.getLogger(__name__)

MAX_LIKED_TRACKS = 1000
MAX_RECENTLY_PLAYED = 50
MAX_PLAYLIST_NAME = 100
MAX_PLAYLIST_DESCRIPTION = 500
THEMES = ("dark", "light")


def _validate_preferences(current: Preferences, changes: Dict[str, Any]) -> Preferences:
    """Apply ``changes`` to a copy of ``current``, rejecting unknown keys and out-of-range values."""
    if not isinstance(changes, dict):
        raise InvalidArgument("Preferences must be an object")
    data = current.to_json()
    for key, value in changes.items():
        if key == "theme":
            if value not in THEMES:
                raise InvalidArgument(f"theme must be one of {', '.join(THEMES)}")
        elif key == "volume":
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 1:
                raise InvalidArgument("volume must be a number between 0 and 1")
            value = float(value)
        elif key == "autoplay":
            if not isinstance(value, bool):
                raise InvalidArgument("autoplay must be a boolean")
        elif key == "notifications":
            if not isinstance(value, dict):
                raise InvalidArgument("notifications must be an object")
            merged = dict(data["notifications"])
            for channel, enabled in value.items():
                if channel not in ("email", "push") or not isinstance(enabled, bool):
                    raise InvalidArgument(f"Invalid notification setting '{channel}'")
                merged[channel] = enabled
            value = merged
        else:
            raise InvalidArgument(f"Unknown preference '{key}'")
        data[key] = value
    return Preferences.from_json(data)


class JsonLibraryStore:
    """Library store persisted as a single JSON document on disk.

    Every operation loads, mutates and rewrites the document under a lock;
    writes go through a temporary file so a crash never leaves a truncated
    document behind.
    """

    def __init__(self, data_dir: str = "data", filename: str = "library.json"):
        """Initialize the store.

        Args:
            data_dir: Directory holding the library document
            filename: Name of the JSON document
        """
        self.data_dir = str(data_dir)
        os.makedirs(self.data_dir, exist_ok=True)
        self.path = os.path.join(self.data_dir, filename)
        self._lock = threading.RLock()

    # -- document I/O --------------------------------------------------

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {"users": {}, "playlists": {}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise PersistenceFailure(f"Failed to load library from {self.path}: {e}")
        document.setdefault("users", {})
        document.setdefault("playlists", {})
        return document

    def _save(self, document: Dict[str, Any]) -> None:
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except (IOError, OSError, TypeError) as e:
            raise PersistenceFailure(f"Failed to save library to {self.path}: {e}")
        logger.debug(f"Saved library document to {self.path}")

    def _user(self, document: Dict[str, Any], user_id: str) -> UserRecord:
        if not user_id:
            raise InvalidArgument("user id is required")
        data = document["users"].get(user_id)
        if data is None:
            return UserRecord(user_id=user_id)
        return UserRecord.from_json(data)

    def _put_user(self, document: Dict[str, Any], user: UserRecord) -> None:
        document["users"][user.user_id] = user.to_json()

    def _owned_playlist(self, document: Dict[str, Any], user_id: str, playlist_id: str) -> Playlist:
        data = document["playlists"].get(playlist_id)
        if data is None or data.get("userId") != user_id:
            raise NotFound("Playlist not found")
        return Playlist.from_json(data)

    def _put_playlist(self, document: Dict[str, Any], playlist: Playlist) -> None:
        playlist.updated_at = datetime.utcnow()
        document["playlists"][playlist.id] = playlist.to_json()

    # -- user facts ----------------------------------------------------

    def toggle_like(self, user_id: str, track: Track) -> Tuple[bool, List[HistoryEntry]]:
        """Like ``track``, or unlike it when it is already liked."""
        with self._lock:
            document = self._load()
            user = self._user(document, user_id)
            if any(e.track.id == track.id for e in user.liked_tracks):
                user.liked_tracks = [e for e in user.liked_tracks if e.track.id != track.id]
                liked = False
            else:
                user.liked_tracks.insert(0, HistoryEntry(track=track.with_display_defaults()))
                user.liked_tracks = user.liked_tracks[:MAX_LIKED_TRACKS]
                liked = True
            self._put_user(document, user)
            self._save(document)
            return liked, list(user.liked_tracks)

    def record_recently_played(self, user_id: str, track: Track) -> List[HistoryEntry]:
        """Move ``track`` to the front of the user's history."""
        with self._lock:
            document = self._load()
            user = self._user(document, user_id)
            history = [e for e in user.recently_played if e.track.id != track.id]
            history.insert(0, HistoryEntry(track=track.with_display_defaults()))
            user.recently_played = history[:MAX_RECENTLY_PLAYED]
            self._put_user(document, user)
            self._save(document)
            return list(user.recently_played)

    def liked_tracks(self, user_id: str) -> List[HistoryEntry]:
        with self._lock:
            return list(self._user(self._load(), user_id).liked_tracks)

    def recently_played(self, user_id: str) -> List[HistoryEntry]:
        with self._lock:
            return list(self._user(self._load(), user_id).recently_played)

    def get_preferences(self, user_id: str) -> Preferences:
        with self._lock:
            return self._user(self._load(), user_id).preferences

    def update_preferences(self, user_id: str, changes: Dict[str, Any]) -> Preferences:
        with self._lock:
            document = self._load()
            user = self._user(document, user_id)
            user.preferences = _validate_preferences(user.preferences, changes)
            self._put_user(document, user)
            self._save(document)
            return user.preferences

    # -- playlists -----------------------------------------------------

    def list_playlists(self, user_id: str) -> List[Playlist]:
        """Return the user's playlists, most recently updated first."""
        with self._lock:
            document = self._load()
            playlists = [Playlist.from_json(p) for p in document["playlists"].values()
                         if p.get("userId") == user_id]
        return sorted(playlists, key=lambda p: p.updated_at, reverse=True)

    def get_playlist(self, user_id: str, playlist_id: str) -> Playlist:
        """Return a playlist the user owns, or any public playlist."""
        with self._lock:
            data = self._load()["playlists"].get(playlist_id)
        if data is None or (data.get("userId") != user_id and not data.get("isPublic")):
            raise NotFound("Playlist not found")
        return Playlist.from_json(data)

    @staticmethod
    def _clean_name(name: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgument("Playlist name is required")
        name = name.strip()
        if len(name) > MAX_PLAYLIST_NAME:
            raise InvalidArgument(f"Playlist name cannot exceed {MAX_PLAYLIST_NAME} characters")
        return name

    @staticmethod
    def _clean_description(description: Any) -> str:
        if description is None:
            return ""
        if not isinstance(description, str):
            raise InvalidArgument("Playlist description must be a string")
        description = description.strip()
        if len(description) > MAX_PLAYLIST_DESCRIPTION:
            raise InvalidArgument(
                f"Playlist description cannot exceed {MAX_PLAYLIST_DESCRIPTION} characters"
            )
        return description

    def create_playlist(self, user_id: str, name: str, description: str = "",
                        is_public: bool = False) -> Playlist:
        if not user_id:
            raise InvalidArgument("user id is required")
        if not isinstance(is_public, bool):
            raise InvalidArgument("isPublic must be a boolean")
        playlist = Playlist(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=self._clean_name(name),
            description=self._clean_description(description),
            is_public=is_public,
        )
        with self._lock:
            document = self._load()
            self._put_playlist(document, playlist)
            self._save(document)
        logger.info(f"Created playlist {playlist.id} for user {user_id}")
        return playlist

    def update_playlist(self, user_id: str, playlist_id: str, changes: Dict[str, Any]) -> Playlist:
        with self._lock:
            document = self._load()
            playlist = self._owned_playlist(document, user_id, playlist_id)
            if "name" in changes:
                playlist.name = self._clean_name(changes["name"])
            if "description" in changes:
                playlist.description = self._clean_description(changes["description"])
            if "isPublic" in changes:
                if not isinstance(changes["isPublic"], bool):
                    raise InvalidArgument("isPublic must be a boolean")
                playlist.is_public = changes["isPublic"]
            self._put_playlist(document, playlist)
            self._save(document)
            return playlist

    def delete_playlist(self, user_id: str, playlist_id: str) -> None:
        with self._lock:
            document = self._load()
            self._owned_playlist(document, user_id, playlist_id)
            del document["playlists"][playlist_id]
            self._save(document)
        logger.info(f"Deleted playlist {playlist_id}")

    def add_playlist_track(self, user_id: str, playlist_id: str, track: Track) -> Playlist:
        """Append ``track``; a track already in the playlist is rejected."""
        if not track.source:
            raise InvalidArgument("Missing required track information")
        with self._lock:
            document = self._load()
            playlist = self._owned_playlist(document, user_id, playlist_id)
            if playlist.find_entry(track.id) is not None:
                raise DuplicateEntry("Track already in playlist")
            stored = track.with_display_defaults()
            stored = replace(stored, album=stored.album or "")
            playlist.tracks.append(PlaylistEntry(track=stored, position=len(playlist.tracks)))
            self._put_playlist(document, playlist)
            self._save(document)
            return playlist

    def remove_playlist_track(self, user_id: str, playlist_id: str, track_id: str) -> Playlist:
        with self._lock:
            document = self._load()
            playlist = self._owned_playlist(document, user_id, playlist_id)
            if playlist.find_entry(track_id) is None:
                raise NotFound("Track not found in playlist")
            remaining = [e for e in playlist.tracks if e.track.id != track_id]
            playlist.tracks = [
                PlaylistEntry(track=e.track, position=i, added_at=e.added_at)
                for i, e in enumerate(remaining)
            ]
            self._put_playlist(document, playlist)
            self._save(document)
            return playlist

    def reorder_playlist(self, user_id: str, playlist_id: str, track_ids: List[str]) -> Playlist:
        """Order entries as listed in ``track_ids``. Entries not listed are dropped."""
        if not isinstance(track_ids, list):
            raise InvalidArgument("trackIds must be an array")
        with self._lock:
            document = self._load()
            playlist = self._owned_playlist(document, user_id, playlist_id)
            reordered: List[PlaylistEntry] = []
            for track_id in track_ids:
                entry: Optional[PlaylistEntry] = playlist.find_entry(track_id)
                if entry is not None and all(e.track.id != track_id for e in reordered):
                    reordered.append(PlaylistEntry(track=entry.track, position=len(reordered),
                                                   added_at=entry.added_at))
            playlist.tracks = reordered
            self._put_playlist(document, playlist)
            self._save(document)
            return playlist
