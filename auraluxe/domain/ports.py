from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from .entities import HistoryEntry, Playlist, Preferences, Track


class CatalogProvider(Protocol):
    """Port defining the read-only contract for music catalog providers.

    Implementations map provider-specific payloads into domain Tracks whose ids
    are prefixed with ``name``.
    """

    name: str

    def search(self, query: str, limit: int) -> List[Track]:
        """Return up to ``limit`` tracks matching a free-text query."""

    def get_track(self, native_id: str) -> Optional[Track]:
        """Return a single track by the provider's own id, or None if unknown."""

    def chart(self, limit: int) -> List[Track]:
        """Return up to ``limit`` currently popular tracks."""


class MediaHandle(Protocol):
    """The single audio element the playback controller drives.

    ``play`` may raise PlaybackInterrupted when a newer load or pause cancels it,
    or any other exception when the source cannot be played.
    """

    src: Optional[str]
    paused: bool
    current_time: float
    volume: float

    def load(self, src: str) -> None:
        ...

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...


class LibraryStore(Protocol):
    """Persistence collaborator for per-user facts and playlists."""

    def toggle_like(self, user_id: str, track: Track) -> Tuple[bool, List[HistoryEntry]]:
        ...

    def record_recently_played(self, user_id: str, track: Track) -> List[HistoryEntry]:
        ...

    def liked_tracks(self, user_id: str) -> List[HistoryEntry]:
        ...

    def recently_played(self, user_id: str) -> List[HistoryEntry]:
        ...

    def get_preferences(self, user_id: str) -> Preferences:
        ...

    def update_preferences(self, user_id: str, changes: dict) -> Preferences:
        ...

    def list_playlists(self, user_id: str) -> List[Playlist]:
        ...

    def get_playlist(self, user_id: str, playlist_id: str) -> Playlist:
        ...

    def create_playlist(self, user_id: str, name: str, description: str = "",
                        is_public: bool = False) -> Playlist:
        ...

    def update_playlist(self, user_id: str, playlist_id: str, changes: dict) -> Playlist:
        ...

    def delete_playlist(self, user_id: str, playlist_id: str) -> None:
        ...

    def add_playlist_track(self, user_id: str, playlist_id: str, track: Track) -> Playlist:
        ...

    def remove_playlist_track(self, user_id: str, playlist_id: str, track_id: str) -> Playlist:
        ...

    def reorder_playlist(self, user_id: str, playlist_id: str, track_ids: List[str]) -> Playlist:
        ...
