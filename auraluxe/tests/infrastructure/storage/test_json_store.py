import json
import os
import tempfile
import shutil

import pytest

from auraluxe.domain.entities import PLACEHOLDER_IMAGE, Track
from auraluxe.domain.errors import DuplicateEntry, InvalidArgument, NotFound, PersistenceFailure
from auraluxe.infrastructure.storage.json_store import (
    MAX_LIKED_TRACKS, MAX_RECENTLY_PLAYED, JsonLibraryStore
)


def make_track(n, **kwargs):
    fields = {"title": f"Song {n}", "artist": "Artist", "source": "deezer"}
    fields.update(kwargs)
    return Track(id=f"deezer-{n}", **fields)


class TestJsonLibraryStore:
    """Tests for the JSON-backed library store."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = JsonLibraryStore(self.temp_dir)

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    # user facts

    def test_toggle_like_adds_then_removes(self):
        liked, entries = self.store.toggle_like("u1", make_track(1))
        assert liked is True
        assert [e.track.id for e in entries] == ["deezer-1"]
        assert entries[0].track.image == PLACEHOLDER_IMAGE

        liked, entries = self.store.toggle_like("u1", make_track(1))
        assert liked is False
        assert entries == []

    def test_likes_are_newest_first_and_capped(self, monkeypatch):
        monkeypatch.setattr("auraluxe.infrastructure.storage.json_store.MAX_LIKED_TRACKS", 3)
        for n in range(1, 6):
            self.store.toggle_like("u1", make_track(n))

        ids = [e.track.id for e in self.store.liked_tracks("u1")]
        assert ids == ["deezer-5", "deezer-4", "deezer-3"]
        assert MAX_LIKED_TRACKS == 1000

    def test_recently_played_moves_repeat_to_front(self):
        for n in (1, 2, 3):
            self.store.record_recently_played("u1", make_track(n))
        history = self.store.record_recently_played("u1", make_track(1))

        assert [e.track.id for e in history] == ["deezer-1", "deezer-3", "deezer-2"]

    def test_recently_played_is_capped(self):
        for n in range(MAX_RECENTLY_PLAYED + 5):
            self.store.record_recently_played("u1", make_track(n))

        history = self.store.recently_played("u1")
        assert len(history) == MAX_RECENTLY_PLAYED
        assert history[0].track.id == f"deezer-{MAX_RECENTLY_PLAYED + 4}"

    def test_users_are_isolated(self):
        self.store.toggle_like("u1", make_track(1))
        assert self.store.liked_tracks("u2") == []

    def test_empty_user_id_rejected(self):
        with pytest.raises(InvalidArgument):
            self.store.liked_tracks("")

    def test_preferences_default_and_update(self):
        assert self.store.get_preferences("u1").volume == 0.7

        prefs = self.store.update_preferences("u1", {"volume": 0.25, "theme": "light",
                                                     "notifications": {"push": False}})

        assert prefs.volume == 0.25
        assert prefs.theme == "light"
        assert prefs.notifications.push is False
        assert prefs.notifications.email is True
        assert self.store.get_preferences("u1") == prefs

    @pytest.mark.parametrize("changes", [
        {"volume": 1.5},
        {"volume": True},
        {"theme": "blue"},
        {"autoplay": "yes"},
        {"notifications": {"sms": True}},
        {"unknown": 1},
    ])
    def test_invalid_preferences_rejected(self, changes):
        with pytest.raises(InvalidArgument):
            self.store.update_preferences("u1", changes)
        assert self.store.get_preferences("u1").volume == 0.7

    def test_state_survives_reopen(self):
        self.store.toggle_like("u1", make_track(1))
        reopened = JsonLibraryStore(self.temp_dir)
        assert [e.track.id for e in reopened.liked_tracks("u1")] == ["deezer-1"]

    def test_corrupt_document_raises_persistence_failure(self):
        with open(self.store.path, "w") as f:
            f.write("{not json")
        with pytest.raises(PersistenceFailure):
            self.store.liked_tracks("u1")

    # playlists

    def test_create_and_list_playlists(self):
        playlist = self.store.create_playlist("u1", "  Road Trip  ", description="Summer", is_public=True)

        assert playlist.name == "Road Trip"
        assert playlist.is_public is True
        assert [p.id for p in self.store.list_playlists("u1")] == [playlist.id]
        assert self.store.list_playlists("u2") == []

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 101])
    def test_invalid_playlist_name(self, name):
        with pytest.raises(InvalidArgument):
            self.store.create_playlist("u1", name)

    @pytest.mark.parametrize("is_public", ["false", 1, None])
    def test_create_playlist_rejects_non_boolean_visibility(self, is_public):
        with pytest.raises(InvalidArgument):
            self.store.create_playlist("u1", "Mix", is_public=is_public)
        assert self.store.list_playlists("u1") == []

    def test_description_too_long(self):
        with pytest.raises(InvalidArgument):
            self.store.create_playlist("u1", "Mix", description="x" * 501)

    def test_get_playlist_visibility(self):
        private = self.store.create_playlist("u1", "Private")
        public = self.store.create_playlist("u1", "Public", is_public=True)

        assert self.store.get_playlist("u1", private.id).name == "Private"
        assert self.store.get_playlist("u2", public.id).name == "Public"
        with pytest.raises(NotFound):
            self.store.get_playlist("u2", private.id)
        with pytest.raises(NotFound):
            self.store.get_playlist("u1", "missing")

    def test_update_playlist(self):
        playlist = self.store.create_playlist("u1", "Mix")

        updated = self.store.update_playlist("u1", playlist.id, {"name": "New", "isPublic": True})

        assert updated.name == "New"
        assert updated.is_public is True
        with pytest.raises(InvalidArgument):
            self.store.update_playlist("u1", playlist.id, {"isPublic": "yes"})

    def test_only_owner_can_modify(self):
        playlist = self.store.create_playlist("u1", "Mix", is_public=True)

        with pytest.raises(NotFound):
            self.store.update_playlist("u2", playlist.id, {"name": "Hijacked"})
        with pytest.raises(NotFound):
            self.store.delete_playlist("u2", playlist.id)
        with pytest.raises(NotFound):
            self.store.add_playlist_track("u2", playlist.id, make_track(1))

    def test_delete_playlist(self):
        playlist = self.store.create_playlist("u1", "Mix")
        self.store.delete_playlist("u1", playlist.id)
        assert self.store.list_playlists("u1") == []

    def test_add_track_fills_defaults_and_rejects_duplicates(self):
        playlist = self.store.create_playlist("u1", "Mix")

        updated = self.store.add_playlist_track("u1", playlist.id, make_track(1))
        entry = updated.tracks[0]

        assert entry.position == 0
        assert entry.track.album == ""
        assert entry.track.image == PLACEHOLDER_IMAGE
        assert entry.track.duration == "3:00"
        assert entry.track.preview_url == ""
        assert updated.total_duration == 180

        with pytest.raises(DuplicateEntry, match="already in playlist"):
            self.store.add_playlist_track("u1", playlist.id, make_track(1))

    def test_add_track_requires_source(self):
        playlist = self.store.create_playlist("u1", "Mix")
        with pytest.raises(InvalidArgument):
            self.store.add_playlist_track("u1", playlist.id, make_track(1, source=None))

    def test_remove_track_renumbers_positions(self):
        playlist = self.store.create_playlist("u1", "Mix")
        for n in (1, 2, 3):
            self.store.add_playlist_track("u1", playlist.id, make_track(n))

        updated = self.store.remove_playlist_track("u1", playlist.id, "deezer-1")

        assert [(e.track.id, e.position) for e in updated.tracks] == [("deezer-2", 0), ("deezer-3", 1)]
        with pytest.raises(NotFound):
            self.store.remove_playlist_track("u1", playlist.id, "deezer-1")

    def test_reorder_keeps_only_listed_tracks(self):
        playlist = self.store.create_playlist("u1", "Mix")
        for n in (1, 2, 3):
            self.store.add_playlist_track("u1", playlist.id, make_track(n))

        updated = self.store.reorder_playlist("u1", playlist.id, ["deezer-3", "unknown", "deezer-1", "deezer-3"])

        assert [(e.track.id, e.position) for e in updated.tracks] == [("deezer-3", 0), ("deezer-1", 1)]
        with pytest.raises(InvalidArgument):
            self.store.reorder_playlist("u1", playlist.id, "deezer-1")

    def test_document_is_plain_json(self):
        self.store.create_playlist("u1", "Mix")
        with open(os.path.join(self.temp_dir, "library.json")) as f:
            document = json.load(f)
        assert set(document) == {"users", "playlists"}
        assert not os.path.exists(self.store.path + ".tmp")
