from unittest.mock import Mock

from auraluxe.infrastructure.providers.lastfm import LASTFM_API_BASE, LastFmProvider
from auraluxe.tests.infrastructure.providers.http_fakes import make_response


MBID = "f1b2c3d4-0000-4a4a-8b8b-1234567890ab"


def image_list(prefix):
    return [{"#text": f"{prefix}-{size}.png", "size": size} for size in ("small", "medium", "large", "extralarge")]


class TestLastFmProvider:
    """Contract tests for Last.fm adapter."""

    def setup_method(self):
        self.session = Mock()
        self.provider = LastFmProvider("lastfm-test-key", session=self.session)

    def test_is_available_requires_key(self):
        assert self.provider.is_available is True
        assert LastFmProvider("  ", session=self.session).is_available is False

    def test_search_maps_trackmatches(self):
        payload = {"results": {"trackmatches": {"track": [
            {"name": "Believe", "artist": "Cher", "mbid": MBID, "image": image_list("believe")},
            {"name": "Believe", "artist": "Someone Else", "mbid": "", "image": []},
        ]}}}
        self.session.get.return_value = make_response(payload=payload)

        tracks = self.provider.search("believe", 5)

        assert [t.id for t in tracks] == [f"lastfm-{MBID}", "lastfm-Believe"]
        assert tracks[0].image == "believe-large.png"
        assert tracks[0].preview_url is None
        assert tracks[1].image is None
        params = self.session.get.call_args[1]["params"]
        assert params == {"track": "believe", "limit": 5, "method": "track.search",
                          "api_key": "lastfm-test-key", "format": "json"}
        assert self.session.get.call_args[0][0] == LASTFM_API_BASE

    def test_single_match_object_is_accepted(self):
        payload = {"results": {"trackmatches": {"track": {"name": "Only", "artist": "One"}}}}
        self.session.get.return_value = make_response(payload=payload)

        assert [t.title for t in self.provider.search("only", 5)] == ["Only"]

    def test_chart_maps_nested_artist(self):
        payload = {"tracks": {"track": [
            {"name": "Hit", "artist": {"name": "Star"}, "duration": "215", "mbid": "",
             "image": image_list("hit")},
        ]}}
        self.session.get.return_value = make_response(payload=payload)

        track = self.provider.chart(2)[0]

        assert track.artist == "Star"
        assert track.duration == "3:35"
        assert self.session.get.call_args[1]["params"]["method"] == "chart.getTopTracks"

    def test_get_track_by_mbid(self):
        payload = {"track": {"name": "Believe", "artist": {"name": "Cher"}, "mbid": MBID,
                             "duration": "239000",
                             "album": {"title": "Believe", "image": image_list("album")}}}
        self.session.get.return_value = make_response(payload=payload)

        track = self.provider.get_track(MBID)

        assert track.id == f"lastfm-{MBID}"
        assert track.album == "Believe"
        assert track.image == "album-large.png"
        assert track.duration == "3:59"

    def test_get_track_non_mbid_is_not_looked_up(self):
        assert self.provider.get_track("Believe") is None
        self.session.get.assert_not_called()

    def test_get_track_error_payload(self):
        self.session.get.return_value = make_response(payload={"error": 6, "message": "Track not found"})
        assert self.provider.get_track(MBID) is None
