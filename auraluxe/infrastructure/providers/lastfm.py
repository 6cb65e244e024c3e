import re
from typing import Any, Dict, List, Optional

from auraluxe.domain.entities import Track
from auraluxe.domain.normalization import format_duration
from auraluxe.infrastructure.providers.base import HttpCatalogProvider


LASTFM_API_BASE = "https://ws.audioscrobbler.com/2.0/"

_MBID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def _artist_name(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("name") or ""
    return value or ""


def _image_url(images: Any) -> Optional[str]:
    # Last.fm lists small, medium, large, extralarge; index 2 is "large"
    if not isinstance(images, list) or len(images) < 3:
        return None
    return images[2].get("#text") or None


class LastFmProvider(HttpCatalogProvider):
    """Last.fm adapter. Requires LASTFM_API_KEY; Last.fm has no playable previews."""

    name = "lastfm"

    def __init__(self, api_key: str, base_url: str = LASTFM_API_BASE, **kwargs):
        super().__init__(**kwargs)
        self._api_key = (api_key or "").strip()
        self.base_url = base_url

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _call(self, method: str, **params) -> Any:
        params.update({"method": method, "api_key": self._api_key, "format": "json"})
        return self._get_json(self.base_url, params=params)

    def _to_domain(self, item: Dict[str, Any], duration_in_ms: bool = False) -> Optional[Track]:
        name = item.get("name")
        artist = _artist_name(item.get("artist"))
        if not name or not artist:
            return None
        native_id = item.get("mbid") or name
        album = item.get("album")
        image = _image_url(item.get("image"))
        if image is None and isinstance(album, dict):
            image = _image_url(album.get("image"))
        duration = item.get("duration")
        seconds = int(duration) / 1000 if duration_in_ms and duration else duration
        return Track(
            id=f"lastfm-{native_id}",
            title=name,
            artist=artist,
            album=album.get("title") if isinstance(album, dict) else None,
            image=image,
            duration=format_duration(seconds),
            preview_url=None,
            source=self.name,
        )

    def search(self, query: str, limit: int) -> List[Track]:
        payload = self._call("track.search", track=query, limit=limit)
        items = self._require_list(payload, "results", "trackmatches", "track")
        return self._map_items(items, self._to_domain)

    def get_track(self, native_id: str) -> Optional[Track]:
        # Only MusicBrainz ids can be looked up without the artist name
        if not _MBID_PATTERN.match(native_id):
            return None
        payload = self._call("track.getInfo", mbid=native_id)
        if not isinstance(payload, dict) or "error" in payload:
            return None
        # track.getInfo reports milliseconds; chart entries report seconds
        tracks = self._map_items([payload.get("track") or {}],
                                 lambda item: self._to_domain(item, duration_in_ms=True))
        return tracks[0] if tracks else None

    def chart(self, limit: int) -> List[Track]:
        payload = self._call("chart.getTopTracks", limit=limit)
        return self._map_items(self._require_list(payload, "tracks", "track"), self._to_domain)
