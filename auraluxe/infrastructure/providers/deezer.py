from typing import Any, Dict, List, Optional

from auraluxe.domain.entities import Track
from auraluxe.domain.errors import NotFound
from auraluxe.domain.normalization import format_duration
from auraluxe.infrastructure.providers.base import HttpCatalogProvider


DEEZER_BASE_URL = "https://api.deezer.com"


class DeezerProvider(HttpCatalogProvider):
    """Deezer public API adapter. No authentication required; previews are 30s MP3s."""

    name = "deezer"

    def __init__(self, base_url: str = DEEZER_BASE_URL, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def _to_domain(self, item: Dict[str, Any]) -> Optional[Track]:
        if not item.get("id") or not item.get("title"):
            return None
        album = item.get("album") or {}
        return Track(
            id=f"deezer-{item['id']}",
            title=item["title"],
            artist=item["artist"]["name"],
            album=album.get("title"),
            image=album.get("cover_medium"),
            duration=format_duration(item.get("duration")),
            preview_url=item.get("preview") or None,
            source=self.name,
        )

    def search(self, query: str, limit: int) -> List[Track]:
        payload = self._get_json(f"{self.base_url}/search", params={"q": query, "limit": limit})
        return self._map_items(self._require_list(payload, "data"), self._to_domain)

    def get_track(self, native_id: str) -> Optional[Track]:
        try:
            payload = self._get_json(f"{self.base_url}/track/{native_id}")
        except NotFound:
            return None
        # Deezer reports unknown ids as 200 with an error object
        if not isinstance(payload, dict) or "error" in payload:
            return None
        tracks = self._map_items([payload], self._to_domain)
        return tracks[0] if tracks else None

    def chart(self, limit: int) -> List[Track]:
        payload = self._get_json(f"{self.base_url}/chart/0/tracks", params={"limit": limit})
        return self._map_items(self._require_list(payload, "data"), self._to_domain)
