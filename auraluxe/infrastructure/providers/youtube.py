from typing import Any, Dict, List, Optional

from auraluxe.domain.entities import Track
from auraluxe.infrastructure.providers.base import HttpCatalogProvider


YOUTUBE_BASE_URL = "https://www.googleapis.com/youtube/v3"
YOUTUBE_MUSIC_CATEGORY = "10"


def _watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class YouTubeProvider(HttpCatalogProvider):
    """YouTube Data API v3 adapter. Requires YOUTUBE_API_KEY.

    Videos carry no artist field; the channel title stands in for it.
    """

    name = "youtube"

    def __init__(self, api_key: str, base_url: str = YOUTUBE_BASE_URL, **kwargs):
        super().__init__(**kwargs)
        self._api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")

    @property
    def is_available(self) -> bool:
        return bool(self._api_key)

    def _to_domain(self, video_id: str, snippet: Dict[str, Any]) -> Optional[Track]:
        if not video_id or not snippet.get("title"):
            return None
        thumbnails = snippet.get("thumbnails") or {}
        return Track(
            id=f"youtube-{video_id}",
            title=snippet["title"],
            artist=snippet["channelTitle"],
            album=None,
            image=(thumbnails.get("medium") or {}).get("url"),
            duration=None,
            preview_url=_watch_url(video_id),
            source=self.name,
        )

    def _search_item(self, item: Dict[str, Any]) -> Optional[Track]:
        return self._to_domain(item["id"]["videoId"], item["snippet"])

    def _video_item(self, item: Dict[str, Any]) -> Optional[Track]:
        return self._to_domain(item["id"], item["snippet"])

    def search(self, query: str, limit: int) -> List[Track]:
        params = {
            "q": query,
            "maxResults": limit,
            "key": self._api_key,
            "part": "snippet",
            "type": "video",
        }
        payload = self._get_json(f"{self.base_url}/search", params=params)
        return self._map_items(self._require_list(payload, "items"), self._search_item)

    def get_track(self, native_id: str) -> Optional[Track]:
        params = {"id": native_id, "key": self._api_key, "part": "snippet"}
        payload = self._get_json(f"{self.base_url}/videos", params=params)
        tracks = self._map_items(self._require_list(payload, "items"), self._video_item)
        return tracks[0] if tracks else None

    def chart(self, limit: int) -> List[Track]:
        params = {
            "chart": "mostPopular",
            "videoCategoryId": YOUTUBE_MUSIC_CATEGORY,
            "maxResults": limit,
            "key": self._api_key,
            "part": "snippet",
        }
        payload = self._get_json(f"{self.base_url}/videos", params=params)
        return self._map_items(self._require_list(payload, "items"), self._video_item)
