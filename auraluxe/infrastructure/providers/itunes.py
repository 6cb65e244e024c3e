from typing import Any, Dict, List, Optional

from auraluxe.domain.entities import Track
from auraluxe.domain.errors import NotFound
from auraluxe.domain.normalization import format_duration
from auraluxe.infrastructure.providers.base import HttpCatalogProvider


ITUNES_SEARCH_URL = "https://itunes.apple.com/search"
ITUNES_LOOKUP_URL = "https://itunes.apple.com/lookup"
DEFAULT_CHART_TERM = "top songs"


class ITunesProvider(HttpCatalogProvider):
    """iTunes Search API adapter.

    iTunes has no chart endpoint in the search API, so charts are a search for
    a configurable term.
    """

    name = "itunes"

    def __init__(self, chart_term: str = DEFAULT_CHART_TERM, **kwargs):
        super().__init__(**kwargs)
        self.chart_term = chart_term

    def _to_domain(self, item: Dict[str, Any]) -> Optional[Track]:
        if not item.get("trackId") or not item.get("trackName"):
            return None
        artwork = item.get("artworkUrl100")
        millis = item.get("trackTimeMillis")
        return Track(
            id=f"itunes-{item['trackId']}",
            title=item["trackName"],
            artist=item["artistName"],
            album=item.get("collectionName"),
            image=artwork.replace("100x100", "300x300") if artwork else None,
            duration=format_duration(millis / 1000) if millis else None,
            preview_url=item.get("previewUrl"),
            source=self.name,
        )

    def _search_songs(self, term: str, limit: int) -> List[Track]:
        params = {"term": term, "media": "music", "entity": "song", "limit": limit}
        payload = self._get_json(ITUNES_SEARCH_URL, params=params)
        return self._map_items(self._require_list(payload, "results"), self._to_domain)

    def search(self, query: str, limit: int) -> List[Track]:
        return self._search_songs(query, limit)

    def get_track(self, native_id: str) -> Optional[Track]:
        try:
            payload = self._get_json(ITUNES_LOOKUP_URL, params={"id": native_id, "entity": "song"})
        except NotFound:
            return None
        items = [r for r in self._require_list(payload, "results")
                 if isinstance(r, dict) and r.get("wrapperType", "track") == "track"]
        tracks = self._map_items(items, self._to_domain)
        return tracks[0] if tracks else None

    def chart(self, limit: int) -> List[Track]:
        return self._search_songs(self.chart_term, limit)
