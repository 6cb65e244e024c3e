import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests
from requests.adapters import HTTPAdapter

from auraluxe.domain.entities import Track
from auraluxe.domain.errors import NotFound, RateLimited, UpstreamProviderFailure


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 5.0


def build_session(max_retries: int = 1) -> requests.Session:
    """Create a pooled HTTP session shared by a provider's requests."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=10, max_retries=max_retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class HttpCatalogProvider:
    """Shared plumbing for read-only JSON catalog APIs.

    Subclasses set ``name`` and implement ``search``, ``get_track`` and
    ``chart`` by calling ``_get_json`` and mapping items with ``_map_items``.
    """

    name = ""

    def __init__(self, timeout_sec: float = DEFAULT_TIMEOUT_SEC,
                 session: Optional[requests.Session] = None):
        self.timeout_sec = timeout_sec
        self._session = session or build_session()

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET ``url`` and decode the JSON body, mapping failures to domain errors."""
        try:
            response = self._session.get(url, params=params, timeout=self.timeout_sec)
        except requests.Timeout as e:
            raise UpstreamProviderFailure(f"{self.name} request timed out: {e}", provider=self.name)
        except requests.RequestException as e:
            raise UpstreamProviderFailure(f"{self.name} request failed: {e}", provider=self.name)

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "1")
            try:
                retry_after_ms = int(float(retry_after) * 1000)
            except ValueError:
                retry_after_ms = 1000
            raise RateLimited(retry_after_ms=retry_after_ms, provider=self.name)
        if response.status_code == 404:
            raise NotFound(f"{self.name} resource not found: {url}")
        if response.status_code != 200:
            raise UpstreamProviderFailure(
                f"{self.name} returned HTTP {response.status_code}", provider=self.name
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamProviderFailure(f"{self.name} returned invalid JSON: {e}", provider=self.name)

    def _require_list(self, payload: Any, *path: str) -> List[Any]:
        """Walk ``path`` through nested dicts and return the list found there."""
        node = payload
        for key in path:
            if node is None:
                return []
            if not isinstance(node, dict):
                raise UpstreamProviderFailure(
                    f"{self.name} payload missing '{key}'", provider=self.name
                )
            node = node.get(key)
        if node is None:
            return []
        # Some APIs collapse single-item lists into an object
        if isinstance(node, dict):
            return [node]
        if not isinstance(node, list):
            raise UpstreamProviderFailure(
                f"{self.name} payload field '{'.'.join(path)}' is not a list", provider=self.name
            )
        return node

    def _map_items(self, items: Iterable[Any], mapper: Callable[[Dict[str, Any]], Optional[Track]]) -> List[Track]:
        tracks: List[Track] = []
        for item in items:
            try:
                track = mapper(item)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed {self.name} item: {e}")
                continue
            if track is not None:
                tracks.append(track)
        return tracks
