import contextvars
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from auraluxe.crosscutting.logging import (
    CorrelationContext, log_provider_failure, log_search_complete, log_search_start
)
from auraluxe.crosscutting.metrics import (
    MetricsCollector, OUTCOME_FAILURE, OUTCOME_SUCCESS, OUTCOME_TIMEOUT
)
from auraluxe.domain.entities import SearchResult, Track
from auraluxe.domain.errors import InvalidArgument, NotFound, UpstreamProviderFailure
from auraluxe.domain.normalization import deduplicate_tracks, per_provider_limit, split_track_id
from auraluxe.domain.ports import CatalogProvider


logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
DEFAULT_TIMEOUT_SEC = 5.0


@dataclass
class ProviderOutcome:
    """What one provider contributed to a fan-out."""

    provider: str
    tracks: List[Track] = field(default_factory=list)
    error: Optional[Exception] = None
    timed_out: bool = False
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


class SearchAggregator:
    """Fans a request out to every active catalog provider and merges the answers.

    Providers are queried concurrently and the aggregator waits for all of them
    to settle (or for the timeout) before merging. A provider that fails,
    stalls or returns garbage contributes nothing; it never fails the request.
    Results are merged in provider order, so earlier providers win dedup ties.
    """

    def __init__(self,
                 providers: Sequence[CatalogProvider],
                 timeout_sec: float = DEFAULT_TIMEOUT_SEC,
                 metrics: Optional[MetricsCollector] = None):
        self.providers = list(providers)
        self.timeout_sec = timeout_sec
        self.metrics = metrics or MetricsCollector()
        self._by_name: Dict[str, CatalogProvider] = {p.name: p for p in self.providers}

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    def search(self, query: Optional[str], limit: int) -> SearchResult:
        """Search all providers for ``query`` and return at most ``limit`` unique tracks."""
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise InvalidArgument(f"Search query must be at least {MIN_QUERY_LENGTH} characters")
        self._validate_limit(limit)

        request_id = uuid.uuid4().hex[:12]
        started = time.monotonic()
        share = per_provider_limit(limit, len(self.providers))
        log_search_start(logger, request_id, query, limit, self.provider_names, per_provider=share)

        with CorrelationContext(request_id=request_id):
            outcomes = self._fan_out("search", lambda provider: provider.search(query, share))
        unique = deduplicate_tracks(t for outcome in outcomes for t in outcome.tracks)

        duration_ms = int((time.monotonic() - started) * 1000)
        self.metrics.record_operation("search", duration_ms, min(len(unique), limit))
        log_search_complete(logger, request_id, min(len(unique), limit), len(unique), duration_ms,
                            failed_providers=[o.provider for o in outcomes if not o.ok])
        return SearchResult(tracks=unique[:limit], total=len(unique), query=query)

    def trending(self, limit: int) -> List[Track]:
        """Merge every provider's chart into at most ``limit`` unique tracks."""
        self._validate_limit(limit)
        started = time.monotonic()
        share = per_provider_limit(limit, len(self.providers))

        outcomes = self._fan_out("trending", lambda provider: provider.chart(share))
        unique = deduplicate_tracks(t for outcome in outcomes for t in outcome.tracks)[:limit]

        duration_ms = int((time.monotonic() - started) * 1000)
        self.metrics.record_operation("trending", duration_ms, len(unique))
        return unique

    def get_track(self, track_id: str) -> Optional[Track]:
        """Resolve a provider-prefixed id through the provider that owns it."""
        parts = split_track_id(track_id)
        if parts is None:
            return None
        provider_name, native_id = parts
        provider = self._by_name.get(provider_name)
        if provider is None:
            logger.info(f"No active provider for track id {track_id}")
            return None

        started = time.monotonic()
        try:
            track = provider.get_track(native_id)
        except NotFound:
            track = None
        except UpstreamProviderFailure as e:
            log_provider_failure(logger, provider_name, "track", e, track_id=track_id)
            self.metrics.record_provider_call(provider_name, OUTCOME_FAILURE, self._elapsed_ms(started))
            return None
        self.metrics.record_provider_call(provider_name, OUTCOME_SUCCESS, self._elapsed_ms(started),
                                          1 if track else 0)
        return track

    @staticmethod
    def _validate_limit(limit: int) -> None:
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            raise InvalidArgument("limit must be a positive integer")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _call_provider(self, provider: CatalogProvider,
                       call: Callable[[CatalogProvider], List[Track]]) -> ProviderOutcome:
        started = time.monotonic()
        try:
            with CorrelationContext(provider=provider.name):
                tracks = call(provider)
            if not isinstance(tracks, list):
                raise UpstreamProviderFailure(f"{provider.name} returned {type(tracks).__name__}",
                                              provider=provider.name)
            return ProviderOutcome(provider=provider.name, tracks=tracks,
                                   duration_ms=self._elapsed_ms(started))
        except Exception as e:
            # Any provider failure, including adapter bugs, only costs that provider's results.
            return ProviderOutcome(provider=provider.name, error=e,
                                   duration_ms=self._elapsed_ms(started))

    def _fan_out(self, operation: str,
                 call: Callable[[CatalogProvider], List[Track]]) -> List[ProviderOutcome]:
        """Run ``call`` against every provider in parallel and collect outcomes in provider order."""
        if not self.providers:
            return []

        executor = ThreadPoolExecutor(max_workers=len(self.providers),
                                      thread_name_prefix=f"catalog-{operation}")
        try:
            # Workers inherit the caller's correlation ids
            futures = [
                executor.submit(contextvars.copy_context().run, self._call_provider, p, call)
                for p in self.providers
            ]
            wait(futures, timeout=self.timeout_sec)
        finally:
            # Stragglers keep running in the background; their results are discarded.
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes: List[ProviderOutcome] = []
        for provider, future in zip(self.providers, futures):
            if future.done() and not future.cancelled():
                outcome = future.result()
            else:
                outcome = ProviderOutcome(provider=provider.name, timed_out=True,
                                          duration_ms=int(self.timeout_sec * 1000))

            if outcome.timed_out:
                log_provider_failure(logger, provider.name, operation,
                                     TimeoutError(f"no response within {self.timeout_sec}s"))
                self.metrics.record_provider_call(provider.name, OUTCOME_TIMEOUT, outcome.duration_ms)
            elif outcome.error is not None:
                log_provider_failure(logger, provider.name, operation, outcome.error)
                self.metrics.record_provider_call(provider.name, OUTCOME_FAILURE, outcome.duration_ms)
            else:
                self.metrics.record_provider_call(provider.name, OUTCOME_SUCCESS, outcome.duration_ms,
                                                  len(outcome.tracks))
            outcomes.append(outcome)
        return outcomes
