import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict


OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"
OUTCOME_TIMEOUT = "timeout"


@dataclass
class ProviderMetrics:
    """Counters for calls made to one catalog provider."""
    provider: str
    calls: int = 0
    successes: int = 0
    failures: int = 0
    timeouts: int = 0
    results: int = 0
    total_duration_ms: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate for this provider."""
        if self.calls == 0:
            return 0.0
        return self.successes / self.calls

    @property
    def average_duration_ms(self) -> float:
        """Calculate average call latency."""
        if self.calls == 0:
            return 0.0
        return self.total_duration_ms / self.calls

    def to_json(self) -> Dict[str, Any]:
        return {
            'provider': self.provider,
            'calls': self.calls,
            'successes': self.successes,
            'failures': self.failures,
            'timeouts': self.timeouts,
            'results': self.results,
            'success_rate': self.success_rate,
            'average_duration_ms': self.average_duration_ms,
        }


@dataclass
class OperationMetrics:
    """Counters for aggregated operations (search, trending, track lookup)."""
    operation: str
    requests: int = 0
    results: int = 0
    total_duration_ms: int = 0

    @property
    def average_duration_ms(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.total_duration_ms / self.requests

    def to_json(self) -> Dict[str, Any]:
        return {
            'operation': self.operation,
            'requests': self.requests,
            'results': self.results,
            'average_duration_ms': self.average_duration_ms,
        }


@dataclass
class _Totals:
    providers: Dict[str, ProviderMetrics] = field(default_factory=dict)
    operations: Dict[str, OperationMetrics] = field(default_factory=dict)


class MetricsCollector:
    """Thread-safe collector of provider and operation metrics."""

    def __init__(self):
        """Initialize metrics collector."""
        self._lock = threading.Lock()
        self._totals = _Totals()
        self.started_at = datetime.now()

    def record_provider_call(self, provider: str, outcome: str,
                             duration_ms: int, result_count: int = 0) -> None:
        """Record the outcome of one provider call."""
        with self._lock:
            metrics = self._totals.providers.setdefault(provider, ProviderMetrics(provider=provider))
            metrics.calls += 1
            metrics.total_duration_ms += duration_ms
            if outcome == OUTCOME_SUCCESS:
                metrics.successes += 1
                metrics.results += result_count
            elif outcome == OUTCOME_TIMEOUT:
                metrics.timeouts += 1
            else:
                metrics.failures += 1

    def record_operation(self, operation: str, duration_ms: int, result_count: int) -> None:
        """Record one completed aggregated operation."""
        with self._lock:
            metrics = self._totals.operations.setdefault(operation, OperationMetrics(operation=operation))
            metrics.requests += 1
            metrics.results += result_count
            metrics.total_duration_ms += duration_ms

    def get_provider_metrics(self, provider: str) -> ProviderMetrics:
        with self._lock:
            metrics = self._totals.providers.get(provider)
            if metrics is None:
                return ProviderMetrics(provider=provider)
            return ProviderMetrics(**metrics.__dict__)

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-ready copy of all counters."""
        with self._lock:
            return {
                'started_at': self.started_at.isoformat(),
                'providers': {name: m.to_json() for name, m in sorted(self._totals.providers.items())},
                'operations': {name: m.to_json() for name, m in sorted(self._totals.operations.items())},
            }

    def reset(self) -> None:
        with self._lock:
            self._totals = _Totals()
            self.started_at = datetime.now()
