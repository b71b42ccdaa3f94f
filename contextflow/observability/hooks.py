"""
Metrics hooks for contextflow.

Lets the coordinator report request, token and cache metrics to any
backend (Prometheus, StatsD, OpenTelemetry) without a hard dependency.
Hooks are registered per coordinator through a MetricEmitter; there is
no process-wide registry.

Example:
    >>> from contextflow.observability import InMemoryMetricHook, MetricEmitter
    >>>
    >>> memory_hook = InMemoryMetricHook()
    >>> emitter = MetricEmitter([memory_hook])
    >>> emitter.emit_counter("contextflow.stream.requests", tags={"model": "sonnet"})
    >>> memory_hook.get_counter("contextflow.stream.requests", {"model": "sonnet"})
    1.0
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of metrics that can be emitted."""

    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"
    TIMING = "timing"


@runtime_checkable
class MetricHook(Protocol):
    """
    Protocol for metric backends.

    Example:
        >>> class StatsdHook:
        ...     def increment(self, name, value=1.0, tags=None):
        ...         statsd.incr(name, value)
        ...     def gauge(self, name, value, tags=None):
        ...         statsd.gauge(name, value)
        ...     def histogram(self, name, value, tags=None):
        ...         statsd.histogram(name, value)
        ...     def timing(self, name, duration_ms, tags=None):
        ...         statsd.timing(name, duration_ms)
    """

    def increment(self, name: str, value: float = 1.0, tags: dict[str, Any] | None = None) -> None:
        """Increment a counter metric."""
        ...

    def gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        """Set a gauge metric."""
        ...

    def histogram(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        """Record a value in a histogram."""
        ...

    def timing(self, name: str, duration_ms: float, tags: dict[str, Any] | None = None) -> None:
        """Record a duration in milliseconds."""
        ...


class LoggingMetricHook:
    """
    Hook that writes metrics to a logger (for development and debugging).

    Example:
        >>> import logging
        >>> logging.basicConfig(level=logging.DEBUG)
        >>> LoggingMetricHook().increment("contextflow.stream.requests")
        DEBUG:contextflow.metrics:COUNTER contextflow.stream.requests=1.0 tags=None
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.DEBUG):
        self.logger = logger or logging.getLogger("contextflow.metrics")
        self.level = level

    def increment(self, name: str, value: float = 1.0, tags: dict[str, Any] | None = None) -> None:
        self.logger.log(self.level, f"COUNTER {name}={value} tags={tags}")

    def gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self.logger.log(self.level, f"GAUGE {name}={value} tags={tags}")

    def histogram(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self.logger.log(self.level, f"HISTOGRAM {name}={value} tags={tags}")

    def timing(self, name: str, duration_ms: float, tags: dict[str, Any] | None = None) -> None:
        self.logger.log(self.level, f"TIMING {name}={duration_ms}ms tags={tags}")


@dataclass
class HistogramStats:
    """Statistics for a histogram or timing metric."""

    count: int
    total: float
    min: float
    max: float
    avg: float

    @classmethod
    def from_values(cls, values: list[float]) -> HistogramStats:
        return cls(
            count=len(values),
            total=sum(values),
            min=min(values),
            max=max(values),
            avg=sum(values) / len(values),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "count": self.count,
            "total": self.total,
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
        }


class InMemoryMetricHook:
    """
    In-memory metrics for tests and simple dashboards.

    Example:
        >>> hook = InMemoryMetricHook()
        >>> hook.increment("contextflow.cache.hits")
        >>> hook.increment("contextflow.cache.hits")
        >>> hook.get_counter("contextflow.cache.hits")
        2.0
    """

    def __init__(self):
        self.counters: dict[str, float] = defaultdict(float)
        self.gauges: dict[str, float] = {}
        self.histograms: dict[str, list[float]] = defaultdict(list)
        self.timings: dict[str, list[float]] = defaultdict(list)

    def _make_key(self, name: str, tags: dict[str, Any] | None) -> str:
        """Create a unique key from metric name and tags."""
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"

    def increment(self, name: str, value: float = 1.0, tags: dict[str, Any] | None = None) -> None:
        self.counters[self._make_key(name, tags)] += value

    def gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self.gauges[self._make_key(name, tags)] = value

    def histogram(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self.histograms[self._make_key(name, tags)].append(value)

    def timing(self, name: str, duration_ms: float, tags: dict[str, Any] | None = None) -> None:
        self.timings[self._make_key(name, tags)].append(duration_ms)

    def get_counter(self, name: str, tags: dict[str, Any] | None = None) -> float:
        """Current counter value, or 0.0 if never incremented."""
        return self.counters.get(self._make_key(name, tags), 0.0)

    def get_gauge(self, name: str, tags: dict[str, Any] | None = None) -> float | None:
        """Current gauge value, or None if never set."""
        return self.gauges.get(self._make_key(name, tags))

    def get_histogram_stats(
        self, name: str, tags: dict[str, Any] | None = None
    ) -> HistogramStats | None:
        """Statistics for a histogram, or None if empty."""
        values = self.histograms.get(self._make_key(name, tags), [])
        return HistogramStats.from_values(values) if values else None

    def get_timing_stats(
        self, name: str, tags: dict[str, Any] | None = None
    ) -> HistogramStats | None:
        """Statistics for timing measurements, or None if empty."""
        values = self.timings.get(self._make_key(name, tags), [])
        return HistogramStats.from_values(values) if values else None

    def reset(self) -> None:
        """Reset all metrics to initial state."""
        self.counters.clear()
        self.gauges.clear()
        self.histograms.clear()
        self.timings.clear()


class MetricEmitter:
    """
    Fans metrics out to a list of hooks.

    A failing hook is logged and skipped; metrics never break a stream.
    """

    def __init__(self, hooks: list[MetricHook] | None = None) -> None:
        self._hooks: list[MetricHook] = list(hooks or [])

    def add_hook(self, hook: MetricHook) -> None:
        """Register a metric hook."""
        self._hooks.append(hook)

    def remove_hook(self, hook: MetricHook) -> bool:
        """
        Remove a metric hook.

        Returns:
            True if the hook was removed, False if not found.
        """
        try:
            self._hooks.remove(hook)
            return True
        except ValueError:
            return False

    @property
    def hooks(self) -> list[MetricHook]:
        """Copy of the registered hooks."""
        return list(self._hooks)

    def emit(
        self,
        metric_type: MetricType,
        name: str,
        value: float,
        tags: dict[str, Any] | None = None,
    ) -> None:
        """Emit a metric to every registered hook."""
        for hook in self._hooks:
            try:
                if metric_type == MetricType.COUNTER:
                    hook.increment(name, value, tags)
                elif metric_type == MetricType.GAUGE:
                    hook.gauge(name, value, tags)
                elif metric_type == MetricType.HISTOGRAM:
                    hook.histogram(name, value, tags)
                elif metric_type == MetricType.TIMING:
                    hook.timing(name, value, tags)
            except Exception as e:
                logger.warning(f"Metric hook {type(hook).__name__} failed on {name}: {e}")

    def emit_counter(self, name: str, value: float = 1.0, tags: dict[str, Any] | None = None) -> None:
        self.emit(MetricType.COUNTER, name, value, tags)

    def emit_gauge(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self.emit(MetricType.GAUGE, name, value, tags)

    def emit_histogram(self, name: str, value: float, tags: dict[str, Any] | None = None) -> None:
        self.emit(MetricType.HISTOGRAM, name, value, tags)

    def emit_timing(self, name: str, duration_ms: float, tags: dict[str, Any] | None = None) -> None:
        self.emit(MetricType.TIMING, name, duration_ms, tags)


# Metric names emitted by the stream coordinator

METRIC_STREAM_REQUESTS = "contextflow.stream.requests"
"""Counter: dispatched requests."""

METRIC_STREAM_FAILURES = "contextflow.stream.failures"
"""Counter: requests that ended in the FAILED state."""

METRIC_STREAM_TRUNCATIONS = "contextflow.stream.truncations"
"""Counter: requests whose history was truncated before dispatch."""

METRIC_STREAM_DURATION = "contextflow.stream.duration_ms"
"""Timing: wall time from dispatch to the end of the stream."""

METRIC_STREAM_CHUNKS = "contextflow.stream.chunks"
"""Histogram: chunks yielded per stream."""

METRIC_TOKENS_INPUT = "contextflow.tokens.input"
"""Counter: input tokens reported by the provider."""

METRIC_TOKENS_OUTPUT = "contextflow.tokens.output"
"""Counter: output tokens reported by the provider."""

METRIC_CACHE_HITS = "contextflow.cache.hits"
"""Counter: usage records classified as cache hits."""

METRIC_CACHE_MISSES = "contextflow.cache.misses"
"""Counter: usage records classified as cache misses."""

METRIC_BUDGET_UTILIZATION = "contextflow.budget.utilization"
"""Gauge: share of the context window consumed."""
