"""
Observability components for contextflow.

Metric hooks let a coordinator report to any backend without a hard
dependency.

Standard Metrics:
    - contextflow.stream.requests: Dispatched requests
    - contextflow.stream.failures: Requests that failed
    - contextflow.stream.truncations: Requests whose history was truncated
    - contextflow.stream.duration_ms: Stream wall time
    - contextflow.stream.chunks: Chunks yielded per stream
    - contextflow.tokens.input / contextflow.tokens.output: Reported usage
    - contextflow.cache.hits / contextflow.cache.misses: Cache classification
    - contextflow.budget.utilization: Share of the context window consumed
"""

from contextflow.observability.hooks import (
    METRIC_BUDGET_UTILIZATION,
    METRIC_CACHE_HITS,
    METRIC_CACHE_MISSES,
    METRIC_STREAM_CHUNKS,
    METRIC_STREAM_DURATION,
    METRIC_STREAM_FAILURES,
    METRIC_STREAM_REQUESTS,
    METRIC_STREAM_TRUNCATIONS,
    METRIC_TOKENS_INPUT,
    METRIC_TOKENS_OUTPUT,
    HistogramStats,
    InMemoryMetricHook,
    LoggingMetricHook,
    MetricEmitter,
    MetricHook,
    MetricType,
)

__all__ = [
    "HistogramStats",
    "InMemoryMetricHook",
    "LoggingMetricHook",
    "MetricEmitter",
    "MetricHook",
    "MetricType",
    # Metric names
    "METRIC_BUDGET_UTILIZATION",
    "METRIC_CACHE_HITS",
    "METRIC_CACHE_MISSES",
    "METRIC_STREAM_CHUNKS",
    "METRIC_STREAM_DURATION",
    "METRIC_STREAM_FAILURES",
    "METRIC_STREAM_REQUESTS",
    "METRIC_STREAM_TRUNCATIONS",
    "METRIC_TOKENS_INPUT",
    "METRIC_TOKENS_OUTPUT",
]
