"""
contextflow: context-window and prompt-cache management for streaming LLM calls.

contextflow keeps a long conversation inside a model's context window
and turns a provider's streaming events into a normalized chunk stream,
while tracking token consumption, prompt-cache effectiveness and cost.

Basic Usage:
    >>> from contextflow import ChunkKind, CoordinatorConfig, create_coordinator
    >>> from contextflow.contrib.anthropic import AnthropicTransport
    >>>
    >>> coordinator = create_coordinator(
    ...     AnthropicTransport(),
    ...     CoordinatorConfig(model_id="claude-3-5-sonnet-20241022"),
    ... )
    >>> history = [{"role": "user", "content": "Summarize the design doc."}]
    >>> async for chunk in coordinator.dispatch(history, system_prompt="Be brief."):
    ...     if chunk.kind is ChunkKind.TEXT:
    ...         print(chunk.text, end="")
    >>>
    >>> coordinator.get_remaining_budget().available_input_tokens
    168795
    >>> coordinator.get_efficiency_metrics().hit_rate
    0.0
"""

__version__ = "0.1.0"

from contextflow.accounting import (
    CacheAccountant,
    CacheEfficiency,
    CacheMetrics,
    TokenBudget,
    TokenBudgetOptions,
    TokenBudgetTracker,
)
from contextflow.config import CoordinatorConfig
from contextflow.context import (
    Message,
    MessageRole,
    RelevanceTruncator,
    TextSegment,
    ToolResultSegment,
    ToolUseSegment,
    TruncationOptions,
    build_history,
    truncate_by_relevance,
)
from contextflow.exceptions import (
    ConfigurationError,
    ContextFlowError,
    CoordinatorBusyError,
    NotInitializedError,
    ProviderStreamError,
)
from contextflow.observability import InMemoryMetricHook, LoggingMetricHook, MetricHook
from contextflow.providers import (
    ANTHROPIC_MODELS,
    DEFAULT_MODEL_ID,
    ModelProfile,
    build_request,
    resolve_model_profile,
)
from contextflow.streaming import (
    ChunkKind,
    CoordinatorState,
    StreamChunk,
    StreamCoordinator,
    TextChunk,
    Transport,
    UsageChunk,
    create_coordinator,
)
from contextflow.terminal_filters import filter_output, should_filter_line

__all__ = [
    # Version
    "__version__",
    # Coordinator
    "StreamCoordinator",
    "CoordinatorState",
    "CoordinatorConfig",
    "Transport",
    "create_coordinator",
    # Chunks
    "ChunkKind",
    "StreamChunk",
    "TextChunk",
    "UsageChunk",
    # Ledgers
    "CacheAccountant",
    "CacheEfficiency",
    "CacheMetrics",
    "TokenBudget",
    "TokenBudgetOptions",
    "TokenBudgetTracker",
    # History
    "Message",
    "MessageRole",
    "TextSegment",
    "ToolUseSegment",
    "ToolResultSegment",
    "RelevanceTruncator",
    "TruncationOptions",
    "build_history",
    "truncate_by_relevance",
    # Models
    "ANTHROPIC_MODELS",
    "DEFAULT_MODEL_ID",
    "ModelProfile",
    "build_request",
    "resolve_model_profile",
    # Metrics
    "MetricHook",
    "InMemoryMetricHook",
    "LoggingMetricHook",
    # Terminal output
    "filter_output",
    "should_filter_line",
    # Exceptions
    "ContextFlowError",
    "ConfigurationError",
    "NotInitializedError",
    "CoordinatorBusyError",
    "ProviderStreamError",
]
