"""
Stream coordination for contextflow.

The StreamCoordinator owns one session's token budget and cache ledger.
For each dispatch it decides whether to truncate the history, places
prompt-cache breakpoints, hands the request to the transport and turns
the provider's ordered event stream into normalized chunks, updating the
ledgers as usage arrives.

Example:
    >>> coordinator = create_coordinator(transport, CoordinatorConfig())
    >>> async for chunk in coordinator.dispatch(history, system_prompt="Be brief."):
    ...     if isinstance(chunk, TextChunk):
    ...         print(chunk.text, end="")
    >>> coordinator.get_remaining_budget().total_used_tokens
    1834
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Iterable
from enum import Enum
from typing import Any, Protocol, Union

from contextflow.accounting.cache_accountant import CacheAccountant, CacheEfficiency, CacheMetrics
from contextflow.accounting.token_budget import TokenBudget, TokenBudgetTracker
from contextflow.config import CoordinatorConfig
from contextflow.context.message import Message, build_history, total_tokens
from contextflow.context.truncation import RelevanceTruncator
from contextflow.exceptions import (
    CoordinatorBusyError,
    NotInitializedError,
    ProviderStreamError,
)
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
    MetricEmitter,
    MetricHook,
)
from contextflow.providers.anthropic_adapter import build_request
from contextflow.providers.models import ModelProfile, resolve_model_profile
from contextflow.streaming.events import (
    ContentBlockType,
    DeltaType,
    ProviderEventType,
    ProviderUsage,
    StreamChunk,
    TextChunk,
    UsageChunk,
    field_value,
)

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n"


class CoordinatorState(Enum):
    """Lifecycle of a single dispatch."""

    IDLE = "idle"
    PREFLIGHT = "preflight"
    DISPATCH = "dispatch"
    STREAMING = "streaming"
    DRAINED = "drained"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """Whether a request is in flight."""
        return self in (
            CoordinatorState.PREFLIGHT,
            CoordinatorState.DISPATCH,
            CoordinatorState.STREAMING,
        )

    @property
    def is_terminal(self) -> bool:
        return self in (
            CoordinatorState.DRAINED,
            CoordinatorState.FAILED,
            CoordinatorState.CANCELLED,
        )


ProviderStream = Union[AsyncIterator[Any], Iterable[Any]]


class Transport(Protocol):
    """
    Protocol for the collaborator that talks to the provider.

    The transport owns connection setup, authentication, retries and
    timeouts. It receives the request body and returns the ordered
    provider event stream (async or plain iterable), directly or through
    an awaitable.
    """

    def __call__(
        self, request: dict[str, Any]
    ) -> ProviderStream | Awaitable[ProviderStream]:
        ...


async def _as_async_iterator(events: Iterable[Any]) -> AsyncIterator[Any]:
    for event in events:
        yield event


async def _close_stream(stream: Any) -> None:
    """Close a provider stream left open by an abandoned dispatch."""
    close = getattr(stream, "aclose", None) or getattr(stream, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result


class StreamCoordinator:
    """
    Coordinates preflight truncation, cache breakpoints and stream consumption.

    One request may be in flight per coordinator. Events are consumed
    strictly in provider order and each usage record updates the ledgers
    exactly once. Ledger updates are never rolled back: a failed or
    abandoned stream leaves the ledgers reflecting the events observed.

    Attributes:
        config: Coordinator configuration.
        tracker: The session's token budget tracker.
        accountant: The session's cache accountant.
        truncator: Relevance truncator used when the budget advises it.
        last_request: Body of the most recent request sent to the transport.
    """

    def __init__(
        self,
        transport: Transport,
        profile: ModelProfile | None = None,
        config: CoordinatorConfig | None = None,
        metric_hooks: list[MetricHook] | None = None,
    ) -> None:
        """
        Create a coordinator.

        Args:
            transport: Provider transport collaborator.
            profile: Model profile to bind. When omitted, initialize() must
                be called before dispatching.
            config: Coordinator configuration (defaults apply when omitted).
            metric_hooks: Metric backends to report to.
        """
        self.config = config or CoordinatorConfig()
        self._transport = transport
        self._profile: ModelProfile | None = None
        self._state = CoordinatorState.IDLE
        self._metrics = MetricEmitter(metric_hooks)
        self._generation = 0
        self._in_flight = False
        self._provider_stream: Any = None

        self.tracker = TokenBudgetTracker(options=self.config.budget)
        self.accountant = CacheAccountant()
        self.truncator = RelevanceTruncator(self.config.truncation)
        self.last_request: dict[str, Any] | None = None

        if profile is not None:
            self.initialize(profile)

    def initialize(self, profile: ModelProfile) -> None:
        """
        Bind a model profile and start fresh ledgers for it.

        Raises:
            CoordinatorBusyError: If a request is waiting on the provider.
        """
        self._claim()
        self._profile = profile
        self.tracker.initialize(profile, self.config.budget)
        self.accountant.reset()
        self._state = CoordinatorState.IDLE
        logger.debug(f"Coordinator bound to model {profile.model_id}")

    @property
    def profile(self) -> ModelProfile:
        """The bound model profile."""
        return self._require_profile("profile")

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def metrics(self) -> MetricEmitter:
        """Metric emitter; hooks can be added after construction."""
        return self._metrics

    def _require_profile(self, operation: str) -> ModelProfile:
        if self._profile is None:
            raise NotInitializedError("StreamCoordinator", operation)
        return self._profile

    def _transition(self, state: CoordinatorState) -> None:
        logger.debug(f"Coordinator state {self._state.value} -> {state.value}")
        self._state = state

    @property
    def _tags(self) -> dict[str, Any]:
        return {"model": self._profile.model_id if self._profile else "unbound"}

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        history: list[Message] | list[dict[str, Any]],
        system_prompt: str = "",
    ) -> AsyncIterator[StreamChunk]:
        """
        Send a history to the provider and stream normalized chunks back.

        The returned iterator is lazy and single-use: nothing happens until
        the first chunk is requested, and it cannot be restarted. A dispatch
        left paused between chunks (for example after ``break``) is
        cancelled when the next one starts; resuming it afterwards yields
        nothing further.

        Args:
            history: Ordered messages (Message instances or Anthropic dicts).
            system_prompt: System prompt text.

        Yields:
            UsageChunk and TextChunk objects in provider order.

        Raises:
            NotInitializedError: If no model profile is bound.
            CoordinatorBusyError: If another request is waiting on the provider.
            ProviderStreamError: If the transport or provider fails.
        """
        profile = self._require_profile("dispatch")
        abandoned = self._claim()
        if abandoned is not None:
            await _close_stream(abandoned)

        self._generation += 1
        generation = self._generation
        self._in_flight = True
        started = time.monotonic()

        try:
            self._transition(CoordinatorState.PREFLIGHT)
            working = self._preflight(build_history(list(history)), profile)

            self._transition(CoordinatorState.DISPATCH)
            request = build_request(
                profile,
                system_prompt,
                working,
                temperature=self.config.temperature,
                max_output_tokens=self.config.max_output_tokens,
                cache_breakpoints=self.config.cache_breakpoints,
            )
        except Exception as e:
            self._in_flight = False
            self._fail()
            logger.warning(f"Dispatch rejected before sending: {type(e).__name__}: {e}")
            raise

        self.last_request = request
        self._metrics.emit_counter(METRIC_STREAM_REQUESTS, tags=self._tags)
        chunk_count = 0

        try:
            stream = await self._open_stream(request)
            self._provider_stream = stream
            self._transition(CoordinatorState.STREAMING)

            async for event in stream:
                for chunk in self._handle_event(event, profile):
                    self._in_flight = False
                    chunk_count += 1
                    yield chunk
                    if generation != self._generation:
                        # Superseded by a later dispatch while paused
                        return
                    self._in_flight = True

        except ProviderStreamError:
            self._fail()
            raise
        except GeneratorExit:
            if generation == self._generation:
                self._transition(CoordinatorState.CANCELLED)
                logger.debug("Stream abandoned by caller; ledgers keep observed usage")
            raise
        except Exception as e:
            self._fail()
            logger.error(f"Transport failure during stream: {type(e).__name__}: {e}")
            raise ProviderStreamError(
                f"Transport failed: {e}", error_type=type(e).__name__
            ) from e
        except BaseException:
            # Task cancellation and interpreter shutdown
            if generation == self._generation:
                self._transition(CoordinatorState.CANCELLED)
            raise
        else:
            self._transition(CoordinatorState.DRAINED)
        finally:
            if generation == self._generation:
                self._in_flight = False
                self._provider_stream = None
            elapsed_ms = (time.monotonic() - started) * 1000
            self._metrics.emit_timing(METRIC_STREAM_DURATION, elapsed_ms, tags=self._tags)
            self._metrics.emit_histogram(METRIC_STREAM_CHUNKS, chunk_count, tags=self._tags)

    @property
    def in_flight(self) -> bool:
        """Whether a dispatch is waiting on the transport or provider."""
        return self._in_flight

    def _claim(self) -> Any:
        """
        Make the coordinator available for a new dispatch or lifecycle call.

        A previous dispatch still marked active but not waiting on the
        provider was left paused between chunks by its caller. It is marked
        cancelled and its provider stream is returned so it can be closed.

        Raises:
            CoordinatorBusyError: If a request is waiting on the provider.
        """
        if not self._state.is_active:
            return None
        if self._in_flight:
            raise CoordinatorBusyError(self._state.value)

        stream = self._provider_stream
        self._generation += 1
        self._provider_stream = None
        self._transition(CoordinatorState.CANCELLED)
        logger.debug("Previous dispatch was abandoned between chunks; cancelled it")
        return stream

    def _fail(self) -> None:
        self._transition(CoordinatorState.FAILED)
        self._metrics.emit_counter(METRIC_STREAM_FAILURES, tags=self._tags)

    def _preflight(self, history: list[Message], profile: ModelProfile) -> list[Message]:
        """One-shot truncation decision, made before the request is built."""
        working = history
        if self.tracker.should_truncate():
            working = self.truncator.truncate(history)
            logger.info(
                f"Token budget at {self.tracker.utilization():.1%}; truncated history "
                f"from {len(history)} to {len(working)} messages"
            )
            self._metrics.emit_counter(METRIC_STREAM_TRUNCATIONS, tags=self._tags)

        estimated_input = total_tokens(working)
        estimated_output = self.config.max_output_tokens or profile.effective_max_output_tokens
        if not self.tracker.can_accommodate(estimated_input, estimated_output):
            logger.warning(
                f"Request for {profile.model_id} may exceed the context window: "
                f"~{estimated_input} input + {estimated_output} output tokens"
            )
        return working

    async def _open_stream(self, request: dict[str, Any]) -> AsyncIterator[Any]:
        result = self._transport(request)
        if inspect.isawaitable(result):
            result = await result
        if hasattr(result, "__aiter__"):
            return result
        return _as_async_iterator(result)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def _handle_event(self, event: Any, profile: ModelProfile) -> list[StreamChunk]:
        """Apply one provider event to the ledgers and normalize it."""
        event_type = ProviderEventType.of(event)

        if event_type is ProviderEventType.MESSAGE_START:
            usage = ProviderUsage.from_raw(field_value(field_value(event, "message"), "usage"))
            return [self._record_start_usage(usage, profile)]

        if event_type is ProviderEventType.MESSAGE_DELTA:
            output_tokens = field_value(field_value(event, "usage"), "output_tokens", 0)
            self.tracker.update_usage(0, output_tokens)
            self._metrics.emit_counter(METRIC_TOKENS_OUTPUT, output_tokens, tags=self._tags)
            return [UsageChunk(input_tokens=0, output_tokens=output_tokens)]

        if event_type is ProviderEventType.CONTENT_BLOCK_START:
            return self._handle_block_start(event)

        if event_type is ProviderEventType.CONTENT_BLOCK_DELTA:
            return self._handle_block_delta(event)

        if event_type is ProviderEventType.ERROR:
            error = field_value(event, "error")
            error_type = field_value(error, "type", "provider_error")
            message = field_value(error, "message", "Provider reported an error")
            logger.warning(f"Provider error event: {error_type}: {message}")
            raise ProviderStreamError(message, error_type=error_type)

        # MESSAGE_STOP, CONTENT_BLOCK_STOP, PING and unknown event types
        return []

    def _record_start_usage(self, usage: ProviderUsage, profile: ModelProfile) -> UsageChunk:
        self.tracker.update_usage(
            usage.input_tokens,
            usage.output_tokens,
            usage.cache_read_tokens,
            usage.cache_write_tokens,
        )
        self.accountant.track_usage(
            usage.cache_read_tokens,
            usage.cache_write_tokens,
            usage.input_tokens,
            profile.input_price,
            profile.cache_read_price,
        )

        tags = self._tags
        self._metrics.emit_counter(METRIC_TOKENS_INPUT, usage.input_tokens, tags=tags)
        self._metrics.emit_counter(METRIC_TOKENS_OUTPUT, usage.output_tokens, tags=tags)
        if usage.cache_read_tokens:
            self._metrics.emit_counter(METRIC_CACHE_HITS, tags=tags)
        elif usage.cache_write_tokens:
            self._metrics.emit_counter(METRIC_CACHE_MISSES, tags=tags)
        self._metrics.emit_gauge(METRIC_BUDGET_UTILIZATION, self.tracker.utilization(), tags=tags)

        return UsageChunk(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cache_read_tokens=usage.cache_read_tokens or None,
            cache_write_tokens=usage.cache_write_tokens or None,
        )

    def _handle_block_start(self, event: Any) -> list[StreamChunk]:
        block = field_value(event, "content_block")
        block_type = ContentBlockType.of(block)

        if block_type is ContentBlockType.TEXT:
            chunks: list[StreamChunk] = []
            if field_value(event, "index", 0) > 0:
                chunks.append(TextChunk(BLOCK_SEPARATOR))
            text = field_value(block, "text", "")
            if text:
                chunks.append(TextChunk(text))
            return chunks

        # TOOL_USE, THINKING and unknown block types produce no text
        return []

    def _handle_block_delta(self, event: Any) -> list[StreamChunk]:
        delta = field_value(event, "delta")
        delta_type = DeltaType.of(delta)

        if delta_type is DeltaType.TEXT_DELTA:
            text = field_value(delta, "text", "")
            return [TextChunk(text)] if text else []

        # INPUT_JSON_DELTA, THINKING_DELTA, SIGNATURE_DELTA and unknown deltas
        return []

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_efficiency_metrics(self) -> CacheEfficiency:
        """Cache hit rate, token savings rate and cost efficiency."""
        self._require_profile("get_efficiency_metrics")
        return self.accountant.get_efficiency()

    def get_cache_metrics(self) -> CacheMetrics:
        """Snapshot of the cache counters."""
        self._require_profile("get_cache_metrics")
        return self.accountant.snapshot()

    def get_remaining_budget(self) -> TokenBudget:
        """Snapshot of the token budget."""
        self._require_profile("get_remaining_budget")
        return self.tracker.snapshot()

    def estimate_cost(self) -> float:
        """Estimated session cost in USD."""
        self._require_profile("estimate_cost")
        return self.tracker.estimate_cost()

    def reset(self) -> None:
        """
        Zero both ledgers for the bound profile.

        Raises:
            CoordinatorBusyError: If a request is waiting on the provider.
        """
        self._require_profile("reset")
        self._claim()
        self.tracker.reset()
        self.accountant.reset()
        self._state = CoordinatorState.IDLE

    def to_dict(self) -> dict[str, Any]:
        """Telemetry view of the session."""
        profile = self._require_profile("to_dict")
        return {
            "model_id": profile.model_id,
            "state": self._state.value,
            "budget": self.tracker.snapshot().to_dict(),
            "utilization": self.tracker.utilization(),
            "estimated_cost": self.tracker.estimate_cost(),
            "cache": self.accountant.snapshot().to_dict(),
            "cache_efficiency": self.accountant.get_efficiency().to_dict(),
        }


def create_coordinator(
    transport: Transport,
    config: CoordinatorConfig | None = None,
    metric_hooks: list[MetricHook] | None = None,
    registry: dict[str, ModelProfile] | None = None,
) -> StreamCoordinator:
    """
    Factory function to create a coordinator for a configured model.

    Unknown model ids resolve to the default profile.

    Args:
        transport: Provider transport collaborator.
        config: Coordinator configuration.
        metric_hooks: Metric backends to report to.
        registry: Alternate model registry searched before the built-in one.

    Returns:
        A StreamCoordinator with its own fresh ledgers.
    """
    config = config or CoordinatorConfig()
    profile = resolve_model_profile(config.model_id, registry)
    return StreamCoordinator(transport, profile, config, metric_hooks)
