"""
Token budget tracking against a model's context window.

The tracker is an advisory ledger: it reports utilization and whether
history should be truncated, but never blocks a request. Running over
budget shows up as a negative available_input_tokens, not an error.

Example:
    >>> tracker = TokenBudgetTracker.for_model("claude-3-5-sonnet-20241022")
    >>> tracker.update_usage(input_tokens=1200, output_tokens=300, cache_reads=800)
    >>> tracker.snapshot().total_used_tokens
    1500
    >>> tracker.should_truncate()
    False
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field, replace
from typing import Any

from contextflow.exceptions import ConfigurationError, NotInitializedError
from contextflow.providers.models import ModelProfile, resolve_model_profile

logger = logging.getLogger(__name__)

PRICE_UNIT_TOKENS = 1_000_000


@dataclass
class TokenBudgetOptions:
    """
    Options for budget initialization.

    Attributes:
        max_input_utilization: Share of the context window usable for
            input before truncation is advised (0.85 leaves a 15% buffer).
        output_token_buffer: Tokens always reserved for the response.
    """

    max_input_utilization: float = 0.85
    output_token_buffer: int = 4096

    def __post_init__(self) -> None:
        if not 0 < self.max_input_utilization <= 1:
            raise ConfigurationError(
                "max_input_utilization",
                expected="a float in (0, 1]",
                received=self.max_input_utilization,
            )
        if self.output_token_buffer < 0:
            raise ConfigurationError(
                "output_token_buffer",
                expected="an integer >= 0",
                received=self.output_token_buffer,
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert options to dictionary."""
        return {
            "max_input_utilization": self.max_input_utilization,
            "output_token_buffer": self.output_token_buffer,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenBudgetOptions:
        """Create options from dictionary."""
        return cls(
            max_input_utilization=data.get("max_input_utilization", 0.85),
            output_token_buffer=data.get("output_token_buffer", 4096),
        )


@dataclass
class CacheTokenCounts:
    """Prompt-cache tokens seen by the budget."""

    reads: int = 0
    writes: int = 0


@dataclass
class TokenBudget:
    """
    Session token budget.

    Attributes:
        available_input_tokens: Input tokens left before the utilization
            ceiling. May be negative.
        reserved_output_tokens: Tokens held back for the response.
        total_used_tokens: Input plus output tokens consumed so far.
        cache_tokens: Cache read/write token totals.
    """

    available_input_tokens: int
    reserved_output_tokens: int
    total_used_tokens: int = 0
    cache_tokens: CacheTokenCounts = field(default_factory=CacheTokenCounts)

    @property
    def is_over_budget(self) -> bool:
        return self.available_input_tokens < 0

    def copy(self) -> TokenBudget:
        """Deep copy (the nested cache counters included)."""
        return replace(self, cache_tokens=replace(self.cache_tokens))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "available_input_tokens": self.available_input_tokens,
            "reserved_output_tokens": self.reserved_output_tokens,
            "total_used_tokens": self.total_used_tokens,
            "cache_tokens": {
                "reads": self.cache_tokens.reads,
                "writes": self.cache_tokens.writes,
            },
        }


class TokenBudgetTracker:
    """
    Ledger of consumed and available tokens for one session.

    Each session owns its own tracker. Updates follow a single-writer
    discipline; the internal lock only keeps snapshots consistent.

    Attributes:
        profile: The bound model profile (None until initialized).
        options: Budget options.
    """

    def __init__(
        self,
        profile: ModelProfile | None = None,
        options: TokenBudgetOptions | None = None,
    ) -> None:
        """
        Create a tracker, optionally binding a profile immediately.

        Args:
            profile: Model profile to bind. When omitted, initialize() must
                be called before any ledger operation.
            options: Budget options (defaults apply when omitted).
        """
        self._lock = threading.RLock()
        self.profile: ModelProfile | None = None
        self.options = options or TokenBudgetOptions()
        self._budget: TokenBudget | None = None
        if profile is not None:
            self.initialize(profile, self.options)

    @classmethod
    def for_model(
        cls,
        model_id: str | None,
        options: TokenBudgetOptions | None = None,
    ) -> TokenBudgetTracker:
        """
        Create a tracker for a registered model id.

        Unknown ids resolve to the default profile.
        """
        return cls(resolve_model_profile(model_id), options)

    @property
    def is_initialized(self) -> bool:
        return self._budget is not None

    def initialize(
        self,
        profile: ModelProfile,
        options: TokenBudgetOptions | None = None,
    ) -> TokenBudget:
        """
        Bind a profile and build a fresh budget.

        Args:
            profile: Model profile supplying the context window and prices.
            options: Budget options; keeps the current options when omitted.

        Returns:
            A snapshot of the fresh budget.
        """
        with self._lock:
            self.profile = profile
            if options is not None:
                self.options = options
            self._budget = self._fresh_budget()
            logger.debug(
                f"Token budget initialized for {profile.model_id}: "
                f"available_input={self._budget.available_input_tokens}, "
                f"reserved_output={self._budget.reserved_output_tokens}"
            )
            return self._budget.copy()

    def _fresh_budget(self) -> TokenBudget:
        assert self.profile is not None
        window = self.profile.effective_context_window
        return TokenBudget(
            available_input_tokens=math.floor(window * self.options.max_input_utilization),
            reserved_output_tokens=self.options.output_token_buffer,
        )

    def _require_budget(self, operation: str) -> TokenBudget:
        if self._budget is None:
            raise NotInitializedError("TokenBudgetTracker", operation)
        return self._budget

    @property
    def context_window(self) -> int:
        """Context window of the bound profile."""
        self._require_budget("context_window")
        assert self.profile is not None
        return self.profile.effective_context_window

    def update_usage(
        self,
        input_tokens: int,
        output_tokens: int,
        cache_reads: int | None = None,
        cache_writes: int | None = None,
    ) -> None:
        """
        Record consumed tokens.

        Args:
            input_tokens: Fresh input tokens billed for the request.
            output_tokens: Output tokens generated.
            cache_reads: Tokens served from the prompt cache, if reported.
            cache_writes: Tokens written to the prompt cache, if reported.
        """
        with self._lock:
            budget = self._require_budget("update_usage")
            budget.total_used_tokens += input_tokens + output_tokens
            budget.available_input_tokens -= input_tokens

            if cache_reads:
                budget.cache_tokens.reads += cache_reads
            if cache_writes:
                budget.cache_tokens.writes += cache_writes

        logger.debug(
            f"Usage recorded: input={input_tokens}, output={output_tokens}, "
            f"cache_reads={cache_reads or 0}, cache_writes={cache_writes or 0}, "
            f"total_used={budget.total_used_tokens}"
        )

    def can_accommodate(self, input_tokens: int, estimated_output_tokens: int) -> bool:
        """
        Check whether a request fits in the context window.

        Args:
            input_tokens: Input tokens the request would send.
            estimated_output_tokens: Expected response length.

        Returns:
            True if input + estimated output + reserved output fits.
        """
        with self._lock:
            budget = self._require_budget("can_accommodate")
            required = input_tokens + estimated_output_tokens + budget.reserved_output_tokens
            return required <= self.context_window

    def utilization(self) -> float:
        """Share of the context window consumed so far."""
        with self._lock:
            budget = self._require_budget("utilization")
            return budget.total_used_tokens / self.context_window

    def should_truncate(self) -> bool:
        """Whether utilization is above the configured ceiling."""
        return self.utilization() > self.options.max_input_utilization

    def estimate_cost(self) -> float:
        """
        Estimate the session cost in USD.

        Returns 0 when the profile lacks input or output pricing; the
        cache component is 0 when either cache price is missing.

        Returns:
            Estimated cost in USD.
        """
        with self._lock:
            budget = self._require_budget("estimate_cost")
            profile = self.profile
            assert profile is not None

            if profile.input_price is None or profile.output_price is None:
                return 0.0

            input_cost = budget.total_used_tokens * profile.input_price / PRICE_UNIT_TOKENS
            return input_cost + self._cache_cost(budget, profile)

    @staticmethod
    def _cache_cost(budget: TokenBudget, profile: ModelProfile) -> float:
        if profile.cache_read_price is None or profile.cache_write_price is None:
            return 0.0
        reads_cost = budget.cache_tokens.reads * profile.cache_read_price
        writes_cost = budget.cache_tokens.writes * profile.cache_write_price
        return (reads_cost + writes_cost) / PRICE_UNIT_TOKENS

    def snapshot(self) -> TokenBudget:
        """
        Get an independent copy of the current budget.

        Never mutates the tracker.
        """
        with self._lock:
            return self._require_budget("snapshot").copy()

    def reset(self) -> None:
        """Return the budget to its freshly initialized values."""
        with self._lock:
            self._require_budget("reset")
            self._budget = self._fresh_budget()

    def to_dict(self) -> dict[str, Any]:
        """Serialize tracker state for telemetry."""
        with self._lock:
            budget = self._require_budget("to_dict")
            assert self.profile is not None
            return {
                "model_id": self.profile.model_id,
                "options": self.options.to_dict(),
                "budget": budget.to_dict(),
                "utilization": self.utilization(),
                "estimated_cost": self.estimate_cost(),
            }
