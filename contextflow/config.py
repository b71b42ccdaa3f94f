"""
Configuration for contextflow sessions.

Groups the budget, truncation and request options a StreamCoordinator
is built from. Every options object round-trips through to_dict() /
from_dict() and validates itself on construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from contextflow.accounting.token_budget import TokenBudgetOptions
from contextflow.context.truncation import TruncationOptions
from contextflow.exceptions import ConfigurationError
from contextflow.providers.anthropic_adapter import MAX_CACHE_BREAKPOINTS


@dataclass
class CoordinatorConfig:
    """
    Configuration for a StreamCoordinator.

    Attributes:
        model_id: Model to resolve from the registry (None for the default).
        budget: Token budget options.
        truncation: Relevance truncation options.
        cache_breakpoints: Trailing user messages marked for prompt caching
            (0 disables message breakpoints).
        temperature: Sampling temperature sent with each request.
        max_output_tokens: Response limit; None uses the model's limit.
    """

    model_id: str | None = None
    budget: TokenBudgetOptions = field(default_factory=TokenBudgetOptions)
    truncation: TruncationOptions = field(default_factory=TruncationOptions)
    cache_breakpoints: int = MAX_CACHE_BREAKPOINTS
    temperature: float = 0.0
    max_output_tokens: int | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.cache_breakpoints <= MAX_CACHE_BREAKPOINTS:
            raise ConfigurationError(
                "cache_breakpoints",
                expected=f"an integer in 0..{MAX_CACHE_BREAKPOINTS}",
                received=self.cache_breakpoints,
            )
        if not 0.0 <= self.temperature <= 1.0:
            raise ConfigurationError(
                "temperature", expected="a float in [0, 1]", received=self.temperature
            )
        if self.max_output_tokens is not None and self.max_output_tokens <= 0:
            raise ConfigurationError(
                "max_output_tokens",
                expected="a positive integer or None",
                received=self.max_output_tokens,
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "model_id": self.model_id,
            "budget": self.budget.to_dict(),
            "truncation": self.truncation.to_dict(),
            "cache_breakpoints": self.cache_breakpoints,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoordinatorConfig:
        """Create config from dictionary."""
        return cls(
            model_id=data.get("model_id"),
            budget=TokenBudgetOptions.from_dict(data.get("budget", {})),
            truncation=TruncationOptions.from_dict(data.get("truncation", {})),
            cache_breakpoints=data.get("cache_breakpoints", MAX_CACHE_BREAKPOINTS),
            temperature=data.get("temperature", 0.0),
            max_output_tokens=data.get("max_output_tokens"),
        )
