"""
Model registry for contextflow.

Holds the read-only profiles (context window, output limit, pricing)
the ledgers and the coordinator are built from. Prices are USD per
million tokens, matching the Anthropic price sheet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

FALLBACK_CONTEXT_WINDOW = 200_000
"""Context window assumed when a profile does not declare one."""

FALLBACK_MAX_OUTPUT_TOKENS = 8192
"""Output limit assumed when a profile does not declare one."""


@dataclass(frozen=True)
class ModelProfile:
    """
    Static description of a hosted model.

    Attributes:
        model_id: Provider model identifier.
        context_window: Maximum tokens per request (prompt + response).
        max_output_tokens: Maximum tokens the model may generate.
        input_price: Cost per million fresh input tokens.
        output_price: Cost per million output tokens.
        cache_read_price: Cost per million tokens served from the prompt cache.
        cache_write_price: Cost per million tokens written to the prompt cache.
        supports_prompt_cache: Whether cache breakpoints may be sent.
    """

    model_id: str
    context_window: int | None = FALLBACK_CONTEXT_WINDOW
    max_output_tokens: int | None = FALLBACK_MAX_OUTPUT_TOKENS
    input_price: float | None = None
    output_price: float | None = None
    cache_read_price: float | None = None
    cache_write_price: float | None = None
    supports_prompt_cache: bool = False

    @property
    def effective_context_window(self) -> int:
        """Context window with the registry fallback applied."""
        return self.context_window or FALLBACK_CONTEXT_WINDOW

    @property
    def effective_max_output_tokens(self) -> int:
        """Output limit with the registry fallback applied."""
        return self.max_output_tokens or FALLBACK_MAX_OUTPUT_TOKENS

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "model_id": self.model_id,
            "context_window": self.context_window,
            "max_output_tokens": self.max_output_tokens,
            "input_price": self.input_price,
            "output_price": self.output_price,
            "cache_read_price": self.cache_read_price,
            "cache_write_price": self.cache_write_price,
            "supports_prompt_cache": self.supports_prompt_cache,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModelProfile:
        """Create a profile from a dictionary."""
        return cls(
            model_id=data["model_id"],
            context_window=data.get("context_window", FALLBACK_CONTEXT_WINDOW),
            max_output_tokens=data.get("max_output_tokens", FALLBACK_MAX_OUTPUT_TOKENS),
            input_price=data.get("input_price"),
            output_price=data.get("output_price"),
            cache_read_price=data.get("cache_read_price"),
            cache_write_price=data.get("cache_write_price"),
            supports_prompt_cache=data.get("supports_prompt_cache", False),
        )


ANTHROPIC_MODELS: dict[str, ModelProfile] = {
    "claude-3-5-sonnet-20241022": ModelProfile(
        model_id="claude-3-5-sonnet-20241022",
        context_window=200_000,
        max_output_tokens=8192,
        input_price=3.0,
        output_price=15.0,
        cache_read_price=0.3,
        cache_write_price=3.75,
        supports_prompt_cache=True,
    ),
    "claude-3-5-haiku-20241022": ModelProfile(
        model_id="claude-3-5-haiku-20241022",
        context_window=200_000,
        max_output_tokens=8192,
        input_price=1.0,
        output_price=5.0,
        cache_read_price=0.1,
        cache_write_price=1.25,
        supports_prompt_cache=True,
    ),
    "claude-3-opus-20240229": ModelProfile(
        model_id="claude-3-opus-20240229",
        context_window=200_000,
        max_output_tokens=4096,
        input_price=15.0,
        output_price=75.0,
        cache_read_price=1.5,
        cache_write_price=18.75,
        supports_prompt_cache=True,
    ),
    "claude-3-haiku-20240307": ModelProfile(
        model_id="claude-3-haiku-20240307",
        context_window=200_000,
        max_output_tokens=4096,
        input_price=0.25,
        output_price=1.25,
        cache_read_price=0.03,
        cache_write_price=0.3,
        supports_prompt_cache=True,
    ),
}

DEFAULT_MODEL_ID = "claude-3-5-sonnet-20241022"


def get_model_profile(model_id: str | None) -> ModelProfile | None:
    """
    Look up a profile without falling back.

    Args:
        model_id: Model identifier.

    Returns:
        The registered profile, or None for unknown ids.
    """
    if not model_id:
        return None
    return ANTHROPIC_MODELS.get(model_id)


def resolve_model_profile(
    model_id: str | None,
    registry: dict[str, ModelProfile] | None = None,
) -> ModelProfile:
    """
    Resolve a model id to a profile, falling back to the default model.

    Unknown or missing ids never fail; they resolve to the profile of
    DEFAULT_MODEL_ID.

    Args:
        model_id: Model identifier, or None for the default.
        registry: Alternate registry to search first.

    Returns:
        The resolved ModelProfile.

    Example:
        >>> resolve_model_profile("claude-3-opus-20240229").max_output_tokens
        4096
        >>> resolve_model_profile("no-such-model").model_id
        'claude-3-5-sonnet-20241022'
    """
    if registry and model_id in registry:
        return registry[model_id]
    if model_id and model_id in ANTHROPIC_MODELS:
        return ANTHROPIC_MODELS[model_id]

    if model_id:
        logger.warning(
            f"Unknown model '{model_id}', using default profile '{DEFAULT_MODEL_ID}'"
        )
    return ANTHROPIC_MODELS[DEFAULT_MODEL_ID]
