"""
Anthropic request building for contextflow.

Turns a working history into a Messages API request, including the
prompt-cache breakpoints that let the provider reuse cached prefixes.

Cache breakpoint policy: the last `count` user-authored messages (at
most two) get a breakpoint on their last content block, and the system
prompt is marked cacheable. The final user message caches the prefix
for the next turn; the one before it lets the current turn read the
prefix written on the previous turn.
"""

from __future__ import annotations

import logging
from typing import Any

from contextflow.context.message import CACHE_CONTROL_EPHEMERAL, Message
from contextflow.exceptions import ConfigurationError
from contextflow.providers.models import ModelProfile

logger = logging.getLogger(__name__)

MAX_CACHE_BREAKPOINTS = 2
"""Message-level breakpoints placed per request (the system prompt is extra)."""


def cache_breakpoint_indices(messages: list[Message], count: int = MAX_CACHE_BREAKPOINTS) -> list[int]:
    """
    Indices of the messages that receive a cache breakpoint.

    Args:
        messages: The working history.
        count: How many trailing user messages to mark (0..2).

    Returns:
        Ascending indices of the last `count` user-authored messages.

    Raises:
        ConfigurationError: If count is outside 0..2.
    """
    if not 0 <= count <= MAX_CACHE_BREAKPOINTS:
        raise ConfigurationError(
            "cache_breakpoints",
            expected=f"an integer in 0..{MAX_CACHE_BREAKPOINTS}",
            received=count,
        )
    if count == 0:
        return []
    user_indices = [i for i, msg in enumerate(messages) if msg.is_user]
    return user_indices[-count:]


def apply_cache_breakpoints(
    messages: list[Message],
    count: int = MAX_CACHE_BREAKPOINTS,
) -> list[Message]:
    """
    Return a copy of the history with breakpoints overlaid.

    The input list and its messages are left untouched.

    Args:
        messages: The working history.
        count: How many trailing user messages to mark.

    Returns:
        New list; marked messages are annotated copies.
    """
    marked = set(cache_breakpoint_indices(messages, count))
    return [
        msg.with_cache_breakpoint() if i in marked else msg
        for i, msg in enumerate(messages)
    ]


def build_system_blocks(system_prompt: str, cacheable: bool = False) -> list[dict[str, Any]]:
    """
    Render the system prompt as a list of text blocks.

    Args:
        system_prompt: The system prompt text.
        cacheable: Whether to attach an ephemeral cache_control marker.

    Returns:
        A single-block list, or an empty list for an empty prompt.
    """
    if not system_prompt:
        return []
    block: dict[str, Any] = {"type": "text", "text": system_prompt}
    if cacheable:
        block["cache_control"] = dict(CACHE_CONTROL_EPHEMERAL)
    return [block]


def build_request(
    profile: ModelProfile,
    system_prompt: str,
    messages: list[Message],
    *,
    temperature: float = 0.0,
    max_output_tokens: int | None = None,
    use_prompt_cache: bool | None = None,
    cache_breakpoints: int = MAX_CACHE_BREAKPOINTS,
) -> dict[str, Any]:
    """
    Build a Messages API request body.

    Args:
        profile: Profile of the target model.
        system_prompt: System prompt text.
        messages: Working history (already truncated if needed).
        temperature: Sampling temperature.
        max_output_tokens: Response limit; defaults to the profile's.
        use_prompt_cache: Whether to place cache breakpoints. Defaults to
            the profile's supports_prompt_cache.
        cache_breakpoints: Trailing user messages to mark when caching.

    Returns:
        Request dictionary (without the stream flag, which the transport owns).

    Example:
        >>> request = build_request(profile, "You are terse.", history)
        >>> request["messages"][-1]["content"][-1]["cache_control"]
        {'type': 'ephemeral'}
    """
    if use_prompt_cache is None:
        use_prompt_cache = profile.supports_prompt_cache

    working = messages
    if use_prompt_cache:
        working = apply_cache_breakpoints(messages, cache_breakpoints)

    request: dict[str, Any] = {
        "model": profile.model_id,
        "max_tokens": max_output_tokens or profile.effective_max_output_tokens,
        "temperature": temperature,
        "messages": [msg.to_anthropic_format() for msg in working],
    }
    system_blocks = build_system_blocks(system_prompt, cacheable=use_prompt_cache)
    if system_blocks:
        request["system"] = system_blocks

    logger.debug(
        f"Built request for {profile.model_id}: {len(working)} messages, "
        f"prompt_cache={use_prompt_cache}"
    )
    return request
