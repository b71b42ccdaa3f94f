"""
Pytest fixtures for contextflow tests.

Provides model profiles, ledgers, sample histories and a scripted
transport that replays provider events.
"""

from __future__ import annotations

import pytest

from contextflow.accounting import CacheAccountant, TokenBudgetTracker
from contextflow.context import Message, TextSegment, ToolResultSegment, ToolUseSegment
from contextflow.context.message import MessageRole
from contextflow.providers import ANTHROPIC_MODELS, DEFAULT_MODEL_ID, ModelProfile
from tests.fakes import ScriptedTransport, two_block_turn


# ============================================================================
# Profile Fixtures
# ============================================================================


@pytest.fixture
def sonnet_profile() -> ModelProfile:
    """The default registered model profile."""
    return ANTHROPIC_MODELS[DEFAULT_MODEL_ID]


@pytest.fixture
def small_profile() -> ModelProfile:
    """A small-window profile that reaches the truncation threshold quickly."""
    return ModelProfile(
        model_id="test-small",
        context_window=1000,
        max_output_tokens=100,
        input_price=3.0,
        output_price=15.0,
        cache_read_price=0.3,
        cache_write_price=3.75,
        supports_prompt_cache=True,
    )


@pytest.fixture
def uncached_profile() -> ModelProfile:
    """A profile without prompt caching or pricing."""
    return ModelProfile(model_id="test-uncached")


# ============================================================================
# Ledger Fixtures
# ============================================================================


@pytest.fixture
def tracker(sonnet_profile: ModelProfile) -> TokenBudgetTracker:
    """Token budget tracker bound to the default profile."""
    return TokenBudgetTracker(sonnet_profile)


@pytest.fixture
def accountant() -> CacheAccountant:
    return CacheAccountant()


# ============================================================================
# History Fixtures
# ============================================================================


@pytest.fixture
def sample_history() -> list[Message]:
    """A short conversation with one tool round-trip."""
    return [
        Message.user("Refactor the billing module to use the new tax API.", position=0),
        Message.assistant("I'll start by reading the module.", position=1),
        Message(
            role=MessageRole.ASSISTANT,
            content=(
                TextSegment("Reading billing.py"),
                ToolUseSegment(id="toolu_01", name="read_file", input={"path": "billing.py"}),
            ),
            position=2,
        ),
        Message(
            role=MessageRole.USER,
            content=(ToolResultSegment(tool_use_id="toolu_01", content="def charge(): ..."),),
            position=3,
        ),
        Message.assistant("The charge function computes tax inline.", position=4),
        Message.user("Keep the public signature unchanged.", position=5),
    ]


@pytest.fixture
def long_history() -> list[Message]:
    """Thirty alternating plain-text messages."""
    history = []
    for i in range(30):
        if i % 2 == 0:
            history.append(Message.user(f"User message number {i}", position=i))
        else:
            history.append(Message.assistant(f"Assistant reply number {i}", position=i))
    return history


# ============================================================================
# Transport Fixtures
# ============================================================================


@pytest.fixture
def scripted_transport() -> ScriptedTransport:
    """Transport replaying a two-block turn."""
    return ScriptedTransport(two_block_turn())
