"""
Tests for the Anthropic SDK transport.
"""

import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from contextflow.contrib.anthropic import AnthropicTransport
from contextflow.streaming import StreamCoordinator, collect_text
from tests.fakes import two_block_turn


async def replay(events):
    for event in events:
        yield event


def make_client(events=None):
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=replay(events or []))
    return client


class TestAnthropicTransport:
    """Tests for AnthropicTransport."""

    @pytest.mark.asyncio
    async def test_streams_with_request(self):
        """Test that the request is sent with the stream flag."""
        client = make_client()
        transport = AnthropicTransport(client)
        request = {"model": "claude-3-5-sonnet-20241022", "max_tokens": 10, "messages": []}

        await transport(request)

        client.messages.create.assert_awaited_once_with(
            model="claude-3-5-sonnet-20241022", max_tokens=10, messages=[], stream=True
        )

    @pytest.mark.asyncio
    async def test_extra_params_merged(self):
        """Test that extra params are sent and request fields win."""
        client = make_client()
        transport = AnthropicTransport(
            client, extra_params={"metadata": {"user_id": "u1"}, "max_tokens": 1}
        )

        await transport({"model": "m", "max_tokens": 10, "messages": []})

        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["metadata"] == {"user_id": "u1"}
        assert kwargs["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_drives_coordinator(self, sonnet_profile, sample_history):
        """Test a full dispatch through the SDK transport."""
        transport = AnthropicTransport(make_client(two_block_turn()))
        coordinator = StreamCoordinator(transport, sonnet_profile)

        chunks = [chunk async for chunk in coordinator.dispatch(sample_history)]

        assert collect_text(chunks) == "Hello world\nSecond"

    def test_missing_sdk(self):
        """Test the install hint when the SDK is unavailable."""
        with patch.dict(sys.modules, {"anthropic": None}):
            with pytest.raises(ImportError, match="pip install contextflow\\[anthropic\\]"):
                AnthropicTransport()

    def test_builds_client_from_kwargs(self):
        """Test that a client is created when none is passed."""
        fake_module = MagicMock()
        with patch.dict(sys.modules, {"anthropic": fake_module}):
            transport = AnthropicTransport(api_key="sk-test", max_retries=5)

        fake_module.AsyncAnthropic.assert_called_once_with(api_key="sk-test", max_retries=5)
        assert transport.client is fake_module.AsyncAnthropic.return_value
