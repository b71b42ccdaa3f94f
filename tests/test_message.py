"""
Tests for conversation messages.

Tests cover:
- Token estimation
- Flattening segments and detecting tool activity
- Rendering to the Anthropic message format with cache breakpoints
- Building positioned histories from dicts
"""

import pytest

from contextflow.context import (
    Message,
    MessageRole,
    TextSegment,
    ToolResultSegment,
    ToolUseSegment,
    build_history,
    estimate_tokens,
    total_tokens,
)


class TestEstimateTokens:
    """Tests for the token estimate heuristic."""

    def test_empty_text(self):
        """Test that empty text has no tokens."""
        assert estimate_tokens("") == 0

    def test_short_text(self):
        """Test a short greeting."""
        assert estimate_tokens("Hello, world!") == 2

    def test_minimum_one_token(self):
        """Test that any non-empty text counts at least one token."""
        assert estimate_tokens("a") == 1

    def test_grows_with_length(self):
        """Test that longer text estimates more tokens."""
        short = estimate_tokens("one two three")
        long = estimate_tokens("one two three " * 50)
        assert long > short


class TestMessageFlattening:
    """Tests for flattened text and tool detection."""

    def test_plain_text(self):
        """Test flattening a single text segment."""
        assert Message.user("hello").flatten_text() == "hello"

    def test_segments_joined_with_space(self):
        """Test that segments are joined by a single space."""
        message = Message(
            role=MessageRole.ASSISTANT,
            content=(TextSegment("Looking it up"), ToolUseSegment(id="t1", name="search")),
        )
        assert message.flatten_text() == "Looking it up [tool_use: search]"

    def test_tool_use_detected(self):
        """Test tool activity detection for a tool call."""
        message = Message(
            role=MessageRole.ASSISTANT,
            content=(ToolUseSegment(id="t1", name="search", input={"q": "x"}),),
        )
        assert message.has_tool_activity() is True

    def test_tool_result_detected(self):
        """Test tool activity detection for a tool result."""
        message = Message(
            role=MessageRole.USER,
            content=(ToolResultSegment(tool_use_id="t1", content="3 results"),),
        )
        assert message.flatten_text() == "[tool_result: 3 results]"
        assert message.has_tool_activity() is True

    def test_marker_in_plain_text_counts(self):
        """Test that plain text mentioning tool_use is detected."""
        assert Message.user("the tool_use block failed").has_tool_activity() is True

    def test_plain_text_not_tool(self):
        """Test that ordinary text has no tool activity."""
        assert Message.user("just chatting").has_tool_activity() is False

    def test_token_count(self):
        """Test the per-message token estimate."""
        assert Message.user("Hello, world!").token_count == 2


class TestAnthropicFormat:
    """Tests for rendering messages as Messages API params."""

    def test_plain_text_as_string(self):
        """Test that a plain message renders string content."""
        assert Message.user("hi").to_anthropic_format() == {"role": "user", "content": "hi"}

    def test_breakpoint_renders_blocks(self):
        """Test that a breakpoint forces block content with cache_control."""
        rendered = Message.user("hi").with_cache_breakpoint().to_anthropic_format()
        assert rendered == {
            "role": "user",
            "content": [{"type": "text", "text": "hi", "cache_control": {"type": "ephemeral"}}],
        }

    def test_breakpoint_on_last_block_only(self):
        """Test that only the last block carries cache_control."""
        message = Message(
            role=MessageRole.USER,
            content=(
                ToolResultSegment(tool_use_id="t1", content="done"),
                TextSegment("Continue."),
            ),
            cache_breakpoint=True,
        )
        blocks = message.to_anthropic_format()["content"]
        assert "cache_control" not in blocks[0]
        assert blocks[1]["cache_control"] == {"type": "ephemeral"}

    def test_tool_blocks(self):
        """Test rendering tool use and tool result blocks."""
        use = ToolUseSegment(id="t1", name="search", input={"q": "x"})
        result = ToolResultSegment(tool_use_id="t1", content="boom", is_error=True)
        assert use.to_anthropic_format() == {
            "type": "tool_use", "id": "t1", "name": "search", "input": {"q": "x"},
        }
        assert result.to_anthropic_format() == {
            "type": "tool_result", "tool_use_id": "t1", "content": "boom", "is_error": True,
        }

    def test_with_cache_breakpoint_is_copy(self):
        """Test that marking a message leaves the original untouched."""
        original = Message.user("hi")
        marked = original.with_cache_breakpoint()
        assert marked.cache_breakpoint is True
        assert original.cache_breakpoint is False

    def test_messages_are_frozen(self):
        """Test that messages cannot be mutated."""
        message = Message.user("hi")
        with pytest.raises(AttributeError):
            message.position = 3


class TestFromDict:
    """Tests for building messages from dicts."""

    def test_string_content(self):
        """Test a string-content message."""
        message = Message.from_dict({"role": "assistant", "content": "ok"}, position=4)
        assert message.role == MessageRole.ASSISTANT
        assert message.content == (TextSegment("ok"),)
        assert message.position == 4

    def test_block_content(self):
        """Test a block-content message with tool blocks."""
        message = Message.from_dict({
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": "t1",
                 "content": [{"type": "text", "text": "line one"}]},
                {"type": "image", "source": {}},
                {"type": "text", "text": "Next?"},
            ],
        })
        assert message.content == (
            ToolResultSegment(tool_use_id="t1", content="line one"),
            TextSegment("Next?"),
        )

    def test_round_trip_preserves_breakpoint(self):
        """Test that to_dict output builds an equal message."""
        message = Message.user("hi", position=2).with_cache_breakpoint()
        assert Message.from_dict(message.to_dict()) == message

    def test_invalid_role(self):
        """Test that an unknown role is rejected."""
        with pytest.raises(ValueError):
            Message.from_dict({"role": "system", "content": "x"})


class TestBuildHistory:
    """Tests for build_history and total_tokens."""

    def test_positions_follow_index(self):
        """Test that positions are assigned by list index."""
        history = build_history([
            {"role": "user", "content": "a"},
            Message.assistant("b", position=9),
        ])
        assert [msg.position for msg in history] == [0, 1]
        assert history[1].flatten_text() == "b"

    def test_total_tokens(self, sample_history):
        """Test that total_tokens sums per-message estimates."""
        assert total_tokens(sample_history) == sum(msg.token_count for msg in sample_history)
        assert total_tokens([]) == 0
