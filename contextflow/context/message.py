"""
Conversation messages for contextflow.

Messages are immutable. The coordinator never edits a caller's history;
it builds annotated copies (cache breakpoints) when preparing a request.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

CACHE_CONTROL_EPHEMERAL: dict[str, str] = {"type": "ephemeral"}

TOOL_USE_MARKER = "tool_use"
TOOL_RESULT_MARKER = "tool_result"


class MessageRole(Enum):
    """Role of a message author."""

    USER = "user"
    ASSISTANT = "assistant"


class SegmentType(Enum):
    """Kinds of content segments inside a message."""

    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"


def estimate_tokens(text: str) -> int:
    """
    Estimate token count without a tokenizer dependency.

    Blends a word-based and a character-based estimate; good to roughly
    10-15% for English text.

    Args:
        text: The text to estimate tokens for.

    Returns:
        Estimated token count.

    Example:
        >>> estimate_tokens("Hello, world!")
        2
    """
    if not text:
        return 0

    words = len(text.split())
    chars = len(text)

    # ~1.3 tokens per word, ~4 chars per token
    word_estimate = int(words * 1.3)
    char_estimate = chars // 4

    return max(1, (word_estimate + char_estimate) // 2)


@dataclass(frozen=True)
class TextSegment:
    """Plain text content."""

    text: str
    type: SegmentType = field(default=SegmentType.TEXT, init=False)

    def flatten(self) -> str:
        return self.text

    def to_anthropic_format(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ToolUseSegment:
    """A tool invocation requested by the assistant."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: SegmentType = field(default=SegmentType.TOOL_USE, init=False)

    def flatten(self) -> str:
        return f"[{TOOL_USE_MARKER}: {self.name}]"

    def to_anthropic_format(self) -> dict[str, Any]:
        return {
            "type": "tool_use",
            "id": self.id,
            "name": self.name,
            "input": dict(self.input),
        }


@dataclass(frozen=True)
class ToolResultSegment:
    """The result of a tool invocation, sent back by the user side."""

    tool_use_id: str
    content: str = ""
    is_error: bool = False
    type: SegmentType = field(default=SegmentType.TOOL_RESULT, init=False)

    def flatten(self) -> str:
        if self.content:
            return f"[{TOOL_RESULT_MARKER}: {self.content}]"
        return f"[{TOOL_RESULT_MARKER}]"

    def to_anthropic_format(self) -> dict[str, Any]:
        formatted: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            formatted["is_error"] = True
        return formatted


ContentSegment = Union[TextSegment, ToolUseSegment, ToolResultSegment]


def _segment_from_dict(block: Any) -> ContentSegment | None:
    """Convert an Anthropic content block (dict form) into a segment."""
    if isinstance(block, str):
        return TextSegment(block)
    if not isinstance(block, dict):
        return None

    block_type = block.get("type")
    if block_type == "text":
        return TextSegment(block.get("text", ""))
    if block_type == "tool_use":
        tool_input = block.get("input", {})
        return ToolUseSegment(
            id=block.get("id", ""),
            name=block.get("name", "unknown"),
            input=tool_input if isinstance(tool_input, dict) else {},
        )
    if block_type == "tool_result":
        content = block.get("content", "")
        if isinstance(content, list):
            # Nested blocks: keep their text only
            content = " ".join(
                part.get("text", "") for part in content if isinstance(part, dict)
            )
        elif not isinstance(content, str):
            content = json.dumps(content, default=str)
        return ToolResultSegment(
            tool_use_id=block.get("tool_use_id", ""),
            content=content,
            is_error=bool(block.get("is_error", False)),
        )
    # Images, documents and future block types carry no text
    return None


@dataclass(frozen=True)
class Message:
    """
    A single message in a conversation history.

    Attributes:
        role: The role of the message author.
        content: Ordered content segments.
        position: Ordinal position in the history it was taken from.
        cache_breakpoint: Whether a prompt-cache marker is overlaid on the
            last content segment when the message is rendered.
    """

    role: MessageRole
    content: tuple[ContentSegment, ...]
    position: int = 0
    cache_breakpoint: bool = False

    @classmethod
    def user(cls, text: str, position: int = 0) -> Message:
        """Create a plain-text user message."""
        return cls(role=MessageRole.USER, content=(TextSegment(text),), position=position)

    @classmethod
    def assistant(cls, text: str, position: int = 0) -> Message:
        """Create a plain-text assistant message."""
        return cls(
            role=MessageRole.ASSISTANT, content=(TextSegment(text),), position=position
        )

    @property
    def is_user(self) -> bool:
        return self.role == MessageRole.USER

    @property
    def token_count(self) -> int:
        """Estimated token count of the flattened content."""
        return estimate_tokens(self.flatten_text())

    def flatten_text(self) -> str:
        """
        Join segment texts with a single space.

        Tool segments render as bracketed markers so tool activity is
        visible to text-based heuristics.
        """
        return " ".join(segment.flatten() for segment in self.content)

    def has_tool_activity(self) -> bool:
        """Whether the flattened text mentions a tool use or tool result."""
        text = self.flatten_text()
        return TOOL_USE_MARKER in text or TOOL_RESULT_MARKER in text

    def with_cache_breakpoint(self) -> Message:
        """Return a copy carrying the cache-breakpoint overlay."""
        return replace(self, cache_breakpoint=True)

    def with_position(self, position: int) -> Message:
        """Return a copy with a different ordinal position."""
        return replace(self, position=position)

    def to_anthropic_format(self) -> dict[str, Any]:
        """
        Render as an Anthropic MessageParam.

        Plain single-text messages without a breakpoint render as string
        content. With a breakpoint, content always renders as blocks and
        the last block carries cache_control.

        Returns:
            Dictionary suitable for the Messages API.
        """
        if (
            not self.cache_breakpoint
            and len(self.content) == 1
            and isinstance(self.content[0], TextSegment)
        ):
            return {"role": self.role.value, "content": self.content[0].text}

        blocks = [segment.to_anthropic_format() for segment in self.content]
        if self.cache_breakpoint:
            if not blocks:
                blocks = [{"type": "text", "text": ""}]
            blocks[-1] = {**blocks[-1], "cache_control": dict(CACHE_CONTROL_EPHEMERAL)}
        return {"role": self.role.value, "content": blocks}

    def to_dict(self) -> dict[str, Any]:
        """Convert message to dictionary format."""
        return {
            **self.to_anthropic_format(),
            "position": self.position,
            "cache_breakpoint": self.cache_breakpoint,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], position: int | None = None) -> Message:
        """
        Create a message from an Anthropic MessageParam dictionary.

        Args:
            data: Dictionary with "role" and "content" (string or block list).
            position: Ordinal position; defaults to data["position"] or 0.

        Returns:
            Message instance.
        """
        raw_content = data.get("content", "")
        if isinstance(raw_content, str):
            segments: tuple[ContentSegment, ...] = (TextSegment(raw_content),)
        else:
            converted = (_segment_from_dict(block) for block in raw_content or [])
            segments = tuple(seg for seg in converted if seg is not None)

        if position is None:
            position = data.get("position", 0)

        return cls(
            role=MessageRole(data["role"]),
            content=segments,
            position=position,
            cache_breakpoint=bool(data.get("cache_breakpoint", False)),
        )


def build_history(messages: list[dict[str, Any] | Message]) -> list[Message]:
    """
    Normalize a mixed list of dicts and messages into positioned messages.

    Args:
        messages: Anthropic-style dicts or Message instances.

    Returns:
        Messages whose positions match their index in the list.
    """
    history: list[Message] = []
    for index, item in enumerate(messages):
        if isinstance(item, Message):
            history.append(item if item.position == index else item.with_position(index))
        else:
            history.append(Message.from_dict(item, position=index))
    return history


def total_tokens(messages: list[Message]) -> int:
    """Estimated token count across all messages."""
    return sum(msg.token_count for msg in messages)
