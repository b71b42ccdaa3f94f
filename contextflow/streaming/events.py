"""
Provider stream events and the normalized chunks yielded to callers.

Provider events follow the Anthropic Messages streaming protocol and may
arrive as plain dicts or as SDK objects; both forms are read through
field_value(). Event kinds, content-block kinds and delta kinds are
enums with an UNKNOWN member so new provider variants fall through as
no-ops instead of errors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


def field_value(obj: Any, key: str, default: Any = None) -> Any:
    """
    Read a field from a dict or an SDK object.

    Args:
        obj: Dict, object, or None.
        key: Field name.
        default: Value returned when the field is missing or None.

    Returns:
        The field value or the default.
    """
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(key, default)
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


class ProviderEventType(Enum):
    """Outer kinds of provider stream events."""

    MESSAGE_START = "message_start"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"
    CONTENT_BLOCK_START = "content_block_start"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    PING = "ping"
    ERROR = "error"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, event: Any) -> ProviderEventType:
        """Classify a raw event; unrecognized types map to UNKNOWN."""
        try:
            return cls(field_value(event, "type"))
        except ValueError:
            return cls.UNKNOWN


class ContentBlockType(Enum):
    """Kinds of content blocks opened by content_block_start."""

    TEXT = "text"
    TOOL_USE = "tool_use"
    THINKING = "thinking"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, block: Any) -> ContentBlockType:
        try:
            return cls(field_value(block, "type"))
        except ValueError:
            return cls.UNKNOWN


class DeltaType(Enum):
    """Kinds of deltas carried by content_block_delta."""

    TEXT_DELTA = "text_delta"
    INPUT_JSON_DELTA = "input_json_delta"
    THINKING_DELTA = "thinking_delta"
    SIGNATURE_DELTA = "signature_delta"
    UNKNOWN = "unknown"

    @classmethod
    def of(cls, delta: Any) -> DeltaType:
        try:
            return cls(field_value(delta, "type"))
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ProviderUsage:
    """
    Usage counters reported by the provider.

    Cache counters are None when the provider did not report them.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int | None = None
    cache_write_tokens: int | None = None

    @classmethod
    def from_raw(cls, usage: Any) -> ProviderUsage:
        """
        Build from a provider usage block (dict or SDK object).

        Maps cache_read_input_tokens and cache_creation_input_tokens onto
        the cache read/write counters.
        """
        return cls(
            input_tokens=field_value(usage, "input_tokens", 0),
            output_tokens=field_value(usage, "output_tokens", 0),
            cache_read_tokens=field_value(usage, "cache_read_input_tokens"),
            cache_write_tokens=field_value(usage, "cache_creation_input_tokens"),
        )


class ChunkKind(Enum):
    """Kinds of normalized chunks yielded to callers."""

    USAGE = "usage"
    TEXT = "text"


@dataclass(frozen=True)
class UsageChunk:
    """
    Normalized usage report.

    Attributes:
        input_tokens: Input tokens (0 for output-only deltas).
        output_tokens: Output tokens.
        cache_read_tokens: Cache-read tokens, or None when not reported.
        cache_write_tokens: Cache-write tokens, or None when not reported.
    """

    input_tokens: int
    output_tokens: int
    cache_read_tokens: int | None = None
    cache_write_tokens: int | None = None
    kind: ChunkKind = field(default=ChunkKind.USAGE, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Wire form; absent cache counters are omitted."""
        result: dict[str, Any] = {
            "type": self.kind.value,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
        }
        if self.cache_read_tokens is not None:
            result["cache_read_tokens"] = self.cache_read_tokens
        if self.cache_write_tokens is not None:
            result["cache_write_tokens"] = self.cache_write_tokens
        return result


@dataclass(frozen=True)
class TextChunk:
    """Normalized text fragment."""

    text: str
    kind: ChunkKind = field(default=ChunkKind.TEXT, init=False)

    def to_dict(self) -> dict[str, Any]:
        """Wire form."""
        return {"type": self.kind.value, "text": self.text}


StreamChunk = Union[UsageChunk, TextChunk]


def collect_text(chunks: list[StreamChunk]) -> str:
    """Concatenate the text of every TextChunk, in order."""
    return "".join(chunk.text for chunk in chunks if isinstance(chunk, TextChunk))
