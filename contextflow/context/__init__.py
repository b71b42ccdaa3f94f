"""
Conversation history for contextflow.

Immutable messages and the relevance truncator that trims a history
to fit the token budget.
"""

from contextflow.context.message import (
    CACHE_CONTROL_EPHEMERAL,
    ContentSegment,
    Message,
    MessageRole,
    SegmentType,
    TextSegment,
    ToolResultSegment,
    ToolUseSegment,
    build_history,
    estimate_tokens,
    total_tokens,
)
from contextflow.context.truncation import (
    MessageRelevance,
    RelevanceTruncator,
    TruncationOptions,
    truncate_by_relevance,
)

__all__ = [
    # Messages
    "CACHE_CONTROL_EPHEMERAL",
    "ContentSegment",
    "Message",
    "MessageRole",
    "SegmentType",
    "TextSegment",
    "ToolResultSegment",
    "ToolUseSegment",
    "build_history",
    "estimate_tokens",
    "total_tokens",
    # Truncation
    "MessageRelevance",
    "RelevanceTruncator",
    "TruncationOptions",
    "truncate_by_relevance",
]
