"""
Relevance-based history truncation.

Keeps the opening task message plus the highest-scoring remaining
messages, in their original order. Scoring blends recency, content
length and tool activity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from contextflow.context.message import Message
from contextflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LENGTH_NORMALIZER = 1000
"""Characters of flattened text that earn the full length score."""

RETAIN_RATIO = 0.5
"""Share of the history kept before the min/max clamp is applied."""


@dataclass
class TruncationOptions:
    """
    Configuration for relevance truncation.

    Attributes:
        min_retain_count: Minimum number of scored messages to keep.
        max_retain_count: Maximum number of scored messages to keep.
        recent_message_weight: Weight of the recency component.
        content_length_weight: Weight of the content-length component.
        tool_use_weight: Weight of the tool-activity component.
    """

    min_retain_count: int = 4
    max_retain_count: int = 20
    recent_message_weight: float = 0.4
    content_length_weight: float = 0.3
    tool_use_weight: float = 0.3

    def __post_init__(self) -> None:
        if self.min_retain_count < 0:
            raise ConfigurationError(
                "min_retain_count", expected="an integer >= 0", received=self.min_retain_count
            )
        if self.max_retain_count < self.min_retain_count:
            raise ConfigurationError(
                "max_retain_count",
                expected=f"an integer >= min_retain_count ({self.min_retain_count})",
                received=self.max_retain_count,
            )
        for name in ("recent_message_weight", "content_length_weight", "tool_use_weight"):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    name, expected="a weight >= 0", received=getattr(self, name)
                )

    def retain_count(self, history_length: int) -> int:
        """
        Number of scored messages to keep for a history of the given length.

        Args:
            history_length: Length of the full history, first message included.

        Returns:
            floor(history_length * 0.5) clamped to [min, max].
        """
        return min(
            max(self.min_retain_count, int(history_length * RETAIN_RATIO)),
            self.max_retain_count,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert options to dictionary."""
        return {
            "min_retain_count": self.min_retain_count,
            "max_retain_count": self.max_retain_count,
            "recent_message_weight": self.recent_message_weight,
            "content_length_weight": self.content_length_weight,
            "tool_use_weight": self.tool_use_weight,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TruncationOptions:
        """Create options from dictionary, filling in defaults."""
        defaults = cls()
        return cls(
            min_retain_count=data.get("min_retain_count", defaults.min_retain_count),
            max_retain_count=data.get("max_retain_count", defaults.max_retain_count),
            recent_message_weight=data.get(
                "recent_message_weight", defaults.recent_message_weight
            ),
            content_length_weight=data.get(
                "content_length_weight", defaults.content_length_weight
            ),
            tool_use_weight=data.get("tool_use_weight", defaults.tool_use_weight),
        )


@dataclass(frozen=True)
class MessageRelevance:
    """
    Score assigned to one candidate message.

    Attributes:
        index: Index of the message in the full history.
        score: Composite relevance score.
    """

    index: int
    score: float


class RelevanceTruncator:
    """
    Select a bounded, chronologically ordered subset of a history.

    The first message (the task statement) is always kept and never
    scored. Truncation is a pure function of its input: no I/O, no
    mutation of the messages passed in.

    Example:
        >>> truncator = RelevanceTruncator(TruncationOptions(max_retain_count=10))
        >>> kept = truncator.truncate(history)
        >>> kept[0] is history[0]
        True
    """

    def __init__(self, options: TruncationOptions | None = None) -> None:
        self.options = options or TruncationOptions()

    def score_message(self, message: Message, index: int, total: int) -> float:
        """
        Score a candidate message.

        Args:
            message: The message to score.
            index: Zero-based position among the candidates.
            total: Number of candidates.

        Returns:
            The weighted relevance score.
        """
        opts = self.options
        text = message.flatten_text()

        recency = (index + 1) / total
        length = min(len(text) / LENGTH_NORMALIZER, 1.0)
        tool_use = 1.0 if message.has_tool_activity() else 0.0

        return (
            recency * opts.recent_message_weight
            + length * opts.content_length_weight
            + tool_use * opts.tool_use_weight
        )

    def score_messages(self, history: list[Message]) -> list[MessageRelevance]:
        """
        Score every message after the first, in history order.

        Returns:
            One MessageRelevance per candidate, indexed against the full history.
        """
        candidates = history[1:]
        total = len(candidates)
        return [
            MessageRelevance(index=i + 1, score=self.score_message(msg, i, total))
            for i, msg in enumerate(candidates)
        ]

    def truncate(self, history: list[Message]) -> list[Message]:
        """
        Keep the first message plus the top-scoring others, in order.

        Args:
            history: Ordered message history.

        Returns:
            A new list of at most 1 + retain_count messages. Histories of
            length 0 or 1 are returned unchanged.
        """
        if len(history) <= 1:
            return list(history)

        retain = self.options.retain_count(len(history))
        scored = self.score_messages(history)

        # sorted() is stable, so equal scores keep chronological order
        ranked = sorted(scored, key=lambda rel: rel.score, reverse=True)
        keep = sorted(rel.index for rel in ranked[:retain])

        result = [history[0]] + [history[i] for i in keep]

        logger.debug(
            f"Relevance truncation kept {len(result)} of {len(history)} messages "
            f"(retain_count={retain})"
        )
        return result


def truncate_by_relevance(
    history: list[Message],
    options: TruncationOptions | None = None,
) -> list[Message]:
    """
    Convenience wrapper around RelevanceTruncator.truncate.

    Args:
        history: Ordered message history.
        options: Truncation options (defaults apply when omitted).

    Returns:
        The truncated history.
    """
    return RelevanceTruncator(options).truncate(history)
