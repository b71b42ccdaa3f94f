"""
Streaming for contextflow.

Normalized stream chunks and the coordinator that produces them from a
provider event stream.
"""

from contextflow.streaming.coordinator import (
    CoordinatorState,
    StreamCoordinator,
    Transport,
    create_coordinator,
)
from contextflow.streaming.events import (
    ChunkKind,
    ContentBlockType,
    DeltaType,
    ProviderEventType,
    ProviderUsage,
    StreamChunk,
    TextChunk,
    UsageChunk,
    collect_text,
)

__all__ = [
    # Coordinator
    "CoordinatorState",
    "StreamCoordinator",
    "Transport",
    "create_coordinator",
    # Events and chunks
    "ChunkKind",
    "ContentBlockType",
    "DeltaType",
    "ProviderEventType",
    "ProviderUsage",
    "StreamChunk",
    "TextChunk",
    "UsageChunk",
    "collect_text",
]
