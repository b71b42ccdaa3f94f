"""
Session ledgers for contextflow.

TokenBudgetTracker follows consumption against the context window;
CacheAccountant classifies prompt-cache hits and misses.

Example:
    >>> from contextflow.accounting import CacheAccountant, TokenBudgetTracker
    >>>
    >>> tracker = TokenBudgetTracker.for_model("claude-3-5-haiku-20241022")
    >>> tracker.update_usage(input_tokens=100, output_tokens=50)
    >>> tracker.snapshot().total_used_tokens
    150
"""

from contextflow.accounting.cache_accountant import (
    CacheAccountant,
    CacheEfficiency,
    CacheMetrics,
)
from contextflow.accounting.token_budget import (
    CacheTokenCounts,
    TokenBudget,
    TokenBudgetOptions,
    TokenBudgetTracker,
)

__all__ = [
    "CacheAccountant",
    "CacheEfficiency",
    "CacheMetrics",
    "CacheTokenCounts",
    "TokenBudget",
    "TokenBudgetOptions",
    "TokenBudgetTracker",
]
