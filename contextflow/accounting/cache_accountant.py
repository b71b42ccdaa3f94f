"""
Prompt-cache hit/miss accounting.

Each provider usage record is classified as a cache hit (tokens were
read from the cache) or a cache miss (tokens were written to it), and
the savings against fresh-input pricing are accumulated.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)

PRICE_UNIT_TOKENS = 1_000_000


@dataclass
class CacheMetrics:
    """
    Session cache counters.

    Attributes:
        hits: Requests served (at least partly) from the cache.
        misses: Requests that only wrote to the cache.
        total_tokens_saved: Baseline input tokens minus cache-read tokens.
        write_tokens: Tokens written to the cache.
        read_tokens: Tokens read from the cache.
        cost_saved: USD saved versus fresh input pricing. Can go negative
            when cache reads cost more than the baseline they replace.
    """

    hits: int = 0
    misses: int = 0
    total_tokens_saved: int = 0
    write_tokens: int = 0
    read_tokens: int = 0
    cost_saved: float = 0.0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_tokens_saved": self.total_tokens_saved,
            "write_tokens": self.write_tokens,
            "read_tokens": self.read_tokens,
            "cost_saved": self.cost_saved,
        }


@dataclass(frozen=True)
class CacheEfficiency:
    """
    Derived cache ratios.

    Attributes:
        hit_rate: hits / (hits + misses).
        token_savings_rate: tokens saved / (read + write tokens).
        cost_efficiency: USD saved per cache-write token.
    """

    hit_rate: float = 0.0
    token_savings_rate: float = 0.0
    cost_efficiency: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hit_rate": self.hit_rate,
            "token_savings_rate": self.token_savings_rate,
            "cost_efficiency": self.cost_efficiency,
        }


class CacheAccountant:
    """
    Ledger of prompt-cache activity for one session.

    Example:
        >>> accountant = CacheAccountant()
        >>> accountant.track_usage(
        ...     cache_read_tokens=500,
        ...     baseline_input_tokens=1000,
        ...     base_input_price=3.0,
        ...     cache_read_price=0.3,
        ... )
        >>> accountant.snapshot().hits
        1
        >>> round(accountant.snapshot().cost_saved, 5)
        0.00285
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._metrics = CacheMetrics()

    def track_usage(
        self,
        cache_read_tokens: int | None = None,
        cache_write_tokens: int | None = None,
        baseline_input_tokens: int = 0,
        base_input_price: float | None = None,
        cache_read_price: float | None = None,
    ) -> None:
        """
        Classify one usage record as a hit or a miss.

        Reads take precedence: a record with both reads and writes counts
        only as a hit. Records with neither leave the ledger untouched.
        Missing prices count as 0.

        Args:
            cache_read_tokens: Tokens served from the cache.
            cache_write_tokens: Tokens written to the cache.
            baseline_input_tokens: Fresh input tokens reported alongside.
            base_input_price: Price per million fresh input tokens.
            cache_read_price: Price per million cache-read tokens.
        """
        base_price = base_input_price or 0.0
        read_price = cache_read_price or 0.0

        with self._lock:
            metrics = self._metrics
            if cache_read_tokens and cache_read_tokens > 0:
                metrics.hits += 1
                metrics.read_tokens += cache_read_tokens

                base_cost = baseline_input_tokens * base_price / PRICE_UNIT_TOKENS
                cache_cost = cache_read_tokens * read_price / PRICE_UNIT_TOKENS
                metrics.cost_saved += base_cost - cache_cost
                metrics.total_tokens_saved += baseline_input_tokens - cache_read_tokens

                logger.debug(
                    f"Cache hit: read={cache_read_tokens}, baseline={baseline_input_tokens}, "
                    f"saved=${base_cost - cache_cost:.6f}"
                )
            elif cache_write_tokens and cache_write_tokens > 0:
                metrics.write_tokens += cache_write_tokens
                metrics.misses += 1

                logger.debug(f"Cache miss: wrote {cache_write_tokens} tokens")

    def get_efficiency(self) -> CacheEfficiency:
        """
        Compute hit rate, token savings rate and cost efficiency.

        Every ratio is 0 when its denominator is 0.
        """
        with self._lock:
            m = self._metrics
            total_requests = m.hits + m.misses
            hit_rate = m.hits / total_requests if total_requests > 0 else 0.0

            cache_tokens = m.read_tokens + m.write_tokens
            token_savings_rate = m.total_tokens_saved / cache_tokens if cache_tokens > 0 else 0.0

            cost_efficiency = m.cost_saved / m.write_tokens if m.write_tokens > 0 else 0.0

            return CacheEfficiency(
                hit_rate=hit_rate,
                token_savings_rate=token_savings_rate,
                cost_efficiency=cost_efficiency,
            )

    def snapshot(self) -> CacheMetrics:
        """Get an independent copy of the counters."""
        with self._lock:
            return replace(self._metrics)

    def reset(self) -> None:
        """Zero every counter."""
        with self._lock:
            self._metrics = CacheMetrics()
