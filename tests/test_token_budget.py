"""
Tests for token budget tracking.

Tests cover:
- Budget initialization from a model profile
- Usage updates and cache token totals
- Accommodation checks and truncation advice
- Cost estimation with full and partial pricing
- Snapshots, reset and uninitialized use
"""

import threading

import pytest

from contextflow.accounting import TokenBudget, TokenBudgetOptions, TokenBudgetTracker
from contextflow.exceptions import ConfigurationError, NotInitializedError
from contextflow.providers import DEFAULT_MODEL_ID, ModelProfile


class TestTokenBudgetOptions:
    """Tests for TokenBudgetOptions validation."""

    def test_defaults(self):
        """Test default option values."""
        options = TokenBudgetOptions()
        assert options.max_input_utilization == 0.85
        assert options.output_token_buffer == 4096

    @pytest.mark.parametrize("utilization", [0.0, -0.2, 1.5])
    def test_invalid_utilization(self, utilization):
        """Test that utilization outside (0, 1] is rejected."""
        with pytest.raises(ConfigurationError):
            TokenBudgetOptions(max_input_utilization=utilization)

    def test_negative_buffer(self):
        """Test that a negative output buffer is rejected."""
        with pytest.raises(ConfigurationError):
            TokenBudgetOptions(output_token_buffer=-1)

    def test_dict_round_trip(self):
        """Test to_dict/from_dict."""
        options = TokenBudgetOptions(max_input_utilization=0.7, output_token_buffer=2048)
        assert TokenBudgetOptions.from_dict(options.to_dict()) == options


class TestInitialization:
    """Tests for binding a profile."""

    def test_fresh_budget(self, tracker):
        """Test the budget for a 200k window with default options."""
        budget = tracker.snapshot()
        assert budget.available_input_tokens == 170000
        assert budget.reserved_output_tokens == 4096
        assert budget.total_used_tokens == 0
        assert budget.cache_tokens.reads == 0
        assert budget.cache_tokens.writes == 0

    def test_initialize_returns_snapshot(self, sonnet_profile):
        """Test that initialize returns the fresh budget."""
        tracker = TokenBudgetTracker()
        budget = tracker.initialize(sonnet_profile, TokenBudgetOptions(max_input_utilization=0.5))
        assert budget.available_input_tokens == 100000
        assert tracker.is_initialized is True

    def test_missing_window_falls_back(self):
        """Test that a profile without a window uses 200000."""
        tracker = TokenBudgetTracker(ModelProfile(model_id="bare", context_window=None))
        assert tracker.context_window == 200000
        assert tracker.snapshot().available_input_tokens == 170000

    def test_for_model_unknown_id(self):
        """Test that unknown ids resolve to the default profile."""
        tracker = TokenBudgetTracker.for_model("not-a-model")
        assert tracker.profile.model_id == DEFAULT_MODEL_ID

    def test_reinitialize_discards_usage(self, tracker, sonnet_profile):
        """Test that initializing again starts a fresh budget."""
        tracker.update_usage(1000, 100)
        tracker.initialize(sonnet_profile)
        assert tracker.snapshot().total_used_tokens == 0


class TestUsageUpdates:
    """Tests for update_usage and derived queries."""

    def test_two_updates(self, tracker):
        """Test totals after two updates."""
        tracker.update_usage(100, 50)
        tracker.update_usage(100, 50)
        budget = tracker.snapshot()
        assert budget.total_used_tokens == 300
        assert budget.available_input_tokens == 170000 - 200
        assert tracker.should_truncate() is False

    def test_cache_counts(self, tracker):
        """Test that cache reads and writes accumulate."""
        tracker.update_usage(10, 5, cache_reads=800)
        tracker.update_usage(10, 5, cache_writes=300)
        tracker.update_usage(10, 5, cache_reads=None, cache_writes=0)
        budget = tracker.snapshot()
        assert budget.cache_tokens.reads == 800
        assert budget.cache_tokens.writes == 300
        # cache tokens do not count toward usage
        assert budget.total_used_tokens == 45

    def test_output_only_update(self, tracker):
        """Test an output-only update leaves available input unchanged."""
        tracker.update_usage(0, 250)
        budget = tracker.snapshot()
        assert budget.total_used_tokens == 250
        assert budget.available_input_tokens == 170000

    def test_available_can_go_negative(self, tracker):
        """Test that overspending is reported, not rejected."""
        tracker.update_usage(180000, 0)
        budget = tracker.snapshot()
        assert budget.available_input_tokens == -10000
        assert budget.is_over_budget is True

    def test_utilization(self, tracker):
        """Test utilization as a share of the window."""
        tracker.update_usage(50000, 0)
        assert tracker.utilization() == pytest.approx(0.25)

    def test_should_truncate_above_ceiling(self, tracker):
        """Test truncation advice once past 85% of the window."""
        tracker.update_usage(170000, 0)
        assert tracker.should_truncate() is False
        tracker.update_usage(0, 1)
        assert tracker.should_truncate() is True

    def test_concurrent_updates(self, tracker):
        """Test that updates from several threads are all recorded."""
        def worker():
            for _ in range(100):
                tracker.update_usage(1, 1)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert tracker.snapshot().total_used_tokens == 800


class TestCanAccommodate:
    """Tests for can_accommodate."""

    def test_over_window(self, tracker):
        """Test a request that overflows with the reserved output."""
        assert tracker.can_accommodate(198000, 5000) is False

    def test_exact_fit(self, tracker):
        """Test a request that exactly fills the window."""
        assert tracker.can_accommodate(200000 - 4096 - 1000, 1000) is True

    def test_independent_of_usage(self, tracker):
        """Test that prior usage does not change the check."""
        tracker.update_usage(150000, 0)
        assert tracker.can_accommodate(1000, 1000) is True


class TestEstimateCost:
    """Tests for estimate_cost."""

    def test_priced_profile(self, tracker):
        """Test input pricing applied to total usage plus cache costs."""
        tracker.update_usage(1000, 500, cache_reads=2000, cache_writes=1000)
        expected = (1500 * 3.0 + 2000 * 0.3 + 1000 * 3.75) / 1_000_000
        assert tracker.estimate_cost() == pytest.approx(expected)

    def test_missing_output_price(self):
        """Test that a profile without output pricing costs 0."""
        tracker = TokenBudgetTracker(ModelProfile(model_id="free", input_price=3.0))
        tracker.update_usage(1000, 1000)
        assert tracker.estimate_cost() == 0.0

    def test_missing_cache_price(self):
        """Test that the cache component is 0 if either cache price is missing."""
        profile = ModelProfile(
            model_id="partial", input_price=2.0, output_price=10.0, cache_read_price=0.2
        )
        tracker = TokenBudgetTracker(profile)
        tracker.update_usage(1000, 0, cache_reads=5000)
        assert tracker.estimate_cost() == pytest.approx(1000 * 2.0 / 1_000_000)


class TestSnapshotAndReset:
    """Tests for snapshot independence and reset."""

    def test_snapshot_idempotent(self, tracker):
        """Test that repeated snapshots are equal and independent."""
        tracker.update_usage(10, 5, cache_reads=3)
        first = tracker.snapshot()
        second = tracker.snapshot()
        assert first == second
        assert first is not second
        assert first.cache_tokens is not second.cache_tokens

    def test_snapshot_not_aliased(self, tracker):
        """Test that mutating a snapshot does not touch the tracker."""
        snapshot = tracker.snapshot()
        snapshot.total_used_tokens = 999
        snapshot.cache_tokens.reads = 999
        assert tracker.snapshot().total_used_tokens == 0
        assert tracker.snapshot().cache_tokens.reads == 0

    def test_reset_matches_fresh(self, tracker, sonnet_profile):
        """Test that reset equals a freshly initialized budget."""
        fresh = TokenBudgetTracker(sonnet_profile).snapshot()
        tracker.update_usage(5000, 2000, cache_reads=100, cache_writes=100)
        tracker.reset()
        assert tracker.snapshot() == fresh

    def test_to_dict(self, tracker):
        """Test the telemetry dictionary."""
        tracker.update_usage(100, 20)
        data = tracker.to_dict()
        assert data["model_id"] == DEFAULT_MODEL_ID
        assert data["budget"]["total_used_tokens"] == 120
        assert data["options"]["output_token_buffer"] == 4096
        assert isinstance(TokenBudget(1, 2).to_dict()["cache_tokens"], dict)


class TestUninitialized:
    """Tests for use before a profile is bound."""

    @pytest.mark.parametrize(
        "operation",
        [
            lambda t: t.update_usage(1, 1),
            lambda t: t.can_accommodate(1, 1),
            lambda t: t.should_truncate(),
            lambda t: t.estimate_cost(),
            lambda t: t.snapshot(),
            lambda t: t.reset(),
        ],
    )
    def test_operations_raise(self, operation):
        """Test that ledger operations require initialization."""
        tracker = TokenBudgetTracker()
        assert tracker.is_initialized is False
        with pytest.raises(NotInitializedError) as exc_info:
            operation(tracker)
        assert exc_info.value.component == "TokenBudgetTracker"
