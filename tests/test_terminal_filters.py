"""
Tests for terminal output noise filtering.
"""

import pytest

from contextflow.terminal_filters import NOISE_PATTERNS, filter_output, should_filter_line


class TestShouldFilterLine:
    """Tests for should_filter_line."""

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "   \t ",
            "Collecting requests==2.31.0",
            "  Downloading requests-2.31.0-py3-none-any.whl (62 kB)",
            "Installing collected packages: urllib3, requests",
            "Successfully installed requests-2.31.0",
            "Requirement already satisfied: six in ./venv/lib",
            "━━━━━━━━━━━━━━━━━━━━━━━━ 62.6/62.6 kB 3.1 MB/s eta 0:00:00",
            "added 120 packages, and audited 121 packages in 3s",
            "removed 2 packages",
            "up to date, audited 50 packages in 1s",
            "npm WARN deprecated inflight@1.0.6",
            "14 packages are looking for funding",
            "  run `npm fund` for details",
            "found 0 vulnerabilities",
            "[3/10] Compiling module",
            " 45% |████      | ETA",
            "⠋ Installing dependencies",
            "$",
            ">   ",
            "\x1b[2K",
        ],
    )
    def test_noise_filtered(self, line):
        """Test that known noise lines are dropped."""
        assert should_filter_line(line) is True

    @pytest.mark.parametrize(
        "line",
        [
            "Traceback (most recent call last):",
            "error: could not compile `parser`",
            "FAILED tests/test_api.py::test_login - AssertionError",
            "def main():",
            "Build succeeded",
        ],
    )
    def test_signal_kept(self, line):
        """Test that meaningful output is kept."""
        assert should_filter_line(line) is False

    def test_none_filtered(self):
        """Test that None is treated as empty."""
        assert should_filter_line(None) is True

    def test_whitespace_normalized(self):
        """Test that whitespace runs collapse before matching."""
        assert should_filter_line("\t  Successfully    installed   six") is True

    def test_patterns_immutable(self):
        """Test that the pattern list is a tuple."""
        assert isinstance(NOISE_PATTERNS, tuple)


class TestFilterOutput:
    """Tests for filter_output."""

    def test_mixed_output(self):
        """Test filtering a pip log with an error."""
        output = "\n".join([
            "Collecting six",
            "  Downloading six-1.16.0-py2.py3-none-any.whl",
            "",
            "ERROR: No matching distribution found for nosuchpkg",
        ])
        assert filter_output(output) == "ERROR: No matching distribution found for nosuchpkg"

    def test_all_noise(self):
        """Test that pure noise filters to an empty string."""
        assert filter_output("Collecting a\nCollecting b\n") == ""
