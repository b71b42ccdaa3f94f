"""
Noise filtering for captured terminal output.

Package managers and build tools print progress bars, spinners and
status chatter that waste context tokens when command output is fed
back to a model. should_filter_line() drops such lines.

Example:
    >>> should_filter_line("Collecting requests==2.31.0")
    True
    >>> should_filter_line("Traceback (most recent call last):")
    False
    >>> filter_output("Collecting six\\nerror: build failed\\n")
    'error: build failed'
"""

from __future__ import annotations

import re

_LEAD = r"^[\s\t]*"

NOISE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Generic progress bars, spinners and download counters
    re.compile(_LEAD + r"[▏▎▍▌▋▊▉█░⣾⣽⣻⢿⡿⣟⣯⣷┃|-]*\s*\d+%.*$"),
    re.compile(_LEAD + r"[⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏].*$"),
    re.compile(_LEAD + r"[><=]*\s*\d+/\d+\s*[><=]*.*$"),
    # pip
    re.compile(_LEAD + r"Collecting\s+.*$"),
    re.compile(_LEAD + r"Downloading\s+.*$"),
    re.compile(_LEAD + r"Installing\s+collected\s+packages.*$"),
    re.compile(_LEAD + r"Successfully\s+installed.*$"),
    re.compile(_LEAD + r"Building\s+wheels.*$"),
    re.compile(_LEAD + r"Found existing installation.*$"),
    re.compile(_LEAD + r"Uninstalling.*$"),
    re.compile(_LEAD + r"Attempting uninstall.*$"),
    re.compile(_LEAD + r"Requirement already satisfied.*$"),
    re.compile(_LEAD + r"Processing\s+.*$"),
    re.compile(_LEAD + r"Preparing\s+.*$"),
    re.compile(_LEAD + r"Running\s+setup\.py.*$"),
    re.compile(_LEAD + r"━+.*$"),
    # npm
    re.compile(_LEAD + r"added \d+ packages?.*(removed|in).*$", re.IGNORECASE),
    re.compile(_LEAD + r"removed \d+ packages?.*$", re.IGNORECASE),
    re.compile(_LEAD + r"up to date.*$", re.IGNORECASE),
    re.compile(_LEAD + r"\[notice\].*$", re.IGNORECASE),
    re.compile(_LEAD + r"npm WARN.*$", re.IGNORECASE),
    re.compile(_LEAD + r"\[=*\s*\]\s*\d+%.*$"),
    re.compile(_LEAD + r"\d+ packages? are looking for funding.*$", re.IGNORECASE),
    re.compile(_LEAD + r"run `npm fund`.*$", re.IGNORECASE),
    re.compile(_LEAD + r"found \d+ vulnerabilit.*$", re.IGNORECASE),
    # Build tools
    re.compile(_LEAD + r"\[\d+/\d+\].*$"),
    re.compile(_LEAD + r"CREATE.*$"),
    re.compile(_LEAD + r"UPDATE.*$"),
    # curl
    re.compile(_LEAD + r"\d+%\|[█▉▊▋▌▍▎▏\s]*\|.*$"),
    # Bare prompts, blank lines and ANSI escapes
    re.compile(_LEAD + r"[%$#>]\s*$"),
    re.compile(r"^\s*$"),
    re.compile(_LEAD + r"\x1b\[.*$"),
)

_WHITESPACE_RUN = re.compile(r"\s+")


def should_filter_line(line: str | None) -> bool:
    """
    Decide whether a line of terminal output is noise.

    The line is trimmed and whitespace runs collapse to one space before
    matching. Empty and whitespace-only lines are always noise.

    Args:
        line: One line of output.

    Returns:
        True if the line should be dropped.
    """
    if not line or not line.strip():
        return True
    normalized = _WHITESPACE_RUN.sub(" ", line.strip())
    return any(pattern.match(normalized) for pattern in NOISE_PATTERNS)


def filter_output(text: str) -> str:
    """Drop noise lines from a block of output and rejoin the rest."""
    return "\n".join(line for line in text.splitlines() if not should_filter_line(line))
