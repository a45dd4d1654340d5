from __future__ import annotations

import os
import sys
from typing import Optional

PAGE_WIDTH = 80
DIVIDER_LINE = "-" * (PAGE_WIDTH - 1)
BYTES_PER_MB = 1024.0 * 1024.0


def stderr_print(*args: object, **kwargs: object) -> None:
    """Print to the current ``sys.stderr`` and flush."""

    print(*args, file=sys.stderr, flush=True, **kwargs)  # type: ignore[call-overload]


class Color:
    """ANSI color codes for terminal output"""

    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    RESET = '\033[0m'
    BOLD = '\033[1m'


class NullColor:
    GREEN = ""
    RED = ""
    YELLOW = ""
    BLUE = ""
    RESET = ""
    BOLD = ""


def center(header: str) -> str:
    """Left-pad ``header`` so that it sits in the middle of the page."""

    indent = max(0, (PAGE_WIDTH - len(header)) // 2)
    return " " * indent + header


def format_mb(num_bytes: Optional[int]) -> str:
    """Return ``num_bytes`` as megabytes with one decimal."""

    if num_bytes is None:
        return "unknown"
    return f"{num_bytes / BYTES_PER_MB:.1f} MB"


def env_flag(name: str) -> bool:
    """Return True if the specified environment variable is truthy."""

    value = os.environ.get(name)
    if value is None:
        return False

    normalized = value.strip().lower()
    if not normalized:
        return False

    return normalized not in {"0", "false", "no", "off"}
