from __future__ import annotations

from typing import Callable, Optional

from ..ledger import RunLedger
from ..utils import stderr_print
from .configuration import ProgressChannels, channels_from_environment, parse_progress_tokens
from .memory import MemoryProbe, MemorySample
from .sampler import ProgressSampler


def get_progress_sampler(
    ledger: RunLedger,
    channels: Optional[ProgressChannels] = None,
    *,
    print_fn: Callable[[str], None] = stderr_print,
) -> ProgressSampler:
    """Return a sampler for ``channels``, read from the environment if not given."""

    if channels is None:
        channels = channels_from_environment()
    return ProgressSampler(ledger, channels, print_fn=print_fn)


__all__ = [
    "MemoryProbe",
    "MemorySample",
    "ProgressChannels",
    "ProgressSampler",
    "get_progress_sampler",
    "parse_progress_tokens",
]
