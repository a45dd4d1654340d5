from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional


PROGRESS_ENV = "TESTLEDGER_PROGRESS"

TOKEN_NONE = "none"
TOKEN_ALL = "all"
TOKEN_DEFAULT = "default"
TOKEN_TIME = "time"
TOKEN_COUNT = "count"
TOKEN_MEMORY = "memory"
TOKEN_MEMORY_GCS = "gcs"  # hidden, not listed in --help
TOKEN_THREAD_COUNT = "threadcount"
TOKEN_THREAD_CHANGES = "threadchanges"

_TOKEN_SPLIT = re.compile(r"\s*\W+\s*")


@dataclass(frozen=True)
class ProgressChannels:
    """Which parts of the progress line are printed."""

    none: bool = False
    time: bool = True
    count: bool = True
    memory: bool = False
    memory_gcs: bool = False
    thread_count: bool = False
    thread_changes: bool = False

    @classmethod
    def disabled(cls) -> "ProgressChannels":
        return cls(none=True, time=False, count=False)

    @classmethod
    def everything(cls) -> "ProgressChannels":
        return cls(
            time=True,
            count=True,
            memory=True,
            memory_gcs=True,
            thread_count=True,
            thread_changes=True,
        )


def split_tokens(text: str) -> List[str]:
    """Split ``text`` on runs of non-word characters, lower-cased."""

    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token]


def parse_progress_tokens(text: Optional[str]) -> ProgressChannels:
    """Return the channel selection described by ``text``.

    An empty or missing value keeps the defaults.  ``none`` wins over every
    other token, then ``all``; otherwise only the named channels are enabled,
    and ``default`` adds the default channels back on top.  Unknown tokens
    are ignored.
    """

    if text is None:
        return ProgressChannels()

    tokens = split_tokens(text)
    if not tokens:
        return ProgressChannels()
    return channels_from_tokens(tokens)


def channels_from_tokens(tokens: Iterable[str]) -> ProgressChannels:
    values = set(tokens)

    if TOKEN_NONE in values:
        return ProgressChannels.disabled()
    if TOKEN_ALL in values:
        return ProgressChannels.everything()

    channels = ProgressChannels(
        time=TOKEN_TIME in values,
        count=TOKEN_COUNT in values,
        memory=TOKEN_MEMORY in values,
        memory_gcs=TOKEN_MEMORY_GCS in values,
        thread_count=TOKEN_THREAD_COUNT in values,
        thread_changes=TOKEN_THREAD_CHANGES in values,
    )
    if TOKEN_DEFAULT in values:
        channels = replace(channels, time=True, count=True)
    return channels


def channels_from_environment(override: Optional[str] = None) -> ProgressChannels:
    """Parse ``override`` if given, else the ``TESTLEDGER_PROGRESS`` variable."""

    if override is not None:
        return parse_progress_tokens(override)
    return parse_progress_tokens(os.environ.get(PROGRESS_ENV))
