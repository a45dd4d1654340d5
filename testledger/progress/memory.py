from __future__ import annotations

import gc
import time
from dataclasses import dataclass
from typing import Callable, Optional

import psutil

MAX_COLLECTIONS = 100


@dataclass(frozen=True)
class MemorySample:
    """Memory in use after the collector settled."""

    used_bytes: int
    collections: int
    elapsed: float


class MemoryProbe:
    """Best-effort reading of the memory this process has in use.

    ``settle`` keeps running the garbage collector until the reading stops
    going down, or ``MAX_COLLECTIONS`` passes have been made.  The numbers
    are only used for progress feedback.
    """

    def __init__(
        self,
        *,
        used_memory: Optional[Callable[[], int]] = None,
        collect: Optional[Callable[[], object]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._process: Optional[psutil.Process] = None
        self._used_memory = used_memory if used_memory is not None else self._resident_bytes
        self._collect = collect if collect is not None else gc.collect
        self._clock = clock

    def _resident_bytes(self) -> int:
        if self._process is None:
            self._process = psutil.Process()
        return int(self._process.memory_info().rss)

    def used_bytes(self) -> int:
        return self._used_memory()

    def settle(self) -> MemorySample:
        start = self._clock()
        current = self._used_memory()
        previous: Optional[int] = None
        collections = 0
        while (previous is None or previous > current) and collections < MAX_COLLECTIONS:
            self._collect()
            previous = current
            current = self._used_memory()
            collections += 1
        return MemorySample(used_bytes=current, collections=collections, elapsed=self._clock() - start)
