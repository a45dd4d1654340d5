from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional

from ..ledger import RunLedger
from ..results import OutcomeKind, subject_short_name
from ..utils import BYTES_PER_MB, stderr_print
from .configuration import ProgressChannels
from .memory import MemoryProbe
from .threads import diff_thread_names, list_thread_names, live_thread_count


class ProgressSampler:
    """Print one status line each time the run moves on to a new subject."""

    def __init__(
        self,
        ledger: RunLedger,
        channels: Optional[ProgressChannels] = None,
        *,
        print_fn: Callable[[str], None] = stderr_print,
        clock: Callable[[], float] = time.time,
        memory_probe: Optional[MemoryProbe] = None,
        thread_names: Callable[[], List[str]] = list_thread_names,
        thread_count: Callable[[], int] = live_thread_count,
    ) -> None:
        self.ledger = ledger
        self.channels = channels if channels is not None else ProgressChannels()
        self._print = print_fn
        self._clock = clock
        self._memory = memory_probe if memory_probe is not None else MemoryProbe()
        self._thread_names = thread_names
        self._thread_count = thread_count

        self._header_printed = False
        self._header_lock = threading.Lock()
        self.start_time = self._clock()
        self._prev_time = self.start_time
        self._prev_mem_in_use = 0
        self.max_mem_in_use = 0
        self._prev_threads: List[str] = []

    @property
    def memory_probe(self) -> MemoryProbe:
        return self._memory

    def print_header_once(self) -> None:
        with self._header_lock:
            if self._header_printed:
                return
            self._header_printed = True

        if self.channels.none:
            return

        lines = ["", "How to read the progressive status info:"]
        if self.channels.time:
            lines.append("  Test duration status: {Total min:sec.  Since last status sec.}")
        if self.channels.count:
            lines.append(
                "  Test count status:  {# test classes  # test methods  "
                "# test method invocations  # test failures}."
            )
        if self.channels.memory:
            lines.append("  Memory usage status: {MB in use  +/-change since last status}")
        if self.channels.memory_gcs:
            lines.append("  GCs during status:  {GCs done to settle used memory   time to do it}")
        if self.channels.thread_count:
            lines.append("  Thread count status:  {#td number of active threads}")
        if self.channels.thread_changes:
            lines.append("  Thread change status: +/- thread name for new or finished threads since last status")
        lines.append("  TestClass (the class that just completed)")
        lines.append("")
        for line in lines:
            self._print(line)

    def _time_status(self) -> str:
        now = self._clock()
        elapsed = int(now - self.start_time)
        since_last = now - self._prev_time
        self._prev_time = now
        return f"{{{elapsed // 60:2d}:{elapsed % 60:02d} ({since_last:3.0f}s)}}  "

    def _count_status(self) -> str:
        return (
            f"{{{self.ledger.count_classes():3d}c {self.ledger.count_methods():4d}m "
            f"{self.ledger.count_invocations():5d}i {self.ledger.count_by_outcome(OutcomeKind.FAILURE)}f}}  "
        )

    def _memory_status(self) -> str:
        sample = self._memory.settle()
        cur_mem_in_use = sample.used_bytes
        delta = cur_mem_in_use - self._prev_mem_in_use
        self.max_mem_in_use = max(self.max_mem_in_use, cur_mem_in_use)

        status = f"{{{cur_mem_in_use / BYTES_PER_MB:5.1f}MB  {delta / BYTES_PER_MB:+5.1f}MB}}  "
        if self.channels.memory_gcs:
            status += f"{{{sample.collections:2d} gcs  {sample.elapsed:4.1f}s}}  "
        self._prev_mem_in_use = cur_mem_in_use
        return status

    def _thread_changes(self) -> List[str]:
        current = self._thread_names()
        started, finished = diff_thread_names(self._prev_threads, current)
        self._prev_threads = current

        if not started and not finished:
            return []
        lines = ["  Thread changes:"]
        lines.extend(f"    + {name}" for name in started)
        lines.extend(f"    - {name}" for name in finished)
        return lines

    def on_subject_changed(self, finished_subject: Optional[object]) -> None:
        """Print the status line for the subject whose tests just finished."""

        if self.channels.none:
            return

        self.print_header_once()

        status = ""
        if self.channels.time:
            status += self._time_status()
        if self.channels.count:
            status += self._count_status()
        if self.channels.memory:
            status += self._memory_status()
        if self.channels.thread_count:
            status += f"{{#td {self._thread_count():3d}}}  "

        if finished_subject is None:
            status += ": starting"
        else:
            status += f": {subject_short_name(finished_subject)} "

        self._print(status)

        if self.channels.thread_changes:
            for line in self._thread_changes():
                self._print(line)
