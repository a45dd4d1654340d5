from __future__ import annotations

import sys
import threading
import traceback
from typing import List, Sequence, Tuple


def list_thread_names() -> List[str]:
    """Return the sorted names of all live threads."""

    return sorted(thread.name for thread in threading.enumerate() if thread.is_alive())


def live_thread_count() -> int:
    return threading.active_count()


def remove_exactly(base: Sequence[str], to_remove: Sequence[str]) -> List[str]:
    """Return ``base`` without the items of ``to_remove``.

    Each item in ``to_remove`` takes out at most one matching entry, so
    duplicate names in ``base`` are only partially removed.
    """

    remaining = list(base)
    for item in to_remove:
        try:
            remaining.remove(item)
        except ValueError:
            continue
    return remaining


def diff_thread_names(previous: Sequence[str], current: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Return ``(started, finished)`` thread names between two snapshots."""

    started = remove_exactly(current, previous)
    finished = remove_exactly(previous, current)
    return started, finished


def thread_stacks_to_string() -> str:
    """Return the current stack of every live thread, ordered by ident."""

    frames = sys._current_frames()
    threads = sorted(threading.enumerate(), key=lambda thread: thread.ident or 0)
    lines: List[str] = []
    for thread in threads:
        lines.append(f"id={thread.ident} ---------- {thread.name} ----------")
        frame = frames.get(thread.ident) if thread.ident is not None else None
        if frame is not None:
            for entry in traceback.format_stack(frame):
                lines.extend(f"   {line}" for line in entry.rstrip("\n").splitlines())
        lines.append("")
    return "\n".join(lines) + "\n"
