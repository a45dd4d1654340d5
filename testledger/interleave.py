from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

from .results import subject_class_name

SubjectChangedCallback = Callable[[Optional[object]], None]


class InterleaveDetector:
    """Notice when tests resume on a subject that was already left behind.

    Tests for one subject are expected to run back to back.  Each switch to a
    different subject notifies ``on_subject_changed`` with the subject that
    was just left (``None`` before the first one), and a switch back to a
    subject seen earlier flags that subject's class as interleaved.
    """

    def __init__(self, on_subject_changed: Optional[SubjectChangedCallback] = None) -> None:
        self._on_subject_changed = on_subject_changed
        self._current: Optional[object] = None
        # id() -> subject; keeping the subject alive keeps its id() unique.
        self._finished: Dict[int, object] = {}
        self._interleaved: Dict[str, None] = {}
        self._lock = threading.Lock()

    @property
    def current_subject(self) -> Optional[object]:
        return self._current

    def check(self, subject: Optional[object]) -> bool:
        """Move to ``subject``; return True if its class was flagged now."""

        with self._lock:
            previous = self._current
            if subject is previous:
                return False

            if self._on_subject_changed is not None:
                self._on_subject_changed(previous)

            if previous is not None:
                self._finished.setdefault(id(previous), previous)

            flagged = False
            if subject is not None and self._finished.get(id(subject)) is subject:
                class_name = subject_class_name(subject)
                if class_name not in self._interleaved:
                    self._interleaved[class_name] = None
                    flagged = True

            self._current = subject
            return flagged

    def flush(self) -> None:
        """Report the last active subject at the end of the run."""

        self.check(None)

    def interleaved_classes(self) -> List[str]:
        """Return the flagged class names in the order they were flagged."""

        with self._lock:
            return list(self._interleaved)
