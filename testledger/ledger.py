from __future__ import annotations

import threading
from typing import Dict, List

from .aggregates import ClassAggregate, MethodAggregate
from .results import OutcomeKind, ResultRecord


class RunLedger:
    """Per-class and per-method statistics for one test run.

    Classes are kept in the order they were first reported.  A single
    re-entrant lock serialises lookups and reads across the whole ledger;
    contention is low because one event is recorded per test invocation.
    """

    def __init__(self) -> None:
        self._classes: Dict[str, ClassAggregate] = {}
        self._lock = threading.RLock()

    def _class(self, class_name: str) -> ClassAggregate:
        aggregate = self._classes.get(class_name)
        if aggregate is None:
            aggregate = ClassAggregate(class_name)
            self._classes[class_name] = aggregate
        return aggregate

    def record(self, record: ResultRecord) -> None:
        """Count ``record`` against its class and method."""

        with self._lock:
            self._class(record.class_name).add_result(record)

    def classes_ordered_by_insertion(self) -> List[ClassAggregate]:
        with self._lock:
            return list(self._classes.values())

    def classes_ordered_by_duration_descending(self) -> List[ClassAggregate]:
        classes = self.classes_ordered_by_insertion()
        return sorted(classes, key=lambda aggregate: aggregate.total_duration, reverse=True)

    def all_methods(self) -> List[MethodAggregate]:
        with self._lock:
            methods: List[MethodAggregate] = []
            for aggregate in self._classes.values():
                methods.extend(aggregate.methods())
            return methods

    def methods_ordered_by_duration_descending(self, limit: int) -> List[MethodAggregate]:
        methods = sorted(self.all_methods(), key=lambda aggregate: aggregate.total_duration, reverse=True)
        return methods[: max(0, limit)]

    def count_classes(self) -> int:
        with self._lock:
            return len(self._classes)

    def count_methods(self) -> int:
        with self._lock:
            return sum(aggregate.method_count() for aggregate in self._classes.values())

    def count_invocations(self) -> int:
        with self._lock:
            return sum(aggregate.total_invocations for aggregate in self._classes.values())

    def count_by_outcome(self, kind: OutcomeKind) -> int:
        with self._lock:
            return sum(aggregate.count(kind) for aggregate in self._classes.values())
