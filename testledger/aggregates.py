from __future__ import annotations

import threading
from typing import Dict, List

from .results import OutcomeKind, ResultRecord


def _as_ms(seconds: float) -> int:
    return int(round(seconds * 1000))


class MethodAggregate:
    """Running statistics for one test method across all its invocations."""

    def __init__(self, class_name: str, method_name: str) -> None:
        self.class_name = class_name
        self.method_name = method_name
        self.total_invocations = 0
        self.total_duration = 0.0
        self._result_counts: List[int] = [0] * len(OutcomeKind)
        self._lock = threading.Lock()

    @property
    def fq_method(self) -> str:
        return f"{self.class_name}#{self.method_name}"

    @property
    def total_duration_ms(self) -> int:
        return _as_ms(self.total_duration)

    def add_result(self, record: ResultRecord) -> None:
        with self._lock:
            self.total_invocations += 1
            self.total_duration += record.duration
            self._result_counts[record.kind] += 1

    def count(self, kind: OutcomeKind) -> int:
        with self._lock:
            return self._result_counts[OutcomeKind.coerce(kind)]

    def timing_line(self, include_class_name: bool) -> str:
        """Return ``    [Class#]method  N ms (invocations)[ F failure(s)]``."""

        with self._lock:
            name = self.fq_method if include_class_name else self.method_name
            line = f"    {name}  {self.total_duration_ms} ms ({self.total_invocations})"
            failures = self._result_counts[OutcomeKind.FAILURE]
        if failures > 0:
            line += f" {failures} failure(s)"
        return line


class ClassAggregate:
    """Running statistics for one test class, summed across its methods."""

    def __init__(self, class_name: str) -> None:
        self.class_name = class_name
        self.total_invocations = 0
        self.total_duration = 0.0
        self._result_counts: List[int] = [0] * len(OutcomeKind)
        self._methods: Dict[str, MethodAggregate] = {}
        self._lock = threading.RLock()

    @property
    def total_duration_ms(self) -> int:
        return _as_ms(self.total_duration)

    def method(self, method_name: str) -> MethodAggregate:
        """Return the aggregate for ``method_name``, creating it on first use."""

        with self._lock:
            aggregate = self._methods.get(method_name)
            if aggregate is None:
                aggregate = MethodAggregate(self.class_name, method_name)
                self._methods[method_name] = aggregate
            return aggregate

    def add_result(self, record: ResultRecord) -> None:
        with self._lock:
            self.total_invocations += 1
            self.total_duration += record.duration
            self._result_counts[record.kind] += 1
            self.method(record.method_name).add_result(record)

    def methods(self) -> List[MethodAggregate]:
        with self._lock:
            return list(self._methods.values())

    def method_count(self) -> int:
        with self._lock:
            return len(self._methods)

    def count(self, kind: OutcomeKind) -> int:
        with self._lock:
            return self._result_counts[OutcomeKind.coerce(kind)]

    def summary_timing_line(self) -> str:
        with self._lock:
            return f"{self.class_name}    {self.total_duration_ms} ms ({self.total_invocations})"

    def timing_lines(self) -> List[str]:
        """Return the class summary line followed by one line per method."""

        with self._lock:
            lines = [self.summary_timing_line()]
            lines.extend(method.timing_line(False) for method in self._methods.values())
        lines.append("")
        return lines
