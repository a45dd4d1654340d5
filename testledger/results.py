from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional, Tuple


class OutcomeKind(IntEnum):
    """Outcome of a single test invocation.

    ``INVALID`` is the bucket for anything the runner reports that is not
    one of the known outcomes.
    """

    INVALID = 0
    SUCCESS = 1
    FAILURE = 2
    SKIP = 3
    SUCCESS_WITHIN_TOLERANCE = 4

    @classmethod
    def coerce(cls, value: Any) -> "OutcomeKind":
        """Return the outcome for ``value``, or ``INVALID`` if it is unknown."""

        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            return cls.INVALID
        try:
            return cls(value)
        except ValueError:
            return cls.INVALID

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    OutcomeKind.INVALID: "<<invalid>>",
    OutcomeKind.SUCCESS: "Success",
    OutcomeKind.FAILURE: "Failure",
    OutcomeKind.SKIP: "Skip",
    OutcomeKind.SUCCESS_WITHIN_TOLERANCE: "Success Percentage Failure",
}


@dataclass(eq=False)
class Subject:
    """Opaque handle for the fixture instance a group of tests runs against.

    Handles compare by identity: two handles for the same class are still
    two different subjects.
    """

    class_name: str

    def __repr__(self) -> str:
        return f"<Subject {self.class_name} at 0x{id(self):x}>"


def subject_class_name(subject: object) -> str:
    """Return the qualified class name a subject stands for."""

    if isinstance(subject, Subject):
        return subject.class_name
    cls = type(subject)
    return f"{cls.__module__}.{cls.__qualname__}"


def subject_short_name(subject: object) -> str:
    """Return the class name of ``subject`` without its module path."""

    name = subject_class_name(subject)
    for separator in ("::", "."):
        name = name.rsplit(separator, 1)[-1]
    return name


@dataclass(frozen=True)
class TestStart:
    """Notification that a test method is about to run."""

    __test__ = False

    class_name: str
    method_name: str
    subject: Optional[object] = None
    conformant: bool = True
    has_test_metadata: bool = True

    @property
    def fq_method(self) -> str:
        return f"{self.class_name}#{self.method_name}"


@dataclass(frozen=True)
class ResultRecord:
    """One observed outcome of one test invocation."""

    class_name: str
    method_name: str
    outcome: Any
    start: float
    end: float
    parameters: Optional[Tuple[Any, ...]] = None
    cause: Optional[BaseException] = field(default=None, compare=False)
    subject: Optional[object] = field(default=None, compare=False)

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.coerce(self.outcome)

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.start)

    @property
    def fq_method(self) -> str:
        return f"{self.class_name}#{self.method_name}"
