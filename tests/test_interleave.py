from __future__ import annotations

import threading

from testledger.interleave import InterleaveDetector
from testledger.results import Subject


class ValueFixture:
    """Fixtures that compare equal by value must still be told apart."""

    def __init__(self, value: int) -> None:
        self.value = value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ValueFixture) and other.value == self.value

    def __hash__(self) -> int:
        return hash(self.value)


def test_same_subject_does_not_notify():
    changes = []
    detector = InterleaveDetector(changes.append)
    a = Subject("pkg.TestA")

    detector.check(a)
    detector.check(a)
    detector.check(a)

    assert changes == [None]
    assert detector.current_subject is a


def test_notification_carries_previous_subject():
    changes = []
    detector = InterleaveDetector(changes.append)
    a, b = Subject("pkg.TestA"), Subject("pkg.TestB")

    detector.check(a)
    detector.check(b)
    detector.flush()

    assert changes == [None, a, b]
    assert detector.current_subject is None


def test_returning_to_a_finished_subject_flags_its_class():
    detector = InterleaveDetector()
    a, b = Subject("pkg.TestA"), Subject("pkg.TestB")

    flags = [detector.check(subject) for subject in (a, a, b, a)]

    assert flags == [False, False, False, True]
    assert detector.interleaved_classes() == ["pkg.TestA"]


def test_grouped_subjects_flag_nothing():
    detector = InterleaveDetector()
    a, b = Subject("pkg.TestA"), Subject("pkg.TestB")

    for subject in (a, a, b, b):
        detector.check(subject)
    detector.flush()

    assert detector.interleaved_classes() == []


def test_class_is_flagged_once_however_often_it_interleaves():
    detector = InterleaveDetector()
    a, b = Subject("pkg.TestA"), Subject("pkg.TestB")

    for subject in (a, b, a, b, a, b, a):
        detector.check(subject)

    assert detector.interleaved_classes() == ["pkg.TestA", "pkg.TestB"]


def test_equal_but_distinct_subjects_are_different():
    detector = InterleaveDetector()
    first, second = ValueFixture(1), ValueFixture(1)
    other = ValueFixture(2)

    for subject in (first, other, second):
        detector.check(subject)

    assert first == second
    assert detector.interleaved_classes() == []

    detector.check(first)
    assert detector.interleaved_classes() == [f"{ValueFixture.__module__}.ValueFixture"]


def test_flush_without_any_test_does_not_notify():
    changes = []
    detector = InterleaveDetector(changes.append)

    detector.flush()

    assert changes == []


def test_concurrent_checks_notify_once_per_transition():
    changes = []
    detector = InterleaveDetector(changes.append)
    subjects = [Subject(f"pkg.Test{index}") for index in range(4)]
    barrier = threading.Barrier(len(subjects))

    def worker(subject: Subject) -> None:
        barrier.wait()
        for _ in range(50):
            detector.check(subject)

    threads = [threading.Thread(target=worker, args=(subject,)) for subject in subjects]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    # Every notification names the subject that was active right before it.
    assert changes[0] is None
    assert all(change in subjects for change in changes[1:])
    assert set(detector.interleaved_classes()) <= {subject.class_name for subject in subjects}
