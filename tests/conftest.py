from __future__ import annotations

from typing import Any

import pytest

from testledger.coordinator import RunCoordinator
from testledger.ledger import RunLedger
from testledger.progress import ProgressChannels, ProgressSampler
from testledger.progress.memory import MemoryProbe
from testledger.results import OutcomeKind, ResultRecord
from testledger.utils import NullColor

MB = 1024 * 1024


class PrintSink(list):
    """Collects everything a component prints."""

    def __call__(self, message: str) -> None:
        self.append(message)

    @property
    def text(self) -> str:
        return "\n".join(self)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_record(
    class_name: str = "pkg.TestAlpha",
    method_name: str = "test_one",
    outcome: Any = OutcomeKind.SUCCESS,
    duration: float = 0.01,
    start: float = 0.0,
    **kwargs: Any,
) -> ResultRecord:
    return ResultRecord(class_name, method_name, outcome, start, start + duration, **kwargs)


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def sink() -> PrintSink:
    return PrintSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fixed_memory() -> MemoryProbe:
    return MemoryProbe(used_memory=lambda: 64 * MB, collect=lambda: None, clock=lambda: 0.0)


@pytest.fixture
def ledger() -> RunLedger:
    return RunLedger()


@pytest.fixture
def make_coordinator(sink, clock, fixed_memory):
    def factory(channels: ProgressChannels = ProgressChannels(), **kwargs: Any) -> RunCoordinator:
        ledger = RunLedger()
        sampler = ProgressSampler(
            ledger,
            channels,
            print_fn=sink,
            clock=clock,
            memory_probe=fixed_memory,
            thread_names=lambda: ["MainThread"],
            thread_count=lambda: 1,
        )
        kwargs.setdefault("pause_on_failure", False)
        return RunCoordinator(ledger, sampler=sampler, print_fn=sink, color=NullColor, **kwargs)

    return factory
