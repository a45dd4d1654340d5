from __future__ import annotations

import enum
import os
import tempfile
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Set

from .errors import LedgerError, NonConformantTestClassError
from .failures import FailureEntry, FailureLog, format_failure
from .interleave import InterleaveDetector
from .ledger import RunLedger
from .progress import ProgressChannels, ProgressSampler, get_progress_sampler
from .report import REPORT_FILE_NAME, ReportGenerator
from .results import OutcomeKind, ResultRecord, TestStart
from .utils import DIVIDER_LINE, Color, env_flag, stderr_print

PAUSE_ON_FAILURE_ENV = "TESTLEDGER_PAUSE_ON_FAILURE"

TEST_FAILURE_BANNER = "                 T E S T   F A I L U R E ! ! !"
CONFIGURATION_FAILURE_BANNER = "         C O N F I G U R A T I O N   F A I L U R E ! ! !"


class RunState(enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    TERMINAL = "terminal"


class RunCoordinator:
    """Receives runner callbacks and turns them into a report.

    The runner calls ``on_test_start`` before each test and exactly one of
    the ``on_test_*`` outcome methods after it.  ``generate_report`` ends the
    run.  All callbacks may arrive from several threads at once.
    """

    def __init__(
        self,
        ledger: Optional[RunLedger] = None,
        channels: Optional[ProgressChannels] = None,
        *,
        namespaces: Sequence[str] = (),
        print_fn: Callable[[str], None] = stderr_print,
        color: Any = Color,
        rerun_hint: Optional[str] = None,
        pause_on_failure: Optional[bool] = None,
        sampler: Optional[ProgressSampler] = None,
        report: Optional[ReportGenerator] = None,
    ) -> None:
        self.ledger = ledger if ledger is not None else RunLedger()
        self.failures = FailureLog()
        self.namespaces = tuple(namespaces)
        self._print = print_fn
        self._color = color
        self.sampler = sampler if sampler is not None else get_progress_sampler(
            self.ledger, channels, print_fn=print_fn
        )
        self.detector = InterleaveDetector(self.sampler.on_subject_changed)
        self.report = report if report is not None else ReportGenerator(
            self.ledger,
            self.failures,
            self.sampler,
            print_fn=print_fn,
            color=color,
            rerun_hint=rerun_hint,
        )
        if pause_on_failure is None:
            pause_on_failure = env_flag(PAUSE_ON_FAILURE_ENV)
        self.pause_on_failure = pause_on_failure

        self._state = RunState.IDLE
        self._state_lock = threading.Lock()
        self._checked_classes: Set[str] = set()
        self._checked_methods: Set[str] = set()
        self._checks_lock = threading.Lock()

    @property
    def state(self) -> RunState:
        return self._state

    def _ensure_recording(self) -> None:
        with self._state_lock:
            if self._state in (RunState.FINALIZING, RunState.TERMINAL):
                raise LedgerError(f"cannot record events once the run is {self._state.value}")
            self._state = RunState.RECORDING

    # -- lifecycle ------------------------------------------------------

    def on_start(self, output_dir: os.PathLike) -> None:
        """Remove the report left behind by a previous run."""

        try:
            (Path(output_dir) / REPORT_FILE_NAME).unlink()
        except FileNotFoundError:
            pass

    def on_test_start(self, start: TestStart) -> None:
        self._ensure_recording()
        self._enforce_conformance(start)
        self.detector.check(start.subject)
        self._enforce_test_metadata(start)

    def on_test_success(self, record: ResultRecord) -> None:
        self._finish(record, OutcomeKind.SUCCESS)

    def on_test_success_within_tolerance(self, record: ResultRecord) -> None:
        self._finish(record, OutcomeKind.SUCCESS_WITHIN_TOLERANCE)

    def on_test_skipped(self, record: ResultRecord) -> None:
        self._finish(record, OutcomeKind.SKIP)

    def on_test_failure(self, record: ResultRecord) -> None:
        self._ensure_recording()
        narrative = format_failure(record.fq_method, record.cause, record.parameters, self.namespaces)
        self._announce(TEST_FAILURE_BANNER, narrative)
        self.failures.append(FailureEntry(record.fq_method, narrative))

        if self.pause_on_failure:
            self.pause()

        self._finish(record, OutcomeKind.FAILURE)

    def on_test_result(self, record: ResultRecord) -> None:
        """Dispatch ``record`` on its own outcome."""

        kind = record.kind
        if kind is OutcomeKind.FAILURE:
            self.on_test_failure(record)
        else:
            self._finish(record, record.outcome)

    def on_configuration_failure(
        self,
        class_name: str,
        method_name: str,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Report a failed setup or teardown step; it is not counted as a test."""

        self._ensure_recording()
        fq_method = f"{class_name}#{method_name}"
        narrative = format_failure(fq_method, cause, None, self.namespaces)
        self._announce(CONFIGURATION_FAILURE_BANNER, narrative)
        self.failures.append(FailureEntry(fq_method, narrative, configuration=True))

    def generate_report(self, output_dir: os.PathLike) -> Path:
        """Finish the run: flush progress, write the report, update the marker."""

        with self._state_lock:
            if self._state in (RunState.FINALIZING, RunState.TERMINAL):
                raise LedgerError("the report for this run has already been generated")
            self._state = RunState.FINALIZING
        try:
            return self.report.render(
                Path(output_dir),
                self.detector.interleaved_classes(),
                flush_progress=self.detector.flush,
            )
        finally:
            self._state = RunState.TERMINAL

    # -- helpers --------------------------------------------------------

    def _finish(self, record: ResultRecord, outcome: Any) -> None:
        self._ensure_recording()
        if record.outcome != outcome:
            record = replace(record, outcome=outcome)
        self.ledger.record(record)

    def _announce(self, banner: str, narrative: str) -> None:
        self._print(f"\n\n\n{self._color.RED}{banner}{self._color.RESET}\n")
        self._print(narrative)
        self._print(DIVIDER_LINE + "\n\n")

    def _enforce_conformance(self, start: TestStart) -> None:
        with self._checks_lock:
            if start.class_name in self._checked_classes:
                return
            self._checked_classes.add(start.class_name)

        if not start.conformant:
            message = (
                f"The test class {start.class_name} must inherit (directly or "
                f"indirectly) from the required test base class."
            )
            self._print(f"\n\n{self._color.RED}ERROR: {message}{self._color.RESET}\n\n")
            with self._state_lock:
                self._state = RunState.TERMINAL
            raise NonConformantTestClassError(start.class_name, message)

    def _enforce_test_metadata(self, start: TestStart) -> None:
        with self._checks_lock:
            if start.fq_method in self._checked_methods:
                return
            self._checked_methods.add(start.fq_method)

        if not start.has_test_metadata:
            self._print(
                f"\n\n{self._color.YELLOW}WARNING: The test method {start.fq_method} is not "
                f"marked as a test, but is run as one because of its name.  Mark it "
                f"explicitly or rename it to silence this warning.{self._color.RESET}\n\n"
            )

    def pause(self, poll_interval: float = 0.1) -> None:
        """Block until a freshly created watchdog file is deleted."""

        try:
            handle, name = tempfile.mkstemp(prefix="testfailure", suffix="watchdog")
        except OSError as exc:
            self._print(f"{self._color.RED}**** ERROR:  Could not create a watchdog file ({exc}).  "
                        f"Not pausing.{self._color.RESET}")
            return
        os.close(handle)
        watchdog = Path(name)
        self._print(f"**** Pausing test execution until file {watchdog} is removed.")
        while watchdog.exists():
            time.sleep(poll_interval)
        self._print("**** Watchdog file removed.  Resuming test case execution.")

