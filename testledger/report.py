from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from .failures import FailureLog
from .ledger import RunLedger
from .progress.sampler import ProgressSampler
from .progress.threads import live_thread_count, thread_stacks_to_string
from .results import OutcomeKind
from .utils import DIVIDER_LINE, Color, center, format_mb, stderr_print

REPORT_FILE_NAME = "results.txt"

# The build driver creates this file before the run; it is removed only when
# every test passed so the driver can finish its own steps before failing.
TESTS_FAILED_MARKER_FILE_NAME = ".tests-failed-marker"

NUM_SLOWEST_METHODS = 100
AMBIGUOUS_EXIT_STATUS = 1

AMBIGUOUS_OUTCOME_MESSAGE = (
    "There were no explicit test failures, but some tests were skipped "
    "(possibly due to errors in setup or teardown fixtures)."
)

INTERLEAVED_WARNING = (
    "WARNING:  Some of the test methods for multiple classes were run out of "
    "order (i.e. interleaved with other classes).  Either a class is not marked "
    "to run its tests sequentially, which should have been reported already, "
    "or there has been a regression in the test scheduler."
)


def collapse_adjacent(names: Sequence[str]) -> List[str]:
    """Return ``names`` with consecutive repeats folded into ``name (x N)``."""

    collapsed: List[str] = []
    index = 0
    while index < len(names):
        name = names[index]
        repeats = 1
        while index + 1 < len(names) and names[index + 1] == name:
            repeats += 1
            index += 1
        collapsed.append(f"{name} (x {repeats})" if repeats > 1 else name)
        index += 1
    return collapsed


class ReportGenerator:
    """Render the file report, the console summary and the build signal."""

    def __init__(
        self,
        ledger: RunLedger,
        failures: FailureLog,
        sampler: ProgressSampler,
        *,
        print_fn: Callable[[str], None] = stderr_print,
        color: Any = Color,
        rerun_hint: Optional[str] = None,
        now: Callable[[], datetime] = datetime.now,
        thread_count: Callable[[], int] = live_thread_count,
        exit_fn: Callable[[int], Any] = sys.exit,
    ) -> None:
        self.ledger = ledger
        self.failures = failures
        self.sampler = sampler
        self._print = print_fn
        self._color = color
        self.rerun_hint = rerun_hint
        self._now = now
        self._thread_count = thread_count
        self._exit = exit_fn

    # -- counts ---------------------------------------------------------

    @property
    def failed_count(self) -> int:
        return self.ledger.count_by_outcome(OutcomeKind.FAILURE)

    @property
    def skipped_count(self) -> int:
        return self.ledger.count_by_outcome(OutcomeKind.SKIP)

    def all_passed(self) -> bool:
        """True when the build may treat the run as green.

        Skips block the build signal even though they are not counted as
        failures in the report.
        """

        return self.failed_count == 0 and self.skipped_count == 0

    def is_ambiguous(self) -> bool:
        return self.failed_count == 0 and self.skipped_count != 0

    # -- file report ----------------------------------------------------

    def timing_info(self) -> str:
        lines = [
            center("TESTS RUN BY CLASS"),
            center("[method-name total-time (total-invocations)]"),
            "",
        ]
        for aggregate in self.ledger.classes_ordered_by_insertion():
            lines.extend(aggregate.timing_lines())

        lines += ["", DIVIDER_LINE, DIVIDER_LINE, ""]
        lines += [
            center("CLASS SUMMARY SORTED BY DURATION"),
            center("[class-name total-time (total-invocations)]"),
            "",
        ]
        for aggregate in self.ledger.classes_ordered_by_duration_descending():
            lines.append("  " + aggregate.summary_timing_line())

        lines += ["", DIVIDER_LINE, "", ""]
        lines += [
            center("SLOWEST METHODS"),
            center("[method-name total-time (total-invocations)]"),
            "",
        ]
        for method in self.ledger.methods_ordered_by_duration_descending(NUM_SLOWEST_METHODS):
            lines.append(method.timing_line(True))
        return "\n".join(lines) + "\n"

    def file_report(self, interleaved: Sequence[str]) -> str:
        lines = [
            center("UNIT TEST REPORT"),
            center("----------------"),
            "",
            f"Finished at: {self._now().strftime('%a %b %d %H:%M:%S %Y')}",
            f"# Test classes: {self.ledger.count_classes()}",
            f"# Test classes interleaved: {len(interleaved)}",
            f"# Test methods: {self.ledger.count_methods()}",
            f"# Tests passed: {self.ledger.count_by_outcome(OutcomeKind.SUCCESS)}",
            f"# Tests failed: {self.failed_count}",
            "",
            DIVIDER_LINE,
            DIVIDER_LINE,
            "",
            "",
            center("TEST CLASSES RUN INTERLEAVED"),
            "",
            "",
        ]
        lines.extend(f"  {name}" for name in interleaved)
        lines += ["", DIVIDER_LINE, DIVIDER_LINE, "", "", center("FAILED TESTS"), "", ""]
        lines.append(self.failures.text())
        lines += ["", DIVIDER_LINE, DIVIDER_LINE, ""]
        lines.append(self.timing_info())
        return "\n".join(lines)

    def write_report_to_file(self, report_file: Path, interleaved: Sequence[str]) -> None:
        text = self.file_report(interleaved)
        try:
            with report_file.open("w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError as exc:
            self._print(
                f"{self._color.YELLOW}Could not open {report_file} for writing.  "
                f"Will write the unit test report to the console instead.{self._color.RESET}"
            )
            self._print(f"  {exc}")
            self._print(text)

    # -- console summary ------------------------------------------------

    def failed_test_lines(self) -> List[str]:
        names = [entry.fq_method for entry in self.failures.test_failures()]
        return [f"  {name}" for name in collapse_adjacent(names)]

    def write_report_to_screen(self, report_file: Path, interleaved: Sequence[str]) -> None:
        failed = self.failed_test_lines()
        if failed:
            self._print(f"{self._color.RED}The following unit tests failed: {self._color.RESET}")
            for line in failed:
                self._print(line)
            self._print("")
            if self.rerun_hint:
                self._print(self.rerun_hint)
        else:
            self._print(f"{self._color.GREEN}All of the tests passed.{self._color.RESET}")

        self._print("")
        self._print("Wrote full test report to:")
        self._print(str(report_file.absolute()))
        self._print(f"Test classes run interleaved: {len(interleaved)}")

        final_memory = self.sampler.memory_probe.settle()
        self._print(f"Final amount of memory in use: {format_mb(final_memory.used_bytes)}")
        if self.sampler.channels.memory:
            self._print(f"Maximum amount of memory in use: {format_mb(self.sampler.max_mem_in_use)}")
        self._print(f"Final number of threads: {self._thread_count()}")
        self._print("")

        if self.sampler.channels.thread_changes:
            self._print(thread_stacks_to_string())

        if interleaved:
            self._print(f"{self._color.YELLOW}{INTERLEAVED_WARNING}{self._color.RESET}")

    # -- build signal ---------------------------------------------------

    def remove_failed_marker(self, output_dir: Path) -> bool:
        """Delete the marker file when the run is green; return True if removed."""

        if not self.all_passed():
            return False
        marker = output_dir / TESTS_FAILED_MARKER_FILE_NAME
        try:
            marker.unlink()
        except FileNotFoundError:
            return False
        return True

    def render(
        self,
        output_dir: Path,
        interleaved: Sequence[str],
        flush_progress: Optional[Callable[[], None]] = None,
    ) -> Path:
        """Write everything for a finished run and return the report path.

        A run without failures but with skipped tests ends the process with
        ``AMBIGUOUS_EXIT_STATUS`` once the report has been written.
        """

        report_file = output_dir / REPORT_FILE_NAME
        self.write_report_to_file(report_file, interleaved)
        if flush_progress is not None:
            flush_progress()
        self.write_report_to_screen(report_file, interleaved)
        self.remove_failed_marker(output_dir)

        if self.is_ambiguous():
            self._print(f"{self._color.RED}{AMBIGUOUS_OUTCOME_MESSAGE}{self._color.RESET}")
            self._exit(AMBIGUOUS_EXIT_STATUS)
        return report_file
