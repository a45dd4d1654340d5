"""pytest event source for the test ledger.

Enable with ``pytest -p testledger.pytest_plugin --ledger-dir=DIR`` or run
through the ``testledger`` command.  Without ``--ledger-dir`` the plugin
stays inactive.
"""
from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from .coordinator import RunCoordinator
from .errors import NonConformantTestClassError
from .progress import channels_from_environment
from .results import OutcomeKind, ResultRecord, Subject, TestStart
from .utils import Color, NullColor, stderr_print

PLUGIN_NAME = "testledger"
NONCONFORMANT_EXIT_STATUS = 3
RERUN_HINT = "Rerun only the failed tests with 'pytest --last-failed'."


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("testledger", "test run ledger")
    group.addoption(
        "--ledger-dir",
        dest="ledger_dir",
        default=None,
        help="Write the ledger report and update the failure marker in this directory.",
    )
    group.addoption(
        "--ledger-progress",
        dest="ledger_progress",
        default=None,
        help=(
            "Progress channels: none, all, default, time, count, memory, "
            "threadcount, threadchanges (default: time,count)."
        ),
    )
    group.addoption(
        "--ledger-namespace",
        dest="ledger_namespaces",
        action="append",
        default=[],
        help="Module prefix treated as test code when trimming failure stacks (repeatable).",
    )
    group.addoption(
        "--ledger-base-class",
        dest="ledger_base_class",
        default=None,
        help="Dotted path of the class every test class must derive from.",
    )
    parser.addini("ledger_namespaces", "Module prefixes treated as test code in failure stacks.", type="linelist")
    parser.addini("ledger_base_class", "Dotted path of the required test base class.", default="")


def pytest_configure(config: pytest.Config) -> None:
    output_dir = config.getoption("ledger_dir")
    if not output_dir:
        return
    if config.pluginmanager.has_plugin(PLUGIN_NAME):
        return
    config.pluginmanager.register(LedgerPlugin.from_config(config, Path(output_dir)), PLUGIN_NAME)


def _load_class(dotted: str) -> type:
    module_name, _, attribute = dotted.rpartition(".")
    if not module_name:
        raise pytest.UsageError(f"--ledger-base-class needs a dotted path, got {dotted!r}")
    try:
        return getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as exc:
        raise pytest.UsageError(f"cannot import ledger base class {dotted!r}: {exc}") from exc


def capture_safe_print(config: pytest.Config) -> Callable[[str], None]:
    """Return a printer that bypasses pytest's output capturing."""

    def console_print(message: str) -> None:
        capman = config.pluginmanager.getplugin("capturemanager")
        if capman is None:
            stderr_print(message)
            return
        with capman.global_and_fixture_disabled():
            stderr_print(message)

    return console_print


def _use_color(config: pytest.Config) -> bool:
    option = config.getoption("color", "auto")
    if option == "yes":
        return True
    if option == "no":
        return False
    return sys.stderr.isatty()


class LedgerPlugin:
    """Feeds pytest's test protocol into a ``RunCoordinator``."""

    def __init__(
        self,
        output_dir: Path,
        coordinator: RunCoordinator,
        *,
        base_class: Optional[type] = None,
    ) -> None:
        self.output_dir = output_dir
        self.coordinator = coordinator
        self.base_class = base_class
        self._subjects: Dict[str, Subject] = {}
        self.aborted = False

    @classmethod
    def from_config(cls, config: pytest.Config, output_dir: Path) -> "LedgerPlugin":
        namespaces: List[str] = list(config.getini("ledger_namespaces"))
        namespaces.extend(config.getoption("ledger_namespaces") or [])
        base_class_path = config.getoption("ledger_base_class") or config.getini("ledger_base_class")
        base_class = _load_class(base_class_path) if base_class_path else None

        coordinator = RunCoordinator(
            channels=channels_from_environment(config.getoption("ledger_progress")),
            namespaces=namespaces,
            print_fn=capture_safe_print(config),
            color=Color if _use_color(config) else NullColor,
            rerun_hint=RERUN_HINT,
        )
        return cls(output_dir, coordinator, base_class=base_class)

    # -- identities -----------------------------------------------------

    @staticmethod
    def class_name(item: pytest.Item) -> str:
        cls = getattr(item, "cls", None)
        if cls is not None:
            return f"{cls.__module__}.{cls.__qualname__}"
        module = getattr(item, "module", None)
        if module is not None:
            return module.__name__
        return item.nodeid.split("::", 1)[0]

    @staticmethod
    def method_name(item: pytest.Item) -> str:
        return getattr(item, "originalname", None) or item.name

    @staticmethod
    def parameters(item: pytest.Item) -> Optional[Tuple[Any, ...]]:
        callspec = getattr(item, "callspec", None)
        if callspec is None:
            return None
        return tuple(callspec.params.values())

    def subject(self, item: pytest.Item) -> Subject:
        """Return the handle shared by every test of the item's class.

        Plain functions get one handle each, shared by their parametrized
        cases.
        """

        parent = item.getparent(pytest.Class)
        if parent is not None:
            key = parent.nodeid
        else:
            key = f"{item.parent.nodeid}::{self.method_name(item)}" if item.parent is not None else item.nodeid
        subject = self._subjects.get(key)
        if subject is None:
            subject = Subject(self.class_name(item))
            self._subjects[key] = subject
        return subject

    def is_conformant(self, item: pytest.Item) -> bool:
        if self.base_class is None:
            return True
        cls = getattr(item, "cls", None)
        return cls is not None and issubclass(cls, self.base_class)

    # -- hooks ----------------------------------------------------------

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.coordinator.on_start(self.output_dir)

    @pytest.hookimpl(tryfirst=True)
    def pytest_runtest_setup(self, item: pytest.Item) -> None:
        start = TestStart(
            class_name=self.class_name(item),
            method_name=self.method_name(item),
            subject=self.subject(item),
            conformant=self.is_conformant(item),
        )
        try:
            self.coordinator.on_test_start(start)
        except NonConformantTestClassError as exc:
            self.aborted = True
            pytest.exit(str(exc), returncode=NONCONFORMANT_EXIT_STATUS)

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo):
        outcome = yield
        self.record(item, call, outcome.get_result())

    def record(self, item: pytest.Item, call: pytest.CallInfo, report: pytest.TestReport) -> None:
        class_name = self.class_name(item)
        method_name = self.method_name(item)
        cause = call.excinfo.value if call.excinfo is not None else None

        def result(kind: OutcomeKind, failure: Optional[BaseException] = None) -> ResultRecord:
            return ResultRecord(
                class_name=class_name,
                method_name=method_name,
                outcome=kind,
                start=call.start,
                end=call.stop,
                parameters=self.parameters(item),
                cause=failure,
                subject=self.subject(item),
            )

        if report.when == "setup":
            if report.skipped:
                if hasattr(report, "wasxfail"):
                    self.coordinator.on_test_success_within_tolerance(result(OutcomeKind.SUCCESS_WITHIN_TOLERANCE))
                else:
                    self.coordinator.on_test_skipped(result(OutcomeKind.SKIP))
            elif report.failed:
                self.coordinator.on_configuration_failure(class_name, f"{method_name} (setup)", cause)
                self.coordinator.on_test_skipped(result(OutcomeKind.SKIP))
        elif report.when == "call":
            if report.passed:
                self.coordinator.on_test_success(result(OutcomeKind.SUCCESS))
            elif report.failed:
                self.coordinator.on_test_failure(result(OutcomeKind.FAILURE, cause))
            elif hasattr(report, "wasxfail"):
                self.coordinator.on_test_success_within_tolerance(result(OutcomeKind.SUCCESS_WITHIN_TOLERANCE))
            else:
                self.coordinator.on_test_skipped(result(OutcomeKind.SKIP))
        elif report.failed:
            self.coordinator.on_configuration_failure(class_name, f"{method_name} ({report.when})", cause)

    @pytest.hookimpl(trylast=True)
    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        # An aborted run leaves the failure marker in place and writes no report.
        if self.aborted:
            return
        try:
            self.coordinator.generate_report(self.output_dir)
        except SystemExit as exc:
            session.exitstatus = exc.code if isinstance(exc.code, int) else 1
