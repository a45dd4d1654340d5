"""Aggregate test lifecycle events into a run report."""
from __future__ import annotations

from .coordinator import RunCoordinator, RunState
from .errors import LedgerError, NonConformantTestClassError
from .interleave import InterleaveDetector
from .ledger import RunLedger
from .progress import ProgressChannels, ProgressSampler, parse_progress_tokens
from .report import REPORT_FILE_NAME, TESTS_FAILED_MARKER_FILE_NAME, ReportGenerator
from .results import OutcomeKind, ResultRecord, Subject, TestStart

__version__ = "0.1.0"

__all__ = [
    "InterleaveDetector",
    "LedgerError",
    "NonConformantTestClassError",
    "OutcomeKind",
    "ProgressChannels",
    "ProgressSampler",
    "REPORT_FILE_NAME",
    "ReportGenerator",
    "ResultRecord",
    "RunCoordinator",
    "RunLedger",
    "RunState",
    "Subject",
    "TESTS_FAILED_MARKER_FILE_NAME",
    "TestStart",
    "parse_progress_tokens",
]
