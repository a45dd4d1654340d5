"""
Test ledger runner

Runs pytest with the ledger plugin enabled, the way a build driver would:
the output directory is created, the failure marker is put in place, and
the ledger removes it again if every test passed.

Usage:
    testledger [options] [pytest args...]

Options:
    --output-dir PATH     Directory for results.txt and the failure marker (default: build/test-ledger)
    --progress TOKENS     Progress channels, e.g. "time,count,memory" (default: $TESTLEDGER_PROGRESS)
    --namespace PREFIX    Module prefix kept when trimming failure stacks (repeatable)
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

import pytest

from .report import TESTS_FAILED_MARKER_FILE_NAME
from .utils import Color, stderr_print as print


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testledger",
        description="Run pytest and write a test ledger report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        epilog='Progress tokens: none, all, default, time, count, memory, threadcount, threadchanges',
    )
    parser.add_argument('--output-dir', type=str, default='build/test-ledger',
                        help='Directory for the report and the failure marker (default: build/test-ledger)')
    parser.add_argument('--progress', type=str, default=None,
                        help='Progress channels to print while tests run')
    parser.add_argument('--namespace', action='append', default=[],
                        help='Module prefix kept when trimming failure stacks (repeatable)')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    # Anything the runner does not recognise is forwarded to pytest.
    args, forwarded = build_parser().parse_known_args(argv)

    output_dir = Path(args.output_dir).resolve()
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        (output_dir / TESTS_FAILED_MARKER_FILE_NAME).touch()
    except OSError as exc:
        print(f"{Color.RED}Error: cannot prepare output directory {output_dir}: {exc}{Color.RESET}")
        return 1

    pytest_args = ["-p", "testledger.pytest_plugin", f"--ledger-dir={output_dir}"]
    if args.progress is not None:
        pytest_args.append(f"--ledger-progress={args.progress}")
    for namespace in args.namespace:
        pytest_args.append(f"--ledger-namespace={namespace}")
    if "--" in forwarded:
        forwarded.remove("--")

    print(f"{Color.BOLD}Test ledger runner{Color.RESET}")
    print(f"Output directory: {output_dir}")
    print("=" * 70)

    return int(pytest.main(pytest_args + forwarded))
