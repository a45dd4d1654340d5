from __future__ import annotations

import os
import threading
import traceback
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Set

# Outer frames from these modules belong to the runner, not to the tests.
FRAMEWORK_MODULES = ("_pytest", "pluggy")


@dataclass(frozen=True)
class FailureEntry:
    fq_method: str
    narrative: str
    configuration: bool = False


class FailureLog:
    """Failure narratives in the order they were reported."""

    def __init__(self) -> None:
        self._entries: List[FailureEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: FailureEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> List[FailureEntry]:
        with self._lock:
            return list(self._entries)

    def test_failures(self) -> List[FailureEntry]:
        return [entry for entry in self.entries() if not entry.configuration]

    def text(self) -> str:
        return "".join(entry.narrative for entry in self.entries())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _module_matches(module: str, prefixes: Sequence[str]) -> bool:
    return any(module == prefix or module.startswith(prefix + ".") for prefix in prefixes)


def _describe_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception_only(type(exc), exc)).strip()


def trimmed_stack(exc: BaseException, namespaces: Sequence[str] = ()) -> List[str]:
    """Return the frames of ``exc`` from the outermost frame of interest inward.

    With ``namespaces`` the outermost frame of interest is the first one whose
    module lies in one of them; everything called from there is kept, library
    frames included.  Without ``namespaces`` only the runner's own outer
    frames are dropped.
    """

    frames = list(traceback.walk_tb(exc.__traceback__))
    modules = [frame.f_globals.get("__name__", "") for frame, _ in frames]

    if namespaces:
        matches = [index for index, module in enumerate(modules) if _module_matches(module, namespaces)]
    else:
        matches = [index for index, module in enumerate(modules) if not _module_matches(module, FRAMEWORK_MODULES)]
    first = matches[0] if matches else len(frames)

    lines = []
    for (frame, lineno), module in zip(frames[first:], modules[first:]):
        code = frame.f_code
        filename = os.path.basename(code.co_filename)
        lines.append(f"{module}.{code.co_name}({filename}:{lineno})")
    return lines


def describe_cause(exc: BaseException, namespaces: Sequence[str] = ()) -> str:
    """Return ``exc`` and its explicit causes with trimmed stacks."""

    parts: List[str] = []
    seen: Set[int] = set()
    current: Optional[BaseException] = exc
    prefix = ""
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        parts.append(f"{prefix}{_describe_exception(current)}\n")
        parts.extend(f"    {line}\n" for line in trimmed_stack(current, namespaces))
        current = current.__cause__
        prefix = "Caused by: "
    return "".join(parts)


def stringify_parameters(parameters: Optional[Sequence[Any]]) -> Optional[List[str]]:
    if parameters is None:
        return None
    return [str(parameter) for parameter in parameters]


def format_failure(
    fq_method: str,
    cause: Optional[BaseException],
    parameters: Optional[Sequence[Any]] = None,
    namespaces: Sequence[str] = (),
) -> str:
    """Return the narrative written to the report for one failed test."""

    text = f"Failed Test:  {fq_method}\n"
    if cause is not None:
        text += "Failure Cause:  " + describe_cause(cause, namespaces)
    for index, parameter in enumerate(stringify_parameters(parameters) or []):
        text += f"parameter[{index}]: {parameter}\n"
    return text + "\n\n"
