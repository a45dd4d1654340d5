from __future__ import annotations

import pytest

from testledger.failures import FailureEntry, FailureLog, describe_cause, format_failure, trimmed_stack

# A stand-in for a runner frame: code whose module name is inside pytest.
_RUNNER_SOURCE = """
def call_and_catch(func):
    try:
        func()
    except Exception as exc:
        return exc
"""


def _runner_namespace():
    namespace = {"__name__": "_pytest.runner_fake"}
    exec(compile(_RUNNER_SOURCE, "runner_fake.py", "exec"), namespace)
    return namespace


def failing_assertion():
    assert 1 == 2, "numbers differ"


def test_runner_frames_are_dropped_without_namespaces():
    exc = _runner_namespace()["call_and_catch"](failing_assertion)

    stack = trimmed_stack(exc)

    assert stack == [f"{__name__}.failing_assertion(test_failures.py:{failing_assertion.__code__.co_firstlineno + 1})"]


def test_namespace_selects_outermost_frame_of_interest():
    exc = _runner_namespace()["call_and_catch"](failing_assertion)

    assert len(trimmed_stack(exc, ["_pytest"])) == 2
    assert trimmed_stack(exc, [__name__])[0].startswith(f"{__name__}.failing_assertion(")
    assert trimmed_stack(exc, ["somewhere.else"]) == []


def test_namespace_prefix_must_end_at_a_dot():
    exc = _runner_namespace()["call_and_catch"](failing_assertion)

    assert trimmed_stack(exc, ["_pyt"]) == []


def test_cause_chain_is_described():
    def fail():
        try:
            {}["inner"]
        except KeyError as error:
            raise ValueError("outer") from error

    exc = _runner_namespace()["call_and_catch"](fail)

    text = describe_cause(exc)

    assert text.startswith("ValueError: outer\n")
    assert "\nCaused by: KeyError: 'inner'\n" in text
    assert "    " + __name__ + ".fail(" in text


def test_narrative_without_cause():
    assert format_failure("pkg.C#m", None, [1, "x"]) == (
        "Failed Test:  pkg.C#m\nparameter[0]: 1\nparameter[1]: x\n\n\n"
    )


def test_narrative_with_cause():
    exc = _runner_namespace()["call_and_catch"](failing_assertion)

    text = format_failure("pkg.C#m", exc)

    assert text.startswith("Failed Test:  pkg.C#m\nFailure Cause:  AssertionError: numbers differ")
    assert "\n    " + __name__ + ".failing_assertion(" in text
    assert text.endswith("\n\n\n")


class TestFailureLog:
    def test_keeps_order_and_separates_configuration_failures(self):
        log = FailureLog()
        log.append(FailureEntry("pkg.C#a", "first\n"))
        log.append(FailureEntry("pkg.C#setup", "config\n", configuration=True))
        log.append(FailureEntry("pkg.C#b", "second\n"))

        assert len(log) == 3
        assert [entry.fq_method for entry in log.test_failures()] == ["pkg.C#a", "pkg.C#b"]
        assert log.text() == "first\nconfig\nsecond\n"

    def test_entries_are_a_copy(self):
        log = FailureLog()
        log.entries().append(FailureEntry("pkg.C#a", ""))

        assert len(log) == 0


@pytest.mark.parametrize("parameters", [None, []])
def test_no_parameters(parameters):
    assert format_failure("pkg.C#m", None, parameters) == "Failed Test:  pkg.C#m\n\n\n"
