from __future__ import annotations

import re

import pytest

from testledger.report import REPORT_FILE_NAME, TESTS_FAILED_MARKER_FILE_NAME

MIXED_TESTS = """
import pytest


class TestAlpha:
    def test_one(self):
        pass

    def test_two(self):
        assert 1 == 2

    @pytest.mark.parametrize("value", [1, 2])
    def test_param(self, value):
        pass


def test_module_level():
    pass
"""


@pytest.fixture
def ledger_dir(pytester):
    path = pytester.path / "ledger"
    path.mkdir()
    (path / TESTS_FAILED_MARKER_FILE_NAME).touch()
    return path


def run_with_ledger(pytester, ledger_dir, *args):
    return pytester.runpytest(
        "-p", "testledger.pytest_plugin", f"--ledger-dir={ledger_dir}", "--ledger-progress=none", *args
    )


def read_report(ledger_dir) -> str:
    return (ledger_dir / REPORT_FILE_NAME).read_text(encoding="utf-8")


def test_mixed_run_is_reported(pytester, ledger_dir):
    pytester.makepyfile(test_sample=MIXED_TESTS)

    result = run_with_ledger(pytester, ledger_dir)

    assert result.ret == 1
    result.assert_outcomes(passed=4, failed=1)
    text = read_report(ledger_dir)
    assert "# Test classes: 2" in text
    assert "# Test methods: 4" in text
    assert "# Tests passed: 4" in text
    assert "# Tests failed: 1" in text
    assert "Failed Test:  test_sample.TestAlpha#test_two\nFailure Cause:  AssertionError" in text
    assert re.search(r"\n    test_param  \d+ ms \(2\)\n", text)
    assert "\ntest_sample    " in text
    assert (ledger_dir / TESTS_FAILED_MARKER_FILE_NAME).exists()


def test_passing_run_removes_marker(pytester, ledger_dir):
    pytester.makepyfile(
        test_green="""
        import pytest

        def test_one():
            pass

        @pytest.mark.xfail(reason="known")
        def test_known_bug():
            assert False
        """
    )

    result = run_with_ledger(pytester, ledger_dir)

    assert result.ret == 0
    assert not (ledger_dir / TESTS_FAILED_MARKER_FILE_NAME).exists()
    assert "# Tests passed: 1" in read_report(ledger_dir)


def test_skip_only_run_is_ambiguous(pytester, ledger_dir):
    pytester.makepyfile(
        test_skipped="""
        import pytest

        @pytest.mark.skip(reason="not today")
        def test_one():
            pass

        def test_two():
            pytest.skip("not today either")
        """
    )

    result = run_with_ledger(pytester, ledger_dir)

    assert result.ret == 1
    assert (ledger_dir / TESTS_FAILED_MARKER_FILE_NAME).exists()
    assert "# Tests failed: 0" in read_report(ledger_dir)


def test_fixture_error_is_a_configuration_failure(pytester, ledger_dir):
    pytester.makepyfile(
        test_broken_fixture="""
        import pytest

        @pytest.fixture
        def database():
            raise RuntimeError("no database")

        def test_query(database):
            pass
        """
    )

    result = run_with_ledger(pytester, ledger_dir)

    assert result.ret == 1
    text = read_report(ledger_dir)
    assert "Failed Test:  test_broken_fixture#test_query (setup)\nFailure Cause:  RuntimeError: no database" in text
    assert "# Tests failed: 0" in text
    assert (ledger_dir / TESTS_FAILED_MARKER_FILE_NAME).exists()


def test_previous_report_is_replaced(pytester, ledger_dir):
    (ledger_dir / REPORT_FILE_NAME).write_text("stale", encoding="utf-8")
    pytester.makepyfile(test_one="def test_one():\n    pass\n")

    run_with_ledger(pytester, ledger_dir)

    assert "stale" not in read_report(ledger_dir)


def test_functions_around_a_class_are_not_interleaved(pytester, ledger_dir):
    pytester.makepyfile(
        test_layout="""
        import pytest

        def test_first():
            pass

        class TestMiddle:
            def test_inside(self):
                pass

        @pytest.mark.parametrize("value", [1, 2, 3])
        def test_last(value):
            pass
        """
    )

    result = run_with_ledger(pytester, ledger_dir)

    assert result.ret == 0
    text = read_report(ledger_dir)
    assert "# Test classes interleaved: 0" in text
    assert re.search(r"\n    test_last  \d+ ms \(3\)\n", text)
    assert "run out of order" not in result.stderr.str()


def test_plugin_is_inactive_without_ledger_dir(pytester, ledger_dir):
    pytester.makepyfile(test_one="def test_one():\n    pass\n")

    result = pytester.runpytest("-p", "testledger.pytest_plugin")

    assert result.ret == 0
    assert not (ledger_dir / REPORT_FILE_NAME).exists()
    assert (ledger_dir / TESTS_FAILED_MARKER_FILE_NAME).exists()


class TestBaseClass:
    @pytest.fixture(autouse=True)
    def base_module(self, pytester):
        pytester.makepyfile(ledgerbase="class LedgerTestCase:\n    pass\n")
        pytester.syspathinsert()

    def test_conformant_classes_run(self, pytester, ledger_dir):
        pytester.makepyfile(
            test_good="""
            from ledgerbase import LedgerTestCase

            class TestGood(LedgerTestCase):
                def test_one(self):
                    pass
            """
        )

        result = run_with_ledger(pytester, ledger_dir, "--ledger-base-class=ledgerbase.LedgerTestCase")

        assert result.ret == 0

    def test_nonconformant_class_aborts_the_run(self, pytester, ledger_dir):
        pytester.makepyfile(
            test_plain="""
            class TestPlain:
                def test_one(self):
                    pass

                def test_two(self):
                    pass
            """
        )

        result = run_with_ledger(pytester, ledger_dir, "--ledger-base-class=ledgerbase.LedgerTestCase")

        assert result.ret == 3
        assert not (ledger_dir / REPORT_FILE_NAME).exists()
        assert (ledger_dir / TESTS_FAILED_MARKER_FILE_NAME).exists()

    def test_unknown_base_class_is_a_usage_error(self, pytester, ledger_dir):
        pytester.makepyfile(test_one="def test_one():\n    pass\n")

        result = run_with_ledger(pytester, ledger_dir, "--ledger-base-class=ledgerbase.Missing")

        assert result.ret == pytest.ExitCode.USAGE_ERROR
