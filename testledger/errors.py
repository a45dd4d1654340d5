from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors raised by the test ledger."""


class NonConformantTestClassError(LedgerError):
    """A test class does not provide the capabilities every test class must have."""

    def __init__(self, class_name: str, message: str) -> None:
        super().__init__(message)
        self.class_name = class_name
