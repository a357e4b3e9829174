"""
Error hierarchy for the transaction ledger and the layers built on it.
"""


class LedgerError(Exception):
    """Base class for every error raised by txgraph."""


class ValidationError(LedgerError, ValueError):
    """Rejected input: non-positive amount, inverted time range, self transfer, ..."""


class NotFoundError(LedgerError, KeyError):
    """A lookup that is documented to require existence did not find its target."""

    def __str__(self):
        # KeyError would otherwise render the message with quotes
        return str(self.args[0]) if self.args else ''


class ConsistencyError(LedgerError, AssertionError):
    """An internal ledger invariant does not hold. Never expected in correct code."""
