"""Exceptions raised by the inserter and provisioner.

Only PartialInsertError is produced after local recovery (retry rounds);
everything else aborts the operation as soon as it is detected.
"""

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from table_inserter.models import RowFailure


class InserterError(Exception):
    """Base class for all table_inserter errors."""


class ConfigurationError(InserterError, ValueError):
    """Invalid arguments or configuration, detected before any remote call."""


class TransportError(InserterError):
    """A remote call failed to complete."""


class InsertResponseError(InserterError):
    """The service accepted an insert but returned an unusable error report."""


class TableStateError(InserterError):
    """An existing table conflicts with the requested write disposition."""


class InsertInterruptedError(InserterError):
    """Interrupted while waiting on uploads or backoff.

    Batches already dispatched are not cancelled and may still be written.
    """

    def __init__(self, message: str, outstanding: Sequence[int] = ()) -> None:
        super().__init__(message)
        self.outstanding = list(outstanding)


class PartialInsertError(InserterError):
    """Rows were still rejected after the final insert attempt."""

    def __init__(self, failures: "Sequence[RowFailure]", attempts: int) -> None:
        self.failures = list(failures)
        self.attempts = attempts
        lines = [f.describe() for f in self.failures]
        super().__init__(
            f"Insert failed for {len(self.failures)} row(s) after {attempts} "
            f"attempt(s):\n  " + "\n  ".join(lines)
        )
