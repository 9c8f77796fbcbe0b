"""Map per-batch insert errors back to positions in the round's rows."""

from dataclasses import dataclass, field
from typing import Sequence

from table_inserter.errors import InsertResponseError
from table_inserter.models import Batch, InsertError, Row


@dataclass
class RoundOutcome:
    """
    Rows to retry after one round.

    ``failed_indices`` are positions in the round's row list, in ascending
    order; ``rows`` and ``insert_ids`` are the matching retry inputs and
    ``messages`` the errors reported for each failed row.
    """
    failed_indices: list[int] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    insert_ids: list[str] | None = None
    messages: list[list[str]] = field(default_factory=list)
    errors: list[InsertError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_indices


def correlate(
    rows: Sequence[Row],
    insert_ids: Sequence[str] | None,
    batches: Sequence[Batch],
    batch_errors: Sequence[Sequence[InsertError]],
) -> RoundOutcome:
    """
    Translate batch-local error indices into round indices.

    An error at local index L in the batch with stride S refers to round row
    S + L. A row reported more than once is retried once, with all of its
    messages kept.

    Raises:
        InsertResponseError: If an error has no index or points outside its batch
    """
    by_index: dict[int, list[str]] = {}
    reported: list[InsertError] = []

    for batch, errors in zip(batches, batch_errors):
        for error in errors:
            reported.append(error)
            if error.index is None:
                raise InsertResponseError(
                    f"Insert failed: service reported an error without a row index "
                    f"for batch at row {batch.stride}: {reported}"
                )
            if not 0 <= error.index < len(batch):
                raise InsertResponseError(
                    f"Insert failed: error index {error.index} outside batch at row "
                    f"{batch.stride} of {len(batch)} row(s): {error.message}"
                )
            by_index.setdefault(batch.stride + error.index, []).append(error.message)

    outcome = RoundOutcome(
        insert_ids=[] if insert_ids is not None else None,
        errors=reported,
    )
    for index in sorted(by_index):
        outcome.failed_indices.append(index)
        outcome.rows.append(rows[index])
        outcome.messages.append(by_index[index])
        if outcome.insert_ids is not None:
            outcome.insert_ids.append(insert_ids[index])
    return outcome
