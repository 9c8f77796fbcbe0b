"""
Batch planning for streaming inserts.

Rows are accumulated in order into the current batch until one of three
things happens:
- the estimated serialized size reaches the byte budget
- the row count reaches the per-batch cap
- the input runs out

The closing row is included in the batch it closes, so a batch can overshoot
the byte budget by at most one row. The next batch's stride is the index
after the closing row.
"""

import json
from typing import Any, Iterator, Sequence

from table_inserter.models import Batch, Row

# Approximate amount of row data per insertAll request
DEFAULT_BATCH_SIZE_BYTES = 64 * 1024

# Maximum number of rows per insertAll request
DEFAULT_MAX_ROWS_PER_BATCH = 500


def estimate_row_bytes(row: Row) -> int:
    """Estimate the serialized size of a row as compact JSON."""
    return len(json.dumps(row, separators=(",", ":"), default=str).encode("utf-8"))


def plan_batches(
    rows: Sequence[Row],
    insert_ids: Sequence[str] | None = None,
    max_batch_bytes: int = DEFAULT_BATCH_SIZE_BYTES,
    max_rows_per_batch: int = DEFAULT_MAX_ROWS_PER_BATCH,
) -> Iterator[Batch]:
    """
    Split rows into size- and count-bounded batches.

    Args:
        rows: Rows for this round, in order
        insert_ids: Idempotency tokens parallel to rows, or None
        max_batch_bytes: Byte budget per batch (estimated)
        max_rows_per_batch: Row cap per batch

    Yields:
        Batches in stride order; nothing for an empty row list
    """
    stride = 0
    current: list[Row] = []
    current_ids: list[str] = []
    data_size = 0
    last = len(rows) - 1

    for i, row in enumerate(rows):
        current.append(row)
        if insert_ids is not None:
            current_ids.append(insert_ids[i])
        data_size += estimate_row_bytes(row)

        if data_size >= max_batch_bytes or len(current) >= max_rows_per_batch or i == last:
            yield Batch(
                stride=stride,
                rows=current,
                insert_ids=current_ids if insert_ids is not None else None,
                byte_size=data_size,
            )
            stride = i + 1
            current = []
            current_ids = []
            data_size = 0


def batch_summary(batches: Sequence[Batch]) -> dict[str, Any]:
    """Structured log context describing a round's batches."""
    return {
        "batches": len(batches),
        "rows": sum(len(b) for b in batches),
        "bytes": sum(b.byte_size for b in batches),
    }
