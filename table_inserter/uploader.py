"""Concurrent upload of one round's batches."""

from concurrent.futures import FIRST_EXCEPTION, Future, wait
from typing import Sequence

import structlog

from table_inserter.client import TableClient
from table_inserter.errors import InsertInterruptedError, TransportError
from table_inserter.models import Batch, InsertError, TableRef
from table_inserter.runtime import InserterRuntime

log = structlog.get_logger()


class ConcurrentUploader:
    """
    Submits every batch of a round to the shared pool and waits for all.

    Results come back aligned with the batch list, never in completion
    order, because error correlation works from each batch's stride.
    """

    def __init__(self, client: TableClient, runtime: InserterRuntime) -> None:
        self.client = client
        self.runtime = runtime

    def upload(self, ref: TableRef, batches: Sequence[Batch]) -> list[list[InsertError]]:
        """
        Insert all batches concurrently.

        Args:
            ref: Destination table
            batches: The round's batches, in stride order

        Returns:
            Per-batch InsertError lists, index-aligned with batches

        Raises:
            TransportError: If any insert call fails outright
            InsertInterruptedError: If interrupted while waiting
        """
        futures: list[Future] = [
            self.runtime.submit(self.client.insert_rows, ref, batch)
            for batch in batches
        ]

        try:
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        except KeyboardInterrupt as e:
            outstanding = [
                index
                for batch, future in zip(batches, futures)
                if not future.done()
                for index in batch.indices
            ]
            raise InsertInterruptedError(
                f"Interrupted while inserting into {ref}; "
                f"{len(outstanding)} row(s) outstanding: {outstanding}",
                outstanding=outstanding,
            ) from e

        for batch, future in zip(batches, futures):
            if future in done and future.exception() is not None:
                cause = future.exception()
                log.error(
                    "insert_batch_failed",
                    table=ref.to_spec(),
                    stride=batch.stride,
                    rows=len(batch),
                    error=str(cause),
                    error_type=type(cause).__name__,
                    abandoned_batches=len(not_done),
                )
                raise TransportError(
                    f"Insert into {ref} failed for batch at row {batch.stride}: {cause}"
                ) from cause

        return [future.result() or [] for future in futures]
