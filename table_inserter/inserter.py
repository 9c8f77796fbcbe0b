"""
Streaming row inserter.

Ties the pieces together for one insert_all call:
1. Plan the round's rows into size/count-bounded batches
2. Upload every batch concurrently on the shared runtime pool
3. Correlate per-row rejections back to round positions
4. Retry only the rejected rows, with bounded exponential backoff

Table provisioning is independent of inserting and is exposed on the same
object for convenience.
"""

import time
from typing import Any, Callable, Sequence

import structlog

from table_inserter.batching import (
    DEFAULT_BATCH_SIZE_BYTES,
    DEFAULT_MAX_ROWS_PER_BATCH,
    batch_summary,
    plan_batches,
)
from table_inserter.client import TableClient
from table_inserter.correlate import RoundOutcome, correlate
from table_inserter.errors import ConfigurationError
from table_inserter.models import (
    CreateDisposition,
    InsertResult,
    Row,
    TableRef,
    WriteDisposition,
)
from table_inserter.provisioner import TableProvisioner
from table_inserter.retry import RetryController, RetryPolicy
from table_inserter.runtime import InserterRuntime
from table_inserter.uploader import ConcurrentUploader

log = structlog.get_logger()


class TableInserter:
    """Inserts rows into tables and provisions those tables."""

    def __init__(
        self,
        client: TableClient,
        runtime: InserterRuntime,
        max_rows_per_batch: int = DEFAULT_MAX_ROWS_PER_BATCH,
        max_batch_bytes: int = DEFAULT_BATCH_SIZE_BYTES,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        """
        Initialise the inserter.

        Args:
            client: Remote table operations
            runtime: Shared upload pool, owned by the caller
            max_rows_per_batch: Row cap per insert request
            max_batch_bytes: Approximate byte budget per insert request
            retry_policy: Backoff between rounds (defaults to 5 attempts, 200ms)
            sleep: Blocking sleep used between rounds, mainly for tests
        """
        if max_rows_per_batch < 1:
            raise ConfigurationError(f"max_rows_per_batch must be positive, got {max_rows_per_batch}")
        if max_batch_bytes < 1:
            raise ConfigurationError(f"max_batch_bytes must be positive, got {max_batch_bytes}")

        self.client = client
        self.runtime = runtime
        self.max_rows_per_batch = max_rows_per_batch
        self.max_batch_bytes = max_batch_bytes
        self.retry_policy = retry_policy or RetryPolicy()
        self.uploader = ConcurrentUploader(client, runtime)
        self.provisioner = TableProvisioner(client)
        self._sleep = sleep

    def insert_all(
        self,
        ref: TableRef,
        rows: Sequence[Row],
        insert_ids: Sequence[str] | None = None,
    ) -> InsertResult:
        """
        Insert all rows, retrying rows the service rejects.

        Args:
            ref: Destination table
            rows: Rows to insert, as JSON-compatible mappings
            insert_ids: Idempotency tokens parallel to rows, or None

        Returns:
            InsertResult summarising the call

        Raises:
            ConfigurationError: If insert_ids does not match rows in length
            TransportError: If an insert request fails outright
            InsertResponseError: If the service returns a malformed error report
            PartialInsertError: If rows are still rejected after the last attempt
            InsertInterruptedError: If interrupted while waiting
        """
        if ref is None:
            raise ConfigurationError("ref is required")
        if insert_ids is not None and len(insert_ids) != len(rows):
            raise ConfigurationError(
                f"insert_ids has {len(insert_ids)} element(s) but rows has {len(rows)}; "
                "they must match one to one"
            )

        spec = ref.to_spec()
        stats = {"batches": 0, "rounds": 0, "retried": 0}

        def run_round(round_rows: Sequence[Row], round_ids: Sequence[str] | None) -> RoundOutcome:
            batches = list(plan_batches(
                round_rows,
                round_ids,
                max_batch_bytes=self.max_batch_bytes,
                max_rows_per_batch=self.max_rows_per_batch,
            ))
            stats["rounds"] += 1
            stats["batches"] += len(batches)
            if stats["rounds"] > 1:
                stats["retried"] += len(round_rows)
                log.info("insert_retrying_failed_rows", table=spec, **batch_summary(batches))
            else:
                log.debug("insert_round_started", table=spec, **batch_summary(batches))

            batch_errors = self.uploader.upload(ref, batches)
            return correlate(round_rows, round_ids, batches, batch_errors)

        controller = RetryController(self.retry_policy, sleep=self._sleep or time.sleep)

        attempts = controller.run(run_round, rows, insert_ids, label=spec)

        result = InsertResult(
            table=ref,
            rows_inserted=len(rows),
            attempts=attempts,
            batches=stats["batches"],
            retried_rows=stats["retried"],
        )
        log.info(
            "insert_completed",
            table=spec,
            rows=result.rows_inserted,
            attempts=result.attempts,
            batches=result.batches,
        )
        return result

    def get_or_create_table(
        self,
        ref: TableRef,
        write_disposition: WriteDisposition,
        create_disposition: CreateDisposition,
        schema: Sequence[Any] | None = None,
    ) -> Any:
        """See TableProvisioner.get_or_create_table."""
        return self.provisioner.get_or_create_table(
            ref, write_disposition, create_disposition, schema
        )

    def is_empty(self, ref: TableRef) -> bool:
        return self.provisioner.is_empty(ref)

    def try_create_table(self, ref: TableRef, schema: Sequence[Any]) -> Any | None:
        return self.provisioner.try_create_table(ref, schema)
