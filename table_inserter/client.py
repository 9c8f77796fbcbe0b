"""
Remote table store interface.

Provides a narrow protocol over the five calls the inserter and provisioner
need, and a BigQuery implementation of it.

The Protocol pattern lets the inserter run against any backend (including
the in-memory fake used in tests) without knowing the client library.
Not-found and already-exists conditions are signalled with
google.api_core's NotFound and Conflict exceptions, which is what the
BigQuery client raises natively.
"""

from typing import Any, Mapping, Protocol, Sequence

import structlog
from google.cloud import bigquery
from google.cloud.bigquery.enums import AutoRowIDs

from table_inserter.models import Batch, InsertError, TableRef

log = structlog.get_logger()


class TableClient(Protocol):
    """
    Protocol defining the remote table operations.

    - insert_rows: Stream a batch, returning per-row rejections
    - get_table: Fetch table metadata (raises NotFound)
    - delete_table: Drop a table
    - create_table: Create a table (raises Conflict if it exists)
    - list_first_row: Return one row of the table, or None if it is empty
    """

    def insert_rows(self, ref: TableRef, batch: Batch) -> list[InsertError]:
        """Insert a batch; raises on transport failure."""
        ...

    def get_table(self, ref: TableRef) -> Any:
        """Fetch table metadata."""
        ...

    def delete_table(self, ref: TableRef) -> None:
        """Delete the table."""
        ...

    def create_table(self, ref: TableRef, schema: Sequence[Any]) -> Any:
        """Create the table with the given schema."""
        ...

    def list_first_row(self, ref: TableRef) -> Mapping[str, Any] | None:
        """Return at most one row of table data."""
        ...


def parse_insert_errors(response: Sequence[Mapping[str, Any]]) -> list[InsertError]:
    """
    Flatten an insertAll error response into InsertErrors.

    BigQuery reports one entry per rejected row, each carrying an ``index``
    and a list of error dicts; this keeps one InsertError per entry with the
    messages joined. Entries without an index are kept with index None.
    """
    result = []
    for entry in response or []:
        details = entry.get("errors") or []
        messages = [d.get("message") or d.get("reason") or "unknown error" for d in details]
        reasons = [d["reason"] for d in details if d.get("reason")]
        result.append(InsertError(
            index=entry.get("index"),
            message="; ".join(messages) if messages else "unknown error",
            reason=reasons[0] if reasons else None,
        ))
    return result


class BigQueryTableClient:
    """
    BigQuery implementation of TableClient.

    Uses tabledata.insertAll via insert_rows_json. Idempotency tokens are
    forwarded as insertIds; when none are supplied the client's automatic
    insertId generation is disabled so rows are sent exactly as given.
    Client-level retry on inserts is off; transport failures surface to
    the caller as raised exceptions.
    """

    def __init__(
        self,
        project: str | None = None,
        location: str | None = None,
        client: bigquery.Client | None = None,
    ):
        """
        Initialise the BigQuery client.

        Args:
            project: GCP project ID (client default if None)
            location: BigQuery location for the client
            client: Pre-built client, mainly for tests
        """
        self.client = client or bigquery.Client(project=project, location=location)

    @staticmethod
    def table_reference(ref: TableRef) -> bigquery.TableReference:
        return bigquery.DatasetReference(ref.project, ref.dataset).table(ref.table)

    def insert_rows(self, ref: TableRef, batch: Batch) -> list[InsertError]:
        row_ids = batch.insert_ids if batch.insert_ids is not None else AutoRowIDs.DISABLED
        response = self.client.insert_rows_json(
            self.table_reference(ref),
            [dict(row) for row in batch.rows],
            row_ids=row_ids,
            retry=None,
        )
        errors = parse_insert_errors(response)
        if errors:
            log.debug(
                "insert_batch_rejections",
                table=ref.to_spec(),
                stride=batch.stride,
                rows=len(batch),
                rejected=len(errors),
            )
        return errors

    def get_table(self, ref: TableRef) -> bigquery.Table:
        return self.client.get_table(self.table_reference(ref))

    def delete_table(self, ref: TableRef) -> None:
        self.client.delete_table(self.table_reference(ref))

    def create_table(self, ref: TableRef, schema: Sequence[bigquery.SchemaField]) -> bigquery.Table:
        table = bigquery.Table(self.table_reference(ref), schema=list(schema))
        return self.client.create_table(table)

    def list_first_row(self, ref: TableRef) -> Mapping[str, Any] | None:
        rows = self.client.list_rows(self.table_reference(ref), max_results=1)
        for row in rows:
            return dict(row.items())
        return None
