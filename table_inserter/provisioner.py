"""Destination table provisioning under write/create dispositions.

Provisioning is strictly sequential: one metadata fetch, an optional
emptiness probe, and at most one delete followed by one create.
"""

from typing import Any, Sequence

import structlog
from google.api_core.exceptions import Conflict, NotFound

from table_inserter.client import TableClient
from table_inserter.errors import ConfigurationError, TableStateError
from table_inserter.models import CreateDisposition, TableRef, WriteDisposition

log = structlog.get_logger()


class TableProvisioner:
    """Gets, truncates or creates destination tables."""

    def __init__(self, client: TableClient) -> None:
        self.client = client

    def get_or_create_table(
        self,
        ref: TableRef,
        write_disposition: WriteDisposition,
        create_disposition: CreateDisposition,
        schema: Sequence[Any] | None = None,
    ) -> Any:
        """
        Retrieve or create the table.

        The table is checked against the dispositions:
        - WRITE_APPEND: an existing table is returned as is
        - WRITE_TRUNCATE: a non-empty table is deleted and re-created
        - WRITE_EMPTY: a non-empty table is an error

        A schema is needed whenever a table is created, and it must have at
        least one field. If none is given and an existing table is being
        truncated, its schema is reused; the check runs before the delete.

        Returns:
            The table, or None if creation lost a race with another writer

        Raises:
            NotFound: If the table is missing and creation is not allowed
            TableStateError: If WRITE_EMPTY and the table has data
            ConfigurationError: If a table must be created and no schema is available
        """
        table = None
        try:
            table = self.client.get_table(ref)
        except NotFound:
            if create_disposition != CreateDisposition.CREATE_IF_NEEDED:
                raise

        if table is not None:
            if write_disposition == WriteDisposition.WRITE_APPEND:
                return table

            if self.is_empty(ref):
                if write_disposition == WriteDisposition.WRITE_TRUNCATE:
                    log.info("empty_table_not_removed", table=ref.to_spec())
                return table

            if write_disposition == WriteDisposition.WRITE_EMPTY:
                raise TableStateError(
                    f"WriteDisposition is WRITE_EMPTY, but table {ref} is not empty"
                )

            if schema is None:
                schema = getattr(table, "schema", None) or None
            self._require_schema(ref, schema)

            log.info("table_deleting", table=ref.to_spec(), reason="truncate")
            self.client.delete_table(ref)

        self._require_schema(ref, schema)
        return self.try_create_table(ref, schema)

    @staticmethod
    def _require_schema(ref: TableRef, schema: Sequence[Any] | None) -> None:
        if schema is None:
            raise ConfigurationError(f"Table schema required to create {ref}")
        if len(schema) == 0:
            raise ConfigurationError(f"Table schema for {ref} has no fields")

    def is_empty(self, ref: TableRef) -> bool:
        """Check whether a table has no rows, reading at most one."""
        return self.client.list_first_row(ref) is None

    def try_create_table(self, ref: TableRef, schema: Sequence[Any]) -> Any | None:
        """
        Try to create the table.

        If a table with the same name already exists (another writer won
        the race), returns None. The existing table does not necessarily
        have the requested schema; callers that need it must fetch it.

        Raises:
            GoogleAPICallError: For any failure other than already-exists
        """
        log.info("table_create_attempt", table=ref.to_spec(), fields=len(schema))
        try:
            return self.client.create_table(ref, schema)
        except Conflict:
            log.info("table_already_exists", table=ref.to_spec())
            return None
