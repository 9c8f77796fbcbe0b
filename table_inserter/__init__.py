"""
table_inserter - batched, fault-tolerant streaming inserts into BigQuery.

Splits rows into size/count-bounded batches, uploads them concurrently on a
shared worker pool, retries only the rows the service rejected, and
provisions destination tables according to write/create dispositions.

Usage:
    python -m table_inserter.main project:dataset.table rows.jsonl

Environment Variables:
    PROJECT_ID: Default GCP project (optional)
    INSERT_MAX_ROWS_PER_BATCH: Rows per insertAll request (default: 500)
    INSERT_MAX_ATTEMPTS: Insert rounds before giving up (default: 5)
    INSERT_WORKERS: Shared upload pool size (default: 100)
"""

from table_inserter.errors import (
    ConfigurationError,
    InsertInterruptedError,
    InsertResponseError,
    InserterError,
    PartialInsertError,
    TableStateError,
    TransportError,
)
from table_inserter.inserter import TableInserter
from table_inserter.models import (
    CreateDisposition,
    InsertResult,
    TableRef,
    WriteDisposition,
)
from table_inserter.retry import RetryPolicy
from table_inserter.runtime import InserterRuntime

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "CreateDisposition",
    "InsertInterruptedError",
    "InsertResponseError",
    "InsertResult",
    "InserterError",
    "InserterRuntime",
    "PartialInsertError",
    "RetryPolicy",
    "TableInserter",
    "TableRef",
    "TableStateError",
    "TransportError",
    "WriteDisposition",
]
