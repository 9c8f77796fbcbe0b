"""
Stream a JSON lines file into a BigQuery table.

1. Load configuration from the environment
2. Provision the destination table per the requested dispositions
3. Insert every row, retrying rejected rows
4. Drain the shared upload pool

Usage:
    python -m table_inserter.main project:dataset.table rows.jsonl \\
        --schema schemas/trades.yaml --write-disposition WRITE_TRUNCATE
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from google.api_core.exceptions import GoogleAPICallError

from table_inserter.client import BigQueryTableClient
from table_inserter.config import InserterConfig
from table_inserter.errors import ConfigurationError, InserterError
from table_inserter.inserter import TableInserter
from table_inserter.models import CreateDisposition, TableRef, WriteDisposition
from table_inserter.runtime import InserterRuntime
from table_inserter.schema import load_schema

log = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Emit JSON log lines at the given level."""
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        level_no = logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
    )


def read_rows(
    path: Path,
    insert_id_field: str | None = None,
) -> tuple[list[dict[str, Any]], list[str] | None]:
    """
    Read rows from a JSON lines file.

    Blank lines are skipped. If insert_id_field is given, each row's value
    for that field becomes its idempotency token.

    Raises:
        ConfigurationError: If a line is not a JSON object or lacks the id field
    """
    rows = []
    insert_ids: list[str] | None = [] if insert_id_field else None

    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"{path}:{line_no}: invalid JSON: {e}") from e
            if not isinstance(row, dict):
                raise ConfigurationError(f"{path}:{line_no}: expected a JSON object")

            if insert_ids is not None:
                if row.get(insert_id_field) is None:
                    raise ConfigurationError(
                        f"{path}:{line_no}: missing insert id field '{insert_id_field}'"
                    )
                insert_ids.append(str(row[insert_id_field]))
            rows.append(row)

    return rows, insert_ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream JSON lines into a BigQuery table")
    parser.add_argument("table", help="Destination table (project:dataset.table)")
    parser.add_argument("rows", type=Path, help="JSON lines file, one row per line")
    parser.add_argument("--schema", type=Path, help="YAML schema for table creation")
    parser.add_argument(
        "--write-disposition",
        choices=[d.value for d in WriteDisposition],
        default=WriteDisposition.WRITE_APPEND.value,
    )
    parser.add_argument(
        "--create-disposition",
        choices=[d.value for d in CreateDisposition],
        default=CreateDisposition.CREATE_IF_NEEDED.value,
    )
    parser.add_argument(
        "--insert-id-field",
        help="Row field to use as the idempotency token (insertId)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    config = InserterConfig.from_env()
    configure_logging(config.log_level)

    runtime = InserterRuntime(
        workers=config.workers,
        drain_timeout_seconds=config.drain_timeout_seconds,
    )

    try:
        ref = TableRef.from_spec(args.table)
        schema = load_schema(args.schema) if args.schema else None
        rows, insert_ids = read_rows(args.rows, args.insert_id_field)

        inserter = TableInserter(
            BigQueryTableClient(project=config.project_id, location=config.bq_location),
            runtime.start(),
            max_rows_per_batch=config.max_rows_per_batch,
            max_batch_bytes=config.batch_size_bytes,
            retry_policy=config.retry_policy(),
        )

        inserter.get_or_create_table(
            ref,
            WriteDisposition(args.write_disposition),
            CreateDisposition(args.create_disposition),
            schema,
        )

        result = inserter.insert_all(ref, rows, insert_ids)
        log.info(
            "load_completed",
            table=ref.to_spec(),
            rows=result.rows_inserted,
            attempts=result.attempts,
            retried_rows=result.retried_rows,
        )
        return 0

    except (InserterError, GoogleAPICallError) as e:
        log.error("load_failed", table=args.table, error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        runtime.drain()


if __name__ == "__main__":
    sys.exit(main())
