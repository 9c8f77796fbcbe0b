"""Shared fixtures: an in-memory table store and a started runtime."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest
from google.api_core.exceptions import Conflict, NotFound

from table_inserter.models import Batch, InsertError, TableRef
from table_inserter.runtime import InserterRuntime

REF = TableRef("proj", "ds", "events")


@dataclass
class FakeTable:
    schema: list[Any]
    rows: list[dict[str, Any]] = field(default_factory=list)


class FakeTableClient:
    """
    In-memory TableClient.

    ``reject`` decides per row whether the service rejects it; it receives
    the row and how many times that row has been sent so far (1-based) and
    returns an error message or None. ``fail_batch`` may return an
    exception to raise for a whole batch.
    """

    def __init__(self) -> None:
        self.tables: dict[TableRef, FakeTable] = {}
        self.calls: list[tuple[str, TableRef]] = []
        self.inserted_batches: list[Batch] = []
        self.reject: Callable[[dict[str, Any], int], str | None] = lambda row, sent: None
        self.fail_batch: Callable[[Batch], Exception | None] = lambda batch: None
        self.missing_index = False
        self.create_error: Exception | None = None
        self._sent: dict[str, int] = {}
        self._lock = threading.Lock()

    def add_table(self, ref: TableRef, schema: list[Any], rows: list[dict[str, Any]] | None = None) -> FakeTable:
        self.tables[ref] = FakeTable(schema=list(schema), rows=list(rows or []))
        return self.tables[ref]

    def ops(self, name: str) -> list[TableRef]:
        return [ref for op, ref in self.calls if op == name]

    def insert_rows(self, ref: TableRef, batch: Batch) -> list[InsertError]:
        with self._lock:
            self.calls.append(("insert", ref))
            self.inserted_batches.append(batch)

        error = self.fail_batch(batch)
        if error is not None:
            raise error

        errors = []
        with self._lock:
            for local, row in enumerate(batch.rows):
                key = repr(sorted(row.items()))
                self._sent[key] = self._sent.get(key, 0) + 1
                message = self.reject(row, self._sent[key])
                if message is not None:
                    index = None if self.missing_index else local
                    errors.append(InsertError(index=index, message=message, reason="invalid"))
                elif ref in self.tables:
                    self.tables[ref].rows.append(dict(row))
        return errors

    def get_table(self, ref: TableRef) -> FakeTable:
        self.calls.append(("get", ref))
        if ref not in self.tables:
            raise NotFound(f"Not found: Table {ref}")
        return self.tables[ref]

    def delete_table(self, ref: TableRef) -> None:
        self.calls.append(("delete", ref))
        if ref not in self.tables:
            raise NotFound(f"Not found: Table {ref}")
        del self.tables[ref]

    def create_table(self, ref: TableRef, schema: list[Any]) -> FakeTable:
        self.calls.append(("create", ref))
        if self.create_error is not None:
            raise self.create_error
        if ref in self.tables:
            raise Conflict(f"Already Exists: Table {ref}")
        self.tables[ref] = FakeTable(schema=list(schema))
        return self.tables[ref]

    def list_first_row(self, ref: TableRef) -> dict[str, Any] | None:
        self.calls.append(("list", ref))
        rows = self.tables[ref].rows
        return rows[0] if rows else None


@pytest.fixture
def fake_client() -> FakeTableClient:
    return FakeTableClient()


@pytest.fixture
def runtime():
    rt = InserterRuntime(workers=8, drain_timeout_seconds=2.0).start()
    yield rt
    rt.drain()


@pytest.fixture
def sleeps() -> list[float]:
    """Records requested backoff sleeps instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], None]:
    return sleeps.append


@pytest.fixture
def ref() -> TableRef:
    return REF
