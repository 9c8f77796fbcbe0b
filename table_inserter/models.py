"""Value types shared by the planner, uploader and provisioner."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from table_inserter.errors import ConfigurationError

Row = Mapping[str, Any]

# project:dataset.table or project.dataset.table
_TABLE_SPEC = re.compile(
    r"^(?P<project>[\w.:-]+?)[:.](?P<dataset>\w+)\.(?P<table>[\w$-]+)$"
)


class WriteDisposition(str, Enum):
    """What to do with existing table data before inserting."""
    WRITE_APPEND = "WRITE_APPEND"
    WRITE_TRUNCATE = "WRITE_TRUNCATE"
    WRITE_EMPTY = "WRITE_EMPTY"


class CreateDisposition(str, Enum):
    """Whether a missing table may be created."""
    CREATE_IF_NEEDED = "CREATE_IF_NEEDED"
    CREATE_NEVER = "CREATE_NEVER"


@dataclass(frozen=True)
class TableRef:
    """Identifies a destination table."""
    project: str
    dataset: str
    table: str

    @classmethod
    def from_spec(cls, spec: str) -> "TableRef":
        """
        Parse a table spec string.

        Accepts both the legacy ``project:dataset.table`` form and the
        standard SQL ``project.dataset.table`` form.

        Raises:
            ConfigurationError: If the spec has no project, dataset and table
        """
        match = _TABLE_SPEC.match(spec.strip())
        if not match:
            raise ConfigurationError(
                f"Invalid table spec '{spec}', expected project:dataset.table"
            )
        return cls(
            project=match.group("project"),
            dataset=match.group("dataset"),
            table=match.group("table"),
        )

    def to_spec(self) -> str:
        return f"{self.project}:{self.dataset}.{self.table}"

    def __str__(self) -> str:
        return self.to_spec()


@dataclass(frozen=True)
class Batch:
    """
    A contiguous slice of one round's rows, sent in a single insert call.

    ``stride`` is the index of the batch's first row within the round's
    row list; adding a batch-local error index to it gives the round index.
    """
    stride: int
    rows: list[Row]
    insert_ids: list[str] | None
    byte_size: int

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def indices(self) -> range:
        """Round indices covered by this batch."""
        return range(self.stride, self.stride + len(self.rows))


@dataclass(frozen=True)
class InsertError:
    """A per-row rejection reported by the service for one batch."""
    index: int | None       # Row index within its batch; None is a service anomaly
    message: str
    reason: str | None = None


@dataclass
class RowFailure:
    """A row the service rejected, located in the caller's original row list."""
    index: int
    row: Row
    insert_id: str | None
    messages: list[str] = field(default_factory=list)

    def describe(self) -> str:
        token = f" insert_id={self.insert_id}" if self.insert_id is not None else ""
        return f"row {self.index}{token}: {'; '.join(self.messages)}"


@dataclass
class InsertResult:
    """Summary of a successful insert_all call."""
    table: TableRef
    rows_inserted: int
    attempts: int
    batches: int
    retried_rows: int = 0
