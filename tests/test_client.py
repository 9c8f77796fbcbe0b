"""Tests for the BigQuery TableClient adapter."""

from __future__ import annotations

from unittest import mock

import pytest
from google.cloud import bigquery
from google.cloud.bigquery.enums import AutoRowIDs

from table_inserter.client import BigQueryTableClient, parse_insert_errors
from table_inserter.models import Batch, InsertError


@pytest.fixture
def bq() -> mock.MagicMock:
    return mock.MagicMock(spec=bigquery.Client)


@pytest.fixture
def client(bq) -> BigQueryTableClient:
    return BigQueryTableClient(client=bq)


def _batch(insert_ids=None) -> Batch:
    return Batch(stride=4, rows=[{"id": "a"}, {"id": "b"}], insert_ids=insert_ids, byte_size=20)


def test_insert_forwards_tokens_and_disables_retry(bq, client, ref) -> None:
    bq.insert_rows_json.return_value = [
        {"index": 1, "errors": [{"reason": "invalid", "message": "no such field: x"}]},
    ]

    errors = client.insert_rows(ref, _batch(["t-a", "t-b"]))

    assert errors == [InsertError(1, "no such field: x", "invalid")]
    args, kwargs = bq.insert_rows_json.call_args
    assert args[0] == bigquery.TableReference.from_string("proj.ds.events")
    assert args[1] == [{"id": "a"}, {"id": "b"}]
    assert kwargs["row_ids"] == ["t-a", "t-b"]
    assert kwargs["retry"] is None


def test_insert_without_tokens_disables_generated_ids(bq, client, ref) -> None:
    bq.insert_rows_json.return_value = []

    assert client.insert_rows(ref, _batch()) == []
    assert bq.insert_rows_json.call_args.kwargs["row_ids"] is AutoRowIDs.DISABLED


def test_insert_transport_errors_propagate(bq, client, ref) -> None:
    from google.api_core.exceptions import ServiceUnavailable

    bq.insert_rows_json.side_effect = ServiceUnavailable("try later")

    with pytest.raises(ServiceUnavailable):
        client.insert_rows(ref, _batch())


def test_parse_insert_errors() -> None:
    response = [
        {"index": 0, "errors": [{"reason": "invalid", "message": "bad"}, {"reason": "stopped", "message": ""}]},
        {"errors": [{"reason": "backendError", "message": "internal"}]},
        {"index": 3, "errors": []},
    ]

    errors = parse_insert_errors(response)

    assert errors == [
        InsertError(0, "bad; stopped", "invalid"),
        InsertError(None, "internal", "backendError"),
        InsertError(3, "unknown error", None),
    ]
    assert parse_insert_errors([]) == []


def test_list_first_row(bq, client, ref) -> None:
    bq.list_rows.return_value = iter([bigquery.Row(("a", 1), {"id": 0, "n": 1})])

    assert client.list_first_row(ref) == {"id": "a", "n": 1}
    assert bq.list_rows.call_args.kwargs["max_results"] == 1


def test_list_first_row_empty_table(bq, client, ref) -> None:
    bq.list_rows.return_value = iter([])

    assert client.list_first_row(ref) is None


def test_create_table_builds_table_with_schema(bq, client, ref) -> None:
    schema = [bigquery.SchemaField("id", "STRING", mode="REQUIRED")]
    bq.create_table.side_effect = lambda table: table

    table = client.create_table(ref, schema)

    assert table.project == "proj"
    assert table.dataset_id == "ds"
    assert table.table_id == "events"
    assert [(f.name, f.field_type, f.mode) for f in table.schema] == [("id", "STRING", "REQUIRED")]


def test_get_and_delete_use_table_reference(bq, client, ref) -> None:
    expected = bigquery.TableReference.from_string("proj.ds.events")

    client.get_table(ref)
    client.delete_table(ref)

    assert bq.get_table.call_args.args[0] == expected
    assert bq.delete_table.call_args.args[0] == expected
