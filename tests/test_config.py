"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from table_inserter.config import InserterConfig
from table_inserter.errors import ConfigurationError

ENV_VARS = [
    "PROJECT_ID",
    "BQ_LOCATION",
    "INSERT_BATCH_SIZE_BYTES",
    "INSERT_MAX_ROWS_PER_BATCH",
    "INSERT_MAX_ATTEMPTS",
    "INSERT_INITIAL_BACKOFF_MS",
    "INSERT_BACKOFF_MULTIPLIER",
    "INSERT_WORKERS",
    "INSERT_DRAIN_TIMEOUT_SECONDS",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = InserterConfig.from_env()

    assert config.project_id is None
    assert config.bq_location == "US"
    assert config.batch_size_bytes == 64 * 1024
    assert config.max_rows_per_batch == 500
    assert config.max_attempts == 5
    assert config.initial_backoff_ms == 200
    assert config.workers == 100
    assert config.drain_timeout_seconds == 10.0
    assert config.log_level == "INFO"


def test_overrides(monkeypatch) -> None:
    monkeypatch.setenv("PROJECT_ID", "markets-prod")
    monkeypatch.setenv("INSERT_MAX_ROWS_PER_BATCH", "50")
    monkeypatch.setenv("INSERT_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("INSERT_INITIAL_BACKOFF_MS", "500")
    monkeypatch.setenv("INSERT_BACKOFF_MULTIPLIER", "2")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = InserterConfig.from_env()

    assert config.project_id == "markets-prod"
    assert config.max_rows_per_batch == 50
    assert config.log_level == "DEBUG"
    policy = config.retry_policy()
    assert policy.max_attempts == 3
    assert policy.initial_interval == pytest.approx(0.5)
    assert policy.multiplier == 2.0


@pytest.mark.parametrize(
    "name,value",
    [
        ("INSERT_MAX_ROWS_PER_BATCH", "0"),
        ("INSERT_MAX_ATTEMPTS", "many"),
        ("INSERT_WORKERS", "-1"),
        ("INSERT_BACKOFF_MULTIPLIER", "0.5"),
        ("INSERT_INITIAL_BACKOFF_MS", "-10"),
    ],
)
def test_invalid_values(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError, match=name):
        InserterConfig.from_env()
