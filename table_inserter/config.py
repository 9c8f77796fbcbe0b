"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass

from table_inserter.errors import ConfigurationError
from table_inserter.retry import RetryPolicy


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class InserterConfig:
    """Inserter configuration."""

    # BigQuery
    project_id: str | None
    bq_location: str

    # Batching
    batch_size_bytes: int
    max_rows_per_batch: int

    # Retry
    max_attempts: int
    initial_backoff_ms: int
    backoff_multiplier: float

    # Shared upload pool
    workers: int
    drain_timeout_seconds: float

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "InserterConfig":
        """Load configuration from environment variables."""
        return cls(
            project_id=os.environ.get("PROJECT_ID") or None,
            bq_location=os.environ.get("BQ_LOCATION", "US"),

            batch_size_bytes=_int_env("INSERT_BATCH_SIZE_BYTES", 64 * 1024),
            max_rows_per_batch=_int_env("INSERT_MAX_ROWS_PER_BATCH", 500),

            max_attempts=_int_env("INSERT_MAX_ATTEMPTS", 5),
            initial_backoff_ms=_int_env("INSERT_INITIAL_BACKOFF_MS", 200, minimum=0),
            backoff_multiplier=_float_env("INSERT_BACKOFF_MULTIPLIER", 1.5, minimum=1.0),

            workers=_int_env("INSERT_WORKERS", 100),
            drain_timeout_seconds=_float_env("INSERT_DRAIN_TIMEOUT_SECONDS", 10.0),

            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_interval=self.initial_backoff_ms / 1000,
            multiplier=self.backoff_multiplier,
        )
