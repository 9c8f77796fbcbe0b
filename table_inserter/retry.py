"""
Retry rounds for partially failed inserts.

The retry loop is a small state machine:

    ATTEMPTING -> (BACKING_OFF -> ATTEMPTING)* -> SUCCEEDED | EXHAUSTED

Each ATTEMPTING step runs one round over the current rows and gets back the
subset the service rejected. The policy is immutable; the wait before a retry
is a pure function of the attempt number (plus jitter).
"""

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

import structlog

from table_inserter.correlate import RoundOutcome
from table_inserter.errors import ConfigurationError, InsertInterruptedError, PartialInsertError
from table_inserter.models import Row, RowFailure

log = structlog.get_logger()

RoundFn = Callable[[Sequence[Row], Sequence[str] | None], RoundOutcome]


class RetryState(str, Enum):
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff between insert rounds."""
    max_attempts: int = 5
    initial_interval: float = 0.2       # Seconds before the first retry
    multiplier: float = 1.5             # Growth per attempt
    randomization_factor: float = 0.5   # Jitter as a fraction of the interval

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_interval < 0:
            raise ConfigurationError(f"initial_interval must not be negative, got {self.initial_interval}")
        if self.multiplier < 1:
            raise ConfigurationError(f"multiplier must be at least 1, got {self.multiplier}")
        if not 0 <= self.randomization_factor <= 1:
            raise ConfigurationError(
                f"randomization_factor must be within [0, 1], got {self.randomization_factor}"
            )

    def interval(self, attempt: int) -> float:
        """Base wait in seconds after the given (1-based) attempt fails."""
        return self.initial_interval * self.multiplier ** (attempt - 1)

    def delay(self, attempt: int, rand: float = 0.5) -> float:
        """
        Jittered wait after the given attempt.

        Args:
            attempt: 1-based number of the attempt that just failed
            rand: Uniform sample in [0, 1); 0.5 gives the base interval
        """
        base = self.interval(attempt)
        return base + (2 * rand - 1) * self.randomization_factor * base

    def at_max_attempts(self, attempt: int) -> bool:
        return attempt >= self.max_attempts


def next_state(policy: RetryPolicy, attempt: int, outcome: RoundOutcome) -> RetryState:
    """Transition out of ATTEMPTING once a round's outcome is known."""
    if outcome.succeeded:
        return RetryState.SUCCEEDED
    if policy.at_max_attempts(attempt):
        return RetryState.EXHAUSTED
    return RetryState.BACKING_OFF


class RetryController:
    """Drives insert rounds over the shrinking set of rejected rows."""

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self.policy = policy
        self.sleep = sleep
        self.rand = rand

    def run(
        self,
        round_fn: RoundFn,
        rows: Sequence[Row],
        insert_ids: Sequence[str] | None = None,
        label: str = "",
    ) -> int:
        """
        Run rounds until every row is accepted or attempts run out.

        Args:
            round_fn: Plans, uploads and correlates one round of rows
            rows: The caller's rows
            insert_ids: Tokens parallel to rows, or None
            label: Table spec for log context

        Returns:
            Number of attempts used

        Raises:
            PartialInsertError: If rows are still rejected after the last attempt
            InsertInterruptedError: If interrupted during a round or while backing
                off; outstanding rows are positions in the caller's list
        """
        state = RetryState.ATTEMPTING
        attempt = 1
        # Position of each current row in the caller's original list
        origin = list(range(len(rows)))
        outcome = RoundOutcome()

        while True:
            if state is RetryState.ATTEMPTING:
                try:
                    outcome = round_fn(rows, insert_ids)
                except InsertInterruptedError as e:
                    outstanding = [origin[i] for i in e.outstanding]
                    raise InsertInterruptedError(
                        f"Interrupted while inserting into {label}; "
                        f"{len(outstanding)} row(s) outstanding: {outstanding}",
                        outstanding=outstanding,
                    ) from e.__cause__
                state = next_state(self.policy, attempt, outcome)

            elif state is RetryState.BACKING_OFF:
                self._back_off(attempt, [origin[i] for i in outcome.failed_indices], label)
                origin = [origin[i] for i in outcome.failed_indices]
                rows = outcome.rows
                insert_ids = outcome.insert_ids
                attempt += 1
                state = RetryState.ATTEMPTING

            elif state is RetryState.SUCCEEDED:
                return attempt

            else:
                failures = [
                    RowFailure(
                        index=origin[i],
                        row=outcome.rows[n],
                        insert_id=outcome.insert_ids[n] if outcome.insert_ids is not None else None,
                        messages=outcome.messages[n],
                    )
                    for n, i in enumerate(outcome.failed_indices)
                ]
                log.error(
                    "insert_retries_exhausted",
                    table=label,
                    attempts=attempt,
                    failed_rows=len(failures),
                )
                raise PartialInsertError(failures, attempt)

    def _back_off(self, attempt: int, outstanding: list[int], label: str) -> None:
        """Block before the next attempt; interruption is fatal."""
        wait_seconds = self.policy.delay(attempt, self.rand())
        log.info(
            "insert_retry_scheduled",
            table=label,
            attempt=attempt,
            failed_rows=len(outstanding),
            backoff_seconds=round(wait_seconds, 3),
        )
        try:
            self.sleep(wait_seconds)
        except KeyboardInterrupt as e:
            raise InsertInterruptedError(
                f"Interrupted while waiting before retrying insert of "
                f"{len(outstanding)} row(s): {outstanding}",
                outstanding=outstanding,
            ) from e
