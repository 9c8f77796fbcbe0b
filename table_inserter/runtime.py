"""Process-scoped worker pool shared by every inserter.

The pool is created once by the process (the entry point or the embedding
application), handed to each TableInserter, and drained at shutdown. It is
the only mutable state shared across insert calls.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")

DEFAULT_WORKERS = 100
DEFAULT_DRAIN_TIMEOUT_SECONDS = 10.0


class InserterRuntime:
    """Owns the bounded upload pool and its start/drain lifecycle."""

    def __init__(
        self,
        workers: int = DEFAULT_WORKERS,
        drain_timeout_seconds: float = DEFAULT_DRAIN_TIMEOUT_SECONDS,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be positive, got {workers}")
        self.workers = workers
        self.drain_timeout_seconds = drain_timeout_seconds
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def started(self) -> bool:
        return self._executor is not None

    def start(self) -> "InserterRuntime":
        """Create the worker pool. Idempotent."""
        with self._lock:
            if self._closed:
                raise RuntimeError("InserterRuntime has been drained")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers,
                    thread_name_prefix="table-inserter",
                )
                log.info("inserter_runtime_started", workers=self.workers)
        return self

    def submit(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        """Run fn on the shared pool, starting it on first use."""
        if self._executor is None:
            self.start()
        with self._lock:
            if self._closed or self._executor is None:
                raise RuntimeError("InserterRuntime has been drained")
            future = self._executor.submit(fn, *args)
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: float | None = None) -> bool:
        """
        Stop accepting work and wait for in-flight uploads.

        Args:
            timeout: Seconds to wait; defaults to drain_timeout_seconds

        Returns:
            True if every submitted call finished within the timeout
        """
        timeout = self.drain_timeout_seconds if timeout is None else timeout
        with self._lock:
            self._closed = True
            executor = self._executor
        if executor is None:
            return True

        executor.shutdown(wait=False, cancel_futures=False)
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                remaining = len(self._pending)
            if not remaining:
                break
            time.sleep(0.05)

        with self._lock:
            remaining = len(self._pending)
        if remaining:
            log.warning("inserter_runtime_drain_timeout", remaining=remaining, timeout=timeout)
            return False
        log.info("inserter_runtime_drained")
        return True

    def __enter__(self) -> "InserterRuntime":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.drain()
