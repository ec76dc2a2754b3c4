"""
Bounded retry around storage operations.

``RetryingConnection`` owns the single live connection of an adapter. Every
load and mutation is handed to ``run`` as a callable taking that connection;
a failed attempt is retried on a freshly acquired connection after a fixed
delay, and the last failure is escalated as ``StorageError`` once the budget
is spent.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from loguru import logger
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from casbin_sql_adapter.core.exceptions import StorageError

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 1.0


class RetryingConnection:
    """Connection handle with a fixed retry budget."""

    def __init__(
        self,
        engine: Engine,
        attempts: int = DEFAULT_ATTEMPTS,
        delay: float = DEFAULT_DELAY_SECONDS,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.engine = engine
        self.attempts = attempts
        self.delay = delay
        self._connection: Optional[Connection] = None

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            self._connection = self.engine.connect()
        return self._connection

    def reconnect(self) -> Connection:
        # the previous handle is dropped, not closed: it may already be broken
        self._connection = None
        return self.connection

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Storage operation failed (attempt {retry_state.attempt_number}/{self.attempts}): "
            f"{exc}; reconnecting in {self.delay}s"
        )

    def run(self, operation: Callable[[Connection], T]) -> T:
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.delay),
            retry=retry_if_exception_type(SQLAlchemyError),
            before_sleep=self._log_retry,
        )
        try:
            for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        self.reconnect()
                    return operation(self.connection)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            logger.error(f"Storage operation failed after {self.attempts} attempts: {last}")
            raise StorageError(
                f"Storage operation failed after {self.attempts} attempts: {last}",
                attempts=self.attempts,
            ) from last

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


__all__ = ["DEFAULT_ATTEMPTS", "DEFAULT_DELAY_SECONDS", "RetryingConnection"]
