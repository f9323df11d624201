"""Bounded retry combinator returning an explicit Result."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    """Outcome of a retried call."""
    ok: bool
    value: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 0

    @classmethod
    def success(cls, value: T, attempts: int) -> "Result[T]":
        return cls(ok=True, value=value, attempts=attempts)

    @classmethod
    def failure(cls, error: Exception, attempts: int) -> "Result[T]":
        return cls(ok=False, error=error, attempts=attempts)

    @property
    def error_message(self) -> str:
        return str(self.error) if self.error is not None else ''


async def retry_async(
    call: Callable[[], Awaitable[Any]],
    validate: Callable[[Any], T],
    max_attempts: int = 3,
    label: str = 'request',
    wait: Optional[wait_base] = None,
) -> Result[T]:
    """Run `call` until `validate` accepts its output or attempts run out.

    `validate` converts raw output into the typed value and raises on
    invalid output. Attempts are sequential; any exception from the call
    or the validator counts as one failed attempt. Cancellation is never
    retried.
    """
    attempts = 0

    async def attempt() -> T:
        nonlocal attempts
        attempts += 1
        raw = await call()
        if raw is None:
            raise ValueError(f"{label}: empty output")
        return validate(raw)

    def log_failure(retry_state: RetryCallState) -> None:
        logger.warning("%s attempt %d/%d failed: %s", label, retry_state.attempt_number,
                       max_attempts, retry_state.outcome.exception())

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait or wait_none(),
        retry=retry_if_exception_type(Exception),
        after=log_failure,
        reraise=False,
    )
    try:
        value = await retrying(attempt)
    except RetryError as e:
        last = e.last_attempt
        return Result.failure(last.exception(), last.attempt_number)
    return Result.success(value, attempts)
