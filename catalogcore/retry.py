"""Bounded, fixed-delay retry for calls that touch flaky external services."""

from __future__ import annotations

from typing import Callable, Tuple, Type, TypeVar
import logging
import time

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryError(RuntimeError):
    """Raised once every attempt has failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def call_with_retry(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    delay: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    label: str = "operation",
) -> T:
    """Call ``func`` up to ``attempts`` times, sleeping ``delay`` between tries.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately. Exhaustion raises :class:`RetryError` chained to
    the last failure.
    """

    attempts = max(1, attempts)
    last_error: BaseException | None = None
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as exc:
            last_error = exc
            if attempt < attempts:
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                    label,
                    attempt,
                    attempts,
                    delay,
                    exc,
                )
                sleep(delay)
            else:
                logger.error("%s failed after %d attempts: %s", label, attempts, exc)
    if last_error is None:
        raise RuntimeError(f"{label} was never attempted")
    raise RetryError(attempts, last_error) from last_error
