"""Reconnect policy for IMAP connections, built on tenacity."""

from __future__ import annotations

from collections.abc import Callable

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import RetryConfig

logger = structlog.get_logger()


def _log_before_sleep(operation: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retrying",
            operation=operation,
            attempt=state.attempt_number,
            wait_seconds=round(state.next_action.sleep, 3) if state.next_action else None,
            error=str(exc) if exc else None,
        )

    return before_sleep


def with_retry(
    config: RetryConfig,
    *,
    retryable_exceptions: tuple[type[BaseException], ...] = (ConnectionError,),
    operation: str = "imap_connect",
) -> Callable:
    """Decorator retrying *retryable_exceptions* with exponential backoff.

    Authentication failures and protocol errors are not connection errors,
    so they surface on the first attempt.  The last error is re-raised once
    ``config.max_attempts`` is exhausted.
    """
    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.multiplier,
            min=config.initial_wait_seconds,
            max=config.max_wait_seconds,
        ),
        retry=retry_if_exception_type(retryable_exceptions),
        before_sleep=_log_before_sleep(operation),
        reraise=True,
    )
