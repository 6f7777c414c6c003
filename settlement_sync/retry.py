"""Retry policy for mail provider requests, driven by RetryConfig."""

from __future__ import annotations

from collections.abc import Callable

import httpx
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


class RetryableStatus(Exception):
    """The provider answered with a status worth another attempt."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"provider responded {status_code}")
        self.status_code = status_code


def is_retryable_status(status_code: int) -> bool:
    """401 (token expired early), 408, 429 and any 5xx."""
    return status_code in (401, 408, 429) or status_code >= 500


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome is not None else None
    logger.warning(
        "request_retrying",
        attempt=state.attempt_number,
        wait_seconds=round(state.next_action.sleep, 3) if state.next_action else None,
        error=str(error),
    )


def with_retry(
    config: RetryConfig,
    *,
    retryable_exceptions: tuple[type[BaseException], ...] = (httpx.TransportError, RetryableStatus),
) -> Callable:
    """Tenacity decorator: exponential backoff, last error re-raised.

    Usage::

        @with_retry(config.retry)
        async def attempt() -> dict: ...
    """
    return retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.multiplier,
            min=config.initial_wait_seconds,
            max=config.max_wait_seconds,
        ),
        retry=retry_if_exception_type(retryable_exceptions),
        before_sleep=_log_retry,
        reraise=True,
    )
