"""Retry and timeout helpers for calls to the remote data store."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, TypeVar

from umrah_office.errors import AuthenticationError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that will not improve on a second attempt
_NO_RETRY = (NotFoundError, ValidationError, AuthenticationError)


def _is_client_error(exc: Exception) -> bool:
    if isinstance(exc, _NO_RETRY):
        return True
    status = getattr(exc, "upstream_status", None)
    if isinstance(exc, StoreError) and isinstance(status, int) and 400 <= status < 500:
        return True
    message = str(exc).lower()
    return any(word in message for word in ("unauthorized", "forbidden", "not found", "bad request"))


def retry_request(
    request_fn: Callable[[], T],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call `request_fn`, retrying with exponential backoff (delay, 2x delay, ...)."""
    last_error = None
    for attempt in range(max_retries + 1):
        try:
            return request_fn()
        except Exception as exc:
            last_error = exc
            if attempt == max_retries or _is_client_error(exc):
                raise
            delay = initial_delay * (2 ** attempt)
            logger.info(
                "Request failed (attempt %s/%s), retrying in %.1fs: %s",
                attempt + 1,
                max_retries + 1,
                delay,
                exc,
            )
            sleep(delay)
    raise last_error  # pragma: no cover - loop always returns or raises


def with_timeout(fn: Callable[[], T], timeout: float, message: str = "Operation timed out") -> T:
    """Run `fn` on a worker thread and give up after `timeout` seconds.

    The worker is not interrupted; its result is simply discarded.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        raise StoreError(message, status_code=504) from None
    finally:
        executor.shutdown(wait=False)
