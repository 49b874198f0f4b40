"""Capped exponential backoff for idempotent provider calls.

Only provider uploads go through here. Fetch, status polling and
persistence failures surface to the batch orchestrator on first error;
polling has its own attempt budget in the transcription orchestrator.
"""

import asyncio
import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Seconds to wait after the given zero-based failed attempt."""
    return min(base_delay * (2**attempt), max_delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: tuple[type[Exception], ...] | None = None,
    operation: str | None = None,
) -> Callable:
    """Retry an async call on transient errors.

    Args:
        max_retries: Retries after the first call (default 3).
        base_delay: Delay before the first retry, doubled each time.
        max_delay: Cap on any single delay.
        retryable_exceptions: Exception types worth retrying. None retries
            everything. Anything else is re-raised at once.
        operation: Name used in log records; defaults to the function name.

    The raised exception carries ``_retry_count``, the number of retries
    spent before giving up. A ``contact_id`` keyword argument of the wrapped
    call, when present, is attached to every retry log record.
    """

    def decorator(func: Callable) -> Callable:
        name = operation or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    transient = retryable_exceptions is None or isinstance(
                        exc, retryable_exceptions
                    )
                    if not transient or attempt >= max_retries:
                        exc._retry_count = attempt  # type: ignore[attr-defined]
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay)
                    attempt += 1
                    logger.warning(
                        "Retry %d/%d for %s after %.1fs: %s",
                        attempt,
                        max_retries,
                        name,
                        delay,
                        exc,
                        extra={
                            "operation": name,
                            "attempt": attempt,
                            "retry_delay_seconds": delay,
                            "contact_id": kwargs.get("contact_id"),
                        },
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
