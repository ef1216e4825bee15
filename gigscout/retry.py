"""Retry decorator with exponential backoff for upstream and webhook calls."""
from __future__ import annotations

import functools
import random
import time
from typing import Any, Callable, Tuple, Type

from gigscout.log import get_logger

log = get_logger(__name__)


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Retry the wrapped call on ``retryable`` errors, re-raising the last one.

    Delay before attempt ``n + 1`` is ``base_delay * backoff_factor ** (n - 1)``
    capped at ``max_delay``; with ``jitter`` it is scaled into [0.5, 1.5).
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if attempt >= max_attempts:
                        log.error("%s gave up after %d attempt(s): %s", fn.__qualname__, attempt, exc)
                        raise
                    delay = _backoff(attempt, base_delay, backoff_factor, max_delay, jitter)
                    log.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        fn.__qualname__, attempt, max_attempts, exc, delay,
                    )
                    time.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


def _backoff(attempt: int, base: float, factor: float, cap: float, jitter: bool) -> float:
    delay = min(base * (factor ** (attempt - 1)), cap)
    if jitter:
        delay *= 0.5 + random.random()
    return delay
