# src/core/retry.py — v1
"""Retry with capped exponential backoff and fail-fast auth errors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

FAIL_FAST_STATUSES = frozenset({401, 403})


@dataclass(frozen=True)
class BackoffPolicy:
    """Attempt budget and delay schedule."""

    max_attempts: int = 5
    base_delay_s: float = 0.5
    backoff_factor: float = 2.0
    max_delay_s: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_delay_s)


DEFAULT_POLICY = BackoffPolicy()


def error_status(error: BaseException) -> int | None:
    """HTTP-style status carried by an error, if any."""
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_fail_fast(error: BaseException) -> bool:
    return error_status(error) in FAIL_FAST_STATUSES


async def with_backoff(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    label: str = "call",
    policy: BackoffPolicy | None = None,
    **kwargs: Any,
) -> T:
    """Await ``fn(*args, **kwargs)``, retrying on failure.

    401/403 errors are re-raised on the spot. Anything else is retried until
    the attempt budget is spent, then the last error is re-raised unchanged.
    """
    policy = policy or DEFAULT_POLICY
    attempt = 0

    while True:
        attempt += 1
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if is_fail_fast(e):
                logger.error("[retry %s] auth failure (status %s), not retrying", label, error_status(e))
                raise
            if attempt >= policy.max_attempts:
                logger.error("[retry %s] giving up after %d attempts: %s", label, attempt, e)
                raise

            delay = policy.delay_for(attempt)
            logger.warning(
                "[retry %s] attempt %d/%d failed (%s); retrying in %.1fs",
                label, attempt, policy.max_attempts, e, delay,
            )
            await asyncio.sleep(delay)
