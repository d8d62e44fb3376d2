"""Retry with exponential backoff for transient fetch failures."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import structlog

from bookadmin.config import RetrySettings
from bookadmin.errors import BookAdminError

log = structlog.get_logger()

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a loader runs and how long to wait between runs.

    ``max_attempts`` counts every call including the first one.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
            jitter=settings.jitter,
        )

    def delay_for(self, retry_index: int) -> float:
        """Backoff before retry number ``retry_index`` (0-based): 1s, 2s, 4s ... capped."""
        delay = min(self.base_delay * 2**retry_index, self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.8, 1.2)
        return delay

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Whether a call that failed on ``attempt`` (1-based) is worth repeating.

        Only recoverable BookAdminErrors qualify: network failures, timeouts and
        5xx responses. 4xx responses (404 and 401 included) never are.
        """
        if attempt >= self.max_attempts:
            return False
        return isinstance(error, BookAdminError) and error.recoverable


NO_RETRY = RetryPolicy(max_attempts=1)


async def run_with_retry(
    loader: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    key: object = None,
) -> T:
    """Call ``loader`` until it succeeds or ``policy`` gives up.

    The last error is re-raised unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await loader()
        except BookAdminError as exc:
            if not policy.should_retry(exc, attempt):
                if attempt > 1:
                    log.warning(
                        "retry_exhausted",
                        key=key,
                        attempts=attempt,
                        code=exc.code,
                    )
                raise
            delay = policy.delay_for(attempt - 1)
            log.info(
                "retry_scheduled",
                key=key,
                attempt=attempt,
                code=exc.code,
                delay_seconds=round(delay, 3),
            )
            await sleep(delay)
