"""Shared test fixtures for the bookadmin test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from bookadmin.cache import ResourceCache
from bookadmin.retry import RetryPolicy


class FakeClock:
    """Manually advanced replacement for ``time.monotonic``."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleeps() -> list[float]:
    """Backoff delays requested by the cache, in order."""
    return []


@pytest.fixture()
def fetcher() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def cache(fetcher: AsyncMock, clock: FakeClock, sleeps: list[float]) -> ResourceCache:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return ResourceCache(
        fetcher,
        retry=RetryPolicy(jitter=False),
        clock=clock,
        sleep=fake_sleep,
        gc_after=60.0,
    )


@pytest.fixture()
def book_payloads() -> list[dict[str, Any]]:
    return [
        {
            "id": "b1",
            "title": "Dune",
            "author": "Frank Herbert",
            "price": 12.5,
            "stock": 4,
            "description": "Desert planet",
            "category_id": "c1",
        },
        {
            "id": "b2",
            "title": "Emma",
            "author": "Jane Austen",
            "price": 8.0,
            "stock": 20,
            "description": "",
            "category_id": "c2",
        },
    ]
