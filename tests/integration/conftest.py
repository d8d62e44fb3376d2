"""Integration test fixtures.

Provides a fully wired AppState built by the real lifespan. HTTP is mocked
with respx per test; retries use zero backoff so failure paths stay fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from bookadmin.app import lifespan
from bookadmin.config import Settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from bookadmin.state import AppState

BASE_URL = "http://bookstore.test/api"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        api={"base_url": BASE_URL},
        auth={"token": "admin-token"},
        retry={"base_delay_seconds": 0, "jitter": False},
        logging={"level": "WARNING", "format": "text"},
    )


@pytest.fixture()
async def app_state(settings: Settings) -> AsyncIterator[AppState]:
    async with lifespan(settings) as state:
        yield state


@pytest.fixture()
def order_payloads() -> list[dict[str, Any]]:
    return [
        {"id": "o1", "user_id": "u1", "status": "PENDING", "total_price": 25.0, "items": []},
        {"id": "o2", "user_id": "u2", "status": "PAID", "total_price": 40.0, "items": []},
        {"id": "o3", "user_id": "u1", "status": "SHIPPED", "total_price": 12.5, "items": []},
    ]


@pytest.fixture()
def transaction_payloads() -> list[dict[str, Any]]:
    return [
        {
            "id": "t1",
            "order_id": "o1",
            "user_id": "u1",
            "payment_method": "ESEWA",
            "amount": 25.0,
            "status": "PENDING",
        },
        {
            "id": "t2",
            "order_id": "o2",
            "user_id": "u2",
            "payment_method": "CASH",
            "amount": 40.0,
            "status": "SUCCESS",
        },
    ]
