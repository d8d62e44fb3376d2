"""End-to-end tests: resource functions through the cache, fetcher and httpx."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import respx

from bookadmin.errors import HTTPError, InvalidInputError, NetworkError
from bookadmin.models.cache import EntryStatus
from bookadmin.resources.auth import CURRENT_USER_KEY, current_user, login, logout
from bookadmin.resources.books import (
    BOOKS_KEY,
    book_key,
    create_book,
    delete_book,
    get_book,
    list_books,
    update_book,
)
from bookadmin.resources.categories import list_categories
from bookadmin.resources.orders import (
    ORDERS_KEY,
    list_orders,
    list_user_orders,
    order_key,
    update_order_status,
    user_orders_key,
)
from bookadmin.resources.transactions import (
    USER_TRANSACTIONS_KEY,
    get_transaction,
    get_transaction_by_order,
    initiate_esewa_payment,
    list_transactions,
    list_user_transactions,
)
from bookadmin.stats import load_dashboard

if TYPE_CHECKING:
    from bookadmin.state import AppState

# Must match the base_url of the ``settings`` fixture
BASE_URL = "http://bookstore.test/api"


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------


class TestBooks:
    async def test_list_books_unwraps_envelope(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json={"data": {"books": book_payloads}})
            )
            books = await list_books(app_state.cache)

        assert [b.id for b in books] == ["b1", "b2"]
        assert route.calls.last.request.headers["Authorization"] == "Bearer admin-token"

    async def test_concurrent_consumers_share_one_request(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            first, second = await asyncio.gather(
                list_books(app_state.cache), list_books(app_state.cache)
            )

        assert route.call_count == 1
        assert first is second

    async def test_delete_evicts_item_and_refetches_list(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        with respx.mock:
            list_route = respx.get(f"{BASE_URL}/books").mock(
                side_effect=[
                    httpx.Response(200, json={"data": book_payloads}),
                    httpx.Response(200, json={"data": book_payloads[1:]}),
                ]
            )
            respx.get(f"{BASE_URL}/books/b1").mock(
                return_value=httpx.Response(200, json={"data": {"book": book_payloads[0]}})
            )
            delete_route = respx.delete(f"{BASE_URL}/books/b1").mock(
                return_value=httpx.Response(200, json={"success": True})
            )

            await list_books(cache)
            assert (await get_book(cache, "b1")).title == "Dune"

            assert await cache.mutate(delete_book("b1")) is True
            assert delete_route.call_count == 1
            assert cache.get(book_key("b1")) is None

            books = await list_books(cache)

        assert [b.id for b in books] == ["b2"]
        assert list_route.call_count == 2

    async def test_create_writes_item_and_invalidates_list(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        new_book = {**book_payloads[0], "id": "b3", "title": "Hyperion"}
        with respx.mock:
            respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            post_route = respx.post(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(201, json={"data": {"book": new_book}})
            )
            await list_books(cache)

            created = await cache.mutate(
                create_book({k: v for k, v in new_book.items() if k != "id"})
            )

        assert created.id == "b3"
        assert post_route.call_count == 1
        item = cache.get(book_key("b3"))
        assert item is not None
        assert item.data.title == "Hyperion"
        listing = cache.get(BOOKS_KEY)
        assert listing is not None
        assert listing.invalidated is True

    async def test_invalid_input_never_reaches_network(self, app_state: AppState) -> None:
        # No routes: any outgoing request would fail the test
        with respx.mock, pytest.raises(InvalidInputError):
            await app_state.cache.mutate(create_book({"title": "", "price": 1}))

    async def test_failed_update_leaves_cache_untouched(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        with respx.mock:
            respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            put_route = respx.put(f"{BASE_URL}/books/b1").mock(
                return_value=httpx.Response(500, json={"error": "db down"})
            )
            await list_books(cache)

            body = {k: v for k, v in book_payloads[0].items() if k != "id"}
            with pytest.raises(HTTPError) as exc_info:
                await cache.mutate(update_book("b1", body))

        assert exc_info.value.status == 500
        assert put_route.call_count == 1
        listing = cache.get(BOOKS_KEY)
        assert listing is not None
        assert listing.invalidated is False

    async def test_missing_book_not_retried(self, app_state: AppState) -> None:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/books/b9").mock(
                return_value=httpx.Response(404, json={"error": "Book not found"})
            )
            with pytest.raises(HTTPError) as exc_info:
                await get_book(app_state.cache, "b9")

        assert exc_info.value.status == 404
        assert route.call_count == 1


# ---------------------------------------------------------------------------
# Categories and orders
# ---------------------------------------------------------------------------


class TestCategoriesAndOrders:
    async def test_categories_bare_array(self, app_state: AppState) -> None:
        with respx.mock:
            respx.get(f"{BASE_URL}/categories").mock(
                return_value=httpx.Response(200, json=[{"id": "c1", "name": "Fiction"}])
            )
            categories = await list_categories(app_state.cache)

        assert categories[0].name == "Fiction"

    async def test_user_orders_filtered(
        self, app_state: AppState, order_payloads: list[dict[str, Any]]
    ) -> None:
        with respx.mock:
            respx.get(f"{BASE_URL}/orders").mock(
                return_value=httpx.Response(200, json={"data": {"orders": order_payloads}})
            )
            orders = await list_user_orders(app_state.cache, "u1")

        assert [o.id for o in orders] == ["o1", "o3"]

    async def test_status_update_invalidates_order_views(
        self, app_state: AppState, order_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        shipped = {**order_payloads[0], "status": "SHIPPED"}
        with respx.mock:
            respx.get(f"{BASE_URL}/orders").mock(
                return_value=httpx.Response(200, json=order_payloads)
            )
            put_route = respx.put(f"{BASE_URL}/orders/o1/status").mock(
                return_value=httpx.Response(200, json={"data": {"order": shipped}})
            )
            await list_orders(cache)
            await list_user_orders(cache, "u1")

            updated = await cache.mutate(update_order_status("o1", {"status": "SHIPPED"}))

        assert updated.status == "SHIPPED"
        assert put_route.call_count == 1
        item = cache.get(order_key("o1"))
        assert item is not None
        assert item.data.status == "SHIPPED"
        for key in (ORDERS_KEY, user_orders_key("u1")):
            entry = cache.get(key)
            assert entry is not None
            assert entry.invalidated is True

    async def test_dashboard_loads_collections_once(
        self,
        app_state: AppState,
        book_payloads: list[dict[str, Any]],
        order_payloads: list[dict[str, Any]],
    ) -> None:
        with respx.mock:
            books_route = respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            respx.get(f"{BASE_URL}/categories").mock(
                return_value=httpx.Response(200, json={"data": []})
            )
            respx.get(f"{BASE_URL}/orders").mock(
                return_value=httpx.Response(200, json=order_payloads)
            )
            stats = await load_dashboard(app_state.cache)

        assert books_route.call_count == 1
        assert stats.total_books == 2
        assert stats.total_orders == 3
        assert stats.total_revenue == pytest.approx(52.5)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TestTransactions:
    async def test_network_failure_after_three_attempts(self, app_state: AppState) -> None:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/transactions").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            with pytest.raises(NetworkError):
                await list_transactions(app_state.cache)

        assert route.call_count == 3
        entry = app_state.cache.get(("transactions",))
        assert entry is not None
        assert entry.status == EntryStatus.ERROR

    async def test_transaction_list_stays_fresh(
        self, app_state: AppState, transaction_payloads: list[dict[str, Any]]
    ) -> None:
        with respx.mock:
            route = respx.get(f"{BASE_URL}/transactions").mock(
                return_value=httpx.Response(200, json=transaction_payloads)
            )
            await list_transactions(app_state.cache)
            await list_transactions(app_state.cache)

        assert route.call_count == 1

    async def test_user_and_order_lookups(
        self, app_state: AppState, transaction_payloads: list[dict[str, Any]]
    ) -> None:
        with respx.mock:
            respx.get(f"{BASE_URL}/transactions/user/my-transactions").mock(
                return_value=httpx.Response(200, json={"data": transaction_payloads[:1]})
            )
            respx.get(f"{BASE_URL}/transactions/order/o2").mock(
                return_value=httpx.Response(200, json={"data": transaction_payloads[1]})
            )
            respx.get(f"{BASE_URL}/transactions/t1").mock(
                return_value=httpx.Response(200, json=transaction_payloads[0])
            )
            mine = await list_user_transactions(app_state.cache)
            by_order = await get_transaction_by_order(app_state.cache, "o2")
            single = await get_transaction(app_state.cache, "t1")

        assert [t.id for t in mine] == ["t1"]
        assert by_order.id == "t2"
        assert single.payment_method == "ESEWA"

    async def test_esewa_initiate_passes_transaction_id(
        self, app_state: AppState, transaction_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        with respx.mock:
            respx.get(f"{BASE_URL}/transactions/user/my-transactions").mock(
                return_value=httpx.Response(200, json=transaction_payloads[:1])
            )
            route = respx.post(f"{BASE_URL}/transactions/esewa/initiate").mock(
                return_value=httpx.Response(
                    200, json={"data": {"payment_url": "https://esewa.test/pay"}}
                )
            )
            await list_user_transactions(cache)

            result = await cache.mutate(
                initiate_esewa_payment(
                    "t1",
                    {
                        "amount": 25.0,
                        "product_code": "EPAYTEST",
                        "product_name": "Order o1",
                        "success_url": "http://shop.test/success",
                        "failure_url": "http://shop.test/failure",
                    },
                )
            )

        assert result == {"payment_url": "https://esewa.test/pay"}
        assert route.calls.last.request.url.params["transaction_id"] == "t1"
        entry = cache.get(USER_TRANSACTIONS_KEY)
        assert entry is not None
        assert entry.invalidated is True


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuth:
    async def test_login_replaces_token_and_clears_cache(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        with respx.mock:
            respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            respx.post(f"{BASE_URL}/auth/login").mock(
                return_value=httpx.Response(200, json={"data": {"token": "fresh-token"}})
            )
            me_route = respx.get(f"{BASE_URL}/auth/me").mock(
                return_value=httpx.Response(
                    200,
                    json={"data": {"user": {"id": "u1", "name": "Ana", "email": "a@b.c"}}},
                )
            )
            await list_books(cache)

            token = await login(
                cache, app_state.session, {"email": "a@b.c", "password": "secret"}
            )
            assert cache.get(BOOKS_KEY) is None

            user = await current_user(cache)

        assert token == "fresh-token"
        assert app_state.session.token == "fresh-token"
        assert me_route.calls.last.request.headers["Authorization"] == "Bearer fresh-token"
        assert user.name == "Ana"

    async def test_unauthorized_clears_session_and_cache(
        self, app_state: AppState, book_payloads: list[dict[str, Any]]
    ) -> None:
        cache = app_state.cache
        with respx.mock:
            respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            me_route = respx.get(f"{BASE_URL}/auth/me").mock(return_value=httpx.Response(401))
            await list_books(cache)

            with pytest.raises(HTTPError) as exc_info:
                await current_user(cache)

        assert exc_info.value.status == 401
        assert me_route.call_count == 1
        assert app_state.session.token is None
        assert cache.get(BOOKS_KEY) is None
        assert cache.get(CURRENT_USER_KEY) is None

    async def test_logout(self, app_state: AppState, book_payloads: list[dict[str, Any]]) -> None:
        with respx.mock:
            respx.get(f"{BASE_URL}/books").mock(
                return_value=httpx.Response(200, json=book_payloads)
            )
            await list_books(app_state.cache)

        logout(app_state.cache, app_state.session)

        assert app_state.session.authenticated is False
        assert app_state.cache.get(BOOKS_KEY) is None
