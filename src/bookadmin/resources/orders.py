"""Order queries and status transitions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from bookadmin.decoders import unwrap
from bookadmin.models.cache import MutationRequest, ResourceKey
from bookadmin.models.orders import CreateOrderRequest, Order, UpdateOrderStatusRequest
from bookadmin.resources.base import (
    Resource,
    create_mutation,
    delete_mutation,
    fetch_item,
    fetch_list,
    require_id,
    update_mutation,
    validate_input,
)

if TYPE_CHECKING:
    from bookadmin.cache import ResourceCache

ORDERS = Resource(plural="orders", singular="order", model=Order)
ORDERS_KEY: ResourceKey = ORDERS.list_key


def order_key(order_id: str) -> ResourceKey:
    return ORDERS.item_key(order_id)


def user_orders_key(user_id: str) -> ResourceKey:
    return (*ORDERS_KEY, "user", user_id)


async def list_orders(cache: ResourceCache) -> list[Order]:
    return await fetch_list(cache, ORDERS_KEY, ORDERS.list_path, ORDERS.list_decoder())


async def list_user_orders(cache: ResourceCache, user_id: str) -> list[Order]:
    """Orders placed by ``user_id``.

    The backend has no per-user endpoint, so the full list is fetched and
    filtered. Cached under its own key below ``("orders",)``, which means any
    order mutation invalidates it too.
    """
    require_id(user_id, "user")
    decoder = ORDERS.list_decoder()

    async def load() -> list[Order]:
        payload = await cache.fetcher.request("GET", ORDERS.list_path)
        orders: list[Order] = unwrap(decoder(payload), f"GET {ORDERS.list_path}")
        return [order for order in orders if order.user_id == user_id]

    entry = await cache.request(user_orders_key(user_id), load)
    return entry.data


async def get_order(cache: ResourceCache, order_id: str) -> Order:
    require_id(order_id, "order")
    return await fetch_item(
        cache, order_key(order_id), ORDERS.item_path(order_id), ORDERS.item_decoder()
    )


def create_order(data: CreateOrderRequest | Mapping[str, Any]) -> MutationRequest[Order]:
    return create_mutation(ORDERS, validate_input(CreateOrderRequest, data))


def update_order_status(
    order_id: str, data: UpdateOrderStatusRequest | Mapping[str, Any]
) -> MutationRequest[Order]:
    require_id(order_id, "order")
    return update_mutation(
        ORDERS,
        order_id,
        validate_input(UpdateOrderStatusRequest, data),
        path=f"{ORDERS.item_path(order_id)}/status",
    )


def delete_order(order_id: str) -> MutationRequest[bool]:
    require_id(order_id, "order")
    return delete_mutation(ORDERS, order_id)
