"""Dashboard aggregates computed from cached collections."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel

from bookadmin.resources.books import list_books
from bookadmin.resources.categories import list_categories
from bookadmin.resources.orders import list_orders

if TYPE_CHECKING:
    from bookadmin.cache import ResourceCache
    from bookadmin.models.catalog import Book, Category
    from bookadmin.models.orders import Order
    from bookadmin.models.transactions import Transaction

LOW_STOCK_THRESHOLD = 10

_REVENUE_STATUSES = frozenset({"PAID", "SHIPPED"})


class DashboardStats(BaseModel):
    total_books: int
    total_categories: int
    total_orders: int
    low_stock_books: int
    inventory_value: float
    pending_orders: int
    paid_orders: int
    shipped_orders: int
    total_revenue: float


class TransactionStats(BaseModel):
    total: int
    pending: int
    success: int
    failed: int
    cancelled: int
    total_amount: float
    success_amount: float
    success_rate: float  # percent, 0 when there are no transactions


def dashboard_stats(
    books: Sequence[Book],
    categories: Sequence[Category],
    orders: Sequence[Order],
) -> DashboardStats:
    return DashboardStats(
        total_books=len(books),
        total_categories=len(categories),
        total_orders=len(orders),
        low_stock_books=sum(1 for book in books if book.stock < LOW_STOCK_THRESHOLD),
        inventory_value=sum(book.price * book.stock for book in books),
        pending_orders=sum(1 for order in orders if order.status == "PENDING"),
        paid_orders=sum(1 for order in orders if order.status == "PAID"),
        shipped_orders=sum(1 for order in orders if order.status == "SHIPPED"),
        total_revenue=sum(
            order.total_price for order in orders if order.status in _REVENUE_STATUSES
        ),
    )


def transaction_stats(transactions: Sequence[Transaction]) -> TransactionStats:
    total = len(transactions)
    success = sum(1 for t in transactions if t.status == "SUCCESS")
    return TransactionStats(
        total=total,
        pending=sum(1 for t in transactions if t.status == "PENDING"),
        success=success,
        failed=sum(1 for t in transactions if t.status == "FAILED"),
        cancelled=sum(1 for t in transactions if t.status == "CANCELLED"),
        total_amount=sum(t.amount for t in transactions),
        success_amount=sum(t.amount for t in transactions if t.status == "SUCCESS"),
        success_rate=(success / total) * 100 if total else 0.0,
    )


async def load_dashboard(cache: ResourceCache) -> DashboardStats:
    """Fetch (or reuse) books, categories and orders and aggregate them."""
    books, categories, orders = await asyncio.gather(
        list_books(cache),
        list_categories(cache),
        list_orders(cache),
    )
    return dashboard_stats(books, categories, orders)
