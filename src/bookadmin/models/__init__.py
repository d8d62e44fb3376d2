from __future__ import annotations

from bookadmin.models.cache import CacheEntry, EntryStatus, MutationRequest, ResourceKey
from bookadmin.models.catalog import Book, BookRequest, Category, CategoryRequest
from bookadmin.models.orders import (
    CreateOrderRequest,
    Order,
    OrderItem,
    OrderItemRequest,
    UpdateOrderStatusRequest,
)
from bookadmin.models.transactions import (
    CreateTransactionRequest,
    EsewaPaymentRequest,
    EsewaResponseData,
    Transaction,
    TransactionUpdateRequest,
)
from bookadmin.models.users import LoginRequest, RegisterRequest, User

__all__ = [
    # cache
    "CacheEntry",
    "EntryStatus",
    "MutationRequest",
    "ResourceKey",
    # catalog
    "Book",
    "BookRequest",
    "Category",
    "CategoryRequest",
    # orders
    "Order",
    "OrderItem",
    "OrderItemRequest",
    "CreateOrderRequest",
    "UpdateOrderStatusRequest",
    # transactions
    "Transaction",
    "CreateTransactionRequest",
    "TransactionUpdateRequest",
    "EsewaPaymentRequest",
    "EsewaResponseData",
    # users
    "User",
    "LoginRequest",
    "RegisterRequest",
]
