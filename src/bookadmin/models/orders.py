from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

OrderStatus = Literal["PENDING", "PAID", "CANCELLED", "SHIPPED", "DELIVERED"]


class OrderItem(BaseModel):
    id: str
    order_id: str
    book_id: str
    book: Any = None
    quantity: int
    price: float


class Order(BaseModel):
    """A customer order as returned by /orders."""

    id: str
    user_id: str
    user: Any = None
    status: OrderStatus = "PENDING"
    total_price: float
    items: list[OrderItem] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderItemRequest(BaseModel):
    book_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)


class CreateOrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
