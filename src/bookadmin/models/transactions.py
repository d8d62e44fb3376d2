from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

TransactionStatus = Literal["PENDING", "SUCCESS", "FAILED", "CANCELLED"]
PaymentMethod = Literal["ESEWA", "CASH", "CARD"]


class Transaction(BaseModel):
    """A payment transaction as returned by /transactions."""

    id: str
    order_id: str
    order: Any = None
    user_id: str
    user: Any = None
    payment_method: PaymentMethod
    transaction_id: str | None = None  # gateway reference
    amount: float
    status: TransactionStatus = "PENDING"
    payment_url: str = ""
    merchant_code: str = ""
    product_code: str = ""
    product_name: str = ""
    esewa_response: Any = None
    failure_reason: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreateTransactionRequest(BaseModel):
    order_id: str = Field(min_length=1)
    payment_method: PaymentMethod
    amount: float = Field(gt=0)


class TransactionUpdateRequest(BaseModel):
    status: TransactionStatus
    transaction_id: str | None = None
    failure_reason: str | None = None
    esewa_response: str | None = None


# Gateway payloads are passed through untouched; only the fields the
# backend requires are checked.


class EsewaPaymentRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    amount: float = Field(gt=0)
    product_code: str = Field(min_length=1)
    product_name: str = Field(min_length=1)
    success_url: str = Field(min_length=1)
    failure_url: str = Field(min_length=1)


class EsewaResponseData(BaseModel):
    model_config = ConfigDict(extra="allow")

    transaction_code: str
    status: str
    total_amount: str
    product_code: str
    ref_id: str = ""
    message: str = ""
