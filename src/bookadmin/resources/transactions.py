"""Payment transaction queries, status updates and gateway calls.

The eSewa initiate/verify endpoints are passed through untouched: their
payloads are not modelled beyond the fields the backend requires.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from bookadmin.decoders import decode_passthrough
from bookadmin.models.cache import MutationRequest, ResourceKey
from bookadmin.models.transactions import (
    CreateTransactionRequest,
    EsewaPaymentRequest,
    EsewaResponseData,
    Transaction,
    TransactionUpdateRequest,
)
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

TRANSACTIONS = Resource(plural="transactions", singular="transaction", model=Transaction)
TRANSACTIONS_KEY: ResourceKey = TRANSACTIONS.list_key
USER_TRANSACTIONS_KEY: ResourceKey = (*TRANSACTIONS_KEY, "user")

_USER_TRANSACTIONS_PATH = "/transactions/user/my-transactions"
_ESEWA_INITIATE_PATH = "/transactions/esewa/initiate"
_ESEWA_VERIFY_PATH = "/transactions/esewa/verify"


def transaction_key(transaction_id: str) -> ResourceKey:
    return TRANSACTIONS.item_key(transaction_id)


def order_transaction_key(order_id: str) -> ResourceKey:
    return (TRANSACTIONS.singular, "order", order_id)


async def list_transactions(cache: ResourceCache) -> list[Transaction]:
    """All transactions (admin only)."""
    return await fetch_list(
        cache, TRANSACTIONS_KEY, TRANSACTIONS.list_path, TRANSACTIONS.list_decoder()
    )


async def list_user_transactions(cache: ResourceCache) -> list[Transaction]:
    """Transactions of the logged-in user."""
    return await fetch_list(
        cache, USER_TRANSACTIONS_KEY, _USER_TRANSACTIONS_PATH, TRANSACTIONS.list_decoder()
    )


async def get_transaction(cache: ResourceCache, transaction_id: str) -> Transaction:
    require_id(transaction_id, "transaction")
    return await fetch_item(
        cache,
        transaction_key(transaction_id),
        TRANSACTIONS.item_path(transaction_id),
        TRANSACTIONS.item_decoder(),
    )


async def get_transaction_by_order(cache: ResourceCache, order_id: str) -> Transaction:
    require_id(order_id, "order")
    return await fetch_item(
        cache,
        order_transaction_key(order_id),
        f"/transactions/order/{order_id}",
        TRANSACTIONS.item_decoder(),
    )


def create_transaction(
    data: CreateTransactionRequest | Mapping[str, Any],
) -> MutationRequest[Transaction]:
    return create_mutation(TRANSACTIONS, validate_input(CreateTransactionRequest, data))


def update_transaction_status(
    transaction_id: str, data: TransactionUpdateRequest | Mapping[str, Any]
) -> MutationRequest[Transaction]:
    require_id(transaction_id, "transaction")
    return update_mutation(
        TRANSACTIONS,
        transaction_id,
        validate_input(TransactionUpdateRequest, data),
        path=f"{TRANSACTIONS.item_path(transaction_id)}/status",
        extra_invalidates=((TRANSACTIONS.singular, "order"),),
    )


def delete_transaction(transaction_id: str) -> MutationRequest[bool]:
    require_id(transaction_id, "transaction")
    return delete_mutation(TRANSACTIONS, transaction_id)


def initiate_esewa_payment(
    transaction_id: str, data: EsewaPaymentRequest | Mapping[str, Any]
) -> MutationRequest[Any]:
    require_id(transaction_id, "transaction")
    request = validate_input(EsewaPaymentRequest, data)
    return MutationRequest(
        method="POST",
        path=_ESEWA_INITIATE_PATH,
        params={"transaction_id": transaction_id},
        body=request.model_dump(mode="json", exclude_none=True),
        decode=decode_passthrough,
        invalidates=(USER_TRANSACTIONS_KEY, transaction_key(transaction_id)),
    )


def verify_esewa_payment(
    data: EsewaResponseData | Mapping[str, Any],
) -> MutationRequest[Any]:
    request = validate_input(EsewaResponseData, data)
    return MutationRequest(
        method="POST",
        path=_ESEWA_VERIFY_PATH,
        body=request.model_dump(mode="json", exclude_none=True),
        decode=decode_passthrough,
        # The verified transaction is only known to the gateway callback
        invalidates=(TRANSACTIONS_KEY, (TRANSACTIONS.singular,)),
    )
