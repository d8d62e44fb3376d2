"""Login, registration and the current-user lookup."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from bookadmin.decoders import decode_item, decode_token
from bookadmin.models.cache import MutationRequest, ResourceKey
from bookadmin.models.users import LoginRequest, RegisterRequest, User
from bookadmin.resources.base import fetch_item, validate_input
from bookadmin.retry import NO_RETRY

if TYPE_CHECKING:
    from bookadmin.cache import ResourceCache
    from bookadmin.session import Session

log = structlog.get_logger()

CURRENT_USER_KEY: ResourceKey = ("auth", "me")


def login_request(credentials: LoginRequest | Mapping[str, Any]) -> MutationRequest[str]:
    request = validate_input(LoginRequest, credentials)
    return MutationRequest(
        method="POST",
        path="/auth/login",
        body=request.model_dump(mode="json"),
        decode=decode_token,
    )


def register(data: RegisterRequest | Mapping[str, Any]) -> MutationRequest[User]:
    request = validate_input(RegisterRequest, data)
    return MutationRequest(
        method="POST",
        path="/auth/register",
        body=request.model_dump(mode="json", exclude_none=True),
        decode=lambda payload: decode_item(payload, User, "user"),
    )


async def login(
    cache: ResourceCache,
    session: Session,
    credentials: LoginRequest | Mapping[str, Any],
) -> str:
    """Exchange credentials for a bearer token and start a fresh session.

    Everything cached under the previous identity is dropped.
    """
    token = await cache.mutate(login_request(credentials))
    session.set_token(token)
    cache.clear()
    log.info("login_complete")
    return token


def logout(cache: ResourceCache, session: Session) -> None:
    session.clear()
    cache.clear()
    log.info("logout_complete")


async def current_user(cache: ResourceCache) -> User:
    """The logged-in user. A failed lookup is not retried: it usually means no session."""
    return await fetch_item(
        cache,
        CURRENT_USER_KEY,
        "/auth/me",
        lambda payload: decode_item(payload, User, "user"),
        retry=NO_RETRY,
    )
