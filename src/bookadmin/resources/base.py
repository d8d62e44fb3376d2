"""Shared plumbing for the per-resource modules.

Each backend collection is described once by a ``Resource``; the query
helpers here turn it into cache requests, and the mutation helpers into
MutationRequests. Input validation happens here, before any network call.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from bookadmin.decoders import DecodeResult, decode_deleted, decode_item, decode_list, unwrap
from bookadmin.errors import InvalidInputError
from bookadmin.models.cache import MutationRequest, ResourceKey

if TYPE_CHECKING:
    from bookadmin.cache import ResourceCache
    from bookadmin.retry import RetryPolicy

M = TypeVar("M", bound=BaseModel)
R = TypeVar("R", bound=BaseModel)

Decoder = Callable[[Any], DecodeResult[Any]]


@dataclass(frozen=True)
class Resource(Generic[M]):
    """A REST collection: ``/books`` for the list, ``/books/{id}`` for items."""

    plural: str  # list key and envelope name: "books"
    singular: str  # item key and envelope name: "book"
    model: type[M]

    @property
    def list_key(self) -> ResourceKey:
        return (self.plural,)

    def item_key(self, item_id: str) -> ResourceKey:
        return (self.singular, item_id)

    @property
    def list_path(self) -> str:
        return f"/{self.plural}"

    def item_path(self, item_id: str) -> str:
        return f"/{self.plural}/{item_id}"

    def item_decoder(self) -> Decoder:
        return partial(decode_item, model=self.model, name=self.singular)

    def list_decoder(self) -> Decoder:
        return partial(decode_list, model=self.model, name=self.plural)


def validate_input(model: type[R], data: R | Mapping[str, Any]) -> R:
    """Coerce caller input into a request model or raise InvalidInputError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise InvalidInputError(
            message=f"Invalid {model.__name__}: {fields}",
            suggestion="Fill in every required field with a valid value.",
        ) from exc


def require_id(value: str, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(
            message=f"{what} id must be a non-empty string",
            suggestion=f"Pass the id of an existing {what}.",
        )
    return value


async def fetch_list(
    cache: ResourceCache,
    key: ResourceKey,
    path: str,
    decoder: Decoder,
    *,
    params: dict[str, str] | None = None,
    retry: RetryPolicy | None = None,
) -> list[Any]:
    async def load() -> list[Any]:
        payload = await cache.fetcher.request("GET", path, params=params)
        return unwrap(decoder(payload), f"GET {path}")

    entry = await cache.request(key, load, retry=retry)
    return entry.data


async def fetch_item(
    cache: ResourceCache,
    key: ResourceKey,
    path: str,
    decoder: Decoder,
    *,
    retry: RetryPolicy | None = None,
) -> Any:
    async def load() -> Any:
        payload = await cache.fetcher.request("GET", path)
        return unwrap(decoder(payload), f"GET {path}")

    entry = await cache.request(key, load, retry=retry)
    return entry.data


# ---------------------------------------------------------------------------
# Standard CRUD mutations
# ---------------------------------------------------------------------------


def create_mutation(resource: Resource[M], body: BaseModel) -> MutationRequest[M]:
    """POST to the collection; the created entity is written to its item key."""
    return MutationRequest(
        method="POST",
        path=resource.list_path,
        body=body.model_dump(mode="json", exclude_none=True),
        decode=resource.item_decoder(),
        invalidates=(resource.list_key,),
        write_key=lambda entity: resource.item_key(entity.id),
    )


def update_mutation(
    resource: Resource[M],
    item_id: str,
    body: BaseModel,
    *,
    path: str | None = None,
    extra_invalidates: tuple[ResourceKey, ...] = (),
) -> MutationRequest[M]:
    """PUT an item; the returned entity replaces the cached item directly."""
    return MutationRequest(
        method="PUT",
        path=path or resource.item_path(item_id),
        body=body.model_dump(mode="json", exclude_none=True),
        decode=resource.item_decoder(),
        invalidates=(resource.list_key, *extra_invalidates),
        write_key=lambda _entity: resource.item_key(item_id),
    )


def delete_mutation(resource: Resource[M], item_id: str) -> MutationRequest[bool]:
    """DELETE an item; its cached entry is evicted and the list re-fetched."""
    return MutationRequest(
        method="DELETE",
        path=resource.item_path(item_id),
        decode=decode_deleted,
        invalidates=(resource.list_key,),
        removes=(resource.item_key(item_id),),
    )
