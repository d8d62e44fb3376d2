"""Book catalog queries and mutations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from bookadmin.models.cache import MutationRequest, ResourceKey
from bookadmin.models.catalog import Book, BookRequest
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

BOOKS = Resource(plural="books", singular="book", model=Book)
BOOKS_KEY: ResourceKey = BOOKS.list_key


def book_key(book_id: str) -> ResourceKey:
    return BOOKS.item_key(book_id)


async def list_books(cache: ResourceCache) -> list[Book]:
    return await fetch_list(cache, BOOKS_KEY, BOOKS.list_path, BOOKS.list_decoder())


async def get_book(cache: ResourceCache, book_id: str) -> Book:
    require_id(book_id, "book")
    return await fetch_item(cache, book_key(book_id), BOOKS.item_path(book_id), BOOKS.item_decoder())


def create_book(data: BookRequest | Mapping[str, Any]) -> MutationRequest[Book]:
    return create_mutation(BOOKS, validate_input(BookRequest, data))


def update_book(book_id: str, data: BookRequest | Mapping[str, Any]) -> MutationRequest[Book]:
    require_id(book_id, "book")
    return update_mutation(BOOKS, book_id, validate_input(BookRequest, data))


def delete_book(book_id: str) -> MutationRequest[bool]:
    require_id(book_id, "book")
    return delete_mutation(BOOKS, book_id)
