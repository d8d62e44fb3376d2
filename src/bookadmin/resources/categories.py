"""Category queries and mutations."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from bookadmin.models.cache import MutationRequest, ResourceKey
from bookadmin.models.catalog import Category, CategoryRequest
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

CATEGORIES = Resource(plural="categories", singular="category", model=Category)
CATEGORIES_KEY: ResourceKey = CATEGORIES.list_key


def category_key(category_id: str) -> ResourceKey:
    return CATEGORIES.item_key(category_id)


async def list_categories(cache: ResourceCache) -> list[Category]:
    return await fetch_list(
        cache, CATEGORIES_KEY, CATEGORIES.list_path, CATEGORIES.list_decoder()
    )


async def get_category(cache: ResourceCache, category_id: str) -> Category:
    require_id(category_id, "category")
    return await fetch_item(
        cache,
        category_key(category_id),
        CATEGORIES.item_path(category_id),
        CATEGORIES.item_decoder(),
    )


def create_category(data: CategoryRequest | Mapping[str, Any]) -> MutationRequest[Category]:
    return create_mutation(CATEGORIES, validate_input(CategoryRequest, data))


def update_category(
    category_id: str, data: CategoryRequest | Mapping[str, Any]
) -> MutationRequest[Category]:
    require_id(category_id, "category")
    return update_mutation(CATEGORIES, category_id, validate_input(CategoryRequest, data))


def delete_category(category_id: str) -> MutationRequest[bool]:
    require_id(category_id, "category")
    return delete_mutation(CATEGORIES, category_id)
