from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Category(BaseModel):
    """A catalog category as returned by /categories."""

    id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    books: list[Any] | None = None


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class Book(BaseModel):
    """A catalog book as returned by /books."""

    id: str
    title: str
    author: str
    price: float
    stock: int = 0
    description: str = ""
    category_id: str
    category: Category | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    author: str = Field(min_length=1, max_length=100)
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    description: str = ""
    category_id: str = Field(min_length=1)
