from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

UserRole = Literal["customer", "admin"]


class User(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole = "customer"
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)
    role: UserRole | None = None
