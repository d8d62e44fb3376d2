"""Response envelope normalization.

The backend is inconsistent about wrapping: a payload may arrive bare,
as ``{"data": ...}``, or as ``{"data": {"<name>": ...}}``. Each decoder
accepts all of these and returns a tagged result. A shape that matches none
of them is a ``DecodeFailure``, never an empty fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from bookadmin.errors import DecodeError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


DecodeResult = Ok[T] | DecodeFailure


def unwrap(result: DecodeResult[T], context: str) -> T:
    """Return the decoded value or raise DecodeError."""
    if isinstance(result, DecodeFailure):
        raise DecodeError(f"Cannot decode {context}: {result.reason}")
    return result.value


def _strip_envelope(payload: Any, name: str) -> Any:
    """Peel ``{"data": ...}`` and then ``{"<name>": ...}`` if present."""
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if isinstance(payload, dict) and name in payload:
        payload = payload[name]
    return payload


def decode_item(payload: Any, model: type[M], name: str) -> DecodeResult[M]:
    """Decode a single entity; ``name`` is its singular key (``"book"``)."""
    inner = _strip_envelope(payload, name)
    if not isinstance(inner, dict):
        return DecodeFailure(f"expected a {name} object, got {type(inner).__name__}")
    try:
        return Ok(model.model_validate(inner))
    except ValidationError as exc:
        return DecodeFailure(f"invalid {name}: {exc.error_count()} validation error(s)")


def decode_list(payload: Any, model: type[M], name: str) -> DecodeResult[list[M]]:
    """Decode a collection; ``name`` is its plural key (``"books"``)."""
    inner = _strip_envelope(payload, name)
    if not isinstance(inner, list):
        return DecodeFailure(f"expected a {name} array, got {type(inner).__name__}")
    try:
        return Ok(TypeAdapter(list[model]).validate_python(inner))
    except ValidationError as exc:
        return DecodeFailure(f"invalid {name}: {exc.error_count()} validation error(s)")


def decode_deleted(payload: Any) -> DecodeResult[bool]:
    """Delete endpoints answer 204, ``{"success": bool}`` or an arbitrary ack."""
    if isinstance(payload, dict) and "success" in payload:
        success = payload["success"]
        if not isinstance(success, bool):
            return DecodeFailure("'success' is not a boolean")
        return Ok(success)
    return Ok(True)


def decode_token(payload: Any) -> DecodeResult[str]:
    """Extract the bearer token from a login response."""
    inner = _strip_envelope(payload, "token")
    if isinstance(inner, str) and inner:
        return Ok(inner)
    return DecodeFailure("login response carries no token")


def decode_passthrough(payload: Any) -> DecodeResult[Any]:
    """Opaque payloads (payment gateway): only the ``data`` envelope is removed."""
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if payload is None:
        return DecodeFailure("empty response body")
    return Ok(payload)
