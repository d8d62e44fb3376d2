from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from bookadmin.decoders import DecodeResult

T = TypeVar("T")

# ("books",) for a list, ("book", "b1") for a single item
ResourceKey = tuple[str, ...]


class EntryStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Immutable snapshot of one cached resource key.

    A failed refresh keeps the last known-good ``data`` alongside
    ``status=ERROR`` so consumers never lose what they were showing.
    """

    key: ResourceKey
    status: EntryStatus = EntryStatus.IDLE
    data: T | None = None
    error: Exception | None = None
    last_updated: float | None = None  # clock seconds of the last stored data
    stale_after: float = 0.0
    invalidated: bool = False
    data_seq: int = -1  # issuance sequence of the fetch that produced data

    @property
    def has_data(self) -> bool:
        return self.data_seq >= 0

    def is_stale(self, now: float) -> bool:
        if self.invalidated or self.last_updated is None:
            return True
        return now - self.last_updated >= self.stale_after


@dataclass(frozen=True)
class MutationRequest(Generic[T]):
    """A one-shot create/update/delete call and the cache keys it affects.

    On success the cache writes the decoded result under ``write_key(result)``,
    evicts ``removes`` and marks ``invalidates`` stale.
    """

    method: str
    path: str
    decode: Callable[[Any], DecodeResult[T]]
    body: Any = None
    params: dict[str, str] | None = None
    invalidates: tuple[ResourceKey, ...] = ()
    removes: tuple[ResourceKey, ...] = ()
    write_key: Callable[[T], ResourceKey | None] | None = None
