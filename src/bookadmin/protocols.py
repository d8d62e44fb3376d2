"""Protocol interfaces for swappable components.

The cache and the resource functions reference these protocols, not the
concrete Fetcher. Tests substitute lightweight fakes.
"""

from __future__ import annotations

from typing import Any, Protocol


class FetcherProtocol(Protocol):
    """Interface for the HTTP executor."""

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any: ...
