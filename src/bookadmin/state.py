"""Application state container.

AppState is created once by ``bookadmin.app.lifespan`` and handed to every
consumer. There are no module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from bookadmin.cache import ResourceCache
    from bookadmin.config import Settings
    from bookadmin.protocols import FetcherProtocol
    from bookadmin.session import Session


@dataclass
class AppState:
    """Holds all shared runtime state."""

    settings: Settings
    session: Session
    http_client: httpx.AsyncClient
    fetcher: FetcherProtocol
    cache: ResourceCache
