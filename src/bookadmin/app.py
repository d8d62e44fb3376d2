"""Process lifecycle.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState inside the ``lifespan`` context manager
- Tear everything down on exit
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog

from bookadmin import __version__
from bookadmin.cache import ResourceCache
from bookadmin.config import Settings
from bookadmin.fetcher import Fetcher, build_http_client
from bookadmin.session import Session
from bookadmin.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr, stdout carries command output
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the client's lifetime."""
    settings = settings or Settings()
    setup_logging(settings)

    log.info("client_starting", version=__version__, base_url=settings.api.base_url)

    session = Session(settings.auth)
    http_client = build_http_client(settings.api)
    fetcher = Fetcher(http_client, session)
    cache = ResourceCache.from_settings(fetcher, settings)

    # Data fetched under revoked credentials must not outlive them
    session.on_auth_invalid(cache.clear)

    state = AppState(
        settings=settings,
        session=session,
        http_client=http_client,
        fetcher=fetcher,
        cache=cache,
    )

    try:
        yield state
    finally:
        await cache.aclose()
        await http_client.aclose()
        log.info("client_stopped")
