"""HTTP executor for the bookstore API.

All network I/O goes through a single Fetcher instance. The Fetcher receives
an httpx.AsyncClient via constructor injection; the lifespan owns the client
lifecycle. Every failure leaves this module as a classified BookAdminError.
"""

from __future__ import annotations

from json import JSONDecodeError
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from bookadmin.errors import DecodeError, HTTPError, NetworkError, RequestTimeoutError

if TYPE_CHECKING:
    from bookadmin.config import ApiSettings
    from bookadmin.session import Session

log = structlog.get_logger()


def build_http_client(settings: ApiSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout_seconds),
        # The backend redirects "/books" to "/books/" (same origin)
        follow_redirects=True,
        headers={
            "Content-Type": "application/json",
            "User-Agent": "bookadmin/1.0",
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def _response_body(response: httpx.Response) -> Any:
    """Parsed JSON body, raw text if it isn't JSON, None if empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except (JSONDecodeError, UnicodeDecodeError):
        return response.text


class Fetcher:
    """Performs single HTTP calls and classifies their failures."""

    def __init__(self, client: httpx.AsyncClient, session: Session) -> None:
        self._client = client
        self._session = session

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body.

        Returns ``None`` for an empty body. Raises NetworkError,
        RequestTimeoutError, HTTPError or DecodeError. A 401 response also
        invalidates the session before HTTPError is raised.
        """
        headers: dict[str, str] = {}
        if self._session.token:
            headers["Authorization"] = f"Bearer {self._session.token}"

        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            log.warning("fetch_failed", method=method, path=path, reason="timeout")
            raise RequestTimeoutError(f"Timed out on {method} {path}") from exc
        except httpx.HTTPError as exc:
            log.warning("fetch_failed", method=method, path=path, reason="network")
            raise NetworkError(f"Network error on {method} {path}: {exc}") from exc

        if response.status_code >= 400:
            body = _response_body(response)
            log.warning(
                "fetch_failed",
                method=method,
                path=path,
                reason="http_status",
                status_code=response.status_code,
            )
            if response.status_code == 401:
                self._session.invalidate()
            raise HTTPError(
                status=response.status_code,
                message=f"HTTP {response.status_code} on {method} {path}",
                body=body,
            )

        log.debug(
            "fetch_complete",
            method=method,
            path=path,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        if not response.content:
            return None
        try:
            return response.json()
        except (JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Response to {method} {path} is not valid JSON") from exc
