"""Bearer-token storage and the authentication-invalid side channel.

The token lives in memory and, when ``persist_token`` is enabled, in a single
file under the platform data directory. It is the only state the client
persists across restarts.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import structlog

from bookadmin.config import AuthSettings

log = structlog.get_logger()

AuthInvalidListener = Callable[[], None]


class Session:
    """Holds the bearer token and notifies listeners when it is revoked."""

    def __init__(self, settings: AuthSettings | None = None) -> None:
        self._settings = settings or AuthSettings()
        self._token: str | None = self._settings.token
        self._listeners: list[AuthInvalidListener] = []
        if self._token is None and self._settings.persist_token:
            self._token = self._load_token()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def authenticated(self) -> bool:
        return self._token is not None

    def set_token(self, token: str) -> None:
        self._token = token
        if self._settings.persist_token:
            path = Path(self._settings.token_path).expanduser()
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(token, encoding="utf-8")
            except OSError:
                log.warning("token_write_error", path=str(path), exc_info=True)

    def clear(self) -> None:
        """Forget the token without notifying listeners (explicit logout)."""
        self._token = None
        if self._settings.persist_token:
            path = Path(self._settings.token_path).expanduser()
            try:
                path.unlink(missing_ok=True)
            except OSError:
                log.warning("token_delete_error", path=str(path), exc_info=True)

    def on_auth_invalid(self, listener: AuthInvalidListener) -> None:
        """Register a callback run when the backend rejects the credentials.

        Typical listeners send the user back to the login view.
        """
        self._listeners.append(listener)

    def invalidate(self) -> None:
        """Clear stored credentials and notify listeners. Called on HTTP 401."""
        log.warning("session_invalidated")
        self.clear()
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                log.error("auth_invalid_listener_error", exc_info=True)

    def _load_token(self) -> str | None:
        path = Path(self._settings.token_path).expanduser()
        try:
            token = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError:
            log.warning("token_read_error", path=str(path), exc_info=True)
            return None
        return token or None
