from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    NETWORK_ERROR = "NETWORK_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_INPUT = "INVALID_INPUT"
    DECODE_ERROR = "DECODE_ERROR"


class BookAdminError(Exception):
    """Base for every expected failure raised by the client.

    ``recoverable`` is True when retrying the same call may succeed; the
    retry policy consults it. Callers that render errors use ``to_dict()``.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: str,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class NetworkError(BookAdminError):
    """No response was received from the backend."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code=ErrorCode.NETWORK_ERROR,
            message=message,
            suggestion="Check that the API server is running and reachable.",
            recoverable=True,
        )


class RequestTimeoutError(BookAdminError):
    def __init__(self, message: str) -> None:
        super().__init__(
            code=ErrorCode.TIMEOUT,
            message=message,
            suggestion="The API server is slow to respond. Try again later.",
            recoverable=True,
        )


class HTTPError(BookAdminError):
    """The backend answered with a status code >= 400.

    Only 5xx responses are recoverable. 401 additionally ends the session
    (see ``Fetcher``).
    """

    def __init__(self, status: int, message: str, body: Any = None) -> None:
        if status == 401:
            suggestion = "The session has expired. Log in again."
        elif status == 403:
            suggestion = "The current account lacks permission for this action."
        elif status == 404:
            suggestion = "The requested resource does not exist."
        elif status >= 500:
            suggestion = "The API server failed to handle the request. Try again later."
        else:
            suggestion = "The API server rejected the request."
        super().__init__(
            code=ErrorCode.HTTP_ERROR,
            message=message,
            suggestion=suggestion,
            recoverable=status >= 500,
        )
        self.status = status
        self.body = body

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["error"]["status"] = self.status
        return payload


class InvalidInputError(BookAdminError):
    """Caller-supplied input rejected before any network call."""

    def __init__(self, message: str, suggestion: str = "Correct the input and retry.") -> None:
        super().__init__(
            code=ErrorCode.INVALID_INPUT,
            message=message,
            suggestion=suggestion,
            recoverable=False,
        )


class DecodeError(BookAdminError):
    """A response body did not match any accepted envelope shape."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code=ErrorCode.DECODE_ERROR,
            message=message,
            suggestion="The API response format is not supported by this client version.",
            recoverable=False,
        )
