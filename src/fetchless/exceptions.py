"""Exception hierarchy for fetchless.

All exceptions inherit from :class:`FetchlessError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`fetchless.exit_codes`.
Library callers catch the specific subclasses; the ``fetchless`` command
line catches ``FetchlessError`` and exits with the matching code.

Subclass hierarchy::

    FetchlessError (exit 1)
    +-- InvalidUsageError       (exit 2)
    |   +-- InvalidTimestampError
    +-- ConfigError             (exit 1)
    +-- TransportError          (exit 5)
    |   +-- AuthError           (exit 3)
    |   +-- NotFoundError       (exit 4)
    |   +-- ClientError         (exit 5)
    |   +-- ServerError         (exit 5)
    |   +-- ConnectionError_    (exit 6)
    +-- NoHistoryError          (exit 7)
    +-- AbortedError            (exit 8)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from fetchless.exit_codes import (
    EXIT_ABORTED,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_HISTORY,
    EXIT_NOT_FOUND,
    EXIT_TRANSPORT_ERROR,
)

if TYPE_CHECKING:
    import httpx


class FetchlessError(Exception):
    """Base exception for all fetchless errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`fetchless.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(FetchlessError):
    """Raised for invalid option values (unknown strategy, malformed arguments)."""

    exit_code = EXIT_INVALID_USAGE


class InvalidTimestampError(InvalidUsageError):
    """Raised when a time-travel ``at`` value cannot be parsed as a timestamp."""


class ConfigError(FetchlessError):
    """Raised for configuration problems (invalid JSON, failed validation)."""

    exit_code = EXIT_GENERIC_FAILURE


class TransportError(FetchlessError):
    """Raised when the HTTP transport fails to produce a successful response.

    Carries whatever the transport knew when it failed: the HTTP status and
    response for error statuses, and the outgoing request when available.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the failed response, if one was received.
        response: The failed :class:`httpx.Response`, if one was received.
        request: The :class:`httpx.Request` that was sent, if known.
    """

    exit_code = EXIT_TRANSPORT_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[httpx.Response] = None,
        request: Optional[httpx.Request] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response
        self.request = request


class AuthError(TransportError):
    """Raised when the API returns HTTP 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(TransportError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ClientError(TransportError):
    """Raised when the API returns any other HTTP 4xx status."""


class ServerError(TransportError):
    """Raised when the API returns an HTTP 5xx status after all retries."""


class ConnectionError_(TransportError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class NoHistoryError(FetchlessError):
    """Raised when time travel is disabled or no snapshot exists for the URL."""

    exit_code = EXIT_NO_HISTORY


class AbortedError(FetchlessError):
    """Raised to every waiter of a request that was aborted or timed out."""

    exit_code = EXIT_ABORTED
