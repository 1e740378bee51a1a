"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~fetchless.exceptions.FetchlessError` subclass.
Shell scripts wrapping the ``fetchless`` command can inspect the exit code
to determine the failure class without parsing stderr.

Example::

    $ fetchless get https://api.example.com/users/42
    $ echo $?
    4   # EXIT_NOT_FOUND -- the API answered 404 and nothing was cached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or option values."""

EXIT_AUTH_FAILURE = 3
"""The remote API rejected the credentials (HTTP 401 / 403)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_TRANSPORT_ERROR = 5
"""The remote API answered with an error status (other 4xx, or 5xx)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_NO_HISTORY = 7
"""A time-travel read was requested but no snapshot is available."""

EXIT_ABORTED = 8
"""The request was aborted before it completed."""
