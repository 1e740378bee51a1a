"""Failure substitution ("auto-fix") for requests the cache cannot satisfy.

When a GET fails and no cached fallback exists, a caller-supplied function
may synthesise a substitute result. The function receives the error and an
:class:`AutoFixContext`; a non-``None`` return value becomes the body of a
synthetic 200 response marked as auto-fixed.

Substitute responses are returned to the caller only. They are never
written to the entry store, the history store or the last-successful
record, so they cannot become the source of truth for later reads.

Example::

    def fallback(error, ctx):
        if isinstance(error, NotFoundError):
            return {"id": None, "name": "Unknown user"}
        if ctx.last_successful_response is not None:
            return ctx.last_successful_response.json()
        return None

    response = await client.get("/users/42", auto_fix=fallback)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from fetchless.exceptions import TransportError

logger = logging.getLogger(__name__)

AUTO_FIXED_HEADER = "X-Fetchless-Auto-Fixed"
"""Response header present (value ``"true"``) on every substituted response."""

AUTO_FIXED_EXTENSION = "fetchless_auto_fixed"
"""Key set to ``True`` in ``response.extensions`` on every substituted response."""


@dataclass
class AutoFixContext:
    """Information handed to an auto-fix function.

    Attributes:
        error: The failure being repaired.
        url: The logical URL of the failed request.
        last_successful_response: Most recent successful network response
            for *url*, or ``None``.
        response_history: Responses recorded for *url* by the history
            store, oldest first. Empty unless time travel is enabled.
    """

    error: Exception
    url: str
    last_successful_response: Optional[httpx.Response] = None
    response_history: list[httpx.Response] = field(default_factory=list)


AutoFixFunction = Callable[[Exception, AutoFixContext], Any]
"""Signature of a caller-supplied substitution function."""


class AutoFixer:
    """Tracks last successful responses and runs substitution functions."""

    def __init__(self) -> None:
        self._last_successful: dict[str, httpx.Response] = {}

    def register_success(self, url: str, response: httpx.Response) -> None:
        """Remember *response* as the latest successful result for *url*."""
        self._last_successful[url] = response

    def last_successful(self, url: str) -> Optional[httpx.Response]:
        """Return the latest successful response for *url*, if any."""
        return self._last_successful.get(url)

    def clear(self) -> None:
        """Forget every recorded success."""
        self._last_successful.clear()

    def try_fix(
        self,
        error: TransportError,
        url: str,
        fix: Optional[AutoFixFunction],
        history: Optional[list[httpx.Response]] = None,
    ) -> Optional[httpx.Response]:
        """Run *fix* for *error* and wrap its result in a synthetic response.

        Returns:
            The substitute response, or ``None`` when no function was given,
            the function returned ``None`` or raised, or its result could not
            be encoded as JSON. The caller then re-raises *error*.
        """
        if fix is None:
            return None

        context = AutoFixContext(
            error=error,
            url=url,
            last_successful_response=self.last_successful(url),
            response_history=list(history or []),
        )
        try:
            fixed = fix(error, context)
        except Exception:
            logger.warning("Auto-fix function failed for %s", url, exc_info=True)
            return None

        if fixed is None:
            return None

        try:
            response = _substitute_response(fixed, error)
        except (TypeError, ValueError):
            logger.warning(
                "Auto-fix result for %s is not JSON serialisable", url, exc_info=True
            )
            return None

        logger.debug("Auto-fixed failed request for %s", url)
        return response


def _substitute_response(data: Any, error: TransportError) -> httpx.Response:
    """Build a 200 response carrying *data*, marked as auto-fixed."""
    kwargs: dict[str, Any] = {
        "headers": {AUTO_FIXED_HEADER: "true"},
        "extensions": {AUTO_FIXED_EXTENSION: True},
    }
    if isinstance(data, bytes):
        kwargs["content"] = data
    else:
        kwargs["json"] = data
    if error.request is not None:
        kwargs["request"] = error.request
    return httpx.Response(200, **kwargs)


def is_auto_fixed(response: httpx.Response) -> bool:
    """Return ``True`` if *response* was synthesised by an auto-fix function."""
    return bool(response.extensions.get(AUTO_FIXED_EXTENSION))
