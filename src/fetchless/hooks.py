"""Request/response interceptors and the runner that chains them.

This module provides three components:

* :class:`Interceptor` -- base class with no-op ``on_pre_request``,
  ``on_post_response`` and ``on_error`` hooks. Subclasses override only
  the hooks they need.
* :class:`HookContext` -- a mutable dataclass carrying request state
  through the pre-request chain.
* :class:`HookRunner` -- executes the hooks of every registered
  interceptor in registration order around each transport call.

The chain follows a pipeline pattern: each interceptor receives the output
of the previous one, enabling additive transformations (injecting headers,
rewriting parameters, normalising response bodies).

Example::

    class TraceHeader(Interceptor):
        def on_pre_request(self, method, url, headers, params):
            headers["X-Trace-Id"] = new_trace_id()
            return {"headers": headers, "params": params}

    remove = client.add_interceptor(TraceHeader())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

logger = logging.getLogger(__name__)


class Interceptor:
    """Base class for request/response interceptors.

    Every hook has a default no-op implementation.
    """

    def on_pre_request(
        self, method: str, url: str, headers: dict[str, str], params: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        """Called before each HTTP request is sent.

        Args:
            method: HTTP method (e.g. ``"GET"``).
            url: The request URL as given to the transport.
            headers: Mutable request headers dict.
            params: Mutable query parameters dict.

        Returns:
            ``None`` to keep the (possibly mutated) values, or a dict with
            ``"headers"`` and/or ``"params"`` keys replacing them for the
            next interceptor and the HTTP client.
        """
        return None

    def on_post_response(self, response: httpx.Response) -> Optional[httpx.Response]:
        """Called after each successful HTTP response.

        Returns:
            A replacement response, or ``None`` to keep *response*.
        """
        return None

    def on_error(self, error: Exception) -> None:
        """Called when a transport call fails.

        Exceptions raised here are logged and swallowed so they never mask
        the original failure.
        """


@dataclass
class HookContext:
    """Mutable request state threaded through the pre-request chain.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        url: The request URL.
        headers: Request headers dict (mutable).
        params: Request query parameters dict (mutable).
    """

    method: str = ""
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)


class HookRunner:
    """Executes interceptor hooks in registration order."""

    def __init__(self, interceptors: Optional[list[Interceptor]] = None) -> None:
        self._interceptors: list[Interceptor] = list(interceptors or [])

    def add(self, interceptor: Interceptor) -> Callable[[], None]:
        """Register *interceptor* and return a callable that removes it."""
        self._interceptors.append(interceptor)

        def remove() -> None:
            if interceptor in self._interceptors:
                self._interceptors.remove(interceptor)

        return remove

    def __len__(self) -> int:
        return len(self._interceptors)

    def run_pre_request(self, ctx: HookContext) -> HookContext:
        """Execute ``on_pre_request`` across all interceptors.

        Returns:
            The same *ctx* instance with potentially modified headers
            and params.
        """
        for interceptor in list(self._interceptors):
            result = interceptor.on_pre_request(ctx.method, ctx.url, ctx.headers, ctx.params)
            if isinstance(result, dict):
                ctx.headers = result.get("headers", ctx.headers)
                ctx.params = result.get("params", ctx.params)
        return ctx

    def run_post_response(self, response: httpx.Response) -> httpx.Response:
        """Execute ``on_post_response`` across all interceptors.

        Returns:
            The response returned by the last interceptor that replaced it.
        """
        for interceptor in list(self._interceptors):
            replacement = interceptor.on_post_response(response)
            if replacement is not None:
                response = replacement
        return response

    def run_error(self, error: Exception) -> None:
        """Execute ``on_error`` across all interceptors.

        A failing error hook is logged and skipped so the original failure
        still propagates.
        """
        for interceptor in list(self._interceptors):
            try:
                interceptor.on_error(error)
            except Exception:
                logger.debug("Interceptor %r failed in on_error", interceptor, exc_info=True)
