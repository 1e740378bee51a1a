"""Asynchronous HTTP transport -- the network collaborator of the caching client.

This module provides :class:`Transport`, a thin layer over
:class:`httpx.AsyncClient` that adds interceptor hooks, retry with
exponential backoff, and mapping of error statuses to the
:class:`~fetchless.exceptions.TransportError` hierarchy. It knows nothing
about caching: every call goes to the network.

The transport is the only place where the caching client suspends, so all
cache bookkeeping happens strictly before or after :meth:`Transport.request`.

See Also:
    :class:`~fetchless.client.CachingClient` for the caching facade built
    on top of this transport.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from fetchless.exceptions import (
    AuthError,
    ClientError,
    ConnectionError_,
    NotFoundError,
    ServerError,
    TransportError,
)
from fetchless.hooks import HookContext, HookRunner
from fetchless.models import ClientConfig

logger = logging.getLogger(__name__)


class Transport:
    """Asynchronous HTTP transport with hooks, retry, and error mapping.

    The underlying :class:`httpx.AsyncClient` is created lazily on the
    first request unless one is supplied, and is closed by :meth:`aclose`
    (or on leaving ``async with``). A supplied client is closed as well.

    Args:
        config: Client configuration supplying ``base_url``, ``timeout``,
            ``verify_ssl`` and the ``retry`` policy.
        http_client: Optional pre-built :class:`httpx.AsyncClient`, e.g.
            one wired to an :class:`httpx.MockTransport` in tests.
        hook_runner: Interceptor chain run around every request.
        sleep: Coroutine used between retries. Defaults to
            :func:`asyncio.sleep`.

    Example::

        async with Transport(ClientConfig(base_url="https://api.example.com")) as t:
            response = await t.request("GET", "/users")
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        hook_runner: Optional[HookRunner] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self._config = config or ClientConfig()
        self._client = http_client
        self._hooks = hook_runner or HookRunner()
        self._sleep = sleep or asyncio.sleep

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Transport:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def hooks(self) -> HookRunner:
        """The interceptor chain run around every request."""
        return self._hooks

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json: Optional[Any] = None,
        content: Optional[str | bytes] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send an HTTP request with hooks, retry and error mapping.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE).
            url: Absolute URL, or a path relative to ``base_url``.
            params: Query parameters.
            headers: Request headers.
            json: JSON-serialisable body.
            content: Raw body.
            data: Form-encoded body.

        Returns:
            The successful (status < 400) :class:`httpx.Response`.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ClientError: On any other 4xx.
            ServerError: On 5xx after all retries are exhausted.
            ConnectionError_: On network / timeout errors after all retries,
                or at once on any other httpx failure such as a protocol error.
        """
        ctx = self._hooks.run_pre_request(
            HookContext(
                method=method.upper(),
                url=url,
                headers=dict(headers or {}),
                params=dict(params or {}),
            )
        )

        response = await self._execute_with_retry(ctx, json, content, data)
        self._map_response_error(response)
        return self._hooks.run_post_response(response)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a GET request. ``kwargs`` are forwarded to :meth:`request`."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a POST request. ``kwargs`` are forwarded to :meth:`request`."""
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a PUT request. ``kwargs`` are forwarded to :meth:`request`."""
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a PATCH request. ``kwargs`` are forwarded to :meth:`request`."""
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        """Send a DELETE request. ``kwargs`` are forwarded to :meth:`request`."""
        return await self.request("DELETE", url, **kwargs)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url or "",
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=True,
            )
        return self._client

    async def _execute_with_retry(
        self,
        ctx: HookContext,
        json: Any,
        content: str | bytes | None,
        data: dict[str, Any] | None,
    ) -> httpx.Response:
        """Execute the HTTP request with exponential-backoff retry.

        Retries on the configured status codes and on connection / timeout
        errors up to ``max_retries`` times. Other httpx errors are not retried.
        The delay doubles each attempt: ``backoff_factor``,
        ``2 * backoff_factor``, ``4 * backoff_factor``...
        """
        client = self._ensure_client()
        retry = self._config.retry
        max_retries = retry.max_retries

        kwargs: dict[str, Any] = {
            "method": ctx.method,
            "url": ctx.url,
            "headers": ctx.headers,
            "params": ctx.params,
        }
        if data is not None:
            kwargs["data"] = data
        elif json is not None:
            kwargs["json"] = json
        elif content is not None:
            kwargs["content"] = content

        for attempt in range(max_retries + 1):
            try:
                response = await client.request(**kwargs)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = retry.backoff_factor * 2 ** attempt
                    logger.debug(
                        "Connection error on %s %s: %s, retrying in %.2fs (attempt %d/%d)",
                        ctx.method, ctx.url, exc, delay, attempt + 1, max_retries,
                    )
                    await self._sleep(delay)
                    continue

                error = ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}",
                    request=_request_of(exc),
                )
                self._hooks.run_error(error)
                raise error from exc
            except httpx.HTTPError as exc:
                error = ConnectionError_(f"Request failed: {exc}", request=_request_of(exc))
                self._hooks.run_error(error)
                raise error from exc

            if response.status_code in retry.retry_status_codes and attempt < max_retries:
                delay = retry.backoff_factor * 2 ** attempt
                logger.debug(
                    "HTTP %d on %s %s, retrying in %.2fs (attempt %d/%d)",
                    response.status_code, ctx.method, ctx.url, delay, attempt + 1, max_retries,
                )
                await self._sleep(delay)
                continue

            return response

        raise ConnectionError_("Request failed after all retries")  # pragma: no cover

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed :class:`TransportError` for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        exc_type: type[TransportError]
        if status in (401, 403):
            exc_type = AuthError
        elif status == 404:
            exc_type = NotFoundError
        elif status >= 500:
            exc_type = ServerError
        else:
            exc_type = ClientError

        error = exc_type(
            full_msg,
            status_code=status,
            response=response,
            request=_request_of(response),
        )
        self._hooks.run_error(error)
        raise error


def _request_of(source: httpx.Response | httpx.HTTPError) -> Optional[httpx.Request]:
    """Return the request attached to a response or httpx error, if any."""
    try:
        return source.request
    except RuntimeError:
        return None
