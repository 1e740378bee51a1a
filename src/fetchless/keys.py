"""Cache key derivation.

A cache key identifies a logically distinct GET request: the URL, its query
parameters (order-independent), and the credentials it was sent with.
Two requests that differ only in parameter order or in headers that do not
change the response always share a key; requests sent with different
credentials never do.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Optional

import httpx

AUTH_HEADERS = frozenset({"authorization", "proxy-authorization"})
"""Headers that distinguish cache entries. Header names are matched case-insensitively."""


def derive_cache_key(
    url: str,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> str:
    """Build the cache key for a GET request.

    Args:
        url: The request URL as passed by the caller.
        params: Query parameters. Serialised with sorted keys.
        headers: Request headers. Only :data:`AUTH_HEADERS` affect the key.

    Returns:
        A deterministic string key. Parts are joined with ``|``; any ``%`` or
        ``|`` in the URL is percent-encoded so the URL part always ends at the
        first separator.

    Example::

        >>> derive_cache_key("/users", {"b": 2, "a": 1})
        '/users|{"a": 1, "b": 2}'
    """
    parts = [url.replace("%", "%25").replace("|", "%7C")]
    if params:
        parts.append(json.dumps(dict(params), sort_keys=True, default=str))
    if headers:
        credentials = sorted(
            (name.lower(), str(value))
            for name, value in headers.items()
            if name.lower() in AUTH_HEADERS
        )
        if credentials:
            parts.append(json.dumps(credentials))
    return "|".join(parts)


def request_url(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Return the logical URL of a request, with *params* encoded into the query.

    History snapshots, last-successful responses, freeze lookups and the
    request log are all keyed on this value.
    """
    if not params:
        return url
    return str(httpx.URL(url).copy_merge_params(dict(params)))


def strip_query(url: str) -> str:
    """Return *url* without its query string or fragment."""
    return url.split("#", 1)[0].split("?", 1)[0]
