"""The ``fetchless get`` command -- a cached GET from the shell.

Responses are kept in the on-disk :class:`~fetchless.cache.DiskStore`, so a
second invocation within ``max_age`` is answered without touching the
network.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx
import typer

from fetchless.exceptions import FetchlessError, InvalidUsageError
from fetchless.output import error


def _parse_pairs(values: list[str], separator: str, label: str) -> dict[str, str]:
    """Split ``name<separator>value`` arguments into a dict."""
    pairs: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(separator)
        if not sep or not name.strip():
            raise InvalidUsageError(f"Invalid {label} {raw!r}, expected NAME{separator}VALUE")
        pairs[name.strip()] = value.strip()
    return pairs


async def _fetch(
    url: str,
    params: dict[str, str],
    headers: dict[str, str],
    strategy: Optional[str],
    max_age: Optional[float],
    use_store: bool,
) -> tuple[httpx.Response, str]:
    from fetchless.cache import DiskStore
    from fetchless.client import CachingClient
    from fetchless.config import get_store_dir, resolve_config

    config = resolve_config(cli_strategy=strategy, cli_max_age=max_age)
    store = DiskStore(get_store_dir(config)) if use_store and config.store.enabled else None
    try:
        async with CachingClient(config.client, storage=store) as client:
            response = await client.get(url, params=params or None, headers=headers or None)
            source = "cache hit" if client.get_stats().hits else "network"
    finally:
        if store is not None:
            store.close()
    return response, source


def get_command(
    url: str = typer.Argument(help="URL to fetch."),
    param: list[str] = typer.Option(
        [], "--param", "-P", help="Query parameter as key=value (repeatable)."
    ),
    header: list[str] = typer.Option(
        [], "--header", "-H", help="Request header as 'Name: value' (repeatable)."
    ),
    strategy: Optional[str] = typer.Option(
        None,
        "--strategy",
        "-s",
        help="cache-first, network-first or stale-while-revalidate.",
    ),
    max_age: Optional[float] = typer.Option(
        None, "--max-age", help="Seconds a stored response stays fresh."
    ),
    no_store: bool = typer.Option(
        False, "--no-store", help="Do not read or write the on-disk store."
    ),
) -> None:
    """Fetch URL through the cache and print the body.

    The status line, including whether the response came from the cache,
    is written to stderr.

    Example::

        fetchless get https://api.example.com/users -P page=2
        fetchless get https://api.example.com/me -H "Authorization: Bearer $TOKEN"
    """
    from fetchless.client.response import format_api_response

    try:
        params = _parse_pairs(param, "=", "parameter")
        headers = _parse_pairs(header, ":", "header")
        response, source = asyncio.run(
            _fetch(url, params, headers, strategy, max_age, not no_store)
        )
    except FetchlessError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    format_api_response(response, source)
