"""Cache commands -- inspect and empty the on-disk response store."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import typer

from fetchless.output import format_response, info, print_table, success

if TYPE_CHECKING:
    from fetchless.cache import DiskStore

cache_app = typer.Typer(no_args_is_help=True)


@contextmanager
def _open_store() -> Iterator[DiskStore]:
    from fetchless.cache import DiskStore
    from fetchless.config import get_store_dir, resolve_config

    store = DiskStore(get_store_dir(resolve_config()))
    try:
        yield store
    finally:
        store.close()


@cache_app.command("list")
def cache_list() -> None:
    """List stored responses with their URL, status and age."""
    from fetchless.cache import deserialize_entry

    now = time.time()
    rows: list[list[str]] = []
    with _open_store() as store:
        for key in sorted(store.keys()):
            data = store.get(key)
            if data is None:
                continue
            entry = deserialize_entry(data)
            rows.append([
                entry.url,
                str(entry.response.status_code),
                f"{entry.age(now):.0f}s",
                key,
            ])

    if not rows:
        info("The response store is empty.")
        return
    print_table(["URL", "Status", "Age", "Key"], rows, title="Stored responses")


@cache_app.command("stats")
def cache_stats() -> None:
    """Show the number of stored responses and the store location."""
    with _open_store() as store:
        format_response(store.stats())


@cache_app.command("clear")
def cache_clear() -> None:
    """Remove every stored response."""
    with _open_store() as store:
        removed = store.clear()
    success(f"Removed {removed} stored response(s).")
