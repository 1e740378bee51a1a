"""Caching HTTP client for fetchless.

Classes:
    :class:`CachingClient` -- the caching facade applications hold.
    :class:`Transport` -- non-caching :class:`httpx.AsyncClient` wrapper
    with interceptor hooks, retry and error mapping.
    :class:`StrategyEngine` -- cache-first, network-first and
    stale-while-revalidate read policies.
    :class:`RequestDeduplicator` -- shares one in-flight call between
    concurrent identical requests.

Example::

    from fetchless.client import CachingClient

    async with CachingClient() as client:
        resp = await client.get("https://api.example.com/users")
"""

from fetchless.client.client import AbortableRequest, CachingClient, create_client
from fetchless.client.dedup import RequestDeduplicator
from fetchless.client.strategies import ReadRequest, StrategyEngine
from fetchless.client.transport import Transport

__all__ = [
    "AbortableRequest",
    "CachingClient",
    "ReadRequest",
    "RequestDeduplicator",
    "StrategyEngine",
    "Transport",
    "create_client",
]
