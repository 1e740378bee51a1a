"""fetchless -- an in-process HTTP response cache for asyncio applications.

A :class:`CachingClient` sits in front of an :class:`httpx.AsyncClient` and
decides, per GET, whether to answer from its cache, the network, or both:

* three read strategies (cache-first, network-first, stale-while-revalidate)
  over a bounded LRU store,
* deduplication of concurrent identical requests,
* time-travel reads from a per-URL history of responses,
* freezing entries so they are served regardless of age,
* caller-supplied "auto-fix" substitutes for failed requests,
* request-pattern analytics (duplicates and optimisation hints).

Typical use::

    from fetchless import CachingClient, ClientConfig

    async with CachingClient(ClientConfig(max_age=60)) as client:
        response = await client.get("https://api.example.com/users")

Modules:
    client: The caching facade, strategy engine, dedup layer and transport.
    cache: Entry, history, freeze and persistent stores.
    models: Pydantic configuration and report models.
    exceptions: Exception hierarchy with exit-code mapping.
    app: The ``fetchless`` command-line interface.
"""

__version__ = "0.1.0"

from fetchless.autofix import AutoFixContext, is_auto_fixed
from fetchless.client import AbortableRequest, CachingClient, create_client
from fetchless.exceptions import (
    AbortedError,
    FetchlessError,
    InvalidTimestampError,
    NoHistoryError,
    TransportError,
)
from fetchless.hooks import Interceptor
from fetchless.intelligence import FetchIntelligence, request_origin
from fetchless.models import CacheStats, CacheStrategy, ClientConfig, RetryConfig

__all__ = [
    "AbortableRequest",
    "AbortedError",
    "AutoFixContext",
    "CacheStats",
    "CacheStrategy",
    "CachingClient",
    "ClientConfig",
    "FetchIntelligence",
    "FetchlessError",
    "Interceptor",
    "InvalidTimestampError",
    "NoHistoryError",
    "RetryConfig",
    "TransportError",
    "__version__",
    "create_client",
    "is_auto_fixed",
    "request_origin",
]
