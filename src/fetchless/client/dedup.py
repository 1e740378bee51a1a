"""Request deduplication for concurrent identical requests.

When several coroutines ask for the same cache key while a network call
for it is in flight, only one call is made and every caller receives the
same outcome.

Pattern:

- The first caller for a key wraps the operation in a task and registers
  it as pending.
- Later callers for the same key await the registered task instead of
  starting their own.
- When the task finishes (success, failure or cancellation) its pending
  registration is removed before any waiter resumes, so the next call
  for the key starts a fresh operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from fetchless.exceptions import AbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestDeduplicator:
    """Ensures concurrent requests for the same key share one operation.

    Each waiter awaits the shared task through :func:`asyncio.shield`, so a
    single waiter being cancelled does not cancel the call for the others.
    Cancelling the shared task itself (see :meth:`cancel`) aborts every
    waiter with :class:`~fetchless.exceptions.AbortedError`.

    Usage::

        dedup = RequestDeduplicator()
        response = await dedup.run(cache_key, lambda: transport.get(url))
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    async def run(self, key: str, operation: Callable[[], Awaitable[T]]) -> T:
        """Join the in-flight operation for *key* or start a new one.

        Args:
            key: Deduplication key (the request's cache key).
            operation: Zero-argument callable returning the awaitable to run
                when no operation for *key* is in flight.

        Returns:
            The operation's result, shared among all concurrent callers.

        Raises:
            AbortedError: If the shared operation was cancelled.
            Exception: Any error raised by the operation is propagated to
                every waiter.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(operation())
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._release(key, done))
            logger.debug("Started in-flight request for %s", key)
        else:
            logger.debug("Joined in-flight request for %s", key)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise AbortedError(f"Request for {key} was aborted") from None
            raise

    def cancel(self, key: str) -> bool:
        """Abort the in-flight operation for *key*.

        Returns:
            ``True`` if an operation was pending and has been cancelled.
        """
        task = self._pending.get(key)
        if task is None or task.done():
            return False
        logger.debug("Aborting in-flight request for %s", key)
        return task.cancel()

    def is_pending(self, key: str) -> bool:
        """Return ``True`` while an operation for *key* is in flight."""
        return key in self._pending

    def pending_keys(self) -> list[str]:
        """Keys with an operation currently in flight."""
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
