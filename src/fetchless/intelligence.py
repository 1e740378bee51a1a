"""Request-pattern analytics ("intelligence panel").

When ``enable_intelligence_panel`` is set, every GET issued through a
:class:`~fetchless.client.CachingClient` is recorded here with its URL,
timestamp and, when known, the component that issued it. The log can then
be queried for duplicate requests and optimisation suggestions.

Attribution is explicit: pass ``origin=`` to ``get()``, or wrap a block of
calls in :func:`request_origin`::

    with request_origin("UserList"):
        await client.get("/users")
"""

from __future__ import annotations

import contextvars
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Callable, Optional

from fetchless.keys import strip_query
from fetchless.models import DuplicateReport, OptimizationSuggestion, RequestRecord

logger = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 3
"""A URL is reported as duplicated when logged more than this many times."""

HIGH_TRAFFIC_THRESHOLD = 10
"""A URL logged more than this many times gets a cache-duration suggestion."""

LOG_RETENTION_SECONDS = 24 * 60 * 60.0
"""Age after which the sweep drops request-log records."""

_current_origin: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "fetchless_request_origin", default=None
)


@contextmanager
def request_origin(name: str) -> Iterator[None]:
    """Attribute every read issued inside the ``with`` block to *name*."""
    token = _current_origin.set(name)
    try:
        yield
    finally:
        _current_origin.reset(token)


def current_origin() -> Optional[str]:
    """Return the origin set by the innermost :func:`request_origin`, if any."""
    return _current_origin.get()


class FetchIntelligence:
    """Passive request log with duplicate detection and suggestions.

    Args:
        clock: Callable returning the current time in epoch seconds.
        retention: Seconds a record is kept before :meth:`prune` drops it.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        retention: float = LOG_RETENTION_SECONDS,
    ) -> None:
        self._clock = clock or time.time
        self._retention = retention
        self._log: list[RequestRecord] = []

    def record(self, url: str, origin: Optional[str] = None) -> RequestRecord:
        """Append a record for *url*.

        *origin* defaults to the component set by :func:`request_origin`;
        records without an origin are kept with ``component=None``.
        """
        entry = RequestRecord(
            url=url,
            timestamp=self._clock(),
            component=origin if origin is not None else current_origin(),
        )
        self._log.append(entry)
        return entry

    def get_request_history(self) -> list[RequestRecord]:
        """Every recorded read, oldest first."""
        return list(self._log)

    def detect_duplicates(self) -> list[DuplicateReport]:
        """Return URLs logged more than :data:`DUPLICATE_THRESHOLD` times.

        Reports are sorted by count, highest first. Each carries the
        distinct components that requested the URL, in first-seen order.
        """
        counts: dict[str, int] = {}
        components: dict[str, dict[str, None]] = {}
        for entry in self._log:
            counts[entry.url] = counts.get(entry.url, 0) + 1
            seen = components.setdefault(entry.url, {})
            if entry.component is not None:
                seen[entry.component] = None

        reports = [
            DuplicateReport(url=url, count=count, components=list(components[url]))
            for url, count in counts.items()
            if count > DUPLICATE_THRESHOLD
        ]
        reports.sort(key=lambda report: report.count, reverse=True)
        return reports

    def suggest_optimizations(self) -> list[OptimizationSuggestion]:
        """Derive suggestions from the request log.

        * Duplicated URLs that differ only in query parameters are grouped
          under their base URL, with a suggestion to batch them.
        * URLs logged more than :data:`HIGH_TRAFFIC_THRESHOLD` times get a
          suggestion to lengthen the cache duration.
        """
        suggestions: list[OptimizationSuggestion] = []

        by_base: dict[str, list[str]] = {}
        for report in self.detect_duplicates():
            by_base.setdefault(strip_query(report.url), []).append(report.url)
        for base, urls in by_base.items():
            if len(urls) > 1:
                suggestions.append(
                    OptimizationSuggestion(
                        suggestion=(
                            f"Group the {len(urls)} parameterised requests to {base} "
                            "into a single request"
                        ),
                        urls=urls,
                    )
                )

        counts: dict[str, int] = {}
        for entry in self._log:
            counts[entry.url] = counts.get(entry.url, 0) + 1
        for url, count in counts.items():
            if count > HIGH_TRAFFIC_THRESHOLD:
                suggestions.append(
                    OptimizationSuggestion(
                        suggestion=(
                            f"Increase the cache duration for {url} "
                            f"(requested {count} times)"
                        ),
                        urls=[url],
                    )
                )
        return suggestions

    def prune(self, now: Optional[float] = None) -> int:
        """Drop records older than the retention window.

        Returns:
            The number of records removed.
        """
        cutoff = (self._clock() if now is None else now) - self._retention
        kept = [entry for entry in self._log if entry.timestamp >= cutoff]
        removed = len(self._log) - len(kept)
        self._log = kept
        if removed:
            logger.debug("Pruned %d request-log records", removed)
        return removed

    def clear(self) -> None:
        """Remove every record."""
        self._log.clear()

    def __len__(self) -> int:
        return len(self._log)
