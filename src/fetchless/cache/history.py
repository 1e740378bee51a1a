"""Per-URL snapshot log backing time-travel reads.

Every successful network fetch appends a :class:`HistorySnapshot` for the
logical URL. A time-travel read resolves the snapshot whose timestamp is
closest to the requested instant. Pruning runs from the maintenance sweep,
never from the read path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

import httpx

from fetchless.exceptions import InvalidTimestampError

logger = logging.getLogger(__name__)

Timestamp = Union[str, datetime, int, float]
"""Accepted forms of a time-travel instant."""


@dataclass(frozen=True)
class HistorySnapshot:
    """A response observed from the network at *timestamp* (epoch seconds)."""

    timestamp: float
    response: httpx.Response


def parse_timestamp(value: Timestamp) -> float:
    """Convert a time-travel instant to epoch seconds.

    Strings are parsed as ISO-8601; a trailing ``Z`` is accepted and naive
    values are interpreted as UTC. ``datetime`` objects follow the same
    rule. Numbers are taken as epoch seconds.

    Raises:
        InvalidTimestampError: If *value* cannot be interpreted.
    """
    if isinstance(value, bool):
        raise InvalidTimestampError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidTimestampError(f"Invalid timestamp: {value!r}") from exc
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    raise InvalidTimestampError(f"Invalid timestamp: {value!r}")


class HistoryStore:
    """Time-ordered snapshots per logical URL.

    Args:
        retention: Seconds a snapshot is kept before :meth:`prune` drops it.
    """

    def __init__(self, retention: float) -> None:
        self._retention = retention
        self._snapshots: dict[str, list[HistorySnapshot]] = {}

    def record(self, url: str, response: httpx.Response, timestamp: float) -> None:
        """Append a snapshot for *url*."""
        self._snapshots.setdefault(url, []).append(
            HistorySnapshot(timestamp=timestamp, response=response)
        )

    def snapshots(self, url: str) -> list[HistorySnapshot]:
        """All snapshots for *url*, in arrival order."""
        return list(self._snapshots.get(url, ()))

    def responses(self, url: str) -> list[httpx.Response]:
        """All recorded responses for *url*, oldest first."""
        return [snapshot.response for snapshot in self._snapshots.get(url, ())]

    def closest(self, url: str, at: float) -> Optional[HistorySnapshot]:
        """Return the snapshot for *url* nearest to *at*.

        Ties go to the snapshot appended first. Returns ``None`` when no
        snapshot exists for *url*.
        """
        best: Optional[HistorySnapshot] = None
        best_distance = 0.0
        for snapshot in self._snapshots.get(url, ()):
            distance = abs(snapshot.timestamp - at)
            if best is None or distance < best_distance:
                best = snapshot
                best_distance = distance
        return best

    def prune(self, now: float) -> int:
        """Drop snapshots older than the retention window.

        Returns:
            The number of snapshots removed.
        """
        cutoff = now - self._retention
        removed = 0
        for url in list(self._snapshots):
            kept = [s for s in self._snapshots[url] if s.timestamp >= cutoff]
            removed += len(self._snapshots[url]) - len(kept)
            if kept:
                self._snapshots[url] = kept
            else:
                del self._snapshots[url]
        if removed:
            logger.debug("Pruned %d history snapshots", removed)
        return removed

    def clear(self) -> None:
        """Remove every snapshot."""
        self._snapshots.clear()

    def urls(self) -> list[str]:
        """URLs that currently have at least one snapshot."""
        return list(self._snapshots)

    def __len__(self) -> int:
        return sum(len(snapshots) for snapshots in self._snapshots.values())
