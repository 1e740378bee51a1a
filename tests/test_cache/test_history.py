"""Tests for the history snapshot store and timestamp parsing."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from fetchless.cache import HistoryStore, parse_timestamp
from fetchless.exceptions import InvalidTimestampError


def _response(label: str) -> httpx.Response:
    return httpx.Response(200, json={"label": label})


class TestParseTimestamp:
    def test_epoch_numbers(self) -> None:
        assert parse_timestamp(1_700_000_000) == 1_700_000_000.0
        assert parse_timestamp(12.5) == 12.5

    def test_iso_with_z_suffix(self) -> None:
        assert parse_timestamp("1970-01-01T00:01:00Z") == 60.0

    def test_iso_with_offset(self) -> None:
        assert parse_timestamp("1970-01-01T01:00:00+01:00") == 0.0

    def test_naive_iso_is_utc(self) -> None:
        assert parse_timestamp("1970-01-01T00:00:10") == 10.0

    def test_datetime(self) -> None:
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(moment) == moment.timestamp()

    @pytest.mark.parametrize("value", ["yesterday", "", "2024-13-45T00:00:00Z", True, None])
    def test_invalid_values(self, value) -> None:
        with pytest.raises(InvalidTimestampError):
            parse_timestamp(value)


class TestHistoryStore:
    def test_closest_picks_nearest(self) -> None:
        history = HistoryStore(retention=1000)
        history.record("/u", _response("t1"), 100.0)
        history.record("/u", _response("t2"), 200.0)
        assert history.closest("/u", 120.0).response.json() == {"label": "t1"}
        assert history.closest("/u", 180.0).response.json() == {"label": "t2"}
        assert history.closest("/u", 10_000.0).response.json() == {"label": "t2"}

    def test_tie_goes_to_earliest_appended(self) -> None:
        history = HistoryStore(retention=1000)
        history.record("/u", _response("t1"), 100.0)
        history.record("/u", _response("t2"), 200.0)
        assert history.closest("/u", 150.0).response.json() == {"label": "t1"}

    def test_closest_unknown_url(self) -> None:
        assert HistoryStore(retention=10).closest("/none", 0.0) is None

    def test_snapshots_are_per_url_in_arrival_order(self) -> None:
        history = HistoryStore(retention=1000)
        history.record("/a", _response("a1"), 1.0)
        history.record("/b", _response("b1"), 2.0)
        history.record("/a", _response("a2"), 3.0)
        assert [s.timestamp for s in history.snapshots("/a")] == [1.0, 3.0]
        assert [r.json()["label"] for r in history.responses("/a")] == ["a1", "a2"]
        assert len(history) == 3

    def test_prune_removes_old_snapshots(self) -> None:
        history = HistoryStore(retention=100)
        history.record("/a", _response("old"), 0.0)
        history.record("/a", _response("new"), 150.0)
        history.record("/b", _response("old"), 10.0)
        assert history.prune(now=200.0) == 2
        assert [r.json()["label"] for r in history.responses("/a")] == ["new"]
        assert history.urls() == ["/a"]

    def test_clear(self) -> None:
        history = HistoryStore(retention=100)
        history.record("/a", _response("x"), 0.0)
        history.clear()
        assert len(history) == 0
