"""Canonical Pydantic models shared across all fetchless modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- validated at client construction, and serialised
as JSON in the user's config directory for the command line:
    :class:`CacheStrategy`, :class:`RetryConfig`, :class:`ClientConfig`,
    :class:`StoreConfig`, :class:`OutputConfig`, and :class:`GlobalConfig`.

**Report models** -- returned by the client's inspection methods:
    :class:`CacheStats`, :class:`RequestRecord`, :class:`DuplicateReport`,
    and :class:`OptimizationSuggestion`.

Client configuration models use ``extra="forbid"`` so that a misspelt option
fails loudly at construction instead of being silently ignored.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Client Config ---


class CacheStrategy(str, enum.Enum):
    """Read policies applied to cached GET requests.

    ``CACHE_FIRST`` serves a fresh cached entry and only goes to the network
    when the entry is absent or expired. ``NETWORK_FIRST`` always asks the
    network and falls back to any cached entry on failure.
    ``STALE_WHILE_REVALIDATE`` serves whatever is cached immediately and
    refreshes expired entries in the background.
    """

    CACHE_FIRST = "cache-first"
    NETWORK_FIRST = "network-first"
    STALE_WHILE_REVALIDATE = "stale-while-revalidate"


class RetryConfig(BaseModel):
    """Retry policy applied by the transport to every HTTP call."""

    model_config = ConfigDict(extra="forbid")

    max_retries: int = Field(default=3, ge=0, description="Max retry attempts")
    backoff_factor: float = Field(
        default=0.3, ge=0, description="Base delay in seconds, doubled per attempt"
    )
    retry_status_codes: list[int] = Field(
        default_factory=lambda: [408, 429, 500, 502, 503, 504],
        description="HTTP statuses that trigger a retry",
    )


class ClientConfig(BaseModel):
    """Constructor-time configuration for a :class:`~fetchless.client.CachingClient`.

    Every recognised option is listed here with its default. Durations are
    in seconds.

    Example::

        ClientConfig(
            strategy="stale-while-revalidate",
            max_age=60,
            enable_time_travel=True,
        )
    """

    model_config = ConfigDict(extra="forbid")

    strategy: CacheStrategy = Field(
        default=CacheStrategy.CACHE_FIRST, description="Default read strategy"
    )
    max_age: float = Field(
        default=300.0, gt=0, description="Seconds before a cached entry expires"
    )
    max_size: int = Field(
        default=100, ge=1, description="Maximum number of cached entries"
    )
    enable_time_travel: bool = Field(
        default=False, description="Record history snapshots for time-travel reads"
    )
    history_retention: float = Field(
        default=7 * 24 * 60 * 60.0,
        gt=0,
        description="Seconds a history snapshot is kept before the sweep drops it",
    )
    enable_intelligence_panel: bool = Field(
        default=False, description="Record reads for request-pattern analytics"
    )
    dedupe_requests: bool = Field(
        default=True, description="Collapse concurrent identical requests"
    )
    base_url: Optional[str] = Field(
        default=None, description="Base URL prepended to relative request URLs"
    )
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    retry: RetryConfig = Field(default_factory=RetryConfig)
    sweep_interval: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds between maintenance sweeps of history and request log",
    )


# --- Command-line Config ---


class StoreConfig(BaseModel):
    """On-disk response store used by the ``fetchless`` command."""

    enabled: bool = Field(default=True, description="Persist responses to disk")
    directory: Optional[str] = Field(
        default=None, description="Store directory (defaults to the cache dir)"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/fetchless/config.json``.

    Loaded and saved by :func:`~fetchless.config.load_global_config` and
    :func:`~fetchless.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~fetchless.config.resolve_config`.
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Report Models ---


class CacheStats(BaseModel):
    """Hit/miss counters and current size of the entry store."""

    hits: int = 0
    misses: int = 0
    ratio: float = 0.0
    size: int = 0


class RequestRecord(BaseModel):
    """One read recorded by the intelligence panel."""

    url: str
    timestamp: float
    component: Optional[str] = None


class DuplicateReport(BaseModel):
    """A URL requested more often than the duplicate threshold."""

    url: str
    count: int
    components: list[str] = Field(default_factory=list)


class OptimizationSuggestion(BaseModel):
    """A human-readable suggestion and the URLs it concerns."""

    suggestion: str
    urls: list[str] = Field(default_factory=list)
