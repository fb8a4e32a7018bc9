"""Retry and timeout settings for the graph backend HTTP client."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Final

import httpx

from .env import positive_int_env

if TYPE_CHECKING:
    from collections.abc import Mapping

RETRIES_ENV: Final[str] = "CATALOG_BACKEND_RETRIES"
TIMEOUT_ENV: Final[str] = "CATALOG_BACKEND_TIMEOUT"

# Lookups and id-addressed updates may be replayed; creates (POST) may not.
IDEMPOTENT_METHODS: Final[frozenset[str]] = frozenset({"GET", "HEAD", "OPTIONS", "PUT"})
TRANSIENT_STATUSES: Final[frozenset[int]] = frozenset({429, 502, 503, 504})
TRANSIENT_ERRORS: Final[tuple[type[httpx.HTTPError], ...]] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Arguments for ``httpx_retries.Retry``."""

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 30.0
    respect_retry_after_header: bool = True
    allowed_methods: frozenset[str] = IDEMPOTENT_METHODS
    status_forcelist: frozenset[int] = TRANSIENT_STATUSES
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = TRANSIENT_ERRORS
    backoff_jitter: float = 1.0

    def without_retries(self) -> RetryPolicy:
        return replace(self, total=0)


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    default_headers: Mapping[str, str] | None = None


def get_resilience_config(
    name: str, base_url: str, *, timeout_seconds: float, retries: int
) -> ResilienceConfig:
    """Build a resilience config, letting the environment override timeout and retry count."""

    return ResilienceConfig(
        name=name,
        base_url=base_url,
        timeout_seconds=float(positive_int_env(TIMEOUT_ENV, int(timeout_seconds))),
        retry=RetryPolicy(total=positive_int_env(RETRIES_ENV, retries)),
    )
