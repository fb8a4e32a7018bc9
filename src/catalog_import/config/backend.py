"""Graph backend connection settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from .env import require_env_vars
from .http_resilience import ResilienceConfig, get_resilience_config

BACKEND_URL_ENV: Final[str] = "CATALOG_BACKEND_URL"
BACKEND_TOKEN_ENV: Final[str] = "CATALOG_BACKEND_TOKEN"
BACKEND_TIMEOUT_SECONDS: Final[float] = 15.0
BACKEND_RETRIES: Final[int] = 3


@dataclass(frozen=True)
class GraphBackendConfig:
    """Holds the read/write graph backend connection values."""

    base_url: str
    resilience: ResilienceConfig
    api_token: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers


def get_graph_backend_config(*, resilience: ResilienceConfig | None = None) -> GraphBackendConfig:
    values = require_env_vars((BACKEND_URL_ENV,))
    base_url = values[BACKEND_URL_ENV].rstrip("/") + "/"
    return GraphBackendConfig(
        base_url=base_url,
        api_token=os.getenv(BACKEND_TOKEN_ENV) or None,
        resilience=resilience
        or get_resilience_config(
            "graph-backend",
            base_url,
            timeout_seconds=BACKEND_TIMEOUT_SECONDS,
            retries=BACKEND_RETRIES,
        ),
    )
