"""Graph backend HTTP adapter."""

from __future__ import annotations

from .client import GraphBackendError, HttpCatalogBackend

__all__ = ["GraphBackendError", "HttpCatalogBackend"]
