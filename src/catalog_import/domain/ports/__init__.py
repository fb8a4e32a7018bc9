"""Ports consumed by the import pipeline."""

from __future__ import annotations

from .catalog import (
    CatalogBackend,
    CatalogElement,
    ElementReader,
    ElementWriter,
    RejectedWrite,
    WriteResult,
    WrittenElement,
)
from .history import BatchStore
from .unit_of_work import (
    BatchRepository,
    CatalogRepositories,
    CatalogUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BatchRepository",
    "BatchStore",
    "CatalogBackend",
    "CatalogElement",
    "CatalogRepositories",
    "CatalogUnitOfWork",
    "ElementReader",
    "ElementWriter",
    "RejectedWrite",
    "RepositoryCollection",
    "UnitOfWork",
    "WriteResult",
    "WrittenElement",
]
