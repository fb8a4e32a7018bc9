"""SQLAlchemy adapter: batch history and a local element catalog."""

from __future__ import annotations

from .repositories import SqlAlchemyBatchRepository, SqlAlchemyElementRepository
from .stores import SqlAlchemyBatchStore, SqlAlchemyCatalog
from .tables import catalog_element_table, import_batch_table, import_error_table, metadata
from .unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyBatchRepository",
    "SqlAlchemyBatchStore",
    "SqlAlchemyCatalog",
    "SqlAlchemyCatalogUnitOfWork",
    "SqlAlchemyElementRepository",
    "StartupError",
    "catalog_element_table",
    "configured_engine",
    "import_batch_table",
    "import_error_table",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
