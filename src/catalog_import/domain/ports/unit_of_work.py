"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from catalog_import.domain.model import BatchStatus, ImportBatch
    from catalog_import.domain.ports.catalog import CatalogBackend


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class BatchRepository(Protocol):
    """Session-bound persistence for batches (no commit handling)."""

    def add(self, batch: ImportBatch) -> None: ...

    def get(self, batch_id: str) -> ImportBatch | None: ...

    def exists(self, batch_id: str) -> bool: ...

    def save(self, batch: ImportBatch) -> None: ...

    def compare_and_set_status(
        self, batch_id: str, *, expected: BatchStatus, target: BatchStatus
    ) -> bool: ...

    def list_newest_first(
        self, *, offset: int = 0, limit: int | None = None
    ) -> list[ImportBatch]: ...

    def count(self) -> int: ...


@dataclass(slots=True)
class CatalogRepositories(RepositoryCollection):
    """Repositories required by the import pipeline."""

    batches: BatchRepository
    elements: CatalogBackend


type CatalogUnitOfWork = UnitOfWork[CatalogRepositories]
