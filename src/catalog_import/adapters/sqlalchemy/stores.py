"""Port implementations that open one unit of work per call.

The pipeline talks to :class:`BatchStore` and :class:`CatalogBackend`; these
adapters give each call its own session and commit, so batch progress is
durable as soon as the executor records it.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from catalog_import.domain.errors import DuplicateBatchError
from catalog_import.domain.import_pipeline.history import page_window
from catalog_import.domain.model import BatchPage

from .unit_of_work import SqlAlchemyCatalogUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from catalog_import.domain.model import (
        AttributeValue,
        BatchStatus,
        BatchUpdate,
        ElementType,
        ImportBatch,
    )
    from catalog_import.domain.ports import CatalogElement, CatalogUnitOfWork, WriteResult

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], CatalogUnitOfWork]


class SqlAlchemyBatchStore:
    def __init__(self, uow_factory: UnitOfWorkFactory = SqlAlchemyCatalogUnitOfWork) -> None:
        self._uow_factory = uow_factory

    def add(self, batch: ImportBatch) -> ImportBatch:
        with self._uow_factory() as uow:
            batches = uow.repositories.batches
            if batches.exists(batch.id):
                raise DuplicateBatchError(f"Batch {batch.id} already exists", batch_id=batch.id)
            batches.add(batch)
            try:
                uow.commit()
            except IntegrityError as exc:
                raise DuplicateBatchError(
                    f"Batch {batch.id} already exists", batch_id=batch.id
                ) from exc
            stored = batches.get(batch.id)
        if stored is None:
            raise RuntimeError(f"Batch {batch.id} was not persisted")
        return stored

    def get(self, batch_id: str) -> ImportBatch | None:
        with self._uow_factory() as uow:
            return uow.repositories.batches.get(batch_id)

    def update(self, batch_id: str, changes: BatchUpdate) -> ImportBatch | None:
        with self._uow_factory() as uow:
            batches = uow.repositories.batches
            batch = batches.get(batch_id)
            if batch is None:
                return None
            changes.apply_to(batch)
            batches.save(batch)
            uow.commit()
            return batch

    def transition(self, batch_id: str, *, expected: BatchStatus, target: BatchStatus) -> bool:
        with self._uow_factory() as uow:
            moved = uow.repositories.batches.compare_and_set_status(
                batch_id, expected=expected, target=target
            )
            uow.commit()
        if moved:
            log.debug("Batch %s moved %s -> %s", batch_id, expected, target)
        return moved

    def list_all(self) -> list[ImportBatch]:
        with self._uow_factory() as uow:
            return uow.repositories.batches.list_newest_first()

    def paginate(self, page: int, page_size: int) -> BatchPage:
        page, page_size, offset = page_window(page, page_size)
        with self._uow_factory() as uow:
            batches = uow.repositories.batches
            items = batches.list_newest_first(offset=offset, limit=page_size)
            total = batches.count()
        return BatchPage(items=tuple(items), total=total, page=page, page_size=page_size)


class SqlAlchemyCatalog:
    """Local element catalog; safe to share across lookup threads."""

    def __init__(self, uow_factory: UnitOfWorkFactory = SqlAlchemyCatalogUnitOfWork) -> None:
        self._uow_factory = uow_factory

    def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None:
        with self._uow_factory() as uow:
            return uow.repositories.elements.find_by_key(element_type, field, value)

    def get_element(self, element_id: str) -> CatalogElement | None:
        with self._uow_factory() as uow:
            return uow.repositories.elements.get_element(element_id)

    def upsert(
        self,
        element_type: ElementType,
        element_id: str | None,
        attributes: Mapping[str, AttributeValue],
    ) -> WriteResult:
        with self._uow_factory() as uow:
            result = uow.repositories.elements.upsert(element_type, element_id, attributes)
            uow.commit()
        return result


if TYPE_CHECKING:
    from catalog_import.domain.ports import BatchStore, CatalogBackend

    _store_check: BatchStore = SqlAlchemyBatchStore()
    _catalog_check: CatalogBackend = SqlAlchemyCatalog()
