"""In-memory port implementations for tests, previews and dry runs."""

from __future__ import annotations

import copy
import threading
import uuid
from typing import TYPE_CHECKING

from catalog_import.domain.errors import DuplicateBatchError
from catalog_import.domain.import_pipeline.history import page_window
from catalog_import.domain.model import BatchPage
from catalog_import.domain.ports import CatalogElement, RejectedWrite, WrittenElement

if TYPE_CHECKING:
    from collections.abc import Mapping

    from catalog_import.domain.model import (
        AttributeValue,
        BatchStatus,
        BatchUpdate,
        ElementType,
        ImportBatch,
    )
    from catalog_import.domain.ports import WriteResult


def _lookup_key(value: object) -> str | None:
    if value is None:
        return None
    key = str(value).strip().casefold()
    return key or None


class InMemoryCatalog:
    """Catalog backend holding elements in insertion order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._elements: dict[str, CatalogElement] = {}
        self.writes: list[tuple[str | None, dict[str, AttributeValue]]] = []

    def seed(
        self,
        element_type: ElementType,
        attributes: Mapping[str, AttributeValue],
        *,
        element_id: str | None = None,
    ) -> str:
        """Insert an element directly, bypassing the write log."""

        new_id = element_id or str(uuid.uuid4())
        with self._lock:
            self._elements[new_id] = CatalogElement(
                id=new_id, element_type=str(element_type), attributes=dict(attributes)
            )
        return new_id

    def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None:
        key = _lookup_key(value)
        if key is None:
            return None
        with self._lock:
            for element in self._elements.values():
                if element.element_type != str(element_type):
                    continue
                if _lookup_key(element.attributes.get(field)) == key:
                    return element.id
        return None

    def get_element(self, element_id: str) -> CatalogElement | None:
        with self._lock:
            return self._elements.get(element_id)

    def upsert(
        self,
        element_type: ElementType,
        element_id: str | None,
        attributes: Mapping[str, AttributeValue],
    ) -> WriteResult:
        with self._lock:
            self.writes.append((element_id, dict(attributes)))
            if element_id is None:
                new_id = str(uuid.uuid4())
                self._elements[new_id] = CatalogElement(
                    id=new_id, element_type=str(element_type), attributes=dict(attributes)
                )
                return WrittenElement(new_id)

            existing = self._elements.get(element_id)
            if existing is None:
                return RejectedWrite(f"Element {element_id} not found")
            if existing.element_type != str(element_type):
                return RejectedWrite(
                    f"Element {element_id} is a {existing.element_type}, not a {element_type}"
                )
            self._elements[element_id] = CatalogElement(
                id=element_id,
                element_type=existing.element_type,
                attributes={**existing.attributes, **attributes},
            )
            return WrittenElement(element_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._elements)


class InMemoryBatchStore:
    """Batch store returning deep copies so callers never share stored state."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches: dict[str, ImportBatch] = {}

    def add(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            if batch.id in self._batches:
                raise DuplicateBatchError(f"Batch {batch.id} already exists", batch_id=batch.id)
            self._batches[batch.id] = copy.deepcopy(batch)
            return copy.deepcopy(batch)

    def get(self, batch_id: str) -> ImportBatch | None:
        with self._lock:
            batch = self._batches.get(batch_id)
            return copy.deepcopy(batch) if batch is not None else None

    def update(self, batch_id: str, changes: BatchUpdate) -> ImportBatch | None:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None:
                return None
            changes.apply_to(batch)
            return copy.deepcopy(batch)

    def transition(self, batch_id: str, *, expected: BatchStatus, target: BatchStatus) -> bool:
        with self._lock:
            batch = self._batches.get(batch_id)
            if batch is None or batch.status is not expected:
                return False
            batch.status = target
            return True

    def list_all(self) -> list[ImportBatch]:
        with self._lock:
            return [copy.deepcopy(batch) for batch in self._newest_first()]

    def paginate(self, page: int, page_size: int) -> BatchPage:
        page, page_size, offset = page_window(page, page_size)
        with self._lock:
            ordered = self._newest_first()
            items = tuple(copy.deepcopy(batch) for batch in ordered[offset : offset + page_size])
            return BatchPage(items=items, total=len(ordered), page=page, page_size=page_size)

    def _newest_first(self) -> list[ImportBatch]:
        # insertion order breaks created_at ties, later first
        indexed = list(enumerate(self._batches.values()))
        indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [batch for _, batch in indexed]


if TYPE_CHECKING:
    from catalog_import.domain.ports import BatchStore, CatalogBackend

    _store_check: BatchStore = InMemoryBatchStore()
    _catalog_check: CatalogBackend = InMemoryCatalog()
