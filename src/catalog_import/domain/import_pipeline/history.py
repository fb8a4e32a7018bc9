"""Batch history service over an injected :class:`BatchStore`."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalog_import.domain.errors import (
    BatchConflictError,
    ImmutableBatchError,
    UnknownBatchError,
)
from catalog_import.domain.model import BatchStatus, ImportBatch, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from catalog_import.domain.model import BatchPage, BatchUpdate
    from catalog_import.domain.ports import BatchStore

log = getLogger(__name__)

DEFAULT_PAGE_SIZE: Final[int] = 20
MAX_PAGE_SIZE: Final[int] = 100


def page_window(page: int, page_size: int) -> tuple[int, int, int]:
    """Clamp 1-based paging input and return ``(page, page_size, offset)``."""

    page = max(1, page)
    page_size = min(max(1, page_size), MAX_PAGE_SIZE)
    return page, page_size, (page - 1) * page_size


class ImportHistory:
    """Creates, advances and reads import batches.

    Status only moves forward (see :meth:`BatchStatus.can_move_to`) and a
    terminal batch rejects further updates.
    """

    def __init__(self, store: BatchStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self.clock = clock

    def create_batch(
        self,
        *,
        batch_id: str,
        file_name: str,
        user_id: str,
        total_records: int,
    ) -> ImportBatch:
        if total_records < 0:
            raise ValueError("total_records must be non-negative")
        batch = ImportBatch(
            id=batch_id,
            file_name=file_name,
            user_id=user_id,
            total_records=total_records,
            created_at=self.clock(),
        )
        stored = self.store.add(batch)
        log.info("Created import batch %s for %s (%d records)", batch_id, file_name, total_records)
        return stored

    def update_batch(self, batch_id: str, changes: BatchUpdate) -> ImportBatch | None:
        """Merge ``changes``; returns None when ``batch_id`` is unknown."""

        current = self.store.get(batch_id)
        if current is None:
            return None
        if current.is_terminal:
            raise ImmutableBatchError(f"Batch {batch_id} is {current.status} and cannot change")
        target = changes.status
        if target is None or target == current.status:
            return self.store.update(batch_id, changes)
        if not current.status.can_move_to(target):
            raise ImmutableBatchError(
                f"Batch {batch_id} cannot move from {current.status} to {target}"
            )
        return self.store.update(batch_id, changes)

    def begin(self, batch_id: str) -> ImportBatch:
        """Move a PENDING batch to IN_PROGRESS exactly once."""

        if self.store.transition(
            batch_id, expected=BatchStatus.PENDING, target=BatchStatus.IN_PROGRESS
        ):
            started = self.store.get(batch_id)
            if started is not None:
                return started
        current = self.store.get(batch_id)
        if current is None:
            raise UnknownBatchError(f"Unknown import batch {batch_id}", batch_id=batch_id)
        raise BatchConflictError(
            f"Batch {batch_id} is already {current.status}",
            batch_id=batch_id,
            status=current.status,
        )

    def get_batch(self, batch_id: str) -> ImportBatch | None:
        return self.store.get(batch_id)

    def require_batch(self, batch_id: str) -> ImportBatch:
        batch = self.store.get(batch_id)
        if batch is None:
            raise UnknownBatchError(f"Unknown import batch {batch_id}", batch_id=batch_id)
        return batch

    def get_all_batches(self) -> list[ImportBatch]:
        return self.store.list_all()

    def get_batches_paginated(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> BatchPage:
        return self.store.paginate(page, page_size)
