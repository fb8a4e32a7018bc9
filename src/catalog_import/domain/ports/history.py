"""Port for persisting import batch audit records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from catalog_import.domain.model import BatchPage, BatchStatus, BatchUpdate, ImportBatch


@runtime_checkable
class BatchStore(Protocol):
    """Append-only store of import batches.

    Returned batches are snapshots; mutating them never changes stored state.
    """

    def add(self, batch: ImportBatch) -> ImportBatch:
        """Store a new batch; raises ``DuplicateBatchError`` when the id exists."""
        ...

    def get(self, batch_id: str) -> ImportBatch | None: ...

    def update(self, batch_id: str, changes: BatchUpdate) -> ImportBatch | None:
        """Merge ``changes`` and return the new snapshot, or None for unknown ids."""
        ...

    def transition(self, batch_id: str, *, expected: BatchStatus, target: BatchStatus) -> bool:
        """Atomically move ``expected`` -> ``target``; False when the batch is elsewhere."""
        ...

    def list_all(self) -> list[ImportBatch]:
        """Return every batch, newest first."""
        ...

    def paginate(self, page: int, page_size: int) -> BatchPage:
        """Return one 1-based page of the newest-first ordering."""
        ...
