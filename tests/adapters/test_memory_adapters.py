from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from catalog_import.adapters.memory import InMemoryBatchStore, InMemoryCatalog
from catalog_import.domain.errors import DuplicateBatchError
from catalog_import.domain.model import BatchStatus, BatchUpdate, ElementType, ImportBatch
from catalog_import.domain.ports import (
    BatchStore,
    CatalogBackend,
    RejectedWrite,
    WrittenElement,
)

START = datetime(2025, 5, 1, tzinfo=UTC)


def _batch(batch_id: str, minutes: int = 0) -> ImportBatch:
    return ImportBatch(
        id=batch_id,
        file_name="apps.csv",
        user_id="u",
        total_records=1,
        created_at=START + timedelta(minutes=minutes),
    )


def test_adapters_satisfy_ports() -> None:
    assert isinstance(InMemoryCatalog(), CatalogBackend)
    assert isinstance(InMemoryBatchStore(), BatchStore)


def test_catalog_create_and_update_merge_attributes() -> None:
    catalog = InMemoryCatalog()

    created = catalog.upsert(ElementType.APPLICATION, None, {"name": "Billing", "ownerName": "Kim"})
    assert isinstance(created, WrittenElement)
    updated = catalog.upsert(ElementType.APPLICATION, created.id, {"ownerName": "Lee"})

    assert updated == WrittenElement(created.id)
    element = catalog.get_element(created.id)
    assert element is not None
    assert element.attributes == {"name": "Billing", "ownerName": "Lee"}
    assert len(catalog.writes) == 2


def test_catalog_rejects_unknown_update_target() -> None:
    result = InMemoryCatalog().upsert(ElementType.APPLICATION, "ghost", {"name": "A"})

    assert result == RejectedWrite("Element ghost not found")


def test_catalog_lookup_is_case_insensitive_and_typed() -> None:
    catalog = InMemoryCatalog()
    element_id = catalog.seed(ElementType.APPLICATION, {"name": "Billing", "annualRunCost": 5.0})

    assert catalog.find_by_key(ElementType.APPLICATION, "name", "  BILLING ") == element_id
    assert catalog.find_by_key(ElementType.APPLICATION, "name", "Payroll") is None
    assert catalog.find_by_key(ElementType.APPLICATION, "name", "") is None
    assert catalog.writes == []


def test_batch_store_rejects_duplicate_ids() -> None:
    store = InMemoryBatchStore()
    store.add(_batch("b1"))

    with pytest.raises(DuplicateBatchError):
        store.add(_batch("b1"))


def test_batch_store_transition_is_compare_and_set() -> None:
    store = InMemoryBatchStore()
    store.add(_batch("b1"))

    assert store.transition("b1", expected=BatchStatus.PENDING, target=BatchStatus.IN_PROGRESS)
    assert not store.transition("b1", expected=BatchStatus.PENDING, target=BatchStatus.IN_PROGRESS)
    assert not store.transition("nope", expected=BatchStatus.PENDING, target=BatchStatus.FAILED)


def test_batch_store_update_returns_snapshot() -> None:
    store = InMemoryBatchStore()
    store.add(_batch("b1"))

    updated = store.update("b1", BatchUpdate(success_count=1))
    assert updated is not None
    updated.success_count = 50

    stored = store.get("b1")
    assert stored is not None
    assert stored.success_count == 1
    assert store.update("missing", BatchUpdate(success_count=1)) is None


def test_batch_store_orders_newest_first_with_insertion_tiebreak() -> None:
    store = InMemoryBatchStore()
    store.add(_batch("old", minutes=0))
    store.add(_batch("tie-a", minutes=5))
    store.add(_batch("tie-b", minutes=5))

    assert [batch.id for batch in store.list_all()] == ["tie-b", "tie-a", "old"]
    page = store.paginate(2, 2)
    assert [batch.id for batch in page.items] == ["old"]
    assert page.total == 3
