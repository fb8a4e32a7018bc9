from __future__ import annotations

import threading

import pytest

from catalog_import.adapters.memory import InMemoryCatalog
from catalog_import.domain.errors import BackendUnavailableError, UnknownDuplicateRowError
from catalog_import.domain.import_pipeline import (
    DuplicateMatch,
    DuplicateResolution,
    detect_duplicates,
)
from catalog_import.domain.model import DuplicateStrategy, ElementType, MatchedBy
from tests.helpers.catalog import valid_records


@pytest.fixture
def seeded() -> InMemoryCatalog:
    catalog = InMemoryCatalog()
    catalog.seed(
        ElementType.APPLICATION,
        {"name": "Billing", "applicationCode": "APP-BILL"},
        element_id="el-billing",
    )
    catalog.seed(ElementType.APPLICATION, {"name": "CRM"}, element_id="el-crm")
    return catalog


def test_code_match_wins_over_name(seeded: InMemoryCatalog) -> None:
    records = valid_records({"name": "CRM", "applicationCode": "app-bill"})

    report = detect_duplicates(records, seeded)

    assert report.matches == (
        DuplicateMatch(
            row_index=1,
            existing_element_id="el-billing",
            existing_element_name="Billing",
            matched_by=MatchedBy.APPLICATION_CODE,
        ),
    )


def test_name_match_is_case_insensitive(seeded: InMemoryCatalog) -> None:
    records = valid_records({"name": "crm"}, {"name": "Payroll"})

    report = detect_duplicates(records, seeded)

    assert report.checked == 2
    assert report.matched_rows == frozenset({1})
    match = report.matches[0]
    assert match.matched_by is MatchedBy.NAME
    assert match.existing_element_id == "el-crm"
    assert match.strategy is DuplicateStrategy.UPDATE_EXISTING


def test_unknown_code_falls_back_to_name(seeded: InMemoryCatalog) -> None:
    records = valid_records({"name": "Billing", "applicationCode": "APP-NEW"})

    report = detect_duplicates(records, seeded)

    assert report.matches[0].matched_by is MatchedBy.NAME


def test_lookups_do_not_mutate_catalog(seeded: InMemoryCatalog) -> None:
    detect_duplicates(valid_records({"name": "Billing"}, {"name": "New"}), seeded)

    assert len(seeded) == 2
    assert seeded.writes == []


def test_concurrent_lookups_are_joined_in_row_order(seeded: InMemoryCatalog) -> None:
    names = [f"App {index}" for index in range(20)]
    names[3] = "CRM"
    names[17] = "billing"
    thread_names: set[str] = set()

    class RecordingReader:
        def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None:
            thread_names.add(threading.current_thread().name)
            return seeded.find_by_key(element_type, field, value)

        def get_element(self, element_id: str):  # noqa: ANN202
            return seeded.get_element(element_id)

    records = valid_records(*({"name": name} for name in names))

    report = detect_duplicates(records, RecordingReader(), max_workers=4)

    assert [match.row_index for match in report.matches] == [4, 18]
    assert all(name.startswith("dup-lookup") for name in thread_names)


def test_rows_matching_same_element_produce_warning(seeded: InMemoryCatalog) -> None:
    records = valid_records({"name": "CRM"}, {"name": "crm"})

    report = detect_duplicates(records, seeded)

    assert len(report.matches) == 2
    assert len(report.warnings) == 1
    warning = report.warnings[0]
    assert warning.row_indices == (1, 2)
    assert warning.existing_element_id == "el-crm"
    assert "last write wins" in warning.message


def test_unmatched_rows_sharing_a_key_produce_warning(seeded: InMemoryCatalog) -> None:
    records = valid_records({"name": "Fresh"}, {"name": "Other"}, {"name": "fresh"})

    report = detect_duplicates(records, seeded)

    assert report.matches == ()
    assert [warning.row_indices for warning in report.warnings] == [(1, 3)]


def test_backend_errors_propagate() -> None:
    class DownReader:
        def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None:
            raise BackendUnavailableError("read backend down")

        def get_element(self, element_id: str) -> None:
            return None

    with pytest.raises(BackendUnavailableError):
        detect_duplicates(valid_records({"name": "A"}), DownReader(), max_workers=1)


def _resolution() -> DuplicateResolution:
    return DuplicateResolution(
        [
            DuplicateMatch(
                row_index=row,
                existing_element_id=f"el-{row}",
                existing_element_name=f"Existing {row}",
                matched_by=MatchedBy.NAME,
            )
            for row in (5, 2)
        ]
    )


def test_resolution_defaults_to_update_existing() -> None:
    resolution = _resolution()

    assert [match.row_index for match in resolution] == [2, 5]
    assert resolution.strategy_for(2) is DuplicateStrategy.UPDATE_EXISTING
    assert resolution.strategy_for(3) is None
    assert 5 in resolution
    assert len(resolution) == 2


def test_assign_overwrites_previous_strategy() -> None:
    resolution = _resolution()

    resolution.assign(2, DuplicateStrategy.SKIP)
    resolution.assign(2, DuplicateStrategy.CREATE_NEW)

    assert resolution.strategy_for(2) is DuplicateStrategy.CREATE_NEW
    assert len(resolution) == 2
    assert resolution.counts() == {
        DuplicateStrategy.UPDATE_EXISTING: 1,
        DuplicateStrategy.CREATE_NEW: 1,
        DuplicateStrategy.SKIP: 0,
    }


def test_assign_to_unmatched_row_raises() -> None:
    with pytest.raises(UnknownDuplicateRowError, match="Row 9 has no duplicate match"):
        _resolution().assign(9, DuplicateStrategy.SKIP)


def test_assign_many_returns_unknown_rows() -> None:
    resolution = _resolution()

    unknown = resolution.assign_many({5: DuplicateStrategy.SKIP, 7: DuplicateStrategy.SKIP})

    assert unknown == (7,)
    assert resolution.strategy_for(5) is DuplicateStrategy.SKIP


def test_resolution_rejects_two_matches_for_one_row() -> None:
    match = _resolution().matches[0]

    with pytest.raises(ValueError, match="more than one"):
        DuplicateResolution([match, match])
