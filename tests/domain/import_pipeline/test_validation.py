from __future__ import annotations

import pytest

from catalog_import.domain.import_pipeline import validate_batch, validate_record
from catalog_import.domain.model import ChoiceValue, NumberValue, RecordStatus, TextValue
from tests.helpers.catalog import mapped_rows


def test_empty_name_is_an_error() -> None:
    result = validate_record({"name": "", "applicationType": "COTS"}, 1)

    assert not result.is_valid
    assert [error.field for error in result.errors] == ["name"]
    assert result.errors[0].message == "Name is required."


def test_missing_name_key_is_an_error() -> None:
    result = validate_record({"applicationType": "COTS"}, 4)

    assert [(error.row, error.field) for error in result.errors] == [(4, "name")]


def test_enum_values_normalize_case_insensitively() -> None:
    result = validate_record({"name": "Test App", "lifecycleStatus": "active"}, 1)

    assert result.errors == ()
    assert result.normalized["lifecycleStatus"] == ChoiceValue("Active")
    assert result.normalized.text("lifecycleStatus") == "Active"


def test_unknown_enum_value_names_the_field() -> None:
    result = validate_record({"name": "App", "businessCriticality": "urgent"}, 2)

    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.field == "businessCriticality"
    assert error.value == "urgent"
    assert error.message == (
        "Business Criticality must be one of: Mission-Critical, High, Medium, Low."
    )


@pytest.mark.parametrize("value", ["abc", "12,5", "-3", "nan", "inf", "1_000"])
def test_invalid_numbers_are_errors(value: str) -> None:
    result = validate_record({"name": "App", "annualRunCost": value}, 1)

    assert [error.field for error in result.errors] == ["annualRunCost"]
    assert result.errors[0].message == "Annual Run Cost must be a non-negative number."


def test_numbers_parse_and_empty_optional_fields_are_allowed() -> None:
    result = validate_record(
        {"name": "App", "annualRunCost": " 1200.50 ", "availabilityTarget": "", "ownerName": ""},
        1,
    )

    assert result.is_valid
    assert result.normalized["annualRunCost"] == NumberValue(1200.5)
    assert "availabilityTarget" not in result.normalized
    assert "ownerName" not in result.normalized


@pytest.mark.parametrize(
    "name",
    ["<script>", "a{b}", "pipe|name", "back`tick", "App\x00", "Bell\x07", "Two\nLines", "Del\x7f"],
)
def test_unsafe_name_characters_are_rejected(name: str) -> None:
    result = validate_record({"name": name}, 1)

    assert [error.message for error in result.errors] == ["Name contains invalid characters."]


def test_description_keeps_line_breaks_but_rejects_other_control_characters() -> None:
    multi_line = validate_record({"name": "App", "description": "Line one\r\nline\ttwo"}, 1)
    binary = validate_record({"name": "App", "description": "bad\x00byte"}, 2)

    assert multi_line.is_valid
    assert multi_line.normalized["description"] == TextValue("Line one\r\nline\ttwo")
    assert [error.message for error in binary.errors] == [
        "Description contains invalid characters."
    ]


def test_overlong_text_is_rejected_with_preview_value() -> None:
    result = validate_record({"name": "x" * 300}, 1)

    error = result.errors[0]
    assert error.message == "Name exceeds maximum length of 255 characters."
    assert error.value == "x" * 40 + "…"


def test_errors_follow_catalog_order() -> None:
    result = validate_record(
        {"technicalDebtLevel": "huge", "name": "", "applicationType": "boxed"}, 1
    )

    assert [error.field for error in result.errors] == [
        "name",
        "applicationType",
        "technicalDebtLevel",
    ]


def test_text_values_are_trimmed() -> None:
    result = validate_record({"name": "  Billing  ", "ownerName": " Dana "}, 1)

    assert result.normalized["name"] == TextValue("Billing")
    assert result.normalized.as_attributes() == {"name": "Billing", "ownerName": "Dana"}


def test_validate_record_is_idempotent() -> None:
    mapped = {"name": "App", "lifecycleStatus": "RETIRED", "annualRunCost": "x"}

    assert validate_record(mapped, 3) == validate_record(mapped, 3)


@pytest.mark.parametrize("max_workers", [1, 4])
def test_validate_batch_partitions_in_row_order(max_workers: int) -> None:
    rows = mapped_rows(
        {"name": "A"},
        {"name": ""},
        {"name": "C", "lifecycleStatus": "planned"},
        {"name": "D", "annualRunCost": "lots"},
        {"name": "E"},
    )

    result = validate_batch(reversed(rows), max_workers=max_workers)

    assert result.total_processed == 5
    assert [record.row_index for record in result.valid_records] == [1, 3, 5]
    assert [record.row_index for record in result.invalid_records] == [2, 4]
    assert all(record.status is RecordStatus.INVALID for record in result.invalid_records)
    assert [(error.row, error.field) for error in result.errors] == [
        (2, "name"),
        (4, "annualRunCost"),
    ]
