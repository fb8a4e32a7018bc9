"""Per-record validation and normalization into typed field values."""

from __future__ import annotations

import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalog_import.domain.model import (
    APPLICATION_CATALOG,
    ChoiceValue,
    ErrorReportEntry,
    FieldKind,
    ImportRecord,
    NormalizedRecord,
    NumberValue,
    RecordStatus,
    TextValue,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from catalog_import.domain.model import (
        FieldCatalog,
        FieldValue,
        MappedFields,
        MappedRow,
        TargetFieldDefinition,
    )

log = getLogger(__name__)

INVALID_NAME_CHARS: Final[re.Pattern[str]] = re.compile(r"[<>{}|\\^~\[\]`]")
CONTROL_CHARS: Final[re.Pattern[str]] = re.compile(r"[\x00-\x1f\x7f]")
# Multi-line free text keeps tabs and line breaks.
TEXT_CONTROL_CHARS: Final[re.Pattern[str]] = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
ERROR_VALUE_PREVIEW: Final[int] = 40
SAFE_TEXT_FIELDS: Final[frozenset[str]] = frozenset({"name"})


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordValidation:
    errors: tuple[ErrorReportEntry, ...]
    normalized: NormalizedRecord

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationResult:
    valid_records: tuple[ImportRecord, ...]
    invalid_records: tuple[ImportRecord, ...]
    total_processed: int

    @property
    def errors(self) -> tuple[ErrorReportEntry, ...]:
        """All field errors, ordered by row and then by field discovery."""

        return tuple(error for record in self.invalid_records for error in record.errors)


def validate_record(
    mapped: MappedFields,
    row_index: int,
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
) -> RecordValidation:
    """Check ``mapped`` against ``catalog`` without touching any state.

    Fields are visited in catalog order, which fixes the order of the returned
    errors. Empty optional fields produce neither an error nor a normalized value.
    """

    errors: list[ErrorReportEntry] = []
    normalized: dict[str, FieldValue] = {}
    for definition in catalog:
        raw = mapped.get(definition.key)
        if raw is None and not definition.required:
            continue
        value = (raw or "").strip()
        if not value:
            if definition.required:
                message = f"{definition.label} is required."
                errors.append(_error(row_index, definition.key, raw or "", message))
            continue

        outcome = _normalize(definition, value)
        if isinstance(outcome, str):
            errors.append(_error(row_index, definition.key, _preview(value), outcome))
        else:
            normalized[definition.key] = outcome

    return RecordValidation(errors=tuple(errors), normalized=NormalizedRecord(normalized))


def validate_batch(
    rows: Iterable[MappedRow],
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
    max_workers: int = 1,
) -> ValidationResult:
    """Validate every row and partition the records by status.

    With ``max_workers > 1`` rows are validated on a thread pool; the partitions
    still follow row order.
    """

    ordered = sorted(rows, key=lambda row: row.row_index)
    if max_workers > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            records = list(pool.map(lambda row: _to_record(row, catalog), ordered))
    else:
        records = [_to_record(row, catalog) for row in ordered]

    valid = tuple(record for record in records if record.is_valid)
    invalid = tuple(record for record in records if not record.is_valid)
    log.debug(
        "Validated %d records: %d valid, %d invalid", len(records), len(valid), len(invalid)
    )
    return ValidationResult(
        valid_records=valid, invalid_records=invalid, total_processed=len(records)
    )


def _to_record(row: MappedRow, catalog: FieldCatalog) -> ImportRecord:
    validation = validate_record(row.mapped, row.row_index, catalog=catalog)
    return ImportRecord(
        row_index=row.row_index,
        raw=row.raw,
        mapped=row.mapped,
        status=RecordStatus.VALID if validation.is_valid else RecordStatus.INVALID,
        normalized=validation.normalized,
        errors=validation.errors,
    )


def _normalize(definition: TargetFieldDefinition, value: str) -> FieldValue | str:
    """Return the typed value, or the error message when ``value`` is rejected."""

    match definition.kind:
        case FieldKind.CHOICE:
            canonical = definition.canonical_choice(value)
            if canonical is None:
                allowed = ", ".join(definition.allowed_values)
                return f"{definition.label} must be one of: {allowed}."
            return ChoiceValue(canonical)
        case FieldKind.NUMBER:
            number = _parse_number(value)
            if number is None or number < 0:
                return f"{definition.label} must be a non-negative number."
            return NumberValue(number)
        case FieldKind.TEXT:
            if definition.max_length is not None and len(value) > definition.max_length:
                return (
                    f"{definition.label} exceeds maximum length of "
                    f"{definition.max_length} characters."
                )
            if _has_invalid_chars(definition.key, value):
                return f"{definition.label} contains invalid characters."
            return TextValue(value)


def _has_invalid_chars(key: str, value: str) -> bool:
    if key in SAFE_TEXT_FIELDS:
        return bool(CONTROL_CHARS.search(value) or INVALID_NAME_CHARS.search(value))
    return TEXT_CONTROL_CHARS.search(value) is not None


def _parse_number(value: str) -> float | None:
    if "_" in value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _preview(value: str) -> str:
    if len(value) <= ERROR_VALUE_PREVIEW:
        return value
    return f"{value[:ERROR_VALUE_PREVIEW]}…"


def _error(row_index: int, field: str, value: str, message: str) -> ErrorReportEntry:
    return ErrorReportEntry(row=row_index, field=field, value=value, message=message)
