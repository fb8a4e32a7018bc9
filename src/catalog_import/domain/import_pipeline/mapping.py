"""Header to target-field mapping: alias suggestions, overrides and application."""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalog_import.domain.errors import MappingError
from catalog_import.domain.model import APPLICATION_CATALOG, ColumnMapping, MappedRow

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from catalog_import.domain.model import FieldCatalog, MappedFields, RawRow

log = getLogger(__name__)

_SEPARATOR_RUN = re.compile(r"[_-]+")
_WHITESPACE_RUN = re.compile(r"\s+")

FIELD_ALIASES: Final[Mapping[str, tuple[str, ...]]] = {
    "name": ("name", "application name", "app name", "title", "application"),
    "description": ("description", "desc", "details"),
    "applicationCode": ("application code", "app code", "code", "app id", "applicationcode"),
    "applicationType": ("type", "application type", "app type", "applicationtype"),
    "lifecycleStatus": ("lifecycle", "lifecycle status", "lifecyclestatus", "status"),
    "ownerName": ("owner", "owner name", "ownername"),
    "ownerRole": ("owner role", "ownerrole", "role"),
    "owningUnit": ("owning unit", "owningunit", "department", "unit"),
    "businessCriticality": ("criticality", "business criticality", "businesscriticality"),
    "deploymentModel": ("deployment model", "deploymentmodel", "deployment"),
    "vendorName": ("vendor", "vendor name", "vendorname"),
    "annualRunCost": ("cost", "annual run cost", "annualruncost", "annual cost"),
    "availabilityTarget": ("availability", "availability target", "availabilitytarget"),
    "vendorLockInRisk": ("vendor lock-in risk", "vendorlockinrisk", "lock-in risk"),
    "technicalDebtLevel": (
        "technical debt",
        "technicaldebtlevel",
        "tech debt",
        "technical debt level",
    ),
}


def normalize_header(header: str) -> str:
    """Trim, lowercase and turn runs of ``_``/``-`` into single spaces."""

    collapsed = _SEPARATOR_RUN.sub(" ", header.strip().lower())
    return _WHITESPACE_RUN.sub(" ", collapsed).strip()


def build_alias_index(
    aliases: Mapping[str, Iterable[str]] = FIELD_ALIASES,
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
) -> dict[str, str]:
    """Return normalized alias -> target field key.

    Every catalog key and label is an implicit alias. The first field to claim
    an alias keeps it.
    """

    index: dict[str, str] = {}
    for definition in catalog:
        for alias in (*aliases.get(definition.key, ()), definition.key, definition.label):
            index.setdefault(normalize_header(alias), definition.key)
    return index


_DEFAULT_INDEX: Final[dict[str, str]] = build_alias_index()


def auto_detect_mappings(
    headers: Sequence[str],
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
    alias_index: Mapping[str, str] | None = None,
) -> list[ColumnMapping]:
    """Suggest one mapping per header; a field already claimed leaves later headers ignored."""

    index = _DEFAULT_INDEX if alias_index is None else alias_index
    claimed: set[str] = set()
    mappings: list[ColumnMapping] = []
    for header in headers:
        target = index.get(normalize_header(header), "")
        if target and (target in claimed or target not in catalog):
            log.debug("Header %r also aliases %r; leaving it unmapped", header, target)
            target = ""
        if target:
            claimed.add(target)
        mappings.append(_mapping_for(header, target, catalog))
    return mappings


def override_mapping(
    mappings: Sequence[ColumnMapping],
    csv_header: str,
    target_field: str,
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
) -> list[ColumnMapping]:
    """Return a copy of ``mappings`` with ``csv_header`` pointed at ``target_field``.

    An empty ``target_field`` ignores the header. If another header already
    feeds ``target_field`` it is switched to ignored, so each field keeps at
    most one source column.
    """

    if target_field and target_field not in catalog:
        raise MappingError(f"Unknown target field: {target_field!r}")
    if not any(mapping.csv_header == csv_header for mapping in mappings):
        raise MappingError(f"Unknown CSV header: {csv_header!r}")

    updated: list[ColumnMapping] = []
    for mapping in mappings:
        if mapping.csv_header == csv_header:
            updated.append(_mapping_for(csv_header, target_field, catalog))
        elif target_field and mapping.target_field == target_field:
            updated.append(ColumnMapping(csv_header=mapping.csv_header))
        else:
            updated.append(mapping)
    return updated


@dataclass(frozen=True, slots=True, kw_only=True)
class MappingCheck:
    valid: bool
    missing_required: tuple[str, ...] = ()
    duplicate_targets: tuple[str, ...] = ()
    unknown_targets: tuple[str, ...] = ()


def validate_mappings(
    mappings: Sequence[ColumnMapping],
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
) -> MappingCheck:
    mapped: set[str] = set()
    duplicates: list[str] = []
    unknown: list[str] = []
    for mapping in mappings:
        target = mapping.target_field
        if not target:
            continue
        if target not in catalog:
            unknown.append(target)
        elif target in mapped and target not in duplicates:
            duplicates.append(target)
        mapped.add(target)

    missing = tuple(key for key in catalog.required_keys if key not in mapped)
    return MappingCheck(
        valid=not (missing or duplicates or unknown),
        missing_required=missing,
        duplicate_targets=tuple(duplicates),
        unknown_targets=tuple(unknown),
    )


def require_valid_mappings(
    mappings: Sequence[ColumnMapping],
    *,
    catalog: FieldCatalog = APPLICATION_CATALOG,
) -> MappingCheck:
    check = validate_mappings(mappings, catalog=catalog)
    if check.valid:
        return check
    problems: list[str] = []
    if check.missing_required:
        labels = ", ".join(catalog.label_for(key) for key in check.missing_required)
        problems.append(f"Required fields are not mapped: {labels}")
    if check.duplicate_targets:
        problems.append(f"Fields mapped more than once: {', '.join(check.duplicate_targets)}")
    if check.unknown_targets:
        problems.append(f"Unknown target fields: {', '.join(check.unknown_targets)}")
    raise MappingError("; ".join(problems), missing=check.missing_required)


def apply_mappings(row: RawRow, mappings: Sequence[ColumnMapping]) -> MappedFields:
    """Project ``row`` onto target field keys; absent headers read as empty strings."""

    return {
        mapping.target_field: row.get(mapping.csv_header, "")
        for mapping in mappings
        if mapping.target_field
    }


def map_rows(
    rows: Iterable[RawRow],
    mappings: Sequence[ColumnMapping],
    *,
    first_row_index: int = 1,
) -> list[MappedRow]:
    """Apply ``mappings`` to every row, numbering rows from ``first_row_index``."""

    return [
        MappedRow(row_index=row_index, raw=row, mapped=apply_mappings(row, mappings))
        for row_index, row in enumerate(rows, start=first_row_index)
    ]


def _mapping_for(header: str, target: str, catalog: FieldCatalog) -> ColumnMapping:
    definition = catalog.get(target) if target else None
    return ColumnMapping(
        csv_header=header,
        target_field=target,
        required=definition.required if definition is not None else False,
    )
