"""Duplicate detection against existing elements and per-row strategy resolution."""

from __future__ import annotations

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalog_import.domain.errors import UnknownDuplicateRowError
from catalog_import.domain.model import DuplicateStrategy, ElementType, MatchedBy

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping, Sequence

    from catalog_import.domain.model import ImportRecord
    from catalog_import.domain.ports import ElementReader

log = getLogger(__name__)

DEFAULT_LOOKUP_WORKERS: Final[int] = 4

# Lookup order: the first key that resolves wins.
KEY_FIELDS: Final[tuple[MatchedBy, ...]] = (MatchedBy.APPLICATION_CODE, MatchedBy.NAME)


@dataclass(frozen=True, slots=True, kw_only=True)
class DuplicateMatch:
    row_index: int
    existing_element_id: str
    existing_element_name: str
    matched_by: MatchedBy
    strategy: DuplicateStrategy = DuplicateStrategy.UPDATE_EXISTING


@dataclass(frozen=True, slots=True, kw_only=True)
class DuplicateWarning:
    """Non-fatal finding about rows that collide with each other."""

    message: str
    row_indices: tuple[int, ...]
    existing_element_id: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class DuplicateReport:
    matches: tuple[DuplicateMatch, ...]
    warnings: tuple[DuplicateWarning, ...] = ()
    checked: int = 0

    @property
    def matched_rows(self) -> frozenset[int]:
        return frozenset(match.row_index for match in self.matches)

    def resolution(self) -> DuplicateResolution:
        return DuplicateResolution(self.matches)


def detect_duplicates(
    records: Sequence[ImportRecord],
    reader: ElementReader,
    *,
    element_type: ElementType = ElementType.APPLICATION,
    max_workers: int = DEFAULT_LOOKUP_WORKERS,
) -> DuplicateReport:
    """Look up every valid record against the read backend.

    Lookups may run concurrently but are all joined before this returns, and
    the matches are ordered by row index. ``BackendUnavailableError`` raised by
    the reader propagates to the caller.
    """

    candidates = sorted(
        (record for record in records if record.is_valid), key=lambda record: record.row_index
    )

    def lookup(record: ImportRecord) -> DuplicateMatch | None:
        return find_match(record, reader, element_type=element_type)

    if max_workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dup-lookup") as pool:
            results = list(pool.map(lookup, candidates))
    else:
        results = [lookup(record) for record in candidates]

    matches = tuple(match for match in results if match is not None)
    unmatched = [
        record for record, match in zip(candidates, results, strict=True) if match is None
    ]
    warnings = (*_shared_target_warnings(matches), *_intra_file_warnings(unmatched))
    for warning in warnings:
        log.warning(warning.message)
    log.info("Checked %d records for duplicates: %d matched", len(candidates), len(matches))
    return DuplicateReport(matches=matches, warnings=warnings, checked=len(candidates))


def find_match(
    record: ImportRecord,
    reader: ElementReader,
    *,
    element_type: ElementType = ElementType.APPLICATION,
) -> DuplicateMatch | None:
    for key_field in KEY_FIELDS:
        value = record.normalized.text(key_field)
        if not value:
            continue
        element_id = reader.find_by_key(element_type, key_field, value)
        log.debug("Row %d: %s=%r -> %s", record.row_index, key_field, value, element_id)
        if element_id is None:
            continue
        existing = reader.get_element(element_id)
        return DuplicateMatch(
            row_index=record.row_index,
            existing_element_id=element_id,
            existing_element_name=existing.name if existing is not None else "",
            matched_by=key_field,
        )
    return None


class DuplicateResolution:
    """Operator decisions for the fixed set of matched rows.

    Every match carries a strategy from the moment it is created; ``assign``
    replaces it.
    """

    def __init__(self, matches: Iterable[DuplicateMatch]) -> None:
        ordered = sorted(matches, key=lambda match: match.row_index)
        self._matches: dict[int, DuplicateMatch] = {}
        for match in ordered:
            if match.row_index in self._matches:
                raise ValueError(f"Row {match.row_index} has more than one duplicate match")
            self._matches[match.row_index] = match

    def __iter__(self) -> Iterator[DuplicateMatch]:
        return iter(self._matches.values())

    def __len__(self) -> int:
        return len(self._matches)

    def __contains__(self, row_index: object) -> bool:
        return row_index in self._matches

    @property
    def matches(self) -> tuple[DuplicateMatch, ...]:
        return tuple(self._matches.values())

    def match_for(self, row_index: int) -> DuplicateMatch | None:
        return self._matches.get(row_index)

    def strategy_for(self, row_index: int) -> DuplicateStrategy | None:
        match = self._matches.get(row_index)
        return match.strategy if match is not None else None

    def assign(self, row_index: int, strategy: DuplicateStrategy) -> DuplicateMatch:
        match = self._matches.get(row_index)
        if match is None:
            raise UnknownDuplicateRowError(row_index)
        updated = replace(match, strategy=strategy)
        self._matches[row_index] = updated
        return updated

    def assign_many(self, overrides: Mapping[int, DuplicateStrategy]) -> tuple[int, ...]:
        """Apply every known override; return the row indices that had no match."""

        unknown: list[int] = []
        for row_index, strategy in sorted(overrides.items()):
            if row_index not in self._matches:
                unknown.append(row_index)
                continue
            self.assign(row_index, strategy)
        return tuple(unknown)

    def counts(self) -> dict[DuplicateStrategy, int]:
        counts = dict.fromkeys(DuplicateStrategy, 0)
        for match in self._matches.values():
            counts[match.strategy] += 1
        return counts


def _shared_target_warnings(matches: Iterable[DuplicateMatch]) -> list[DuplicateWarning]:
    by_element: dict[str, list[DuplicateMatch]] = defaultdict(list)
    for match in matches:
        by_element[match.existing_element_id].append(match)

    warnings: list[DuplicateWarning] = []
    for element_id, group in by_element.items():
        if len(group) < 2:
            continue
        rows = tuple(match.row_index for match in group)
        name = group[0].existing_element_name or element_id
        warnings.append(
            DuplicateWarning(
                message=(
                    f"Rows {_join(rows)} all match existing element {name!r}; "
                    "updates are applied in row order and the last write wins."
                ),
                row_indices=rows,
                existing_element_id=element_id,
            )
        )
    return warnings


def _intra_file_warnings(records: Sequence[ImportRecord]) -> list[DuplicateWarning]:
    warnings: list[DuplicateWarning] = []
    for key_field in KEY_FIELDS:
        groups: dict[str, list[int]] = defaultdict(list)
        for record in records:
            value = record.normalized.text(key_field)
            if value:
                groups[value.casefold()].append(record.row_index)
        for value, rows in groups.items():
            if len(rows) < 2:
                continue
            warnings.append(
                DuplicateWarning(
                    message=(
                        f"Rows {_join(rows)} share {key_field} {value!r}; "
                        "each row creates a separate element."
                    ),
                    row_indices=tuple(rows),
                )
            )
    return warnings


def _join(rows: Iterable[int]) -> str:
    return ", ".join(str(row) for row in rows)
