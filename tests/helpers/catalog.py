"""Builders and fakes shared by the import pipeline tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from itertools import count
from typing import TYPE_CHECKING

from catalog_import.domain.errors import BackendUnavailableError
from catalog_import.domain.import_pipeline import validate_batch
from catalog_import.domain.model import MappedRow
from catalog_import.domain.ports import RejectedWrite, WrittenElement

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from catalog_import.domain.model import AttributeValue, ElementType, ImportRecord
    from catalog_import.domain.ports import WriteResult


@dataclass
class TickingClock:
    """Deterministic clock advancing one second per call."""

    start: datetime = field(default_factory=lambda: datetime(2025, 3, 1, 9, 0, tzinfo=UTC))
    calls: int = 0

    def __call__(self) -> datetime:
        current = self.start + timedelta(seconds=self.calls)
        self.calls += 1
        return current


def mapped_rows(*rows: Mapping[str, str], first_row_index: int = 1) -> list[MappedRow]:
    return [
        MappedRow(row_index=index, raw=dict(row), mapped=dict(row))
        for index, row in enumerate(rows, start=first_row_index)
    ]


def valid_records(*rows: Mapping[str, str]) -> tuple[ImportRecord, ...]:
    result = validate_batch(mapped_rows(*rows))
    assert not result.invalid_records, result.errors
    return result.valid_records


def sequential_codes(prefix: str = "APP-TEST") -> Callable[[], str]:
    numbers = count(1)
    return lambda: f"{prefix}{next(numbers):04d}"


@dataclass
class ScriptedWriter:
    """Writer returning queued outcomes per call; unscripted calls succeed."""

    script: dict[int, WriteResult | Exception] = field(default_factory=dict)
    calls: list[tuple[ElementType, str | None, dict[str, AttributeValue]]] = field(
        default_factory=list
    )

    def upsert(
        self,
        element_type: ElementType,
        element_id: str | None,
        attributes: Mapping[str, AttributeValue],
    ) -> WriteResult:
        self.calls.append((element_type, element_id, dict(attributes)))
        outcome = self.script.get(len(self.calls))
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is not None:
            return outcome
        return WrittenElement(element_id or f"new-{len(self.calls)}")


def rejected(message: str) -> RejectedWrite:
    return RejectedWrite(message)


def unavailable(message: str = "backend down") -> BackendUnavailableError:
    return BackendUnavailableError(message)
