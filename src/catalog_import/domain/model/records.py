"""Row-level types flowing between pipeline stages."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal

from .enums import FieldKind, RecordStatus

if TYPE_CHECKING:
    from collections.abc import Iterator

type RawRow = Mapping[str, str]
"""Original CSV header -> raw string value for one data line."""

type MappedFields = Mapping[str, str]
"""Target field key -> raw string value after applying column mappings."""


@dataclass(frozen=True, slots=True, kw_only=True)
class ColumnMapping:
    """Links one CSV header to a target field; an empty target means ignored."""

    csv_header: str
    target_field: str = ""
    required: bool = False

    @property
    def is_ignored(self) -> bool:
        return not self.target_field


@dataclass(frozen=True, slots=True)
class TextValue:
    value: str
    kind: Literal[FieldKind.TEXT] = FieldKind.TEXT


@dataclass(frozen=True, slots=True)
class ChoiceValue:
    value: str
    kind: Literal[FieldKind.CHOICE] = FieldKind.CHOICE


@dataclass(frozen=True, slots=True)
class NumberValue:
    value: float
    kind: Literal[FieldKind.NUMBER] = FieldKind.NUMBER


type FieldValue = TextValue | ChoiceValue | NumberValue
type AttributeValue = str | float


def format_number(value: float) -> str:
    """Render a number without a trailing ``.0`` for whole values."""

    return str(int(value)) if value.is_integer() else repr(value)


class NormalizedRecord(Mapping[str, FieldValue]):
    """Read-only, typed view of a validated record keyed by target field."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, FieldValue] | None = None) -> None:
        self._values: Mapping[str, FieldValue] = MappingProxyType(dict(values or {}))

    def __getitem__(self, key: str) -> FieldValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NormalizedRecord):
            return dict(self._values) == dict(other._values)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._values.items(), key=lambda item: item[0])))

    def __repr__(self) -> str:
        return f"NormalizedRecord({dict(self._values)!r})"

    def text(self, key: str) -> str | None:
        """Return the plain string form of ``key`` or None when absent."""

        value = self._values.get(key)
        if value is None:
            return None
        if isinstance(value, NumberValue):
            return format_number(value.value)
        return value.value

    def as_attributes(self) -> dict[str, AttributeValue]:
        """Return an attribute bag suitable for the repository write interface."""

        return {key: value.value for key, value in self._values.items()}


@dataclass(frozen=True, slots=True, kw_only=True)
class ErrorReportEntry:
    """One problem tied to a row and field, rendered in error exports."""

    row: int
    field: str
    value: str
    message: str


@dataclass(frozen=True, slots=True, kw_only=True)
class MappedRow:
    """A raw row with its values projected onto target field keys."""

    row_index: int
    raw: RawRow
    mapped: MappedFields


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportRecord:
    """A validated row; consumed read-only by duplicate detection and execution."""

    row_index: int
    raw: RawRow
    mapped: MappedFields
    status: RecordStatus
    normalized: NormalizedRecord = field(default_factory=NormalizedRecord)
    errors: tuple[ErrorReportEntry, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.status is RecordStatus.VALID
