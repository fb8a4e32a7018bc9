"""Domain model for catalog imports."""

from __future__ import annotations

from .batch import BatchPage, BatchUpdate, ImportBatch, ImportProgress, utc_now
from .enums import (
    BatchStatus,
    DuplicateStrategy,
    ElementType,
    FieldKind,
    MatchedBy,
    PlanAction,
    RecordStatus,
)
from .fields import APPLICATION_CATALOG, FieldCatalog, TargetFieldDefinition
from .records import (
    AttributeValue,
    ChoiceValue,
    ColumnMapping,
    ErrorReportEntry,
    FieldValue,
    ImportRecord,
    MappedFields,
    MappedRow,
    NormalizedRecord,
    NumberValue,
    RawRow,
    TextValue,
    format_number,
)

__all__ = [
    "APPLICATION_CATALOG",
    "AttributeValue",
    "BatchPage",
    "BatchStatus",
    "BatchUpdate",
    "ChoiceValue",
    "ColumnMapping",
    "DuplicateStrategy",
    "ElementType",
    "ErrorReportEntry",
    "FieldCatalog",
    "FieldKind",
    "FieldValue",
    "ImportBatch",
    "ImportProgress",
    "ImportRecord",
    "MappedFields",
    "MappedRow",
    "MatchedBy",
    "NormalizedRecord",
    "NumberValue",
    "PlanAction",
    "RawRow",
    "RecordStatus",
    "TargetFieldDefinition",
    "TextValue",
    "format_number",
    "utc_now",
]
