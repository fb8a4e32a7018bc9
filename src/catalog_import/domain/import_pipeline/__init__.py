"""Import pipeline stages: parse, map, validate, detect duplicates, plan and execute."""

from __future__ import annotations

from .duplicates import (
    DuplicateMatch,
    DuplicateReport,
    DuplicateResolution,
    DuplicateWarning,
    detect_duplicates,
    find_match,
)
from .executor import BatchExecutor, ExecutionLedger, RowOutcome, RowOutcomeKind
from .export import export_error_report
from .history import DEFAULT_PAGE_SIZE, ImportHistory, page_window
from .mapping import (
    FIELD_ALIASES,
    MappingCheck,
    apply_mappings,
    auto_detect_mappings,
    map_rows,
    normalize_header,
    override_mapping,
    require_valid_mappings,
    validate_mappings,
)
from .parsing import (
    DEFAULT_CHUNK_SIZE,
    ParseResult,
    RowBatch,
    RowBatches,
    decode_upload,
    iter_csv_batches,
    parse_csv,
)
from .plan import ExecutionPlan, PlannedRow, build_execution_plan, create_attributes
from .validation import (
    RecordValidation,
    ValidationResult,
    validate_batch,
    validate_record,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_PAGE_SIZE",
    "FIELD_ALIASES",
    "BatchExecutor",
    "DuplicateMatch",
    "DuplicateReport",
    "DuplicateResolution",
    "DuplicateWarning",
    "ExecutionLedger",
    "ExecutionPlan",
    "ImportHistory",
    "MappingCheck",
    "ParseResult",
    "PlannedRow",
    "RecordValidation",
    "RowBatch",
    "RowBatches",
    "RowOutcome",
    "RowOutcomeKind",
    "ValidationResult",
    "apply_mappings",
    "auto_detect_mappings",
    "build_execution_plan",
    "create_attributes",
    "decode_upload",
    "detect_duplicates",
    "export_error_report",
    "find_match",
    "iter_csv_batches",
    "map_rows",
    "normalize_header",
    "override_mapping",
    "page_window",
    "parse_csv",
    "require_valid_mappings",
    "validate_batch",
    "validate_mappings",
    "validate_record",
]
