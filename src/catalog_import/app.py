"""Application orchestration entry points."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final, Literal

from catalog_import.adapters.graph_backend import HttpCatalogBackend
from catalog_import.adapters.sqlalchemy import (
    SqlAlchemyBatchStore,
    SqlAlchemyCatalog,
    is_started,
    startup,
)
from catalog_import.config import get_graph_backend_config, get_pipeline_config
from catalog_import.domain.errors import UnknownDuplicateRowError
from catalog_import.domain.import_pipeline import (
    BatchExecutor,
    DuplicateReport,
    DuplicateResolution,
    ImportHistory,
    ValidationResult,
    auto_detect_mappings,
    build_execution_plan,
    decode_upload,
    detect_duplicates,
    export_error_report,
    iter_csv_batches,
    map_rows,
    override_mapping,
    parse_csv,
    require_valid_mappings,
    validate_batch,
    validate_mappings,
)
from catalog_import.domain.import_pipeline.plan import generate_application_code
from catalog_import.domain.model import APPLICATION_CATALOG, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence
    from datetime import datetime
    from types import TracebackType

    from catalog_import.config import PipelineConfig
    from catalog_import.domain.import_pipeline import (
        DuplicateMatch,
        DuplicateWarning,
        ExecutionPlan,
        MappingCheck,
        ParseResult,
        RowBatch,
    )
    from catalog_import.domain.model import (
        BatchPage,
        ColumnMapping,
        DuplicateStrategy,
        ErrorReportEntry,
        FieldCatalog,
        ImportBatch,
        ImportProgress,
        ImportRecord,
        RawRow,
        TargetFieldDefinition,
    )
    from catalog_import.domain.ports import BatchStore, CatalogBackend, CatalogElement

log = getLogger(__name__)

MAX_LISTED_ITEMS: Final[int] = 50

type BackendKind = Literal["sqlite", "http"]


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationOutcome:
    """Validation response: capped listings plus the full results for later stages."""

    mapping: MappingCheck
    total_records: int = 0
    valid_count: int = 0
    invalid_count: int = 0
    errors: tuple[ErrorReportEntry, ...] = ()
    duplicates: tuple[DuplicateMatch, ...] = ()
    duplicate_count: int = 0
    warnings: tuple[DuplicateWarning, ...] = ()
    result: ValidationResult | None = None
    report: DuplicateReport | None = None

    @property
    def valid_records(self) -> tuple[ImportRecord, ...]:
        return self.result.valid_records if self.result is not None else ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportRun:
    headers: tuple[str, ...]
    mappings: tuple[ColumnMapping, ...]
    validation: ValidationOutcome
    resolution: DuplicateResolution
    plan: ExecutionPlan
    batch: ImportBatch


class CatalogImportService:
    """One call per wizard step; only ``execute`` changes batch state."""

    def __init__(
        self,
        *,
        backend: CatalogBackend,
        store: BatchStore,
        config: PipelineConfig | None = None,
        catalog: FieldCatalog = APPLICATION_CATALOG,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        code_factory: Callable[[], str] = generate_application_code,
        on_progress: Callable[[ImportProgress], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or get_pipeline_config()
        self.catalog = catalog
        self.history = ImportHistory(store, clock=clock)
        self.id_factory = id_factory
        self.code_factory = code_factory
        self.on_progress = on_progress
        self.sleep = sleep
        self._on_close = on_close

    def __enter__(self) -> CatalogImportService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        if self._on_close is not None:
            self._on_close()

    def parse(self, content: str | bytes) -> ParseResult:
        text = decode_upload(content) if isinstance(content, bytes) else content
        return parse_csv(text)

    def target_fields(self) -> tuple[TargetFieldDefinition, ...]:
        return tuple(self.catalog)

    def suggest_mappings(
        self,
        headers: Sequence[str],
        overrides: Mapping[str, str] | None = None,
    ) -> list[ColumnMapping]:
        mappings = auto_detect_mappings(headers, catalog=self.catalog)
        for csv_header, target_field in (overrides or {}).items():
            mappings = override_mapping(mappings, csv_header, target_field, catalog=self.catalog)
        return mappings

    def check_mappings(self, mappings: Sequence[ColumnMapping]) -> MappingCheck:
        return validate_mappings(mappings, catalog=self.catalog)

    def validate(
        self,
        source: str | Sequence[RawRow],
        mappings: Sequence[ColumnMapping],
    ) -> ValidationOutcome:
        """Map, validate and check duplicates for ``source``.

        ``source`` is either raw document text, which is read in chunks, or
        already parsed rows. Mapping problems short-circuit before any row work.
        """

        check = self.check_mappings(mappings)
        if not check.valid:
            return ValidationOutcome(mapping=check)

        if isinstance(source, str):
            chunks = iter_csv_batches(source, chunk_size=self.config.chunk_size)
            result = self._validate_chunks(chunks, mappings)
        else:
            result = validate_batch(map_rows(source, mappings), catalog=self.catalog)
        return self._screen(check, result)

    def _screen(self, check: MappingCheck, result: ValidationResult) -> ValidationOutcome:
        report = detect_duplicates(
            result.valid_records,
            self.backend,
            element_type=self.catalog.element_type,
            max_workers=self.config.lookup_workers,
        )
        return ValidationOutcome(
            mapping=check,
            total_records=result.total_processed,
            valid_count=len(result.valid_records),
            invalid_count=len(result.invalid_records),
            errors=result.errors[:MAX_LISTED_ITEMS],
            duplicates=report.matches[:MAX_LISTED_ITEMS],
            duplicate_count=len(report.matches),
            warnings=report.warnings,
            result=result,
            report=report,
        )

    def resolve_duplicates(
        self,
        report: DuplicateReport,
        overrides: Mapping[int, DuplicateStrategy] | None = None,
    ) -> DuplicateResolution:
        resolution = report.resolution()
        unknown = resolution.assign_many(overrides or {})
        if unknown:
            raise UnknownDuplicateRowError(unknown[0])
        return resolution

    def plan(
        self,
        records: Sequence[ImportRecord],
        resolution: DuplicateResolution | None = None,
    ) -> ExecutionPlan:
        return build_execution_plan(
            records, resolution, catalog=self.catalog, code_factory=self.code_factory
        )

    def start_import(self, *, file_name: str, user_id: str, plan: ExecutionPlan) -> ImportBatch:
        return self.history.create_batch(
            batch_id=self.id_factory(),
            file_name=file_name,
            user_id=user_id,
            total_records=plan.total,
        )

    def execute(self, batch_id: str, plan: ExecutionPlan) -> ImportBatch:
        executor = BatchExecutor(
            history=self.history,
            writer=self.backend,
            write_attempts=self.config.write_attempts,
            progress_interval=self.config.progress_interval,
            on_progress=self.on_progress,
            sleep=self.sleep,
        )
        return executor.execute(batch_id, plan)

    def get_batch(self, batch_id: str) -> ImportBatch | None:
        return self.history.get_batch(batch_id)

    def get_history(self, page: int = 1, page_size: int | None = None) -> BatchPage:
        return self.history.get_batches_paginated(page, page_size or self.config.page_size)

    def get_element(self, element_id: str) -> CatalogElement | None:
        return self.backend.get_element(element_id)

    def export_errors(self, batch_id: str) -> str:
        batch = self.history.require_batch(batch_id)
        return export_error_report(batch.error_report)

    def run_import(
        self,
        content: str | bytes,
        *,
        file_name: str,
        user_id: str,
        mapping_overrides: Mapping[str, str] | None = None,
        strategies: Mapping[int, DuplicateStrategy] | None = None,
    ) -> ImportRun:
        """Run every stage for one document and execute the resulting batch."""

        text = decode_upload(content) if isinstance(content, bytes) else content
        chunks = iter_csv_batches(text, chunk_size=self.config.chunk_size)
        mappings = self.suggest_mappings(chunks.headers, mapping_overrides)
        check = require_valid_mappings(mappings, catalog=self.catalog)

        validation = self._screen(check, self._validate_chunks(chunks, mappings))
        if validation.report is None:
            raise RuntimeError("Duplicate report missing after successful mapping check")
        resolution = self.resolve_duplicates(validation.report, strategies)
        plan = self.plan(validation.valid_records, resolution)
        batch = self.start_import(file_name=file_name, user_id=user_id, plan=plan)
        log.info(
            "Starting import of %s: %d valid, %d invalid, %d duplicates",
            file_name,
            validation.valid_count,
            validation.invalid_count,
            validation.duplicate_count,
        )
        finished = self.execute(batch.id, plan)
        return ImportRun(
            headers=chunks.headers,
            mappings=tuple(mappings),
            validation=validation,
            resolution=resolution,
            plan=plan,
            batch=finished,
        )

    def _validate_chunks(
        self, chunks: Iterable[RowBatch], mappings: Sequence[ColumnMapping]
    ) -> ValidationResult:
        valid: list[ImportRecord] = []
        invalid: list[ImportRecord] = []
        total = 0
        for chunk in chunks:
            rows = map_rows(chunk.rows, mappings, first_row_index=chunk.first_row_index)
            result = validate_batch(rows, catalog=self.catalog)
            valid.extend(result.valid_records)
            invalid.extend(result.invalid_records)
            total += result.total_processed
        return ValidationResult(
            valid_records=tuple(valid), invalid_records=tuple(invalid), total_processed=total
        )


def build_import_service(
    *,
    backend: BackendKind = "sqlite",
    config: PipelineConfig | None = None,
    on_progress: Callable[[ImportProgress], None] | None = None,
) -> CatalogImportService:
    """Wire the service to the configured database and catalog backend."""

    if not is_started():
        startup()
    store = SqlAlchemyBatchStore()
    if backend == "http":
        http_backend = HttpCatalogBackend(get_graph_backend_config())
        log.info("Using graph backend at %s", http_backend.config.base_url)
        return CatalogImportService(
            backend=http_backend,
            store=store,
            config=config,
            on_progress=on_progress,
            on_close=http_backend.close,
        )
    return CatalogImportService(
        backend=SqlAlchemyCatalog(), store=store, config=config, on_progress=on_progress
    )
