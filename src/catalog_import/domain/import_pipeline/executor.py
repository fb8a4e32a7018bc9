"""Sequential batch execution against the repository write interface.

Rows are written one at a time in row order. A failed write is recorded for
that row and the loop moves on; there is no batch-wide rollback.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from catalog_import.domain.errors import BackendUnavailableError, UnknownBatchError
from catalog_import.domain.model import (
    BatchStatus,
    BatchUpdate,
    ErrorReportEntry,
    ImportProgress,
    PlanAction,
)
from catalog_import.domain.ports import RejectedWrite, WrittenElement

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from catalog_import.domain.model import ImportBatch
    from catalog_import.domain.ports import ElementWriter

    from .history import ImportHistory
    from .plan import ExecutionPlan, PlannedRow

log = getLogger(__name__)

DEFAULT_WRITE_ATTEMPTS: Final[int] = 3
DEFAULT_RETRY_BACKOFF_SECONDS: Final[float] = 0.5
DEFAULT_PROGRESS_INTERVAL: Final[int] = 200

type ProgressCallback = Callable[[ImportProgress], None]


class RowOutcomeKind(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True, kw_only=True)
class RowOutcome:
    row_index: int
    kind: RowOutcomeKind
    element_id: str | None = None
    error: ErrorReportEntry | None = None


class DuplicateOutcomeError(RuntimeError):
    """Raised when a row outcome is recorded twice."""


@dataclass(slots=True)
class ExecutionLedger:
    """Per-row outcomes in execution order; each row is recorded exactly once."""

    outcomes: dict[int, RowOutcome] = field(default_factory=dict)

    def record(self, outcome: RowOutcome) -> None:
        if outcome.row_index in self.outcomes:
            raise DuplicateOutcomeError(f"Row {outcome.row_index} already has an outcome")
        self.outcomes[outcome.row_index] = outcome

    def count(self, kind: RowOutcomeKind) -> int:
        return sum(1 for outcome in self.outcomes.values() if outcome.kind is kind)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def error_report(self) -> tuple[ErrorReportEntry, ...]:
        return tuple(
            outcome.error for outcome in self.outcomes.values() if outcome.error is not None
        )

    def as_update(
        self,
        *,
        status: BatchStatus | None = None,
        completed_at: datetime | None = None,
        failure_reason: str | None = None,
        include_report: bool = False,
    ) -> BatchUpdate:
        return BatchUpdate(
            status=status,
            success_count=self.count(RowOutcomeKind.SUCCEEDED),
            failure_count=self.count(RowOutcomeKind.FAILED),
            skipped_count=self.count(RowOutcomeKind.SKIPPED),
            completed_at=completed_at,
            error_report=self.error_report if include_report else None,
            failure_reason=failure_reason,
        )


@dataclass(slots=True, kw_only=True)
class BatchExecutor:
    history: ImportHistory
    writer: ElementWriter
    write_attempts: int = DEFAULT_WRITE_ATTEMPTS
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    on_progress: ProgressCallback | None = None
    sleep: Callable[[float], None] = time.sleep

    def __post_init__(self) -> None:
        if self.write_attempts < 1:
            raise ValueError("write_attempts must be at least 1")
        if self.progress_interval < 1:
            raise ValueError("progress_interval must be at least 1")

    def execute(self, batch_id: str, plan: ExecutionPlan) -> ImportBatch:
        """Run ``plan`` for a PENDING batch and return the terminal batch.

        Raises ``BatchConflictError`` when the batch already left PENDING, so a
        batch is never executed twice.
        """

        batch = self.history.require_batch(batch_id)
        if batch.total_records != plan.total:
            raise ValueError(
                f"Batch {batch_id} expects {batch.total_records} rows, plan has {plan.total}"
            )
        self.history.begin(batch_id)
        log.info("Executing batch %s: %s", batch_id, _describe(plan))

        ledger = ExecutionLedger()
        try:
            for row in sorted(plan.rows, key=lambda planned: planned.row_index):
                ledger.record(self._apply(plan, row))
                if ledger.processed % self.progress_interval == 0:
                    self._checkpoint(batch_id, ledger, plan.total)
        except BackendUnavailableError as exc:
            log.error(
                "Batch %s aborted after %d of %d rows: %s",
                batch_id,
                ledger.processed,
                plan.total,
                exc,
            )
            return self._finish(batch_id, ledger, plan.total, failure_reason=str(exc))
        except Exception as exc:
            log.exception("Batch %s aborted by an unexpected error", batch_id)
            self._finish(batch_id, ledger, plan.total, failure_reason=f"Unexpected error: {exc}")
            raise

        finished = self._finish(batch_id, ledger, plan.total)
        log.info(
            "Batch %s completed: %d succeeded, %d failed, %d skipped",
            batch_id,
            finished.success_count,
            finished.failure_count,
            finished.skipped_count,
        )
        return finished

    def _apply(self, plan: ExecutionPlan, row: PlannedRow) -> RowOutcome:
        if row.action is PlanAction.SKIP:
            return RowOutcome(row_index=row.row_index, kind=RowOutcomeKind.SKIPPED)

        element_id = row.element_id if row.action is PlanAction.UPDATE else None
        attempt = 1
        while True:
            try:
                result = self.writer.upsert(plan.element_type, element_id, row.attributes)
            except BackendUnavailableError:
                if attempt >= self.write_attempts:
                    raise
                log.warning(
                    "Row %d: backend unavailable (attempt %d/%d), retrying",
                    row.row_index,
                    attempt,
                    self.write_attempts,
                )
                self.sleep(self.retry_backoff_seconds * attempt)
                attempt += 1
                continue
            except Exception as exc:  # noqa: BLE001
                log.warning("Row %d: write raised %s", row.row_index, exc)
                return _failed(row, f"Exception: {exc}")
            break

        match result:
            case WrittenElement(id=written_id):
                return RowOutcome(
                    row_index=row.row_index,
                    kind=RowOutcomeKind.SUCCEEDED,
                    element_id=written_id,
                )
            case RejectedWrite(message=message):
                log.warning("Row %d: write rejected: %s", row.row_index, message)
                if row.action is PlanAction.UPDATE:
                    return _failed(
                        row, f"Update failed for existing element {element_id}: {message}"
                    )
                return _failed(row, f"Insert failed: {message}")
            case _:
                return _failed(row, f"Unexpected write result: {result!r}")

    def _checkpoint(self, batch_id: str, ledger: ExecutionLedger, total: int) -> None:
        self.history.update_batch(batch_id, ledger.as_update())
        self._notify(batch_id, ledger, total, BatchStatus.IN_PROGRESS)

    def _finish(
        self,
        batch_id: str,
        ledger: ExecutionLedger,
        total: int,
        *,
        failure_reason: str | None = None,
    ) -> ImportBatch:
        status = BatchStatus.FAILED if failure_reason is not None else BatchStatus.COMPLETED
        finished = self.history.update_batch(
            batch_id,
            ledger.as_update(
                status=status,
                completed_at=self.history.clock(),
                include_report=True,
                failure_reason=failure_reason,
            ),
        )
        if finished is None:
            raise UnknownBatchError(
                f"Batch {batch_id} disappeared during execution", batch_id=batch_id
            )
        self._notify(batch_id, ledger, total, status)
        return finished

    def _notify(
        self, batch_id: str, ledger: ExecutionLedger, total: int, status: BatchStatus
    ) -> None:
        if self.on_progress is None:
            return
        progress = ImportProgress(
            batch_id=batch_id, processed=ledger.processed, total=total, status=status
        )
        self.on_progress(progress)


def _failed(row: PlannedRow, message: str) -> RowOutcome:
    return RowOutcome(
        row_index=row.row_index,
        kind=RowOutcomeKind.FAILED,
        error=ErrorReportEntry(row=row.row_index, field="", value=row.name, message=message),
    )


def _describe(plan: ExecutionPlan) -> str:
    summary = plan.summary()
    return ", ".join(f"{summary[action]} {action}" for action in PlanAction)
