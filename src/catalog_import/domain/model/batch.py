"""Import batch audit records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import BatchStatus
from .records import ErrorReportEntry


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True, kw_only=True)
class ImportBatch:
    """One execution of the pipeline against one uploaded file."""

    id: str
    file_name: str
    user_id: str
    total_records: int
    status: BatchStatus = BatchStatus.PENDING
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    created_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None
    error_report: list[ErrorReportEntry] = field(default_factory=list)
    failure_reason: str | None = None

    @property
    def processed_count(self) -> int:
        return self.success_count + self.failure_count + self.skipped_count

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchUpdate:
    """Partial update for the mutable fields of an :class:`ImportBatch`."""

    status: BatchStatus | None = None
    success_count: int | None = None
    failure_count: int | None = None
    skipped_count: int | None = None
    completed_at: datetime | None = None
    error_report: tuple[ErrorReportEntry, ...] | None = None
    failure_reason: str | None = None

    def apply_to(self, batch: ImportBatch) -> None:
        if self.status is not None:
            batch.status = self.status
        if self.success_count is not None:
            batch.success_count = self.success_count
        if self.failure_count is not None:
            batch.failure_count = self.failure_count
        if self.skipped_count is not None:
            batch.skipped_count = self.skipped_count
        if self.completed_at is not None:
            batch.completed_at = self.completed_at
        if self.error_report is not None:
            batch.error_report = list(self.error_report)
        if self.failure_reason is not None:
            batch.failure_reason = self.failure_reason


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchPage:
    items: tuple[ImportBatch, ...]
    total: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportProgress:
    batch_id: str
    processed: int
    total: int
    status: BatchStatus
