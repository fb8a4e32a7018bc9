from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from catalog_import.domain.errors import BatchConflictError, UnknownBatchError
from catalog_import.domain.import_pipeline import (
    BatchExecutor,
    DuplicateMatch,
    DuplicateResolution,
    build_execution_plan,
)
from catalog_import.domain.import_pipeline.executor import (
    DuplicateOutcomeError,
    ExecutionLedger,
    RowOutcome,
    RowOutcomeKind,
)
from catalog_import.domain.model import BatchStatus, DuplicateStrategy, MatchedBy
from tests.helpers.catalog import (
    ScriptedWriter,
    rejected,
    sequential_codes,
    unavailable,
    valid_records,
)

if TYPE_CHECKING:
    from catalog_import.domain.import_pipeline import ExecutionPlan, ImportHistory
    from catalog_import.domain.model import ImportProgress


def _plan(*names: str, resolution: DuplicateResolution | None = None) -> ExecutionPlan:
    records = valid_records(*({"name": name} for name in names))
    return build_execution_plan(records, resolution, code_factory=sequential_codes())


def _start(history: ImportHistory, plan: ExecutionPlan, batch_id: str = "batch-1") -> str:
    history.create_batch(
        batch_id=batch_id, file_name="apps.csv", user_id="user-1", total_records=plan.total
    )
    return batch_id


def _executor(history: ImportHistory, writer: ScriptedWriter, **kwargs: object) -> BatchExecutor:
    return BatchExecutor(
        history=history, writer=writer, sleep=lambda _: None, **kwargs  # type: ignore[arg-type]
    )


def test_failed_row_is_isolated(history: ImportHistory) -> None:
    plan = _plan("App1", "App2", "App3")
    writer = ScriptedWriter(script={2: rejected("name already taken")})
    batch_id = _start(history, plan)

    batch = _executor(history, writer).execute(batch_id, plan)

    assert batch.status is BatchStatus.COMPLETED
    assert (batch.success_count, batch.failure_count, batch.skipped_count) == (2, 1, 0)
    assert len(batch.error_report) == 1
    entry = batch.error_report[0]
    assert entry.row == 2
    assert entry.field == ""
    assert entry.value == "App2"
    assert entry.message == "Insert failed: name already taken"
    assert batch.completed_at is not None
    assert len(writer.calls) == 3


def test_second_execute_is_rejected_without_changing_counts(history: ImportHistory) -> None:
    plan = _plan("App1", "App2", "App3")
    writer = ScriptedWriter(script={2: rejected("boom")})
    batch_id = _start(history, plan)
    executor = _executor(history, writer)
    first = executor.execute(batch_id, plan)

    with pytest.raises(BatchConflictError) as excinfo:
        executor.execute(batch_id, plan)

    assert excinfo.value.status == BatchStatus.COMPLETED
    again = history.require_batch(batch_id)
    assert (again.success_count, again.failure_count) == (first.success_count, first.failure_count)
    assert again.error_report == first.error_report
    assert len(writer.calls) == 3


def test_skip_rows_are_counted_without_writes(history: ImportHistory) -> None:
    resolution = DuplicateResolution(
        [
            DuplicateMatch(
                row_index=1,
                existing_element_id="el-1",
                existing_element_name="App1",
                matched_by=MatchedBy.NAME,
                strategy=DuplicateStrategy.SKIP,
            ),
            DuplicateMatch(
                row_index=2,
                existing_element_id="el-2",
                existing_element_name="App2",
                matched_by=MatchedBy.NAME,
            ),
        ]
    )
    plan = _plan("App1", "App2", "App3", resolution=resolution)
    writer = ScriptedWriter()
    batch_id = _start(history, plan)

    batch = _executor(history, writer).execute(batch_id, plan)

    assert (batch.success_count, batch.failure_count, batch.skipped_count) == (2, 0, 1)
    assert [call[1] for call in writer.calls] == ["el-2", None]
    assert batch.processed_count == batch.total_records


def test_rejected_update_names_existing_element(history: ImportHistory) -> None:
    resolution = DuplicateResolution(
        [
            DuplicateMatch(
                row_index=1,
                existing_element_id="el-9",
                existing_element_name="App1",
                matched_by=MatchedBy.NAME,
            )
        ]
    )
    plan = _plan("App1", resolution=resolution)
    writer = ScriptedWriter(script={1: rejected("stale")})
    batch_id = _start(history, plan)

    batch = _executor(history, writer).execute(batch_id, plan)

    assert batch.error_report[0].message == "Update failed for existing element el-9: stale"


def test_unexpected_write_exception_fails_only_that_row(history: ImportHistory) -> None:
    plan = _plan("App1", "App2")
    writer = ScriptedWriter(script={1: RuntimeError("socket closed")})
    batch_id = _start(history, plan)

    batch = _executor(history, writer).execute(batch_id, plan)

    assert batch.status is BatchStatus.COMPLETED
    assert batch.error_report[0].message == "Exception: socket closed"
    assert batch.success_count == 1


def test_backend_unavailable_writes_are_retried(history: ImportHistory) -> None:
    plan = _plan("App1", "App2")
    writer = ScriptedWriter(script={1: unavailable(), 2: unavailable()})
    sleeps: list[float] = []
    batch_id = _start(history, plan)
    executor = BatchExecutor(
        history=history,
        writer=writer,
        write_attempts=3,
        retry_backoff_seconds=0.5,
        sleep=sleeps.append,
    )

    batch = executor.execute(batch_id, plan)

    assert batch.status is BatchStatus.COMPLETED
    assert batch.success_count == 2
    assert len(writer.calls) == 4
    assert sleeps == [0.5, 1.0]


def test_backend_unavailable_after_retries_fails_batch(history: ImportHistory) -> None:
    plan = _plan("App1", "App2", "App3")
    writer = ScriptedWriter(script={2: unavailable("gateway down"), 3: unavailable("gateway down")})
    batch_id = _start(history, plan)

    batch = _executor(history, writer, write_attempts=2).execute(batch_id, plan)

    assert batch.status is BatchStatus.FAILED
    assert batch.failure_reason == "gateway down"
    assert (batch.success_count, batch.failure_count, batch.skipped_count) == (1, 0, 0)
    assert batch.completed_at is not None


def test_progress_is_checkpointed(history: ImportHistory) -> None:
    plan = _plan("A", "B", "C", "D", "E")
    seen: list[ImportProgress] = []
    snapshots: list[int] = []
    batch_id = _start(history, plan)

    def on_progress(progress: ImportProgress) -> None:
        seen.append(progress)
        batch = history.require_batch(batch_id)
        snapshots.append(batch.processed_count)

    _executor(history, ScriptedWriter(), progress_interval=2, on_progress=on_progress).execute(
        batch_id, plan
    )

    assert [(p.processed, p.status) for p in seen] == [
        (2, BatchStatus.IN_PROGRESS),
        (4, BatchStatus.IN_PROGRESS),
        (5, BatchStatus.COMPLETED),
    ]
    assert snapshots == [2, 4, 5]
    assert all(progress.total == 5 for progress in seen)


def test_execute_requires_known_batch(history: ImportHistory) -> None:
    with pytest.raises(UnknownBatchError):
        _executor(history, ScriptedWriter()).execute("missing", _plan("A"))


def test_execute_rejects_plan_size_mismatch(history: ImportHistory) -> None:
    plan = _plan("A", "B")
    history.create_batch(batch_id="b", file_name="f.csv", user_id="u", total_records=5)

    with pytest.raises(ValueError, match="expects 5 rows"):
        _executor(history, ScriptedWriter()).execute("b", plan)

    assert history.require_batch("b").status is BatchStatus.PENDING


def test_empty_plan_completes_immediately(history: ImportHistory) -> None:
    plan = _plan()
    batch_id = _start(history, plan)

    batch = _executor(history, ScriptedWriter()).execute(batch_id, plan)

    assert batch.status is BatchStatus.COMPLETED
    assert batch.processed_count == 0


@pytest.mark.parametrize("field", ["write_attempts", "progress_interval"])
def test_executor_rejects_non_positive_settings(history: ImportHistory, field: str) -> None:
    with pytest.raises(ValueError, match=field):
        _executor(history, ScriptedWriter(), **{field: 0})


def test_ledger_records_each_row_once() -> None:
    ledger = ExecutionLedger()
    ledger.record(RowOutcome(row_index=1, kind=RowOutcomeKind.SUCCEEDED))

    with pytest.raises(DuplicateOutcomeError):
        ledger.record(RowOutcome(row_index=1, kind=RowOutcomeKind.FAILED))

    assert ledger.processed == 1
    update = ledger.as_update()
    assert (update.success_count, update.failure_count, update.skipped_count) == (1, 0, 0)
    assert update.error_report is None
