"""Session-bound SQLAlchemy repositories for batches and catalog elements."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select, update

from catalog_import.domain.model import BatchStatus, ErrorReportEntry, ImportBatch
from catalog_import.domain.ports import (
    BatchRepository,
    CatalogBackend,
    CatalogElement,
    RejectedWrite,
    WriteResult,
    WrittenElement,
)

from .tables import catalog_element_table, import_batch_table, import_error_table

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from sqlalchemy.engine import Row
    from sqlalchemy.orm import Session

    from catalog_import.domain.model import AttributeValue, ElementType

log = getLogger(__name__)

_NAME_FIELD = "name"
_CODE_FIELD = "applicationCode"


class SqlAlchemyBatchRepository(BatchRepository):
    """Persist import batches and their error reports."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, batch: ImportBatch) -> None:
        self.session.execute(insert(import_batch_table).values(**_batch_columns(batch)))
        self._write_errors(batch.id, batch.error_report)

    def get(self, batch_id: str) -> ImportBatch | None:
        row = self.session.execute(
            select(import_batch_table).where(import_batch_table.c.id == batch_id)
        ).one_or_none()
        if row is None:
            return None
        return _batch_from_row(row, self._errors_for([batch_id]).get(batch_id, []))

    def exists(self, batch_id: str) -> bool:
        stmt = select(func.count()).where(import_batch_table.c.id == batch_id)
        return bool(self.session.execute(stmt).scalar_one())

    def save(self, batch: ImportBatch) -> None:
        columns = _batch_columns(batch)
        del columns["id"]
        self.session.execute(
            update(import_batch_table).where(import_batch_table.c.id == batch.id).values(**columns)
        )
        self.session.execute(
            delete(import_error_table).where(import_error_table.c.batch_id == batch.id)
        )
        self._write_errors(batch.id, batch.error_report)

    def compare_and_set_status(
        self, batch_id: str, *, expected: BatchStatus, target: BatchStatus
    ) -> bool:
        result = self.session.execute(
            update(import_batch_table)
            .where(import_batch_table.c.id == batch_id)
            .where(import_batch_table.c.status == expected)
            .values(status=target)
        )
        return result.rowcount == 1

    def list_newest_first(self, *, offset: int = 0, limit: int | None = None) -> list[ImportBatch]:
        stmt = (
            select(import_batch_table)
            .order_by(import_batch_table.c.created_at.desc(), import_batch_table.c.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = self.session.execute(stmt).all()
        errors = self._errors_for([row.id for row in rows])
        return [_batch_from_row(row, errors.get(row.id, [])) for row in rows]

    def count(self) -> int:
        stmt = select(func.count()).select_from(import_batch_table)
        return int(self.session.execute(stmt).scalar_one())

    def _write_errors(self, batch_id: str, entries: Iterable[ErrorReportEntry]) -> None:
        values = [
            {
                "batch_id": batch_id,
                "position": position,
                "row": entry.row,
                "field": entry.field,
                "value": entry.value,
                "message": entry.message,
            }
            for position, entry in enumerate(entries)
        ]
        if values:
            self.session.execute(insert(import_error_table), values)

    def _errors_for(self, batch_ids: list[str]) -> dict[str, list[ErrorReportEntry]]:
        if not batch_ids:
            return {}
        stmt = (
            select(import_error_table)
            .where(import_error_table.c.batch_id.in_(batch_ids))
            .order_by(import_error_table.c.batch_id, import_error_table.c.position)
        )
        grouped: dict[str, list[ErrorReportEntry]] = {}
        for row in self.session.execute(stmt):
            grouped.setdefault(row.batch_id, []).append(
                ErrorReportEntry(row=row.row, field=row.field, value=row.value, message=row.message)
            )
        return grouped


class SqlAlchemyElementRepository(CatalogBackend):
    """Local catalog of elements with case-insensitive name and code lookups."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_key(self, element_type: ElementType, field: str, value: str) -> str | None:
        key = _lookup_key(value)
        if key is None:
            return None
        table = catalog_element_table
        stmt = (
            select(table.c.id, table.c.attributes)
            .where(table.c.element_type == str(element_type))
            .order_by(table.c.created_at, table.c.id)
        )
        if field == _NAME_FIELD:
            row = self.session.execute(stmt.where(table.c.name_key == key)).first()
            return row.id if row is not None else None
        if field == _CODE_FIELD:
            row = self.session.execute(stmt.where(table.c.code_key == key)).first()
            return row.id if row is not None else None

        for row in self.session.execute(stmt):
            if _lookup_key(row.attributes.get(field)) == key:
                return row.id
        return None

    def get_element(self, element_id: str) -> CatalogElement | None:
        row = self.session.execute(
            select(catalog_element_table).where(catalog_element_table.c.id == element_id)
        ).one_or_none()
        if row is None:
            return None
        return CatalogElement(
            id=row.id, element_type=row.element_type, attributes=dict(row.attributes)
        )

    def upsert(
        self,
        element_type: ElementType,
        element_id: str | None,
        attributes: Mapping[str, AttributeValue],
    ) -> WriteResult:
        now = datetime.now(tz=UTC)
        if element_id is None:
            new_id = str(uuid.uuid4())
            self.session.execute(
                insert(catalog_element_table).values(
                    id=new_id,
                    element_type=str(element_type),
                    attributes=dict(attributes),
                    created_at=now,
                    updated_at=now,
                    **_key_columns(attributes),
                )
            )
            log.debug("Created %s element %s", element_type, new_id)
            return WrittenElement(new_id)

        existing = self.get_element(element_id)
        if existing is None:
            return RejectedWrite(f"Element {element_id} not found")
        if existing.element_type != str(element_type):
            return RejectedWrite(
                f"Element {element_id} is a {existing.element_type}, not a {element_type}"
            )
        merged = {**existing.attributes, **attributes}
        self.session.execute(
            update(catalog_element_table)
            .where(catalog_element_table.c.id == element_id)
            .values(attributes=merged, updated_at=now, **_key_columns(merged))
        )
        return WrittenElement(element_id)


def _lookup_key(value: object) -> str | None:
    if value is None:
        return None
    key = str(value).strip().casefold()
    return key or None


def _key_columns(attributes: Mapping[str, Any]) -> dict[str, str | None]:
    return {
        "name_key": _lookup_key(attributes.get(_NAME_FIELD)),
        "code_key": _lookup_key(attributes.get(_CODE_FIELD)),
    }


def _batch_columns(batch: ImportBatch) -> dict[str, Any]:
    return {
        "id": batch.id,
        "status": batch.status,
        "file_name": batch.file_name,
        "user_id": batch.user_id,
        "total_records": batch.total_records,
        "success_count": batch.success_count,
        "failure_count": batch.failure_count,
        "skipped_count": batch.skipped_count,
        "created_at": batch.created_at,
        "completed_at": batch.completed_at,
        "failure_reason": batch.failure_reason,
    }


def _batch_from_row(row: Row[Any], errors: list[ErrorReportEntry]) -> ImportBatch:
    return ImportBatch(
        id=row.id,
        status=BatchStatus(row.status),
        file_name=row.file_name,
        user_id=row.user_id,
        total_records=row.total_records,
        success_count=row.success_count,
        failure_count=row.failure_count,
        skipped_count=row.skipped_count,
        created_at=row.created_at,
        completed_at=row.completed_at,
        error_report=errors,
        failure_reason=row.failure_reason,
    )
