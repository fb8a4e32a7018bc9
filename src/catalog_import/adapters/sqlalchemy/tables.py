"""SQLAlchemy table metadata for batch history and the local element catalog."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    TypeDecorator,
)

from catalog_import.domain.model import BatchStatus

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


import_batch_table = Table(
    "import_batch",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("status", Enum(BatchStatus, native_enum=False, length=16), nullable=False),
    Column("file_name", String(512), nullable=False),
    Column("user_id", String(255), nullable=False),
    Column("total_records", Integer, nullable=False),
    Column("success_count", Integer, nullable=False, default=0),
    Column("failure_count", Integer, nullable=False, default=0),
    Column("skipped_count", Integer, nullable=False, default=0),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("failure_reason", Text, nullable=True),
    Index("ix_import_batch_created_at", "created_at"),
)

import_error_table = Table(
    "import_error",
    metadata,
    Column("batch_id", String(64), ForeignKey("import_batch.id"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("row", Integer, nullable=False),
    Column("field", String(255), nullable=False),
    Column("value", Text, nullable=False),
    Column("message", Text, nullable=False),
)

catalog_element_table = Table(
    "catalog_element",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("element_type", String(64), nullable=False),
    Column("name_key", String(255), nullable=True),
    Column("code_key", String(255), nullable=True),
    Column("attributes", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_catalog_element_type_name", "element_type", "name_key"),
    Index("ix_catalog_element_type_code", "element_type", "code_key"),
)
