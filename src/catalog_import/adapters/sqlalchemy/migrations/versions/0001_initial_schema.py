"""Initial schema for batch history and the local element catalog.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from alembic import op

from catalog_import.adapters.sqlalchemy.tables import UTCDateTime

if TYPE_CHECKING:
    from collections.abc import Sequence

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "import_batch",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "IN_PROGRESS",
                "COMPLETED",
                "FAILED",
                name="batchstatus",
                native_enum=False,
                length=16,
            ),
            nullable=False,
        ),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("total_records", sa.Integer(), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False),
        sa.Column("failure_count", sa.Integer(), nullable=False),
        sa.Column("skipped_count", sa.Integer(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("completed_at", UTCDateTime(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_import_batch")),
    )
    op.create_index("ix_import_batch_created_at", "import_batch", ["created_at"])

    op.create_table(
        "import_error",
        sa.Column("batch_id", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("row", sa.Integer(), nullable=False),
        sa.Column("field", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(
            ["batch_id"],
            ["import_batch.id"],
            name=op.f("fk_import_error_batch_id_import_batch"),
        ),
        sa.PrimaryKeyConstraint("batch_id", "position", name=op.f("pk_import_error")),
    )

    op.create_table(
        "catalog_element",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("element_type", sa.String(length=64), nullable=False),
        sa.Column("name_key", sa.String(length=255), nullable=True),
        sa.Column("code_key", sa.String(length=255), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_catalog_element")),
    )
    op.create_index(
        "ix_catalog_element_type_name", "catalog_element", ["element_type", "name_key"]
    )
    op.create_index(
        "ix_catalog_element_type_code", "catalog_element", ["element_type", "code_key"]
    )


def downgrade() -> None:
    op.drop_index("ix_catalog_element_type_code", table_name="catalog_element")
    op.drop_index("ix_catalog_element_type_name", table_name="catalog_element")
    op.drop_table("catalog_element")
    op.drop_table("import_error")
    op.drop_index("ix_import_batch_created_at", table_name="import_batch")
    op.drop_table("import_batch")
