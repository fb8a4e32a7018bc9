"""Alembic entry point for the batch history and local catalog schema."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from alembic import context
from sqlalchemy import create_engine, pool

from catalog_import.adapters.sqlalchemy.tables import metadata
from catalog_import.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

# SQLite cannot ALTER most constraints in place, so autogenerate emits batch operations.
_MIGRATION_OPTIONS: dict[str, Any] = {
    "target_metadata": metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _url() -> str:
    return context.config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, **_MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    context.configure(url=_url(), literal_binds=True, **_MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    """Reuse a connection handed over by ``upgrade_head``, else open a throwaway engine."""

    shared: Connection | None = context.config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return

    engine = create_engine(_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
