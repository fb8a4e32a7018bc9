from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from catalog_import.adapters.sqlalchemy import (
    SqlAlchemyCatalogUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from catalog_import.domain.model import ImportBatch

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def _engine() -> Engine:
    return create_engine(
        "sqlite+pysqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyCatalogUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = _engine()
    engine_b = _engine()

    startup(engine=engine_a)
    assert is_started()

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_startup_runs_migrations() -> None:
    engine = _engine()

    startup(engine=engine)

    tables = set(inspect(engine).get_table_names())
    assert {"import_batch", "import_error", "catalog_element", "alembic_version"} <= tables


def test_uncommitted_work_is_rolled_back() -> None:
    startup(engine=_engine())
    batch = ImportBatch(
        id="b1",
        file_name="apps.csv",
        user_id="u",
        total_records=0,
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
    )

    with SqlAlchemyCatalogUnitOfWork() as uow:
        uow.repositories.batches.add(batch)

    with SqlAlchemyCatalogUnitOfWork() as uow:
        assert uow.repositories.batches.get("b1") is None
        uow.repositories.batches.add(batch)
        uow.commit()

    with SqlAlchemyCatalogUnitOfWork() as uow:
        assert uow.repositories.batches.exists("b1")
        assert uow.repositories.batches.count() == 1


def test_session_is_released_after_exit(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    uow = SqlAlchemyCatalogUnitOfWork()

    with uow:
        pass

    with pytest.raises(StartupError):
        _ = uow.session
