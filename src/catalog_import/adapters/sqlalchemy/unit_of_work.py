"""Engine lifecycle and the unit of work over batch history and the local catalog."""

from __future__ import annotations

from abc import ABC, abstractmethod
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from catalog_import.adapters.sqlalchemy.migrations import upgrade_head
from catalog_import.adapters.sqlalchemy.repositories import (
    SqlAlchemyBatchRepository,
    SqlAlchemyElementRepository,
)
from catalog_import.config import get_database_config
from catalog_import.domain.ports import CatalogRepositories, RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the database layer is used before ``startup`` or configured twice."""


class _EngineRegistry:
    """Process-wide engine plus the session factory bound to it."""

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    def release(self) -> Engine | None:
        engine, self.engine, self._sessions = self.engine, None, None
        return engine

    def sessions(self) -> sessionmaker[Session]:
        if self._sessions is None:
            raise StartupError(
                "Database not started; call catalog_import.adapters.sqlalchemy.startup() first"
            )
        return self._sessions


_REGISTRY = _EngineRegistry()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Create (or adopt) the engine and migrate its schema to the latest revision.

    A second call raises unless ``force`` is set, in which case the previous
    engine is disposed first unless it is the one being passed in again.
    """

    if _REGISTRY.engine is not None:
        if not force:
            raise StartupError("Database already started; pass force=True to reconfigure")
        previous = _REGISTRY.release()
        if previous is not None and previous is not engine:
            previous.dispose()

    resolved = engine or create_engine(database_uri or get_database_config().uri)
    upgrade_head(engine=resolved)
    _REGISTRY.bind(resolved)
    log.info("Database ready at %s", resolved.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _REGISTRY.engine


def is_started() -> bool:
    return _REGISTRY.engine is not None


def shutdown() -> None:
    """Dispose the engine, if any, and forget it."""

    engine = _REGISTRY.release()
    if engine is not None:
        engine.dispose()


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """One session per ``with`` block; rolled back when the block raises.

    Nothing is committed implicitly: work left uncommitted is discarded when
    the session closes.
    """

    def __init__(self) -> None:
        self._session_factory = _REGISTRY.sessions()
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        if self._session is not None:
            raise StartupError("Unit of work is already active")
        self._session = self._session_factory()
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside of a with block")
        return self._session

    @property
    def repositories(self) -> TRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside of a with block")
        return self._repositories

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SqlAlchemyCatalogUnitOfWork(BaseSqlAlchemyUnitOfWork[CatalogRepositories]):
    def _build_repositories(self, session: Session) -> CatalogRepositories:
        return CatalogRepositories(
            batches=SqlAlchemyBatchRepository(session),
            elements=SqlAlchemyElementRepository(session),
        )


if TYPE_CHECKING:
    from catalog_import.domain.ports import CatalogUnitOfWork

    _uow_check: CatalogUnitOfWork = SqlAlchemyCatalogUnitOfWork()
