"""
Process-wide database engine and session factory.

Scripts call ``init_engine_from_url()`` once at start-up; services never
open connections themselves and receive a ``Session`` from their caller.

PostgreSQL is the production backend: posting and payment paths rely on
``SELECT ... FOR UPDATE`` row locks and the partial unique index on current
postings.  SQLite URLs are accepted for tests and local tooling, and get no
pool sizing options.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.logging_config import get_logger

logger = get_logger("db.engine")


@dataclass
class _Registry:
    engine: Engine | None = None
    factory: sessionmaker[Session] | None = None

    def require_engine(self) -> Engine:
        if self.engine is None:
            raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
        return self.engine

    def require_factory(self) -> sessionmaker[Session]:
        if self.factory is None:
            raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
        return self.factory


_registry = _Registry()


def init_engine_from_url(database_url: str, echo: bool = False, pool_size: int = 10) -> Engine:
    """
    Create the engine and session factory, replacing any earlier ones.

    Sessions are built with ``expire_on_commit=False`` so a service can hand
    committed rows to its caller.
    """
    reset_engine()
    url = make_url(database_url)
    options: dict = {"echo": echo}
    if url.get_backend_name() == "postgresql":
        options.update(
            pool_size=pool_size,
            max_overflow=pool_size,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )
    engine = create_engine(url, **options)
    _registry.engine = engine
    _registry.factory = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": url.get_backend_name(), "echo": echo})
    return engine


def get_engine() -> Engine:
    return _registry.require_engine()


def get_session() -> Session:
    return _registry.require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for components that open their own sessions (the scheduler)."""
    return _registry.require_factory()


def is_postgres() -> bool:
    return _registry.engine is not None and _registry.engine.dialect.name == "postgresql"


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on normal exit; roll back and re-raise on error.  Always closes."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every kernel and module table on the initialized engine."""
    from billing_kernel.db.base import Base
    from billing_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def reset_engine() -> None:
    """Dispose the current engine, if any, and forget the session factory."""
    if _registry.engine is not None:
        _registry.engine.dispose()
    _registry.engine = None
    _registry.factory = None
