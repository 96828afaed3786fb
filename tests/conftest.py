"""
Pytest fixtures for the billing test suite.

Provides:
- In-memory SQLite engine per test with every ORM table created
- Sessions, a deterministic clock and an audit actor
- Employee / school factories and wired services
- Structured log capture

SQLite note: pysqlite defers BEGIN until the first DML statement, which
breaks SAVEPOINT semantics.  ``make_sqlite_engine`` applies SQLAlchemy's
documented workaround (driver autocommit off, explicit BEGIN) so nested
transactions behave as on PostgreSQL.
"""

import json
import logging
from datetime import datetime
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from billing_config.schema import BillingRules, LeaveRules
from billing_kernel.db.base import Base
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import StructuredFormatter, configure_logging
from billing_kernel.models.employee import EmployeeModel
from billing_kernel.models.school import SchoolModel, SchoolStatus
from billing_modules._orm_registry import import_all_orm_models
from billing_modules.invoice.service import InvoiceService
from billing_modules.leave.service import LeaveService
from billing_modules.posting.service import PostingService

import_all_orm_models()


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Route billing logs to a throwaway stream at DEBUG for the whole run."""
    configure_logging(level=logging.DEBUG, stream=StringIO())


@pytest.fixture
def captured_logs():
    """
    Capture billing logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, posting_service):
            posting_service.create_posting(...)
            logs = captured_logs()
            assert any(r["message"] == "posting_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


def make_sqlite_engine() -> Engine:
    eng = create_engine("sqlite:///:memory:")

    @event.listens_for(eng, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(eng)
    return eng


@pytest.fixture
def engine():
    eng = make_sqlite_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 15, 9, 0, 0))


@pytest.fixture
def actor_id() -> UUID:
    return uuid4()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_employee(session, actor_id):
    counter = {"n": 0}

    def _create(full_name: str | None = None, **kwargs) -> EmployeeModel:
        counter["n"] += 1
        employee = EmployeeModel(
            employee_code=kwargs.pop("employee_code", f"EMP-{counter['n']:03d}"),
            full_name=full_name or f"Trainer {counter['n']}",
            created_by_id=actor_id,
            **kwargs,
        )
        session.add(employee)
        session.commit()
        return employee

    return _create


@pytest.fixture
def make_school(session, actor_id):
    counter = {"n": 0}

    def _create(
        name: str | None = None,
        status: SchoolStatus = SchoolStatus.ACTIVE,
        **kwargs,
    ) -> SchoolModel:
        counter["n"] += 1
        school = SchoolModel(
            name=name or f"School {counter['n']}",
            city=kwargs.pop("city", "Pune"),
            status=status.value,
            created_by_id=actor_id,
            **kwargs,
        )
        session.add(school)
        session.commit()
        return school

    return _create


@pytest.fixture
def employee(make_employee) -> EmployeeModel:
    return make_employee("Asha Kulkarni")


@pytest.fixture
def school_a(make_school) -> SchoolModel:
    return make_school("Green Valley School")


@pytest.fixture
def school_b(make_school) -> SchoolModel:
    return make_school("Sunrise Public School")


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def billing_rules() -> BillingRules:
    return BillingRules()


@pytest.fixture
def posting_service(session, clock) -> PostingService:
    return PostingService(session, clock)


@pytest.fixture
def leave_service(session) -> LeaveService:
    return LeaveService(session, LeaveRules(max_days=31))


@pytest.fixture
def invoice_service(session, clock, billing_rules) -> InvoiceService:
    return InvoiceService(session, clock, rules=billing_rules)
