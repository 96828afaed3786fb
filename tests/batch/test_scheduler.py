"""
Tests for BatchScheduler and BatchOrchestrator.

The scheduler opens its own sessions through ``session_factory``; test data
is committed before each tick so those sessions see it.
"""

from datetime import date, datetime
from uuid import UUID

import pytest
from sqlalchemy import select

from billing_batch.domain import BatchJobStatus, ScheduledTask
from billing_batch.orchestrator import MONTHLY_INVOICE_SCHEDULE, BatchOrchestrator
from billing_batch.services.executor import BatchExecutor
from billing_batch.services.scheduler import BatchScheduler
from billing_batch.tasks import MONTHLY_INVOICE_TASK
from billing_config.schema import BillingConfig, SchedulerConfig
from billing_modules.invoice.orm import SchoolInvoiceModel


@pytest.fixture
def orchestrator(clock, actor_id) -> BatchOrchestrator:
    return BatchOrchestrator(BillingConfig(), clock=clock, actor_id=actor_id)


@pytest.fixture
def scheduler(orchestrator, session_factory) -> BatchScheduler:
    return orchestrator.create_scheduler(session_factory)


@pytest.fixture
def posted_school(posting_service, employee, school_a, actor_id):
    result = posting_service.create_posting(
        employee_id=employee.id,
        school_id=school_a.id,
        status="continue",
        monthly_billing_salary="30000",
        actor_id=actor_id,
        start_date=date(2024, 6, 1),
    )
    assert result.is_success
    return school_a


def _invoice_periods(session) -> list[tuple[int, int]]:
    session.expire_all()
    rows = session.execute(
        select(SchoolInvoiceModel).order_by(SchoolInvoiceModel.sequence_number)
    ).scalars().all()
    return [(row.year, row.month) for row in rows]


class TestBatchScheduler:

    def test_first_run_is_next_cron_match(self, scheduler):
        assert scheduler.next_run_at(MONTHLY_INVOICE_SCHEDULE) == datetime(2024, 7, 1, 1, 0)

    def test_nothing_due_before_fire_time(self, scheduler, clock):
        clock.set_time(datetime(2024, 7, 1, 0, 59))
        assert scheduler.tick() == 0
        assert scheduler.last_result(MONTHLY_INVOICE_SCHEDULE) is None

    def test_fires_monthly_invoices(self, session, scheduler, clock, posted_school):
        clock.set_time(datetime(2024, 7, 1, 1, 0))

        assert scheduler.tick() == 1

        result = scheduler.last_result(MONTHLY_INVOICE_SCHEDULE)
        assert result.status == BatchJobStatus.COMPLETED
        assert result.succeeded == 1
        assert scheduler.next_run_at(MONTHLY_INVOICE_SCHEDULE) == datetime(2024, 8, 1, 1, 0)
        assert _invoice_periods(session) == [(2024, 7)]

    def test_fires_once_per_slot(self, session, scheduler, clock, posted_school):
        clock.set_time(datetime(2024, 7, 1, 1, 0))
        scheduler.tick()
        clock.advance(60)
        assert scheduler.tick() == 0
        assert _invoice_periods(session) == [(2024, 7)]

    def test_next_run_advanced_under_lock(self, scheduler, clock):
        held = []

        class _RecordingDict(dict):
            def __setitem__(self, key, value):
                held.append(scheduler._lock.locked())
                super().__setitem__(key, value)

        scheduler._next_run = _RecordingDict(scheduler._next_run)
        clock.set_time(datetime(2024, 7, 1, 1, 0))

        assert scheduler.tick() == 1
        assert held == [True]
        assert scheduler.next_run_at(MONTHLY_INVOICE_SCHEDULE) == datetime(2024, 8, 1, 1, 0)

    def test_missed_runs_fire_once(self, session, scheduler, clock, posted_school):
        clock.set_time(datetime(2024, 10, 1, 5, 0))

        assert scheduler.tick() == 1

        assert scheduler.next_run_at(MONTHLY_INVOICE_SCHEDULE) == datetime(2024, 11, 1, 1, 0)
        assert _invoice_periods(session) == [(2024, 10)]

    def test_previous_month_mode(self, session, session_factory, clock, actor_id, posted_school):
        config = BillingConfig(scheduler=SchedulerConfig(billing_period="previous"))
        scheduler = BatchOrchestrator(config, clock=clock, actor_id=actor_id).create_scheduler(
            session_factory
        )
        clock.set_time(datetime(2024, 7, 1, 1, 0))

        scheduler.tick()

        assert _invoice_periods(session) == [(2024, 6)]

    def test_inactive_schedule_never_fires(self, scheduler, clock):
        scheduler.add_schedule(
            ScheduledTask(
                name="paused",
                task_type=MONTHLY_INVOICE_TASK,
                cron_expression="* * * * *",
                is_active=False,
            )
        )
        clock.advance(3600)
        assert scheduler.tick() == 0

    def test_duplicate_schedule_name(self, scheduler):
        with pytest.raises(ValueError, match="already registered"):
            scheduler.add_schedule(
                ScheduledTask(
                    name=MONTHLY_INVOICE_SCHEDULE,
                    task_type=MONTHLY_INVOICE_TASK,
                    cron_expression="0 2 1 * *",
                )
            )

    def test_invalid_cron(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.add_schedule(
                ScheduledTask(name="bad", task_type=MONTHLY_INVOICE_TASK, cron_expression="0 1 *")
            )

    def test_fire_failure_is_logged(self, session_factory, clock, captured_logs):
        def broken_executor(session):
            raise RuntimeError("registry unavailable")

        scheduler = BatchScheduler(session_factory, broken_executor, clock)
        scheduler.add_schedule(
            ScheduledTask(name="every-minute", task_type="x", cron_expression="* * * * *")
        )
        clock.advance(60)

        assert scheduler.tick() == 0
        assert scheduler.next_run_at("every-minute") == datetime(2024, 6, 15, 9, 2)
        assert any(r["message"] == "schedule_fire_failed" for r in captured_logs())

    def test_start_and_stop(self, scheduler):
        scheduler.start()
        try:
            assert scheduler.is_running
        finally:
            scheduler.stop(timeout=5)
        assert not scheduler.is_running


class TestBatchOrchestrator:

    def test_registry_contains_invoice_task(self, orchestrator):
        assert MONTHLY_INVOICE_TASK in orchestrator.task_registry
        assert orchestrator.task_registry.list_tasks() == (MONTHLY_INVOICE_TASK,)

    def test_create_executor(self, orchestrator, session):
        assert isinstance(orchestrator.create_executor(session), BatchExecutor)

    def test_actor_id(self, orchestrator, actor_id):
        assert orchestrator.actor_id == actor_id

    def test_invoices_created_by_batch_actor(self, session, orchestrator, actor_id, posted_school):
        result = orchestrator.create_executor(session).run(MONTHLY_INVOICE_TASK)
        invoice_id = UUID(result.item_results[0].result_data["invoice_id"])
        invoice = session.get(SchoolInvoiceModel, invoice_id)
        assert invoice.created_by_id == actor_id
