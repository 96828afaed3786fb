"""
BatchOrchestrator -- wiring for the billing batch system.

Contract:
    Builds the TaskRegistry with the billing tasks, creates BatchExecutors
    and a BatchScheduler preloaded with the monthly invoice schedule from
    configuration.  Single place where batch dependencies are composed.
"""

from __future__ import annotations

from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from billing_batch.domain.types import ScheduledTask
from billing_batch.services.executor import BatchExecutor
from billing_batch.services.scheduler import BatchScheduler
from billing_batch.tasks.base import TaskRegistry
from billing_batch.tasks.invoice_tasks import MONTHLY_INVOICE_TASK, MonthlyInvoiceTask
from billing_config.schema import BillingConfig
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import get_logger

logger = get_logger("batch.orchestrator")

MONTHLY_INVOICE_SCHEDULE = "monthly-school-invoices"


def build_task_registry(
    config: BillingConfig,
    clock: Clock | None = None,
    actor_id: UUID | None = None,
) -> TaskRegistry:
    """A TaskRegistry loaded with every billing task."""
    registry = TaskRegistry()
    registry.register(
        MonthlyInvoiceTask(
            rules=config.billing,
            billing_period=config.scheduler.billing_period,
            clock=clock,
            actor_id=actor_id,
        )
    )
    return registry


class BatchOrchestrator:
    """Composes registry, executor and scheduler.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
        - Does NOT manage session lifecycle for executors it hands out.
    """

    def __init__(
        self,
        config: BillingConfig,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        task_registry: TaskRegistry | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or uuid4()
        self._task_registry = task_registry or build_task_registry(
            config, clock=self._clock, actor_id=self._actor_id
        )

    def create_executor(self, session: Session) -> BatchExecutor:
        return BatchExecutor(
            session=session, task_registry=self._task_registry, clock=self._clock,
        )

    def create_scheduler(self, session_factory: Callable[[], Session]) -> BatchScheduler:
        """A scheduler with the monthly invoice run registered on its cron."""
        scheduler = BatchScheduler(
            session_factory=session_factory,
            executor_factory=self.create_executor,
            clock=self._clock,
            tick_interval_seconds=self._config.scheduler.tick_interval_seconds,
        )
        scheduler.add_schedule(
            ScheduledTask(
                name=MONTHLY_INVOICE_SCHEDULE,
                task_type=MONTHLY_INVOICE_TASK,
                cron_expression=self._config.scheduler.invoice_cron,
            )
        )
        return scheduler

    @property
    def task_registry(self) -> TaskRegistry:
        return self._task_registry

    @property
    def actor_id(self) -> UUID:
        return self._actor_id
