"""
Batch task: monthly school invoice generation.

One item per active school.  Each school's invoice is generated inside the
executor's SAVEPOINT, so a failing school never aborts the others.  A
school that already has an invoice for the period is recorded as SKIPPED;
reruns of the same month are therefore harmless.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_batch.domain.types import BatchItemStatus
from billing_batch.tasks.base import BatchItemInput, BatchTaskResult
from billing_config.schema import VALID_BILLING_PERIOD_MODES, BillingRules
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.exceptions import DuplicateInvoiceError
from billing_kernel.models.school import SchoolModel, SchoolStatus
from billing_modules.invoice.service import InvoiceService

MONTHLY_INVOICE_TASK = "invoice.monthly_generation"


def billing_period_for(as_of: date | datetime, mode: str = "current") -> BillingPeriod:
    """Billing month for a run at ``as_of``.

    ``current`` bills the month the run falls in; ``previous`` bills the
    month before it (a run on the 1st closing out last month).
    """
    if mode not in VALID_BILLING_PERIOD_MODES:
        raise ValueError(
            f"billing period mode must be one of {sorted(VALID_BILLING_PERIOD_MODES)}, "
            f"got '{mode}'"
        )
    period = BillingPeriod.containing(as_of)
    return period.previous() if mode == "previous" else period


class MonthlyInvoiceTask:
    """Generate the monthly invoice of every active school.

    Parameters (all optional):
        ``month`` / ``year``: bill this period instead of deriving it.
        ``billing_period``: ``current`` or ``previous`` (overrides the default mode).
        ``adjustment``: signed amount applied to every generated invoice.
    """

    def __init__(
        self,
        rules: BillingRules | None = None,
        billing_period: str = "current",
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        self._rules = rules or BillingRules()
        self._billing_period = billing_period
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or uuid4()

    @property
    def task_type(self) -> str:
        return MONTHLY_INVOICE_TASK

    @property
    def description(self) -> str:
        return "Generate monthly invoices for all active schools"

    def resolve_period(self, parameters: dict[str, Any], as_of: datetime) -> BillingPeriod:
        if parameters.get("month") is not None and parameters.get("year") is not None:
            return BillingPeriod(int(parameters["month"]), int(parameters["year"]))
        return billing_period_for(
            as_of, parameters.get("billing_period", self._billing_period)
        )

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        period = self.resolve_period(parameters, as_of)
        schools = session.execute(
            select(SchoolModel)
            .where(SchoolModel.status == SchoolStatus.ACTIVE.value)
            .order_by(SchoolModel.name)
        ).scalars().all()

        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(school.id),
                payload={
                    "school_id": str(school.id),
                    "school_name": school.name,
                    "month": period.month,
                    "year": period.year,
                },
            )
            for i, school in enumerate(schools)
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        service = InvoiceService(
            session, clock=self._clock, rules=self._rules, auto_commit=False
        )
        result = service.generate_invoice(
            school_id=UUID(item.payload["school_id"]),
            month=item.payload["month"],
            year=item.payload["year"],
            actor_id=self._actor_id,
            adjustment=parameters.get("adjustment", "0"),
        )

        if result.is_success:
            return BatchTaskResult(
                status=BatchItemStatus.SUCCEEDED,
                result_data={
                    "invoice_id": str(result.value.id),
                    "invoice_number": result.value.invoice_number,
                    "grand_total": str(result.value.grand_total),
                },
            )
        if isinstance(result.error, DuplicateInvoiceError):
            return BatchTaskResult(
                status=BatchItemStatus.SKIPPED,
                error_code=result.code,
                error_message=result.message,
            )
        return BatchTaskResult(
            status=BatchItemStatus.FAILED,
            error_code=result.code,
            error_message=result.message,
        )
