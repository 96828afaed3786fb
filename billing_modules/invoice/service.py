"""
Invoice Service -- monthly school invoices and their payments.

Invoice generation for (school, month, year):
    1. duplicate pre-check (an optimization only)
    2. postings of the school with a current status whose dates overlap
       the month
    3. one line per posting, unpaid leave deducted at salary / day_divisor
    4. GST on the subtotal, previous due carried from the most recent
       earlier invoice of the school that is still pending
    5. insert under a SAVEPOINT; a violation of ``uq_school_invoices_period``
       is the authoritative duplicate signal

Payments are validated (> 0, not above pending), appended to the payment
history and move the invoice to ``partial`` or ``paid``.  The invoice row
is locked FOR UPDATE while a payment is applied.

Usage:
    service = InvoiceService(session, clock, rules=config.billing)
    result = service.generate_invoice(school_id, month=6, year=2024, actor_id=actor)
    if result.is_success:
        service.record_payment(result.value.id, Decimal("20000"), actor_id=actor)
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_config.schema import BillingRules
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.money import ZERO, quantize_money, to_decimal
from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.domain.results import OperationResult
from billing_kernel.exceptions import (
    BillingError,
    DuplicateInvoiceError,
    InvalidAdjustmentError,
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    OverpaymentError,
    SchoolNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.school import SchoolModel
from billing_kernel.services.sequence_service import SequenceService
from billing_modules.invoice.calculator import (
    apply_payment,
    compute_line,
    compute_totals,
    format_invoice_number,
)
from billing_modules.invoice.models import Invoice, InvoiceStatus, OutstandingSummary
from billing_modules.invoice.orm import (
    InvoiceLineModel,
    InvoicePaymentModel,
    SchoolInvoiceModel,
)
from billing_modules.leave.orm import LeaveModel
from billing_modules.posting.models import CURRENT_STATUSES
from billing_modules.posting.orm import EmployeePostingModel

logger = get_logger("modules.invoice.service")

_CURRENT_STATUS_VALUES = tuple(s.value for s in CURRENT_STATUSES)


class InvoiceService:
    """
    Generates school invoices and records payments against them.

    Transaction boundary: with ``auto_commit=True`` (default) this service
    commits on success and rolls back on failure.  With ``auto_commit=False``
    (batch use) it only flushes; a rejected generation leaves nothing behind
    because the insert runs in its own SAVEPOINT.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        rules: BillingRules | None = None,
        sequence_service: SequenceService | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._rules = rules or BillingRules()
        self._sequence = sequence_service or SequenceService(session)
        self._auto_commit = auto_commit

    # =========================================================================
    # Generation
    # =========================================================================

    def generate_invoice(
        self,
        school_id: UUID,
        month: int,
        year: int,
        actor_id: UUID,
        adjustment: Decimal | int | str = ZERO,
    ) -> OperationResult[Invoice]:
        with LogContext.bind(actor_id=str(actor_id), school_id=str(school_id)):
            try:
                period = BillingPeriod(month, year)
                adjustment_amount = self._parse_adjustment(adjustment)
                school = self._session.get(SchoolModel, school_id)
                if school is None:
                    raise SchoolNotFoundError(str(school_id))
                if self._find_invoice(school_id, period) is not None:
                    raise DuplicateInvoiceError(str(school_id), month, year)

                lines = [
                    compute_line(
                        employee_id=posting.employee_id,
                        billing_salary=posting.monthly_billing_salary,
                        tds_percent=posting.tds_percent,
                        unpaid_days=self._unpaid_days(posting, period),
                        day_divisor=self._rules.day_divisor,
                        quantum=self._rules.currency_quantum,
                        posting_id=posting.id,
                    )
                    for posting in self._billable_postings(school_id, period)
                ]
                totals = compute_totals(
                    lines,
                    gst_rate=self._rules.gst_rate,
                    previous_due=self._previous_due(school_id),
                    adjustment=adjustment_amount,
                    quantum=self._rules.currency_quantum,
                )

                try:
                    with self._session.begin_nested():
                        sequence = self._sequence.next_value(SequenceService.SCHOOL_INVOICE)
                        invoice = SchoolInvoiceModel(
                            invoice_number=format_invoice_number(
                                self._rules.invoice_prefix, self._clock.today().year, sequence
                            ),
                            sequence_number=sequence,
                            school_id=school_id,
                            month=period.month,
                            year=period.year,
                            subtotal=totals.subtotal,
                            gst_amount=totals.gst_amount,
                            current_bill_total=totals.current_bill_total,
                            previous_due=totals.previous_due,
                            adjustment=totals.adjustment,
                            grand_total=totals.grand_total,
                            paid_amount=ZERO,
                            pending_amount=max(totals.grand_total, ZERO),
                            status=InvoiceStatus.GENERATED.value,
                            created_by_id=actor_id,
                            updated_by_id=actor_id,
                        )
                        invoice.lines = [
                            InvoiceLineModel(
                                line_number=number,
                                employee_id=line.employee_id,
                                posting_id=line.posting_id,
                                billing_salary=line.billing_salary,
                                days_worked=line.days_worked,
                                leave_deduction=line.leave_deduction,
                                gross_amount=line.gross_amount,
                                tds_amount=line.tds_amount,
                                final_amount=line.final_amount,
                            )
                            for number, line in enumerate(lines, start=1)
                        ]
                        self._session.add(invoice)
                        self._session.flush()
                except IntegrityError:
                    if self._find_invoice(school_id, period) is None:
                        raise
                    logger.warning("invoice_insert_conflict", extra={"period": str(period)})
                    raise DuplicateInvoiceError(str(school_id), month, year) from None

                dto = invoice.to_dto()
                self._finish()
                logger.info(
                    "invoice_generated",
                    extra={
                        "invoice_id": str(dto.id),
                        "invoice_number": dto.invoice_number,
                        "period": str(period),
                        "line_count": len(dto.lines),
                        "subtotal": str(dto.subtotal),
                        "gst_amount": str(dto.gst_amount),
                        "previous_due": str(dto.previous_due),
                        "grand_total": str(dto.grand_total),
                    },
                )
                return OperationResult.ok(dto, message="Invoice generated")

            except BillingError as exc:
                self._abort()
                logger.warning(
                    "invoice_generation_rejected",
                    extra={"code": exc.code, "reason": str(exc), "month": month, "year": year},
                )
                return OperationResult.fail(exc)
            except Exception:
                self._abort()
                raise

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Decimal | int | str,
        actor_id: UUID,
        note: str | None = None,
    ) -> OperationResult[Invoice]:
        """Apply a payment; rejects non-positive amounts and overpayment."""
        with LogContext.bind(actor_id=str(actor_id)):
            try:
                try:
                    value = to_decimal(amount)
                except ValueError:
                    raise InvalidPaymentAmountError(amount) from None
                if not value.is_finite() or value <= ZERO:
                    raise InvalidPaymentAmountError(amount)
                value = quantize_money(value, self._rules.currency_quantum)
                if value <= ZERO:
                    raise InvalidPaymentAmountError(amount)

                invoice = self._session.execute(
                    select(SchoolInvoiceModel)
                    .where(SchoolInvoiceModel.id == invoice_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if invoice is None:
                    raise InvoiceNotFoundError(str(invoice_id))
                if value > invoice.pending_amount:
                    raise OverpaymentError(str(invoice_id), value, invoice.pending_amount)

                paid, pending, fully_paid = apply_payment(
                    invoice.grand_total, invoice.paid_amount, value
                )
                invoice.payments.append(
                    InvoicePaymentModel(
                        sequence=len(invoice.payments) + 1,
                        amount=value,
                        paid_at=self._clock.now(),
                        note=note,
                        recorded_by_id=actor_id,
                    )
                )
                invoice.paid_amount = paid
                invoice.pending_amount = pending
                invoice.status = (
                    InvoiceStatus.PAID.value if fully_paid else InvoiceStatus.PARTIAL.value
                )
                invoice.updated_by_id = actor_id
                self._session.flush()

                dto = invoice.to_dto()
                self._finish()
                logger.info(
                    "payment_recorded",
                    extra={
                        "invoice_id": str(invoice_id),
                        "school_id": str(dto.school_id),
                        "amount": str(value),
                        "paid_amount": str(dto.paid_amount),
                        "pending_amount": str(dto.pending_amount),
                        "status": dto.status.value,
                    },
                )
                return OperationResult.ok(dto, message="Payment recorded")

            except BillingError as exc:
                self._abort()
                logger.warning("payment_rejected", extra={"code": exc.code, "reason": str(exc)})
                return OperationResult.fail(exc)
            except Exception:
                self._abort()
                raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_invoice(self, invoice_id: UUID) -> Invoice | None:
        invoice = self._session.get(SchoolInvoiceModel, invoice_id)
        return invoice.to_dto() if invoice is not None else None

    def list_invoices(self, school_id: UUID | None = None) -> list[Invoice]:
        """Invoices, newest billing month first."""
        query = select(SchoolInvoiceModel)
        if school_id is not None:
            query = query.where(SchoolInvoiceModel.school_id == school_id)
        query = query.order_by(
            SchoolInvoiceModel.year.desc(),
            SchoolInvoiceModel.month.desc(),
            SchoolInvoiceModel.sequence_number.desc(),
        )
        return [row.to_dto() for row in self._session.execute(query).scalars().all()]

    def get_school_outstanding(self, school_id: UUID) -> OutstandingSummary:
        """Sum of pending amounts over the school's unpaid invoices."""
        rows = self._session.execute(
            select(SchoolInvoiceModel)
            .where(
                SchoolInvoiceModel.school_id == school_id,
                SchoolInvoiceModel.pending_amount > 0,
            )
            .order_by(SchoolInvoiceModel.sequence_number)
        ).scalars().all()
        invoices = tuple(row.to_dto() for row in rows)
        return OutstandingSummary(
            school_id=school_id,
            total_due=sum((inv.pending_amount for inv in invoices), ZERO),
            invoices=invoices,
        )

    # =========================================================================
    # Internal
    # =========================================================================

    def _find_invoice(
        self, school_id: UUID, period: BillingPeriod
    ) -> SchoolInvoiceModel | None:
        return self._session.execute(
            select(SchoolInvoiceModel).where(
                SchoolInvoiceModel.school_id == school_id,
                SchoolInvoiceModel.month == period.month,
                SchoolInvoiceModel.year == period.year,
            )
        ).scalar_one_or_none()

    def _parse_adjustment(self, adjustment: Decimal | int | str) -> Decimal:
        try:
            value = to_decimal(adjustment)
        except ValueError:
            raise InvalidAdjustmentError(adjustment) from None
        if not value.is_finite():
            raise InvalidAdjustmentError(adjustment)
        return quantize_money(value, self._rules.currency_quantum)

    def _billable_postings(
        self, school_id: UUID, period: BillingPeriod
    ) -> list[EmployeePostingModel]:
        # Resign/terminate rows only record the exit; the service period is
        # the superseded continue/change_school row.
        return list(
            self._session.execute(
                select(EmployeePostingModel)
                .where(
                    EmployeePostingModel.school_id == school_id,
                    EmployeePostingModel.status.in_(_CURRENT_STATUS_VALUES),
                    EmployeePostingModel.start_date <= period.end,
                    (EmployeePostingModel.end_date.is_(None))
                    | (EmployeePostingModel.end_date >= period.start),
                )
                .order_by(EmployeePostingModel.start_date, EmployeePostingModel.created_at)
            ).scalars().unique().all()
        )

    def _unpaid_days(self, posting: EmployeePostingModel, period: BillingPeriod) -> int:
        leave = self._session.execute(
            select(LeaveModel).where(
                LeaveModel.employee_id == posting.employee_id,
                LeaveModel.school_id == posting.school_id,
                LeaveModel.month == period.month,
                LeaveModel.year == period.year,
            )
        ).scalar_one_or_none()
        return leave.unpaid if leave is not None else 0

    def _previous_due(self, school_id: UUID) -> Decimal:
        last_pending = self._session.execute(
            select(SchoolInvoiceModel)
            .where(
                SchoolInvoiceModel.school_id == school_id,
                SchoolInvoiceModel.pending_amount > 0,
            )
            .order_by(SchoolInvoiceModel.sequence_number.desc())
            .limit(1)
        ).scalars().first()
        if last_pending is None:
            return ZERO
        return quantize_money(last_pending.pending_amount, self._rules.currency_quantum)

    def _finish(self) -> None:
        if self._auto_commit:
            self._session.commit()

    def _abort(self) -> None:
        if self._auto_commit:
            self._session.rollback()
