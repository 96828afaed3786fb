"""
Invoice ORM Models (``billing_modules.invoice.orm``).

Responsibility
--------------
SQLAlchemy persistence for school invoices, their frozen line items and
their append-only payment history.  Maps to the frozen dataclasses in
``models.py``.

Storage-level guarantees
------------------------
* ``uq_school_invoices_period``: one invoice per (school, month, year).
  Insert-time violations of this constraint are the authoritative
  duplicate signal.
* ``uq_school_invoices_number``: invoice numbers are unique.
* ``sequence_number`` is allocated from a locked counter and orders
  invoices by creation for previous-due carry forward.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase


class SchoolInvoiceModel(TrackedBase):
    """
    ORM model for a monthly school invoice.

    Guarantees:
        - status stored as InvoiceStatus value string.
        - paid_amount only grows; pending_amount never goes below zero.
    """

    __tablename__ = "school_invoices"

    __table_args__ = (
        UniqueConstraint("school_id", "month", "year", name="uq_school_invoices_period"),
        UniqueConstraint("invoice_number", name="uq_school_invoices_number"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_school_invoices_month"),
        CheckConstraint("paid_amount >= 0", name="ck_school_invoices_paid_non_negative"),
        CheckConstraint(
            "pending_amount >= 0", name="ck_school_invoices_pending_non_negative"
        ),
        Index("idx_school_invoices_school_seq", "school_id", "sequence_number"),
        Index("idx_school_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    sequence_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    school_id: Mapped[UUID] = mapped_column(ForeignKey("schools.id"), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(nullable=False)
    current_bill_total: Mapped[Decimal] = mapped_column(nullable=False)
    previous_due: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    adjustment: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    grand_total: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    pending_amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="generated")

    lines: Mapped[list["InvoiceLineModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLineModel.line_number",
        lazy="selectin",
    )
    payments: Mapped[list["InvoicePaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePaymentModel.sequence",
        lazy="selectin",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.invoice.models import (
            Invoice,
            InvoiceLine,
            InvoiceStatus,
            Payment,
        )

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            school_id=self.school_id,
            month=self.month,
            year=self.year,
            subtotal=self.subtotal,
            gst_amount=self.gst_amount,
            current_bill_total=self.current_bill_total,
            previous_due=self.previous_due,
            adjustment=self.adjustment,
            grand_total=self.grand_total,
            paid_amount=self.paid_amount,
            pending_amount=self.pending_amount,
            status=InvoiceStatus(self.status),
            lines=tuple(
                InvoiceLine(
                    employee_id=line.employee_id,
                    posting_id=line.posting_id,
                    billing_salary=line.billing_salary,
                    days_worked=line.days_worked,
                    leave_deduction=line.leave_deduction,
                    gross_amount=line.gross_amount,
                    tds_amount=line.tds_amount,
                    final_amount=line.final_amount,
                )
                for line in self.lines
            ),
            payments=tuple(
                Payment(amount=p.amount, paid_at=p.paid_at, note=p.note)
                for p in self.payments
            ),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<SchoolInvoiceModel {self.invoice_number} {self.year}-{self.month:02d} {self.status}>"


class InvoiceLineModel(Base):
    """One employee's billing line, frozen at generation."""

    __tablename__ = "school_invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_school_invoice_lines_number"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("school_invoices.id"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)
    posting_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee_postings.id"), nullable=True
    )
    billing_salary: Mapped[Decimal] = mapped_column(nullable=False)
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False)
    leave_deduction: Mapped[Decimal] = mapped_column(nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    tds_amount: Mapped[Decimal] = mapped_column(nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped[SchoolInvoiceModel] = relationship(back_populates="lines")


class InvoicePaymentModel(Base):
    """Append-only payment entry."""

    __tablename__ = "school_invoice_payments"

    __table_args__ = (
        UniqueConstraint("invoice_id", "sequence", name="uq_school_invoice_payments_seq"),
        CheckConstraint("amount > 0", name="ck_school_invoice_payments_positive"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("school_invoices.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice: Mapped[SchoolInvoiceModel] = relationship(back_populates="payments")
