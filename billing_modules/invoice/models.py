"""
Invoice Domain Models (``billing_modules.invoice.models``).

Frozen dataclass value objects for school invoices, their line items and
payments.  Pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``current_bill_total == subtotal + gst_amount``.
* ``grand_total == current_bill_total + previous_due + adjustment``.
* ``pending_amount == max(0, grand_total - paid_amount)``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class InvoiceStatus(str, Enum):
    """Invoice payment lifecycle."""
    GENERATED = "generated"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class InvoiceLine:
    """Billing snapshot of one posting, frozen at generation time."""
    employee_id: UUID
    billing_salary: Decimal
    days_worked: int
    leave_deduction: Decimal
    gross_amount: Decimal
    tds_amount: Decimal
    final_amount: Decimal
    posting_id: UUID | None = None


@dataclass(frozen=True)
class Payment:
    """One entry of an invoice's append-only payment history."""
    amount: Decimal
    paid_at: datetime
    note: str | None = None


@dataclass(frozen=True)
class InvoiceTotals:
    """Invoice money figures derived from its lines."""
    subtotal: Decimal
    gst_amount: Decimal
    current_bill_total: Decimal
    previous_due: Decimal
    adjustment: Decimal
    grand_total: Decimal


@dataclass(frozen=True)
class Invoice:
    """Monthly accounts-receivable bill for one school."""
    id: UUID
    invoice_number: str
    school_id: UUID
    month: int
    year: int
    subtotal: Decimal
    gst_amount: Decimal
    current_bill_total: Decimal
    previous_due: Decimal
    adjustment: Decimal
    grand_total: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    status: InvoiceStatus
    lines: tuple[InvoiceLine, ...] = field(default_factory=tuple)
    payments: tuple[Payment, ...] = field(default_factory=tuple)
    created_at: datetime | None = None


@dataclass(frozen=True)
class OutstandingSummary:
    """What a school still owes across its unpaid invoices."""
    school_id: UUID
    total_due: Decimal
    invoices: tuple[Invoice, ...] = field(default_factory=tuple)
