"""
Invoice calculator -- pure billing arithmetic.

Per posting line:
    per_day         = salary / day_divisor
    leave_deduction = unpaid * per_day
    gross           = salary - leave_deduction
    tds             = gross * tds_percent / 100
    final           = gross - tds

Each line component is quantized to the currency quantum (ROUND_HALF_UP)
and ``final`` is taken from the quantized gross and tds, so a line always
adds up exactly.  GST is applied to the sum of the line finals.
"""

from decimal import Decimal
from uuid import UUID

from billing_kernel.domain.money import DEFAULT_QUANTUM, ZERO, quantize_money
from billing_modules.invoice.models import InvoiceLine, InvoiceTotals

HUNDRED = Decimal("100")


def compute_line(
    employee_id: UUID,
    billing_salary: Decimal,
    tds_percent: Decimal,
    unpaid_days: int,
    day_divisor: int = 30,
    quantum: Decimal = DEFAULT_QUANTUM,
    posting_id: UUID | None = None,
) -> InvoiceLine:
    per_day = billing_salary / Decimal(day_divisor)
    leave_deduction = quantize_money(per_day * unpaid_days, quantum)
    gross = quantize_money(billing_salary - leave_deduction, quantum)
    tds = quantize_money(gross * tds_percent / HUNDRED, quantum)
    return InvoiceLine(
        employee_id=employee_id,
        billing_salary=quantize_money(billing_salary, quantum),
        days_worked=day_divisor - unpaid_days,
        leave_deduction=leave_deduction,
        gross_amount=gross,
        tds_amount=tds,
        final_amount=gross - tds,
        posting_id=posting_id,
    )


def compute_totals(
    lines: list[InvoiceLine] | tuple[InvoiceLine, ...],
    gst_rate: Decimal,
    previous_due: Decimal = ZERO,
    adjustment: Decimal = ZERO,
    quantum: Decimal = DEFAULT_QUANTUM,
) -> InvoiceTotals:
    """Roll lines up into subtotal, GST and the carried-forward grand total."""
    subtotal = sum((line.final_amount for line in lines), ZERO)
    gst_amount = quantize_money(subtotal * gst_rate, quantum)
    current_bill_total = subtotal + gst_amount
    return InvoiceTotals(
        subtotal=subtotal,
        gst_amount=gst_amount,
        current_bill_total=current_bill_total,
        previous_due=previous_due,
        adjustment=adjustment,
        grand_total=current_bill_total + previous_due + adjustment,
    )


def apply_payment(
    grand_total: Decimal, paid_amount: Decimal, amount: Decimal
) -> tuple[Decimal, Decimal, bool]:
    """Return ``(paid_amount, pending_amount, fully_paid)`` after ``amount``."""
    paid = paid_amount + amount
    pending = grand_total - paid
    if pending <= ZERO:
        return paid, ZERO, True
    return paid, pending, False


def format_invoice_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:05d}"
