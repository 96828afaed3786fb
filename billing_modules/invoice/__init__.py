"""
School Invoice Module.

Monthly accounts-receivable invoices per school built from postings and
the leave ledger, with GST, previous-due carry forward and payments.
"""

from billing_modules.invoice.calculator import (
    apply_payment,
    compute_line,
    compute_totals,
    format_invoice_number,
)
from billing_modules.invoice.models import (
    Invoice,
    InvoiceLine,
    InvoiceStatus,
    InvoiceTotals,
    OutstandingSummary,
    Payment,
)
from billing_modules.invoice.service import InvoiceService

__all__ = [
    "Invoice",
    "InvoiceLine",
    "InvoiceService",
    "InvoiceStatus",
    "InvoiceTotals",
    "OutstandingSummary",
    "Payment",
    "apply_payment",
    "compute_line",
    "compute_totals",
    "format_invoice_number",
]
