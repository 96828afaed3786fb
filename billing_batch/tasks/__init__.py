"""
billing_batch.tasks -- task protocol, registry and billing task implementations.
"""

from billing_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
)
from billing_batch.tasks.invoice_tasks import (
    MONTHLY_INVOICE_TASK,
    MonthlyInvoiceTask,
    billing_period_for,
)

__all__ = [
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "MONTHLY_INVOICE_TASK",
    "MonthlyInvoiceTask",
    "TaskRegistry",
    "billing_period_for",
]
