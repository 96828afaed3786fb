"""
Leave Ledger Module.

Per employee, school and month paid/unpaid leave day counts, consumed by
invoice generation for leave deductions.
"""

from billing_modules.leave.models import LeaveRecord
from billing_modules.leave.service import LeaveService

__all__ = [
    "LeaveRecord",
    "LeaveService",
]
