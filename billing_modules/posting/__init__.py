"""
Employee Posting Module.

Tracks which employee is posted to which school over time, applies the
posting state machine and keeps every school's trainer roster in step.
"""

from billing_modules.posting.models import (
    CURRENT_STATUSES,
    TERMINAL_STATUSES,
    Posting,
    PostingStatus,
    SalaryChange,
    posting_message,
)
from billing_modules.posting.roster import RosterChange, RosterSynchronizer
from billing_modules.posting.service import PostingService

__all__ = [
    "CURRENT_STATUSES",
    "TERMINAL_STATUSES",
    "Posting",
    "PostingStatus",
    "SalaryChange",
    "posting_message",
    "RosterChange",
    "RosterSynchronizer",
    "PostingService",
]
