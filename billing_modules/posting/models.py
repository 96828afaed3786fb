"""
Posting Domain Models (``billing_modules.posting.models``).

Frozen dataclass value objects for postings and their salary history.
Pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_kernel.domain.dtos import EmployeeSummary, SchoolSummary


class PostingStatus(str, Enum):
    """Posting lifecycle states."""
    CONTINUE = "continue"
    RESIGN = "resign"
    TERMINATE = "terminate"
    CHANGE_SCHOOL = "change_school"


# Statuses under which an active posting places the employee on a roster.
CURRENT_STATUSES = frozenset({PostingStatus.CONTINUE, PostingStatus.CHANGE_SCHOOL})
TERMINAL_STATUSES = frozenset({PostingStatus.RESIGN, PostingStatus.TERMINATE})

_STATUS_MESSAGES = {
    PostingStatus.CONTINUE: "Employee posting created successfully",
    PostingStatus.CHANGE_SCHOOL: "Employee transferred to new school",
    PostingStatus.RESIGN: "Employee resigned and removed from school",
    PostingStatus.TERMINATE: "Employee terminated and removed from school",
}


def posting_message(status: PostingStatus) -> str:
    """User-facing confirmation for a posting written with ``status``."""
    return _STATUS_MESSAGES.get(status, "Posting updated")


@dataclass(frozen=True)
class SalaryChange:
    """One entry of a posting's billing-salary audit trail."""
    amount: Decimal
    effective_from: date
    effective_to: date | None = None


@dataclass(frozen=True)
class Posting:
    """An employee's assignment period to one school."""
    id: UUID
    employee_id: UUID
    school_id: UUID
    start_date: date
    status: PostingStatus
    is_active: bool
    monthly_billing_salary: Decimal
    tds_percent: Decimal = Decimal("0")
    gst_percent: Decimal = Decimal("0")
    end_date: date | None = None
    remark: str | None = None
    salary_history: tuple[SalaryChange, ...] = field(default_factory=tuple)
    employee: EmployeeSummary | None = None
    school: SchoolSummary | None = None
    created_by_id: UUID | None = None
    updated_by_id: UUID | None = None

    @property
    def is_current(self) -> bool:
        return self.is_active and self.status in CURRENT_STATUSES
