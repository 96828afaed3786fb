"""Leave ledger value objects."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class LeaveRecord:
    """Leave days of one employee at one school in one billing month."""
    id: UUID
    employee_id: UUID
    school_id: UUID
    month: int
    year: int
    paid: int = 0
    unpaid: int = 0

    @property
    def total(self) -> int:
        return self.paid + self.unpaid
