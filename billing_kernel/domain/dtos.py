"""
Kernel DTOs for the shared reference records.

Frozen snapshots of employees and schools, used when a service hands back
a "populated" view of a posting or invoice.
"""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class EmployeeSummary:
    id: UUID
    employee_code: str
    full_name: str
    designation: str | None = None


@dataclass(frozen=True)
class SchoolSummary:
    id: UUID
    name: str
    city: str | None = None
    address: str | None = None
    status: str = "active"
    current_trainer_ids: frozenset[UUID] = field(default_factory=frozenset)
