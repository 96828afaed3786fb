"""
School reference model and its trainer roster.

The roster (``current_trainers``) is a membership set stored in the
``school_current_trainers`` association table; the composite primary key
makes duplicate membership impossible.  Only the roster synchronizer in
``billing_modules.posting.roster`` mutates it.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Column, ForeignKey, Index, String, Table
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase, UUIDString
from billing_kernel.models.employee import EmployeeModel


class SchoolStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


school_current_trainers = Table(
    "school_current_trainers",
    Base.metadata,
    Column("school_id", UUIDString(), ForeignKey("schools.id"), primary_key=True),
    Column("employee_id", UUIDString(), ForeignKey("employees.id"), primary_key=True),
    Index("idx_school_current_trainers_employee", "employee_id"),
)


class SchoolModel(TrackedBase):
    """
    ORM model for a school that receives trainers and monthly invoices.

    Guarantees:
        - status stored as SchoolStatus value string.
        - current_trainers is a set of EmployeeModel (no ordering, no duplicates).
    """

    __tablename__ = "schools"

    __table_args__ = (Index("idx_schools_status", "status"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=SchoolStatus.ACTIVE.value, nullable=False
    )
    trainers_required: Mapped[int] = mapped_column(default=1, nullable=False)

    current_trainers: Mapped[set[EmployeeModel]] = relationship(
        secondary=school_current_trainers,
        collection_class=set,
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == SchoolStatus.ACTIVE.value

    @property
    def current_trainer_ids(self) -> frozenset[UUID]:
        return frozenset(e.id for e in self.current_trainers)

    def to_summary(self):
        from billing_kernel.domain.dtos import SchoolSummary

        return SchoolSummary(
            id=self.id,
            name=self.name,
            city=self.city,
            address=self.address,
            status=self.status,
            current_trainer_ids=self.current_trainer_ids,
        )

    def __repr__(self) -> str:
        return f"<SchoolModel {self.name} ({self.status})>"
