"""
Leave ORM Model (``billing_modules.leave.orm``).

One row per (employee, school, month, year); ``uq_leaves_period`` is the
upsert key.  Check constraints mirror the service validation so rows
written outside the service cannot break the cap either.
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class LeaveModel(TrackedBase):
    """ORM model for a monthly leave record."""

    __tablename__ = "employee_leaves"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "school_id", "month", "year", name="uq_leaves_period"
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_leaves_month"),
        CheckConstraint("paid >= 0 AND unpaid >= 0", name="ck_leaves_non_negative"),
        Index("idx_leaves_employee", "employee_id"),
    )

    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)
    school_id: Mapped[UUID] = mapped_column(ForeignKey("schools.id"), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    paid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unpaid: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def to_dto(self):
        from billing_modules.leave.models import LeaveRecord

        return LeaveRecord(
            id=self.id,
            employee_id=self.employee_id,
            school_id=self.school_id,
            month=self.month,
            year=self.year,
            paid=self.paid,
            unpaid=self.unpaid,
        )

    def __repr__(self) -> str:
        return (
            f"<LeaveModel employee={self.employee_id} {self.year}-{self.month:02d} "
            f"paid={self.paid} unpaid={self.unpaid}>"
        )
