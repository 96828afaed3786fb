"""
Posting ORM Models (``billing_modules.posting.orm``).

Responsibility
--------------
SQLAlchemy persistence for employee postings and their salary history.
Maps to the frozen dataclasses in ``models.py``.

Storage-level guarantees
------------------------
* ``uq_postings_one_current_per_employee``: partial unique index allowing at
  most one row per employee with ``is_active`` and a current status.  The
  posting state machine is the first line of defence, this index the second.
* ``ck_postings_end_after_start``: end_date >= start_date when set.
* ``ck_postings_salary_positive``: monthly_billing_salary > 0.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase
from billing_kernel.models.employee import EmployeeModel
from billing_kernel.models.school import SchoolModel

_CURRENT_POSTING_PREDICATE = "is_active AND status IN ('continue', 'change_school')"


class EmployeePostingModel(TrackedBase):
    """
    ORM model for an employee posting.

    Guarantees:
        - status stored as PostingStatus value string.
        - salary_history is append-only, ordered by effective_from.
    """

    __tablename__ = "employee_postings"

    __table_args__ = (
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_postings_end_after_start",
        ),
        CheckConstraint(
            "monthly_billing_salary > 0",
            name="ck_postings_salary_positive",
        ),
        Index("idx_postings_employee_active", "employee_id", "is_active"),
        Index("idx_postings_school_active", "school_id", "is_active"),
        Index("idx_postings_status", "status"),
        Index(
            "uq_postings_one_current_per_employee",
            "employee_id",
            unique=True,
            postgresql_where=text(_CURRENT_POSTING_PREDICATE),
            sqlite_where=text(_CURRENT_POSTING_PREDICATE),
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id"), nullable=False
    )
    school_id: Mapped[UUID] = mapped_column(
        ForeignKey("schools.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="continue")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    monthly_billing_salary: Mapped[Decimal] = mapped_column(nullable=False)
    tds_percent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    gst_percent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    employee: Mapped[EmployeeModel] = relationship(lazy="joined")
    school: Mapped[SchoolModel] = relationship(lazy="joined")

    salary_history: Mapped[list["PostingSalaryHistoryModel"]] = relationship(
        back_populates="posting",
        cascade="all, delete-orphan",
        order_by="PostingSalaryHistoryModel.effective_from",
        lazy="selectin",
    )

    def record_salary(self, amount: Decimal, effective_from: date) -> None:
        """Close the open salary entry and append a new one."""
        for entry in self.salary_history:
            if entry.effective_to is None:
                entry.effective_to = effective_from
        self.salary_history.append(
            PostingSalaryHistoryModel(amount=amount, effective_from=effective_from)
        )
        self.monthly_billing_salary = amount

    def deactivate(self, on: date) -> None:
        """Mark the posting inactive, ending it on ``on`` (never before start)."""
        self.is_active = False
        self.end_date = max(on, self.start_date)

    def to_dto(self):
        """Convert ORM model to frozen dataclass (populated view)."""
        from billing_modules.posting.models import Posting, PostingStatus, SalaryChange

        return Posting(
            id=self.id,
            employee_id=self.employee_id,
            school_id=self.school_id,
            start_date=self.start_date,
            end_date=self.end_date,
            status=PostingStatus(self.status),
            is_active=self.is_active,
            monthly_billing_salary=self.monthly_billing_salary,
            tds_percent=self.tds_percent,
            gst_percent=self.gst_percent,
            remark=self.remark,
            salary_history=tuple(
                SalaryChange(
                    amount=entry.amount,
                    effective_from=entry.effective_from,
                    effective_to=entry.effective_to,
                )
                for entry in self.salary_history
            ),
            employee=self.employee.to_summary() if self.employee is not None else None,
            school=self.school.to_summary() if self.school is not None else None,
            created_by_id=self.created_by_id,
            updated_by_id=self.updated_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<EmployeePostingModel employee={self.employee_id} "
            f"school={self.school_id} {self.status} active={self.is_active}>"
        )


class PostingSalaryHistoryModel(Base):
    """Append-only billing-salary audit trail of a posting."""

    __tablename__ = "employee_posting_salary_history"

    __table_args__ = (
        Index("idx_posting_salary_history_posting", "posting_id"),
    )

    posting_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee_postings.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    posting: Mapped[EmployeePostingModel] = relationship(back_populates="salary_history")
