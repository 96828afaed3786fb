"""
Employee (trainer) reference model.

Only identity and the profile fields needed for billing views live here;
HR profile management is handled elsewhere.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class EmployeeModel(TrackedBase):
    """
    ORM model for an employee who can be posted to schools.

    Guarantees:
        - employee_code is unique (uq_employees_code).
    """

    __tablename__ = "employees"

    __table_args__ = (
        UniqueConstraint("employee_code", name="uq_employees_code"),
        Index("idx_employees_is_active", "is_active"),
    )

    employee_code: Mapped[str] = mapped_column(String(50), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    designation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_summary(self):
        from billing_kernel.domain.dtos import EmployeeSummary

        return EmployeeSummary(
            id=self.id,
            employee_code=self.employee_code,
            full_name=self.full_name,
            designation=self.designation,
        )

    def __repr__(self) -> str:
        return f"<EmployeeModel {self.employee_code}: {self.full_name}>"
