"""Reference models shared by every billing module."""

from billing_kernel.models.employee import EmployeeModel
from billing_kernel.models.school import SchoolModel, SchoolStatus, school_current_trainers

__all__ = [
    "EmployeeModel",
    "SchoolModel",
    "SchoolStatus",
    "school_current_trainers",
]
