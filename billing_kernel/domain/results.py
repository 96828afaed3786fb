"""
Operation results.

Public service operations return an ``OperationResult`` instead of letting
domain exceptions cross the service boundary.  A failed result carries the
error category (``kind``), the machine-readable ``code`` of the typed
exception and its message.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from billing_kernel.exceptions import BillingError

T = TypeVar("T")


class OperationStatus(str, Enum):
    """Status of a service operation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Discriminated success/failure result."""

    status: OperationStatus
    value: T | None = None
    error: BillingError | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCEEDED

    @property
    def kind(self) -> str | None:
        return self.error.kind if self.error is not None else None

    @property
    def code(self) -> str | None:
        return self.error.code if self.error is not None else None

    @classmethod
    def ok(cls, value: T, message: str | None = None) -> OperationResult[T]:
        return cls(status=OperationStatus.SUCCEEDED, value=value, message=message)

    @classmethod
    def fail(cls, error: BillingError) -> OperationResult[T]:
        return cls(status=OperationStatus.FAILED, error=error, message=str(error))
