"""
Pure domain layer.

Data transfer objects and calculations with NO dependencies on the ORM,
the database, or I/O.  Time enters only through an injected Clock.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.money import ZERO, quantize_money, to_decimal
from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.domain.results import OperationResult, OperationStatus

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ZERO",
    "quantize_money",
    "to_decimal",
    "BillingPeriod",
    "OperationResult",
    "OperationStatus",
]
