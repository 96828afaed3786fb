"""Tests for OperationResult and the BillingError hierarchy."""

import pytest

from billing_kernel.domain.results import OperationResult, OperationStatus
from billing_kernel.exceptions import (
    AlreadyPostedHereError,
    BillingError,
    DuplicateInvoiceError,
    EmployeeNotFoundError,
    InvalidAdjustmentError,
    LeaveCapExceededError,
    MissingSalaryError,
    OverpaymentError,
    TaskNotRegisteredError,
)


class TestErrorKinds:

    @pytest.mark.parametrize(
        "error, kind, code",
        [
            (MissingSalaryError(0), "ValidationError", "MISSING_SALARY"),
            (LeaveCapExceededError(20, 12, 31), "ValidationError", "LEAVE_CAP_EXCEEDED"),
            (OverpaymentError("inv", 10, 5), "ValidationError", "OVERPAYMENT"),
            (InvalidAdjustmentError("abc"), "ValidationError", "INVALID_ADJUSTMENT"),
            (EmployeeNotFoundError("e1"), "NotFoundError", "EMPLOYEE_NOT_FOUND"),
            (AlreadyPostedHereError("e1", "s1"), "InvalidStateError", "ALREADY_POSTED_HERE"),
            (DuplicateInvoiceError("s1", 6, 2024), "DuplicateError", "DUPLICATE_INVOICE"),
            (TaskNotRegisteredError("x"), "BatchError", "TASK_NOT_REGISTERED"),
        ],
    )
    def test_kind_and_code(self, error, kind, code):
        assert isinstance(error, BillingError)
        assert error.kind == kind
        assert error.code == code

    def test_errors_keep_context(self):
        error = LeaveCapExceededError(20, 12, 31)
        assert (error.paid, error.unpaid, error.max_days) == (20, 12, 31)

    def test_duplicate_invoice_message(self):
        assert "06/2024" in str(DuplicateInvoiceError("s1", 6, 2024))


class TestOperationResult:

    def test_ok(self):
        result = OperationResult.ok({"id": 1}, message="done")
        assert result.is_success
        assert result.status == OperationStatus.SUCCEEDED
        assert result.value == {"id": 1}
        assert result.kind is None
        assert result.code is None

    def test_fail(self):
        result = OperationResult.fail(EmployeeNotFoundError("e1"))
        assert not result.is_success
        assert result.value is None
        assert result.kind == "NotFoundError"
        assert result.code == "EMPLOYEE_NOT_FOUND"
        assert result.message == "Employee not found"
