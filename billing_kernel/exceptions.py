"""
Typed Exception Hierarchy for Trainer Posting and School Billing.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from BillingError:

    BillingError (base)
    |
    +-- ValidationError
    |   +-- MissingSalaryError
    |   +-- InvalidDateRangeError
    |   +-- InvalidPostingStatusError
    |   +-- InvalidPercentageError
    |   +-- InvalidPeriodError
    |   +-- LeaveCapExceededError
    |   +-- InvalidLeaveDaysError
    |   +-- InvalidPaymentAmountError
    |   +-- OverpaymentError
    |
    +-- NotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- SchoolNotFoundError
    |   +-- PostingNotFoundError
    |   +-- InvoiceNotFoundError
    |
    +-- InvalidStateError
    |   +-- InactiveSchoolError
    |   +-- NotCurrentlyPostedError
    |   +-- AlreadyPostedHereError
    |   +-- DuplicateActivePostingError
    |
    +-- DuplicateError
    |   +-- DuplicateInvoiceError
    |
    +-- BatchError
        +-- TaskNotRegisteredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_SALARY              | monthly billing salary absent or <= 0
                | INVALID_DATE_RANGE          | end date before start date
                | INVALID_POSTING_STATUS      | status outside the posting lifecycle
                | INVALID_PERCENTAGE          | tds/gst percent outside 0..100
                | INVALID_PERIOD              | month outside 1..12, bad year
                | LEAVE_CAP_EXCEEDED          | paid + unpaid above the monthly cap
                | INVALID_LEAVE_DAYS          | negative paid or unpaid day count
                | NON_POSITIVE_PAYMENT        | payment amount <= 0
                | OVERPAYMENT                 | payment larger than pending amount
                | INVALID_ADJUSTMENT          | invoice adjustment not a finite number
----------------|-----------------------------|-----------------------------------------
Not found       | EMPLOYEE_NOT_FOUND          | employee id doesn't exist
                | SCHOOL_NOT_FOUND            | school id doesn't exist
                | POSTING_NOT_FOUND           | posting id doesn't exist
                | INVOICE_NOT_FOUND           | invoice id doesn't exist
----------------|-----------------------------|-----------------------------------------
Invalid state   | INACTIVE_SCHOOL             | posting to an inactive school
                | NOT_CURRENTLY_POSTED        | transfer without a current posting
                | ALREADY_POSTED_HERE         | transfer to the current school
                | DUPLICATE_ACTIVE_POSTING    | continue posting at the same school
----------------|-----------------------------|-----------------------------------------
Duplicate       | DUPLICATE_INVOICE           | invoice exists for (school, month, year)
----------------|-----------------------------|-----------------------------------------
Batch           | TASK_NOT_REGISTERED         | unknown batch task type

Exceptions carry their context as attributes so that logs and operation
results keep the structured data, not just the message.
"""


class BillingError(Exception):
    """
    Base exception for all billing errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BILLING_ERROR"

    @property
    def kind(self) -> str:
        """Name of the error category (ValidationError, NotFoundError, ...)."""
        for klass in type(self).__mro__:
            if klass in _CATEGORIES:
                return klass.__name__
        return type(self).__name__


# Validation


class ValidationError(BillingError):
    """Malformed or missing input."""

    code: str = "VALIDATION_ERROR"


class MissingSalaryError(ValidationError):
    """Monthly billing salary is required and must be positive."""

    code: str = "MISSING_SALARY"

    def __init__(self, value: object = None):
        self.value = value
        super().__init__("Monthly billing salary is required and must be greater than 0")


class InvalidDateRangeError(ValidationError):
    """End date falls before start date."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start_date: object, end_date: object):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"End date cannot be before start date: {end_date} < {start_date}"
        )


class InvalidPostingStatusError(ValidationError):
    """Posting status outside the known lifecycle states."""

    code: str = "INVALID_POSTING_STATUS"

    def __init__(self, status: object, allowed: tuple[str, ...]):
        self.status = status
        self.allowed = allowed
        super().__init__(f"Invalid posting status '{status}', expected one of {list(allowed)}")


class InvalidPercentageError(ValidationError):
    """Percentage field outside 0..100."""

    code: str = "INVALID_PERCENTAGE"

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name} must be between 0 and 100, got {value}")


class InvalidPeriodError(ValidationError):
    """Billing month/year outside the accepted range."""

    code: str = "INVALID_PERIOD"

    def __init__(self, month: object, year: object):
        self.month = month
        self.year = year
        super().__init__(f"Invalid billing period: month={month}, year={year}")


class LeaveCapExceededError(ValidationError):
    """Paid + unpaid leave days exceed the monthly cap."""

    code: str = "LEAVE_CAP_EXCEEDED"

    def __init__(self, paid: int, unpaid: int, max_days: int):
        self.paid = paid
        self.unpaid = unpaid
        self.max_days = max_days
        super().__init__(
            f"Leaves exceed days in month: {paid} paid + {unpaid} unpaid > {max_days}"
        )


class InvalidLeaveDaysError(ValidationError):
    """Leave day counts must be non-negative integers."""

    code: str = "INVALID_LEAVE_DAYS"

    def __init__(self, paid: object, unpaid: object):
        self.paid = paid
        self.unpaid = unpaid
        super().__init__(f"Leave days must be non-negative, got paid={paid}, unpaid={unpaid}")


class InvalidPaymentAmountError(ValidationError):
    """Payment amount must be strictly positive."""

    code: str = "NON_POSITIVE_PAYMENT"

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Payment amount must be greater than 0, got {amount}")


class InvalidAdjustmentError(ValidationError):
    """Invoice adjustment must be a finite number."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, adjustment: object):
        self.adjustment = adjustment
        super().__init__(f"Adjustment must be a finite number, got {adjustment!r}")


class OverpaymentError(ValidationError):
    """Payment would take the invoice below zero pending."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: object, pending_amount: object):
        self.invoice_id = invoice_id
        self.amount = amount
        self.pending_amount = pending_amount
        super().__init__(
            f"Payment {amount} exceeds pending amount {pending_amount} "
            f"on invoice {invoice_id}"
        )


# Not found


class NotFoundError(BillingError):
    """A referenced record does not exist."""

    code: str = "NOT_FOUND"


class EmployeeNotFoundError(NotFoundError):
    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__("Employee not found")


class SchoolNotFoundError(NotFoundError):
    code: str = "SCHOOL_NOT_FOUND"

    def __init__(self, school_id: str):
        self.school_id = school_id
        super().__init__("School not found")


class PostingNotFoundError(NotFoundError):
    code: str = "POSTING_NOT_FOUND"

    def __init__(self, posting_id: str):
        self.posting_id = posting_id
        super().__init__("Posting not found")


class InvoiceNotFoundError(NotFoundError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__("Invoice not found")


# Invalid state


class InvalidStateError(BillingError):
    """A business rule forbids the requested transition."""

    code: str = "INVALID_STATE"


class InactiveSchoolError(InvalidStateError):
    code: str = "INACTIVE_SCHOOL"

    def __init__(self, school_id: str):
        self.school_id = school_id
        super().__init__("Cannot post to inactive school")


class NotCurrentlyPostedError(InvalidStateError):
    code: str = "NOT_CURRENTLY_POSTED"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__("Employee is not currently posted to any school")


class AlreadyPostedHereError(InvalidStateError):
    code: str = "ALREADY_POSTED_HERE"

    def __init__(self, employee_id: str, school_id: str):
        self.employee_id = employee_id
        self.school_id = school_id
        super().__init__("Employee is already posted to this school")


class DuplicateActivePostingError(InvalidStateError):
    code: str = "DUPLICATE_ACTIVE_POSTING"

    def __init__(self, employee_id: str, school_id: str):
        self.employee_id = employee_id
        self.school_id = school_id
        super().__init__("Employee already has active posting in this school")


# Duplicate


class DuplicateError(BillingError):
    """A record for the same natural key already exists."""

    code: str = "DUPLICATE"


class DuplicateInvoiceError(DuplicateError):
    code: str = "DUPLICATE_INVOICE"

    def __init__(self, school_id: str, month: int, year: int):
        self.school_id = school_id
        self.month = month
        self.year = year
        super().__init__(
            f"Invoice already exists for school {school_id} for {month:02d}/{year}"
        )


# Batch


class BatchError(BillingError):
    code: str = "BATCH_ERROR"


class TaskNotRegisteredError(BatchError):
    code: str = "TASK_NOT_REGISTERED"

    def __init__(self, task_type: str, available: tuple[str, ...] = ()):
        self.task_type = task_type
        self.available = available
        super().__init__(
            f"No task registered for type '{task_type}'. Available: {list(available)}"
        )


_CATEGORIES = (
    ValidationError,
    NotFoundError,
    InvalidStateError,
    DuplicateError,
    BatchError,
)
