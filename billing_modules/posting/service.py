"""
Posting Service -- the posting state machine.

Validates a requested posting, persists it and runs the roster
synchronization pass, all inside one transaction that holds a row lock on
the employee.  Either the posting and every roster change commit together
or nothing does.

Validation order for ``create_posting``:
    1. monthly billing salary present and > 0          -> ValidationError
    2. employee exists                                -> NotFoundError
    3. school exists and is active                    -> NotFoundError / InvalidStateError
    4. change_school: employee has a current posting at a different school
                                                      -> InvalidStateError
    5. continue: an active continue posting at the same school is rejected;
       one at a different school turns the request into change_school.
       An active change_school row is simply superseded.

Usage:
    service = PostingService(session, clock)
    result = service.create_posting(
        employee_id=employee.id, school_id=school.id, status="continue",
        monthly_billing_salary=Decimal("30000"), actor_id=actor_id,
    )
    if result.is_success:
        posting = result.value
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.money import to_decimal
from billing_kernel.domain.results import OperationResult
from billing_kernel.exceptions import (
    AlreadyPostedHereError,
    BillingError,
    DuplicateActivePostingError,
    EmployeeNotFoundError,
    InactiveSchoolError,
    InvalidDateRangeError,
    InvalidPercentageError,
    InvalidPostingStatusError,
    MissingSalaryError,
    NotCurrentlyPostedError,
    PostingNotFoundError,
    SchoolNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.employee import EmployeeModel
from billing_kernel.models.school import SchoolModel
from billing_modules.posting.models import (
    CURRENT_STATUSES,
    Posting,
    PostingStatus,
    posting_message,
)
from billing_modules.posting.orm import EmployeePostingModel
from billing_modules.posting.roster import RosterSynchronizer

logger = get_logger("modules.posting.service")

TRANSFER_REMARK = "Transferred from previous school"

_CURRENT_STATUS_VALUES = tuple(s.value for s in CURRENT_STATUSES)


class PostingService:
    """
    Creates, updates and lists employee postings.

    Transaction boundary: with ``auto_commit=True`` (default) this service
    commits on success and rolls back on failure.  With ``auto_commit=False``
    it only flushes; the caller owns commit and rollback.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        roster: RosterSynchronizer | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._roster = roster or RosterSynchronizer(session, self._clock)
        self._auto_commit = auto_commit

    # =========================================================================
    # Commands
    # =========================================================================

    def create_posting(
        self,
        employee_id: UUID,
        school_id: UUID,
        status: PostingStatus | str,
        monthly_billing_salary: Decimal | int | str | None,
        actor_id: UUID,
        tds_percent: Decimal | int | str = Decimal("0"),
        gst_percent: Decimal | int | str = Decimal("0"),
        start_date: date | None = None,
        end_date: date | None = None,
        remark: str | None = None,
    ) -> OperationResult[Posting]:
        """Validate and persist a new posting, then synchronize rosters."""
        with LogContext.bind(
            actor_id=str(actor_id), employee_id=str(employee_id), school_id=str(school_id)
        ):
            try:
                salary = _parse_salary(monthly_billing_salary)
                posting_status = _parse_status(status)
                tds = _parse_percent("tds_percent", tds_percent)
                gst = _parse_percent("gst_percent", gst_percent)
                start = start_date or self._clock.today()
                if end_date is not None and end_date < start:
                    raise InvalidDateRangeError(start, end_date)

                employee = self._lock_employee(employee_id)
                school = self._load_school(school_id)
                if not school.is_active:
                    raise InactiveSchoolError(str(school_id))

                if posting_status == PostingStatus.CHANGE_SCHOOL:
                    self._check_transfer(employee_id, school_id)
                elif posting_status == PostingStatus.CONTINUE:
                    current = self._current_posting(
                        employee_id, statuses=(PostingStatus.CONTINUE.value,)
                    )
                    if current is not None:
                        if current.school_id == school_id:
                            raise DuplicateActivePostingError(str(employee_id), str(school_id))
                        posting_status = PostingStatus.CHANGE_SCHOOL
                        remark = remark or TRANSFER_REMARK
                        logger.info(
                            "posting_reclassified_as_transfer",
                            extra={
                                "from_school_id": str(current.school_id),
                                "to_school_id": str(school_id),
                            },
                        )

                posting = EmployeePostingModel(
                    id=uuid4(),
                    employee_id=employee.id,
                    employee=employee,
                    school_id=school.id,
                    school=school,
                    start_date=start,
                    end_date=end_date,
                    status=posting_status.value,
                    is_active=False,
                    tds_percent=tds,
                    gst_percent=gst,
                    remark=remark,
                    created_by_id=actor_id,
                    updated_by_id=actor_id,
                )
                posting.record_salary(salary, start)

                self._roster.apply(posting)
                self._session.add(posting)
                self._session.flush()

                dto = posting.to_dto()
                self._finish()
                logger.info(
                    "posting_created",
                    extra={
                        "posting_id": str(dto.id),
                        "status": dto.status.value,
                        "is_active": dto.is_active,
                        "monthly_billing_salary": str(salary),
                    },
                )
                return OperationResult.ok(dto, message=posting_message(posting_status))

            except BillingError as exc:
                self._abort()
                logger.warning("posting_rejected", extra={"code": exc.code, "reason": str(exc)})
                return OperationResult.fail(exc)
            except IntegrityError:
                # Lost a race against a concurrent posting for this employee.
                self._abort()
                logger.warning("posting_conflict", exc_info=True)
                return OperationResult.fail(
                    DuplicateActivePostingError(str(employee_id), str(school_id))
                )
            except Exception:
                self._abort()
                raise

    def update_posting(
        self,
        posting_id: UUID,
        actor_id: UUID,
        *,
        status: PostingStatus | str | None = None,
        monthly_billing_salary: Decimal | int | str | None = None,
        tds_percent: Decimal | int | str | None = None,
        gst_percent: Decimal | int | str | None = None,
        end_date: date | None = None,
        remark: str | None = None,
    ) -> OperationResult[Posting]:
        """
        Modify an existing posting.

        A salary change appends to the salary history.  A status change
        re-runs the roster synchronization, so resigning or terminating
        through an update removes the employee from the roster.
        """
        with LogContext.bind(actor_id=str(actor_id)):
            try:
                posting = self._session.get(EmployeePostingModel, posting_id)
                if posting is None:
                    raise PostingNotFoundError(str(posting_id))
                self._lock_employee(posting.employee_id)

                new_status = _parse_status(status) if status is not None else None
                if new_status == PostingStatus.CHANGE_SCHOOL and not (
                    posting.is_active and posting.status == new_status.value
                ):
                    # Same rule as create: a transfer leaves a current posting
                    # held at another school.
                    self._check_transfer(posting.employee_id, posting.school_id, posting.id)
                if new_status is not None and new_status in CURRENT_STATUSES:
                    current = self._current_posting(posting.employee_id)
                    if current is not None and current.id != posting.id:
                        if current.school_id == posting.school_id:
                            raise DuplicateActivePostingError(
                                str(posting.employee_id), str(posting.school_id)
                            )
                    if not posting.school.is_active:
                        raise InactiveSchoolError(str(posting.school_id))

                if monthly_billing_salary is not None:
                    salary = _parse_salary(monthly_billing_salary)
                    if salary != posting.monthly_billing_salary:
                        posting.record_salary(salary, self._clock.today())
                if tds_percent is not None:
                    posting.tds_percent = _parse_percent("tds_percent", tds_percent)
                if gst_percent is not None:
                    posting.gst_percent = _parse_percent("gst_percent", gst_percent)
                if remark is not None:
                    posting.remark = remark
                if end_date is not None:
                    if end_date < posting.start_date:
                        raise InvalidDateRangeError(posting.start_date, end_date)
                    posting.end_date = end_date
                posting.updated_by_id = actor_id

                status_changed = new_status is not None and (
                    new_status.value != posting.status
                    or (new_status in CURRENT_STATUSES and not posting.is_active)
                )
                if status_changed:
                    posting.status = new_status.value
                    if new_status in CURRENT_STATUSES and end_date is None:
                        posting.end_date = None
                    self._roster.apply(posting)

                self._session.flush()
                dto = posting.to_dto()
                self._finish()
                logger.info(
                    "posting_updated",
                    extra={
                        "posting_id": str(posting_id),
                        "status": dto.status.value,
                        "status_changed": status_changed,
                        "is_active": dto.is_active,
                    },
                )
                return OperationResult.ok(dto, message=posting_message(dto.status))

            except BillingError as exc:
                self._abort()
                logger.warning("posting_update_rejected", extra={"code": exc.code, "reason": str(exc)})
                return OperationResult.fail(exc)
            except Exception:
                self._abort()
                raise

    # =========================================================================
    # Queries
    # =========================================================================

    def list_postings(
        self,
        employee_id: UUID | None = None,
        school_id: UUID | None = None,
        status: PostingStatus | str | None = None,
        is_active: bool | None = None,
    ) -> list[Posting]:
        """Postings matching every given filter, newest start date first."""
        query = select(EmployeePostingModel)
        if employee_id is not None:
            query = query.where(EmployeePostingModel.employee_id == employee_id)
        if school_id is not None:
            query = query.where(EmployeePostingModel.school_id == school_id)
        if status is not None:
            query = query.where(EmployeePostingModel.status == PostingStatus(status).value)
        if is_active is not None:
            query = query.where(EmployeePostingModel.is_active.is_(is_active))
        query = query.order_by(
            EmployeePostingModel.start_date.desc(),
            EmployeePostingModel.created_at.desc(),
        )
        return [p.to_dto() for p in self._session.execute(query).scalars().unique().all()]

    def get_posting(self, posting_id: UUID) -> Posting | None:
        posting = self._session.get(EmployeePostingModel, posting_id)
        return posting.to_dto() if posting is not None else None

    def get_current_posting(self, employee_id: UUID) -> Posting | None:
        """The employee's active posting with a current status, if any."""
        current = self._current_posting(employee_id)
        return current.to_dto() if current is not None else None

    # =========================================================================
    # Internal
    # =========================================================================

    def _lock_employee(self, employee_id: UUID) -> EmployeeModel:
        """Load the employee row FOR UPDATE, serializing postings per employee."""
        employee = self._session.execute(
            select(EmployeeModel).where(EmployeeModel.id == employee_id).with_for_update()
        ).scalar_one_or_none()
        if employee is None:
            raise EmployeeNotFoundError(str(employee_id))
        return employee

    def _load_school(self, school_id: UUID) -> SchoolModel:
        school = self._session.get(SchoolModel, school_id)
        if school is None:
            raise SchoolNotFoundError(str(school_id))
        return school

    def _current_posting(
        self,
        employee_id: UUID,
        statuses: tuple[str, ...] = _CURRENT_STATUS_VALUES,
    ) -> EmployeePostingModel | None:
        return self._session.execute(
            select(EmployeePostingModel)
            .where(
                EmployeePostingModel.employee_id == employee_id,
                EmployeePostingModel.is_active.is_(True),
                EmployeePostingModel.status.in_(statuses),
            )
            .order_by(EmployeePostingModel.start_date.desc())
            .limit(1)
        ).scalars().first()

    def _check_transfer(
        self, employee_id: UUID, school_id: UUID, posting_id: UUID | None = None
    ) -> None:
        """A transfer needs a current posting at some other school."""
        current = self._current_posting(employee_id)
        if current is None or current.id == posting_id:
            raise NotCurrentlyPostedError(str(employee_id))
        if current.school_id == school_id:
            raise AlreadyPostedHereError(str(employee_id), str(school_id))

    def _finish(self) -> None:
        if self._auto_commit:
            self._session.commit()

    def _abort(self) -> None:
        if self._auto_commit:
            self._session.rollback()


def _parse_salary(value: Decimal | int | str | None) -> Decimal:
    if value is None:
        raise MissingSalaryError(value)
    try:
        salary = to_decimal(value)
    except ValueError:
        raise MissingSalaryError(value) from None
    if not salary.is_finite() or salary <= 0:
        raise MissingSalaryError(value)
    return salary


def _parse_status(value: PostingStatus | str) -> PostingStatus:
    try:
        return PostingStatus(value)
    except ValueError:
        raise InvalidPostingStatusError(
            value, tuple(s.value for s in PostingStatus)
        ) from None


def _parse_percent(name: str, value: Decimal | int | str) -> Decimal:
    try:
        percent = to_decimal(value)
    except ValueError:
        raise InvalidPercentageError(name, value) from None
    if not percent.is_finite() or not Decimal("0") <= percent <= Decimal("100"):
        raise InvalidPercentageError(name, value)
    return percent
