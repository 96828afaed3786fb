"""
Leave Service -- monthly leave ledger.

``upsert_leave`` is idempotent and last-write-wins: the counts given replace
whatever was stored for (employee, school, month, year).  The unique
constraint ``uq_leaves_period`` settles concurrent first writes; the loser
re-reads the winner's row under a SAVEPOINT and overwrites it.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_config.schema import LeaveRules
from billing_kernel.domain.periods import BillingPeriod
from billing_kernel.domain.results import OperationResult
from billing_kernel.exceptions import (
    BillingError,
    EmployeeNotFoundError,
    InvalidLeaveDaysError,
    LeaveCapExceededError,
    SchoolNotFoundError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.models.employee import EmployeeModel
from billing_kernel.models.school import SchoolModel
from billing_modules.leave.models import LeaveRecord
from billing_modules.leave.orm import LeaveModel

logger = get_logger("modules.leave.service")


class LeaveService:
    """Records and reads paid/unpaid leave per employee, school and month."""

    def __init__(
        self,
        session: Session,
        rules: LeaveRules | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._rules = rules or LeaveRules()
        self._auto_commit = auto_commit

    def upsert_leave(
        self,
        employee_id: UUID,
        school_id: UUID,
        month: int,
        year: int,
        actor_id: UUID,
        paid: int = 0,
        unpaid: int = 0,
    ) -> OperationResult[LeaveRecord]:
        with LogContext.bind(
            actor_id=str(actor_id), employee_id=str(employee_id), school_id=str(school_id)
        ):
            try:
                period = BillingPeriod(month, year)
                self._validate_days(paid, unpaid)
                if self._session.get(EmployeeModel, employee_id) is None:
                    raise EmployeeNotFoundError(str(employee_id))
                if self._session.get(SchoolModel, school_id) is None:
                    raise SchoolNotFoundError(str(school_id))

                record = self._find(employee_id, school_id, period, for_update=True)
                created = record is None
                if created:
                    savepoint = self._session.begin_nested()
                    try:
                        record = LeaveModel(
                            employee_id=employee_id,
                            school_id=school_id,
                            month=period.month,
                            year=period.year,
                            paid=paid,
                            unpaid=unpaid,
                            created_by_id=actor_id,
                            updated_by_id=actor_id,
                        )
                        self._session.add(record)
                        self._session.flush()
                        savepoint.commit()
                    except IntegrityError:
                        savepoint.rollback()
                        logger.debug("leave_upsert_race_retry")
                        created = False
                        record = self._find(employee_id, school_id, period, for_update=True)
                        if record is None:
                            raise

                if not created:
                    record.paid = paid
                    record.unpaid = unpaid
                    record.updated_by_id = actor_id
                    self._session.flush()

                dto = record.to_dto()
                self._finish()
                logger.info(
                    "leave_recorded",
                    extra={
                        "period": str(period),
                        "paid": paid,
                        "unpaid": unpaid,
                        "was_created": created,
                    },
                )
                return OperationResult.ok(dto)

            except BillingError as exc:
                self._abort()
                logger.warning("leave_rejected", extra={"code": exc.code, "reason": str(exc)})
                return OperationResult.fail(exc)
            except Exception:
                self._abort()
                raise

    def get_leave(
        self, employee_id: UUID, school_id: UUID, month: int, year: int
    ) -> LeaveRecord | None:
        record = self._find(employee_id, school_id, BillingPeriod(month, year))
        return record.to_dto() if record is not None else None

    def get_leaves_for_employee(self, employee_id: UUID) -> list[LeaveRecord]:
        """Every leave record of the employee, across schools, newest month first."""
        rows = self._session.execute(
            select(LeaveModel)
            .where(LeaveModel.employee_id == employee_id)
            .order_by(LeaveModel.year.desc(), LeaveModel.month.desc())
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def _finish(self) -> None:
        if self._auto_commit:
            self._session.commit()

    def _abort(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    def _validate_days(self, paid: int, unpaid: int) -> None:
        for value in (paid, unpaid):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidLeaveDaysError(paid, unpaid)
        if paid + unpaid > self._rules.max_days:
            raise LeaveCapExceededError(paid, unpaid, self._rules.max_days)

    def _find(
        self,
        employee_id: UUID,
        school_id: UUID,
        period: BillingPeriod,
        for_update: bool = False,
    ) -> LeaveModel | None:
        query = select(LeaveModel).where(
            LeaveModel.employee_id == employee_id,
            LeaveModel.school_id == school_id,
            LeaveModel.month == period.month,
            LeaveModel.year == period.year,
        )
        if for_update:
            query = query.with_for_update()
        return self._session.execute(query).scalar_one_or_none()
