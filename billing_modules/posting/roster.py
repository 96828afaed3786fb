"""
Roster Synchronizer (``billing_modules.posting.roster``).

Responsibility
--------------
Keeps ``SchoolModel.current_trainers`` consistent with posting history.
Called explicitly, exactly once, by ``PostingService`` for every posting it
writes; there are no storage hooks, so deactivating a superseded posting
can never re-trigger the synchronizer.

Invariant maintained
--------------------
After ``apply()`` the employee is on the roster of exactly the schools
where they hold an active posting with a current status (continue or
change_school), which is at most one school.

``reconcile()`` rebuilds rosters from posting rows and is the repair path
for rosters that drifted (e.g. rows edited outside the service).

Non-goals
---------
Does NOT commit.  The calling service owns the transaction boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import get_logger
from billing_kernel.models.employee import EmployeeModel
from billing_kernel.models.school import SchoolModel
from billing_modules.posting.models import CURRENT_STATUSES, PostingStatus
from billing_modules.posting.orm import EmployeePostingModel

logger = get_logger("modules.posting.roster")

_CURRENT_STATUS_VALUES = tuple(s.value for s in CURRENT_STATUSES)


@dataclass(frozen=True)
class RosterChange:
    """What one synchronization pass changed."""
    posting_id: UUID
    added_to: UUID | None = None
    removed_from: frozenset[UUID] = field(default_factory=frozenset)
    deactivated_posting_ids: tuple[UUID, ...] = ()


class RosterSynchronizer:
    """Applies the roster side effects of a posting write."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def apply(self, posting: EmployeePostingModel) -> RosterChange:
        """
        Run the side-effect pass for one created or updated posting.

        resign / terminate:
            the employee leaves the posting's school roster; the posting and
            any other active posting of the employee at that school are
            deactivated.
        continue / change_school:
            every other active posting of the employee is deactivated and the
            employee removed from those schools' rosters; the employee joins
            the posting's school roster and the posting is marked active.

        ``posting`` may be transient (not yet added to the session); its
        ``id``, ``employee`` and ``school`` must be set.
        """
        today = self._clock.today()
        employee = posting.employee
        school = posting.school
        status = PostingStatus(posting.status)

        removed: set[UUID] = set()
        deactivated: list[UUID] = []

        if status in CURRENT_STATUSES:
            for old in self._other_active_postings(posting):
                old.school.current_trainers.discard(employee)
                removed.add(old.school_id)
                old.deactivate(today)
                deactivated.append(old.id)
            # Superseded rows must be inactive in the database before this
            # posting becomes the employee's current one.
            self._session.flush()

            school.current_trainers.add(employee)
            posting.is_active = True
            change = RosterChange(
                posting_id=posting.id,
                added_to=school.id,
                removed_from=frozenset(removed - {school.id}),
                deactivated_posting_ids=tuple(deactivated),
            )
        else:
            for old in self._other_active_postings(posting, school_id=school.id):
                old.deactivate(today)
                deactivated.append(old.id)

            school.current_trainers.discard(employee)
            removed.add(school.id)
            posting.deactivate(today)
            change = RosterChange(
                posting_id=posting.id,
                removed_from=frozenset(removed),
                deactivated_posting_ids=tuple(deactivated),
            )

        logger.info(
            "roster_synchronized",
            extra={
                "posting_id": str(posting.id),
                "employee_id": str(employee.id),
                "school_id": str(school.id),
                "status": status.value,
                "added_to": str(change.added_to) if change.added_to else None,
                "removed_from": sorted(str(s) for s in change.removed_from),
                "deactivated_postings": [str(p) for p in deactivated],
            },
        )
        return change

    def reconcile(self, school_id: UUID | None = None) -> dict[UUID, tuple[set[UUID], set[UUID]]]:
        """
        Recompute rosters from posting rows.

        Returns a mapping ``school_id -> (added_employee_ids, removed_employee_ids)``
        for every school whose roster changed.
        """
        query = select(SchoolModel)
        if school_id is not None:
            query = query.where(SchoolModel.id == school_id)
        schools = self._session.execute(query).scalars().all()

        changes: dict[UUID, tuple[set[UUID], set[UUID]]] = {}
        for school in schools:
            expected = set(
                self._session.execute(
                    select(EmployeeModel)
                    .join(
                        EmployeePostingModel,
                        EmployeePostingModel.employee_id == EmployeeModel.id,
                    )
                    .where(
                        EmployeePostingModel.school_id == school.id,
                        EmployeePostingModel.is_active.is_(True),
                        EmployeePostingModel.status.in_(_CURRENT_STATUS_VALUES),
                    )
                ).scalars().unique().all()
            )
            actual = set(school.current_trainers)
            if expected == actual:
                continue

            to_add = expected - actual
            to_remove = actual - expected
            school.current_trainers.difference_update(to_remove)
            school.current_trainers.update(to_add)
            changes[school.id] = ({e.id for e in to_add}, {e.id for e in to_remove})

            logger.warning(
                "roster_reconciled",
                extra={
                    "school_id": str(school.id),
                    "added": sorted(str(e.id) for e in to_add),
                    "removed": sorted(str(e.id) for e in to_remove),
                },
            )

        self._session.flush()
        return changes

    def _other_active_postings(
        self,
        posting: EmployeePostingModel,
        school_id: UUID | None = None,
    ) -> list[EmployeePostingModel]:
        query = select(EmployeePostingModel).where(
            EmployeePostingModel.employee_id == posting.employee.id,
            EmployeePostingModel.is_active.is_(True),
            EmployeePostingModel.id != posting.id,
        )
        if school_id is not None:
            query = query.where(EmployeePostingModel.school_id == school_id)
        return list(self._session.execute(query).scalars().unique().all())
