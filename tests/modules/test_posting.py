"""
Tests for the posting state machine and roster synchronization.

Covers:
- create_posting for every status, including the continue -> change_school
  auto-transfer
- validation order and every rejection code
- update_posting (salary history, status changes)
- list_postings filters and ordering
- the roster invariant across operation sequences
- roster reconciliation and the storage-level unique index
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from billing_kernel.models.school import SchoolModel, SchoolStatus, school_current_trainers
from billing_modules.posting import PostingStatus
from billing_modules.posting.orm import EmployeePostingModel
from billing_modules.posting.roster import RosterSynchronizer
from billing_modules.posting.service import TRANSFER_REMARK


def _post(service, employee, school, actor_id, status="continue", salary="30000", **kwargs):
    return service.create_posting(
        employee_id=employee.id,
        school_id=school.id,
        status=status,
        monthly_billing_salary=salary,
        actor_id=actor_id,
        **kwargs,
    )


def _roster_school_ids(session, employee_id) -> set:
    rows = session.execute(
        select(school_current_trainers.c.school_id).where(
            school_current_trainers.c.employee_id == employee_id
        )
    ).scalars().all()
    return set(rows)


def assert_roster_consistent(session, employee_id):
    """Roster membership equals the schools of active current postings."""
    current = session.execute(
        select(EmployeePostingModel.school_id).where(
            EmployeePostingModel.employee_id == employee_id,
            EmployeePostingModel.is_active.is_(True),
            EmployeePostingModel.status.in_(("continue", "change_school")),
        )
    ).scalars().all()
    assert len(current) <= 1
    assert _roster_school_ids(session, employee_id) == set(current)


# =============================================================================
# Creation
# =============================================================================


class TestCreatePosting:

    def test_first_posting(self, session, posting_service, employee, school_a, actor_id):
        result = _post(posting_service, employee, school_a, actor_id)

        assert result.is_success
        assert result.message == "Employee posting created successfully"
        posting = result.value
        assert posting.status == PostingStatus.CONTINUE
        assert posting.is_active
        assert posting.start_date == date(2024, 6, 15)
        assert posting.monthly_billing_salary == Decimal("30000")
        assert _roster_school_ids(session, employee.id) == {school_a.id}

    def test_populated_view(self, posting_service, employee, school_a, actor_id):
        posting = _post(posting_service, employee, school_a, actor_id).value
        assert posting.employee.full_name == "Asha Kulkarni"
        assert posting.school.name == "Green Valley School"
        assert employee.id in posting.school.current_trainer_ids
        assert posting.created_by_id == actor_id
        assert len(posting.salary_history) == 1

    def test_second_continue_same_school_rejected(
        self, session, posting_service, employee, school_a, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        result = _post(posting_service, employee, school_a, actor_id)

        assert not result.is_success
        assert result.kind == "InvalidStateError"
        assert result.code == "DUPLICATE_ACTIVE_POSTING"
        assert result.message == "Employee already has active posting in this school"
        assert len(posting_service.list_postings(employee_id=employee.id)) == 1

    def test_continue_elsewhere_becomes_transfer(
        self, session, posting_service, employee, school_a, school_b, actor_id
    ):
        first = _post(posting_service, employee, school_a, actor_id).value
        result = _post(posting_service, employee, school_b, actor_id, salary="32000")

        assert result.is_success
        assert result.message == "Employee transferred to new school"
        assert result.value.status == PostingStatus.CHANGE_SCHOOL
        assert result.value.remark == TRANSFER_REMARK
        assert result.value.is_active

        old = posting_service.get_posting(first.id)
        assert not old.is_active
        assert old.end_date == date(2024, 6, 15)
        assert _roster_school_ids(session, employee.id) == {school_b.id}

    def test_continue_after_transfer_to_same_school(
        self, session, posting_service, employee, school_a, school_b, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        transfer = _post(posting_service, employee, school_b, actor_id, status="change_school").value

        result = _post(posting_service, employee, school_b, actor_id)

        assert result.is_success, result.message
        assert result.value.status == PostingStatus.CONTINUE
        assert result.value.is_active
        assert not posting_service.get_posting(transfer.id).is_active
        assert _roster_school_ids(session, employee.id) == {school_b.id}
        assert_roster_consistent(session, employee.id)

    def test_continue_after_transfer_elsewhere_stays_continue(
        self, session, posting_service, employee, make_school, actor_id
    ):
        a, b, c = make_school("A"), make_school("B"), make_school("C")
        _post(posting_service, employee, a, actor_id)
        transfer = _post(posting_service, employee, b, actor_id, status="change_school").value

        result = _post(posting_service, employee, c, actor_id)

        assert result.is_success
        assert result.value.status == PostingStatus.CONTINUE
        assert result.value.remark is None
        assert not posting_service.get_posting(transfer.id).is_active
        assert _roster_school_ids(session, employee.id) == {c.id}
        assert_roster_consistent(session, employee.id)

    def test_transfer_keeps_supplied_remark(
        self, posting_service, employee, school_a, school_b, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        result = _post(posting_service, employee, school_b, actor_id, remark="Requested by HQ")
        assert result.value.remark == "Requested by HQ"

    def test_explicit_change_school(
        self, session, posting_service, employee, school_a, school_b, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        result = _post(posting_service, employee, school_b, actor_id, status="change_school")

        assert result.is_success
        assert result.value.status == PostingStatus.CHANGE_SCHOOL
        assert result.value.remark is None
        assert _roster_school_ids(session, employee.id) == {school_b.id}

    @pytest.mark.parametrize(
        "status, message",
        [
            ("resign", "Employee resigned and removed from school"),
            ("terminate", "Employee terminated and removed from school"),
        ],
    )
    def test_exit_removes_from_roster(
        self, session, posting_service, employee, school_a, actor_id, status, message
    ):
        first = _post(posting_service, employee, school_a, actor_id).value
        result = _post(posting_service, employee, school_a, actor_id, status=status)

        assert result.is_success
        assert result.message == message
        assert not result.value.is_active
        assert result.value.end_date == date(2024, 6, 15)
        assert not posting_service.get_posting(first.id).is_active
        assert _roster_school_ids(session, employee.id) == set()
        assert posting_service.get_current_posting(employee.id) is None

    def test_resign_at_other_school_keeps_current_roster(
        self, session, posting_service, employee, school_a, school_b, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        _post(posting_service, employee, school_b, actor_id, status="resign")
        assert _roster_school_ids(session, employee.id) == {school_a.id}
        assert posting_service.get_current_posting(employee.id).school_id == school_a.id

    def test_percentages_stored(self, posting_service, employee, school_a, actor_id):
        posting = _post(
            posting_service, employee, school_a, actor_id, tds_percent="10", gst_percent=18
        ).value
        assert posting.tds_percent == Decimal("10")
        assert posting.gst_percent == Decimal("18")


# =============================================================================
# Validation
# =============================================================================


class TestCreatePostingValidation:

    @pytest.mark.parametrize("salary", [None, 0, "0", "-5", Decimal("-0.01"), "abc", "NaN"])
    def test_missing_or_invalid_salary(
        self, posting_service, employee, school_a, actor_id, salary
    ):
        result = _post(posting_service, employee, school_a, actor_id, salary=salary)
        assert result.kind == "ValidationError"
        assert result.code == "MISSING_SALARY"

    def test_salary_checked_before_existence(self, posting_service, actor_id):
        result = posting_service.create_posting(
            employee_id=uuid4(),
            school_id=uuid4(),
            status="continue",
            monthly_billing_salary=None,
            actor_id=actor_id,
        )
        assert result.code == "MISSING_SALARY"

    def test_unknown_employee(self, posting_service, school_a, actor_id):
        result = posting_service.create_posting(
            employee_id=uuid4(),
            school_id=school_a.id,
            status="continue",
            monthly_billing_salary="30000",
            actor_id=actor_id,
        )
        assert result.kind == "NotFoundError"
        assert result.code == "EMPLOYEE_NOT_FOUND"

    def test_employee_checked_before_school(self, posting_service, actor_id):
        result = posting_service.create_posting(
            employee_id=uuid4(),
            school_id=uuid4(),
            status="continue",
            monthly_billing_salary="30000",
            actor_id=actor_id,
        )
        assert result.code == "EMPLOYEE_NOT_FOUND"

    def test_unknown_school(self, posting_service, employee, actor_id):
        result = posting_service.create_posting(
            employee_id=employee.id,
            school_id=uuid4(),
            status="continue",
            monthly_billing_salary="30000",
            actor_id=actor_id,
        )
        assert result.kind == "NotFoundError"
        assert result.code == "SCHOOL_NOT_FOUND"

    def test_inactive_school(self, posting_service, employee, make_school, actor_id):
        closed = make_school("Closed School", status=SchoolStatus.INACTIVE)
        result = _post(posting_service, employee, closed, actor_id)
        assert result.kind == "InvalidStateError"
        assert result.code == "INACTIVE_SCHOOL"

    def test_change_school_without_current_posting(
        self, posting_service, employee, school_a, actor_id
    ):
        result = _post(posting_service, employee, school_a, actor_id, status="change_school")
        assert result.kind == "InvalidStateError"
        assert result.code == "NOT_CURRENTLY_POSTED"

    def test_change_school_after_resign(
        self, posting_service, employee, school_a, school_b, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        _post(posting_service, employee, school_a, actor_id, status="resign")
        result = _post(posting_service, employee, school_b, actor_id, status="change_school")
        assert result.code == "NOT_CURRENTLY_POSTED"

    def test_change_school_to_same_school(
        self, posting_service, employee, school_a, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        result = _post(posting_service, employee, school_a, actor_id, status="change_school")
        assert result.code == "ALREADY_POSTED_HERE"

    def test_end_before_start(self, posting_service, employee, school_a, actor_id):
        result = _post(
            posting_service,
            employee,
            school_a,
            actor_id,
            start_date=date(2024, 6, 1),
            end_date=date(2024, 5, 31),
        )
        assert result.code == "INVALID_DATE_RANGE"

    def test_unknown_status(self, posting_service, employee, school_a, actor_id):
        result = _post(posting_service, employee, school_a, actor_id, status="sabbatical")
        assert result.kind == "ValidationError"
        assert result.code == "INVALID_POSTING_STATUS"

    @pytest.mark.parametrize("field", ["tds_percent", "gst_percent"])
    @pytest.mark.parametrize("value", ["-1", "100.5", "ten"])
    def test_percent_out_of_range(
        self, posting_service, employee, school_a, actor_id, field, value
    ):
        result = _post(posting_service, employee, school_a, actor_id, **{field: value})
        assert result.code == "INVALID_PERCENTAGE"

    def test_rejection_leaves_no_rows(self, session, posting_service, employee, school_a, actor_id):
        _post(posting_service, employee, school_a, actor_id, status="change_school")
        assert session.execute(select(EmployeePostingModel)).scalars().all() == []
        assert _roster_school_ids(session, employee.id) == set()


# =============================================================================
# Update
# =============================================================================


class TestUpdatePosting:

    def test_salary_change_appends_history(
        self, posting_service, employee, school_a, actor_id, clock
    ):
        posting = _post(posting_service, employee, school_a, actor_id).value
        clock.set_time(datetime(2024, 7, 1, 9, 0))

        result = posting_service.update_posting(
            posting.id, actor_id, monthly_billing_salary="35000"
        )

        assert result.is_success
        updated = result.value
        assert updated.monthly_billing_salary == Decimal("35000")
        assert [h.amount for h in updated.salary_history] == [
            Decimal("30000"),
            Decimal("35000"),
        ]
        assert updated.salary_history[0].effective_to == date(2024, 7, 1)
        assert updated.salary_history[1].effective_to is None

    def test_same_salary_no_history_entry(self, posting_service, employee, school_a, actor_id):
        posting = _post(posting_service, employee, school_a, actor_id).value
        result = posting_service.update_posting(posting.id, actor_id, monthly_billing_salary=30000)
        assert len(result.value.salary_history) == 1

    def test_status_change_to_resign(
        self, session, posting_service, employee, school_a, actor_id
    ):
        posting = _post(posting_service, employee, school_a, actor_id).value
        result = posting_service.update_posting(posting.id, actor_id, status="resign")

        assert result.is_success
        assert result.message == "Employee resigned and removed from school"
        assert not result.value.is_active
        assert result.value.end_date == date(2024, 6, 15)
        assert _roster_school_ids(session, employee.id) == set()
        assert_roster_consistent(session, employee.id)

    def test_reactivation(self, session, posting_service, employee, school_a, actor_id):
        posting = _post(posting_service, employee, school_a, actor_id).value
        posting_service.update_posting(posting.id, actor_id, status="terminate")

        result = posting_service.update_posting(posting.id, actor_id, status="continue")

        assert result.is_success
        assert result.value.is_active
        assert result.value.end_date is None
        assert _roster_school_ids(session, employee.id) == {school_a.id}

    def test_reactivation_moves_employee(
        self, session, posting_service, employee, school_a, school_b, actor_id
    ):
        first = _post(posting_service, employee, school_a, actor_id).value
        _post(posting_service, employee, school_b, actor_id)

        result = posting_service.update_posting(first.id, actor_id, status="continue")

        assert result.is_success
        assert _roster_school_ids(session, employee.id) == {school_a.id}
        assert posting_service.get_current_posting(employee.id).id == first.id
        assert_roster_consistent(session, employee.id)

    def test_reactivation_blocked_by_duplicate(
        self, posting_service, employee, school_a, actor_id
    ):
        first = _post(posting_service, employee, school_a, actor_id).value
        posting_service.update_posting(first.id, actor_id, status="resign")
        _post(posting_service, employee, school_a, actor_id)

        result = posting_service.update_posting(first.id, actor_id, status="continue")
        assert result.code == "DUPLICATE_ACTIVE_POSTING"

    def test_update_to_change_school_needs_other_current_posting(
        self, session, posting_service, employee, school_a, actor_id
    ):
        posting = _post(posting_service, employee, school_a, actor_id).value
        posting_service.update_posting(posting.id, actor_id, status="resign")

        result = posting_service.update_posting(posting.id, actor_id, status="change_school")

        assert result.code == "NOT_CURRENTLY_POSTED"
        assert not posting_service.get_posting(posting.id).is_active
        assert _roster_school_ids(session, employee.id) == set()

    def test_update_to_change_school_at_current_school(
        self, posting_service, employee, school_a, actor_id
    ):
        first = _post(posting_service, employee, school_a, actor_id).value
        posting_service.update_posting(first.id, actor_id, status="resign")
        _post(posting_service, employee, school_a, actor_id)

        result = posting_service.update_posting(first.id, actor_id, status="change_school")
        assert result.code == "ALREADY_POSTED_HERE"

    def test_update_to_change_school_moves_employee(
        self, session, posting_service, employee, school_a, school_b, actor_id
    ):
        first = _post(posting_service, employee, school_a, actor_id).value
        posting_service.update_posting(first.id, actor_id, status="resign")
        _post(posting_service, employee, school_b, actor_id)

        result = posting_service.update_posting(first.id, actor_id, status="change_school")

        assert result.is_success
        assert result.value.status == PostingStatus.CHANGE_SCHOOL
        assert _roster_school_ids(session, employee.id) == {school_a.id}
        assert_roster_consistent(session, employee.id)

    def test_unknown_posting(self, posting_service, actor_id):
        result = posting_service.update_posting(uuid4(), actor_id, status="resign")
        assert result.kind == "NotFoundError"
        assert result.code == "POSTING_NOT_FOUND"

    def test_invalid_salary_rolls_back(self, posting_service, employee, school_a, actor_id):
        posting = _post(posting_service, employee, school_a, actor_id).value
        result = posting_service.update_posting(
            posting.id, actor_id, monthly_billing_salary="0", remark="changed"
        )
        assert result.code == "MISSING_SALARY"
        assert posting_service.get_posting(posting.id).remark is None


# =============================================================================
# Queries
# =============================================================================


class TestListPostings:

    @pytest.fixture
    def history(self, posting_service, employee, school_a, school_b, actor_id):
        first = _post(
            posting_service, employee, school_a, actor_id, start_date=date(2024, 1, 1)
        ).value
        second = _post(posting_service, employee, school_b, actor_id).value
        return first, second

    def test_newest_start_first(self, posting_service, employee, history):
        first, second = history
        postings = posting_service.list_postings(employee_id=employee.id)
        assert [p.id for p in postings] == [second.id, first.id]

    def test_filters(self, posting_service, school_a, history):
        first, second = history
        assert [p.id for p in posting_service.list_postings(is_active=True)] == [second.id]
        assert [p.id for p in posting_service.list_postings(is_active=False)] == [first.id]
        assert [p.id for p in posting_service.list_postings(status="change_school")] == [second.id]
        assert [p.id for p in posting_service.list_postings(school_id=school_a.id)] == [first.id]

    def test_unfiltered(self, posting_service, make_employee, school_a, actor_id, history):
        other = make_employee("Ravi Deshmukh")
        _post(posting_service, other, school_a, actor_id)
        assert len(posting_service.list_postings()) == 3


# =============================================================================
# Roster invariant
# =============================================================================


class TestRosterInvariant:

    def test_sequence_of_operations(
        self, session, posting_service, employee, make_school, actor_id
    ):
        a, b, c = make_school("A"), make_school("B"), make_school("C")
        steps = [
            (a, "continue", {a.id}),
            (b, "continue", {b.id}),
            (c, "change_school", {c.id}),
            (a, "resign", {c.id}),
            (c, "terminate", set()),
            (a, "continue", {a.id}),
        ]
        for school, status, expected in steps:
            result = _post(posting_service, employee, school, actor_id, status=status)
            assert result.is_success, result.message
            assert _roster_school_ids(session, employee.id) == expected
            assert_roster_consistent(session, employee.id)

    def test_two_employees_share_a_school(
        self, session, posting_service, make_employee, school_a, school_b, actor_id
    ):
        first, second = make_employee(), make_employee()
        _post(posting_service, first, school_a, actor_id)
        _post(posting_service, second, school_a, actor_id)
        _post(posting_service, first, school_b, actor_id)

        session.expire_all()
        school = session.get(SchoolModel, school_a.id)
        assert school.current_trainer_ids == frozenset({second.id})

    def test_unique_index_blocks_second_current_posting(
        self, session, employee, school_a, school_b, actor_id
    ):
        for school in (school_a, school_b):
            session.add(
                EmployeePostingModel(
                    employee_id=employee.id,
                    school_id=school.id,
                    start_date=date(2024, 6, 1),
                    status="continue",
                    is_active=True,
                    monthly_billing_salary=Decimal("30000"),
                    created_by_id=actor_id,
                )
            )
        with pytest.raises(IntegrityError):
            session.flush()
        session.rollback()

    def test_unique_index_allows_inactive_history(
        self, session, employee, school_a, school_b, actor_id
    ):
        for school, active in ((school_a, False), (school_b, True)):
            session.add(
                EmployeePostingModel(
                    employee_id=employee.id,
                    school_id=school.id,
                    start_date=date(2024, 6, 1),
                    status="continue",
                    is_active=active,
                    monthly_billing_salary=Decimal("30000"),
                    created_by_id=actor_id,
                )
            )
        session.flush()


class TestReconcile:

    def test_restores_drifted_roster(
        self, session, posting_service, employee, school_a, school_b, actor_id, clock
    ):
        _post(posting_service, employee, school_a, actor_id)
        school_a.current_trainers.clear()
        school_b.current_trainers.add(employee)
        session.commit()

        changes = RosterSynchronizer(session, clock).reconcile()
        session.commit()

        assert changes == {
            school_a.id: ({employee.id}, set()),
            school_b.id: (set(), {employee.id}),
        }
        assert_roster_consistent(session, employee.id)

    def test_consistent_roster_unchanged(
        self, session, posting_service, employee, school_a, actor_id, clock
    ):
        _post(posting_service, employee, school_a, actor_id)
        assert RosterSynchronizer(session, clock).reconcile() == {}

    def test_single_school(self, session, posting_service, employee, school_a, school_b, actor_id, clock):
        _post(posting_service, employee, school_a, actor_id)
        school_b.current_trainers.add(employee)
        session.commit()

        changes = RosterSynchronizer(session, clock).reconcile(school_id=school_a.id)
        assert changes == {}
        assert _roster_school_ids(session, employee.id) == {school_a.id, school_b.id}


# =============================================================================
# Logging
# =============================================================================


class TestPostingLogs:

    def test_created_and_synchronized(
        self, captured_logs, posting_service, employee, school_a, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        records = captured_logs()
        messages = [r["message"] for r in records]
        assert "roster_synchronized" in messages
        created = next(r for r in records if r["message"] == "posting_created")
        assert created["actor_id"] == str(actor_id)
        assert created["employee_id"] == str(employee.id)
        assert created["status"] == "continue"

    def test_transfer_logged(
        self, captured_logs, posting_service, employee, school_a, school_b, actor_id
    ):
        _post(posting_service, employee, school_a, actor_id)
        _post(posting_service, employee, school_b, actor_id)
        transfer = next(
            r for r in captured_logs() if r["message"] == "posting_reclassified_as_transfer"
        )
        assert transfer["from_school_id"] == str(school_a.id)
        assert transfer["to_school_id"] == str(school_b.id)

    def test_rejection_logged(self, captured_logs, posting_service, employee, school_a, actor_id):
        _post(posting_service, employee, school_a, actor_id, salary=None)
        rejected = next(r for r in captured_logs() if r["message"] == "posting_rejected")
        assert rejected["code"] == "MISSING_SALARY"
        assert rejected["level"] == "WARNING"
