"""Leave module tests: day counting, request lifecycle, approval against the
balance ledger, access scoping and the /leaves API.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.schemas import Principal
from hrms.common.constants import EmployeeRole, LeaveStatus, LeaveType
from hrms.common.exceptions import (
    FailedPreconditionException,
    ForbiddenException,
    InternalError,
    NotFoundException,
    ValidationException,
)
from hrms.core_hr.models import Employee
from hrms.leave.models import LeaveBalance, LeaveRequest, inclusive_days
from hrms.leave.schemas import (
    MAX_LEAVE_SPAN_DAYS,
    LeaveBalanceSet,
    LeaveRequestCreate,
    LeaveRequestUpdate,
)
from hrms.leave.service import LeaveService
from tests.conftest import TEST_SETTINGS, TestSessionFactory, auth_header, make_settings


# ═════════════════════════════════════════════════════════════════════
# Helpers: seed data for leave tests
# ═════════════════════════════════════════════════════════════════════


async def _seed_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    *,
    leave_type: LeaveType = LeaveType.ANNUAL,
    year: int = 2026,
    total_days: int = 20,
    used_days: int = 0,
) -> LeaveBalance:
    bal = LeaveBalance(
        employee_id=employee_id,
        leave_type=leave_type,
        year=year,
        total_days=total_days,
        used_days=used_days,
    )
    db.add(bal)
    await db.commit()
    return bal


async def _seed_request(
    db: AsyncSession,
    employee_id: uuid.UUID,
    *,
    leave_type: LeaveType = LeaveType.ANNUAL,
    start: date = date(2026, 3, 2),
    end: date = date(2026, 3, 6),
    status: LeaveStatus = LeaveStatus.PENDING,
    reason: Optional[str] = "Family trip",
) -> LeaveRequest:
    leave = LeaveRequest(
        employee_id=employee_id,
        leave_type=leave_type,
        start_date=start,
        end_date=end,
        days_requested=inclusive_days(start, end),
        reason=reason,
        status=status,
    )
    db.add(leave)
    await db.commit()
    return leave


def _principal(employee: Employee) -> Principal:
    return Principal(
        employee_id=employee.id,
        employee_code=employee.employee_code,
        email=employee.email,
        role=employee.role,
    )


async def _fresh_balance(balance_id: uuid.UUID) -> LeaveBalance:
    """Re-read a ledger row through a new session."""
    async with TestSessionFactory() as session:
        return await session.get(LeaveBalance, balance_id)


async def _fresh_request(request_id: uuid.UUID) -> LeaveRequest:
    async with TestSessionFactory() as session:
        return await session.get(LeaveRequest, request_id)


# ═════════════════════════════════════════════════════════════════════
# Day counting
# ═════════════════════════════════════════════════════════════════════


class TestInclusiveDays:
    @pytest.mark.parametrize(
        "start, end, expected",
        [
            (date(2026, 3, 2), date(2026, 3, 2), 1),
            (date(2026, 3, 2), date(2026, 3, 6), 5),
            # Weekends are counted: calendar days only
            (date(2026, 3, 6), date(2026, 3, 9), 4),
            (date(2026, 2, 27), date(2026, 3, 2), 4),
            (date(2024, 2, 28), date(2024, 3, 1), 3),
            (date(2025, 12, 30), date(2026, 1, 2), 4),
        ],
    )
    def test_inclusive_count(self, start, end, expected):
        assert inclusive_days(start, end) == expected


class TestCreateSchema:
    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            LeaveRequestCreate(
                employee_id=uuid.uuid4(),
                leave_type=LeaveType.SICK,
                start_date=date(2026, 3, 10),
                end_date=date(2026, 3, 9),
            )

    def test_span_of_a_year_rejected(self):
        with pytest.raises(ValueError):
            LeaveRequestCreate(
                employee_id=uuid.uuid4(),
                leave_type=LeaveType.ANNUAL,
                start_date=date(2026, 1, 1),
                end_date=date(2027, 1, 1),
            )

    def test_unknown_leave_type_rejected(self):
        with pytest.raises(ValueError):
            LeaveRequestCreate(
                employee_id=uuid.uuid4(),
                leave_type="SABBATICAL",
                start_date=date(2026, 1, 1),
                end_date=date(2026, 1, 2),
            )


# ═════════════════════════════════════════════════════════════════════
# Requests: create / update / cancel
# ═════════════════════════════════════════════════════════════════════


class TestCreateRequest:
    async def test_create_is_pending_with_day_count(self, db: AsyncSession, staff):
        service = LeaveService(db, TEST_SETTINGS)
        leave = await service.create_request(
            LeaveRequestCreate(
                employee_id=staff.id,
                leave_type=LeaveType.ANNUAL,
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 6),
                reason="Holiday",
            ),
        )
        assert leave.status == LeaveStatus.PENDING
        assert leave.days_requested == 5
        assert leave.approver_id is None
        assert leave.approved_at is None

    async def test_create_does_not_touch_ledger(self, db: AsyncSession, staff):
        bal = await _seed_balance(db, staff.id, total_days=10)
        await LeaveService(db, TEST_SETTINGS).create_request(
            LeaveRequestCreate(
                employee_id=staff.id,
                leave_type=LeaveType.ANNUAL,
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 20),
            ),
        )
        await db.commit()
        fresh = await _fresh_balance(bal.id)
        assert (fresh.total_days, fresh.used_days) == (10, 0)

    async def test_create_without_balance_row_allowed(self, db: AsyncSession, staff):
        leave = await LeaveService(db, TEST_SETTINGS).create_request(
            LeaveRequestCreate(
                employee_id=staff.id,
                leave_type=LeaveType.SICK,
                start_date=date(2026, 5, 1),
                end_date=date(2026, 5, 1),
            ),
        )
        assert leave.days_requested == 1

    async def test_unknown_employee_is_404(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await LeaveService(db, TEST_SETTINGS).create_request(
                LeaveRequestCreate(
                    employee_id=uuid.uuid4(),
                    leave_type=LeaveType.ANNUAL,
                    start_date=date(2026, 3, 2),
                    end_date=date(2026, 3, 2),
                ),
            )

    async def test_employee_cannot_file_for_someone_else(self, db: AsyncSession, staff, manager):
        with pytest.raises(ForbiddenException):
            await LeaveService(db, TEST_SETTINGS).create_request(
                LeaveRequestCreate(
                    employee_id=manager.id,
                    leave_type=LeaveType.ANNUAL,
                    start_date=date(2026, 3, 2),
                    end_date=date(2026, 3, 2),
                ),
                actor=_principal(staff),
            )

    async def test_manager_can_file_for_report(self, db: AsyncSession, staff, manager):
        leave = await LeaveService(db, TEST_SETTINGS).create_request(
            LeaveRequestCreate(
                employee_id=staff.id,
                leave_type=LeaveType.EMERGENCY,
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 3),
            ),
            actor=_principal(manager),
        )
        assert leave.employee_id == staff.id


class TestUpdateRequest:
    async def test_update_recomputes_days(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id)
        updated = await LeaveService(db, TEST_SETTINGS).update_request(
            leave.id, LeaveRequestUpdate(end_date=date(2026, 3, 3)),
        )
        assert updated.days_requested == 2
        assert updated.start_date == date(2026, 3, 2)

    async def test_update_rejects_inverted_dates(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id)
        with pytest.raises(ValidationException):
            await LeaveService(db, TEST_SETTINGS).update_request(
                leave.id, LeaveRequestUpdate(start_date=date(2026, 4, 1)),
            )

    async def test_empty_update_rejected(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id)
        with pytest.raises(ValidationException):
            await LeaveService(db, TEST_SETTINGS).update_request(leave.id, LeaveRequestUpdate())

    async def test_update_cannot_stretch_past_max_span(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id)
        with pytest.raises(ValidationException) as exc_info:
            await LeaveService(db, TEST_SETTINGS).update_request(
                leave.id, LeaveRequestUpdate(end_date=date(2028, 3, 2)),
            )
        assert exc_info.value.errors == {
            "end_date": [f"Leave request cannot span more than {MAX_LEAVE_SPAN_DAYS} days."],
        }
        await db.commit()

        fresh = await _fresh_request(leave.id)
        assert (fresh.end_date, fresh.days_requested) == (date(2026, 3, 6), 5)

    async def test_update_to_longest_allowed_span(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id, start=date(2026, 1, 1), end=date(2026, 1, 2))
        updated = await LeaveService(db, TEST_SETTINGS).update_request(
            leave.id, LeaveRequestUpdate(end_date=date(2026, 12, 31)),
        )
        assert updated.days_requested == MAX_LEAVE_SPAN_DAYS

    @pytest.mark.parametrize(
        "status",
        [LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED],
    )
    async def test_decided_request_cannot_be_updated(self, db: AsyncSession, staff, status):
        leave = await _seed_request(db, staff.id, status=status)
        with pytest.raises(FailedPreconditionException, match="cannot update leave"):
            await LeaveService(db, TEST_SETTINGS).update_request(
                leave.id, LeaveRequestUpdate(reason="changed"),
            )


class TestCancelRequest:
    async def test_cancel_pending(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id)
        cancelled = await LeaveService(db, TEST_SETTINGS).cancel_request(
            leave.id, actor=_principal(staff),
        )
        assert cancelled.status == LeaveStatus.CANCELLED

    async def test_cancelled_request_cannot_be_approved(self, db: AsyncSession, staff, manager):
        await _seed_balance(db, staff.id)
        leave = await _seed_request(db, staff.id)
        service = LeaveService(db, TEST_SETTINGS)
        await service.cancel_request(leave.id)

        with pytest.raises(FailedPreconditionException, match="status: CANCELLED"):
            await service.approve(leave.id, manager.id)

    async def test_approved_request_cannot_be_cancelled(self, db: AsyncSession, staff):
        leave = await _seed_request(db, staff.id, status=LeaveStatus.APPROVED)
        with pytest.raises(FailedPreconditionException, match="cannot cancel leave"):
            await LeaveService(db, TEST_SETTINGS).cancel_request(leave.id)

    async def test_cannot_cancel_colleagues_request(self, db: AsyncSession, staff):
        colleague_leave = await _seed_request(db, staff.id)
        other = Principal(
            employee_id=uuid.uuid4(),
            employee_code="X",
            email="x@example.com",
            role=EmployeeRole.EMPLOYEE,
        )
        with pytest.raises(ForbiddenException):
            await LeaveService(db, TEST_SETTINGS).cancel_request(colleague_leave.id, actor=other)


# ═════════════════════════════════════════════════════════════════════
# Approval workflow
# ═════════════════════════════════════════════════════════════════════


class TestApprove:
    async def test_approve_debits_ledger(self, db: AsyncSession, staff, manager):
        bal = await _seed_balance(db, staff.id, total_days=20, used_days=3)
        leave = await _seed_request(db, staff.id)

        result = await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id, "Enjoy")
        await db.commit()

        assert result.status == LeaveStatus.APPROVED
        assert result.approver_id == manager.id
        assert result.comments == "Enjoy"
        assert result.approved_at is not None

        fresh = await _fresh_balance(bal.id)
        assert fresh.used_days == 8
        assert fresh.total_days == 20
        assert fresh.remaining_days == 12

    async def test_approve_charges_the_start_year(self, db: AsyncSession, staff, manager):
        bal_2025 = await _seed_balance(db, staff.id, year=2025, total_days=10)
        bal_2026 = await _seed_balance(db, staff.id, year=2026, total_days=10)
        leave = await _seed_request(db, staff.id, start=date(2025, 12, 30), end=date(2026, 1, 2))

        await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        await db.commit()

        assert (await _fresh_balance(bal_2025.id)).used_days == 4
        assert (await _fresh_balance(bal_2026.id)).used_days == 0

    async def test_approve_only_touches_matching_type(self, db: AsyncSession, staff, manager):
        annual = await _seed_balance(db, staff.id, leave_type=LeaveType.ANNUAL)
        sick = await _seed_balance(db, staff.id, leave_type=LeaveType.SICK)
        leave = await _seed_request(db, staff.id, leave_type=LeaveType.SICK)

        await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        await db.commit()

        assert (await _fresh_balance(annual.id)).used_days == 0
        assert (await _fresh_balance(sick.id)).used_days == 5

    async def test_approve_exhausting_balance_exactly(self, db: AsyncSession, staff, manager):
        bal = await _seed_balance(db, staff.id, total_days=5)
        leave = await _seed_request(db, staff.id)

        await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        await db.commit()

        fresh = await _fresh_balance(bal.id)
        assert (fresh.total_days, fresh.used_days, fresh.remaining_days) == (5, 5, 0)

    async def test_overdraw_extends_allotment(self, db: AsyncSession, staff, manager):
        bal = await _seed_balance(db, staff.id, total_days=3, used_days=1)
        leave = await _seed_request(db, staff.id)

        await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        await db.commit()

        fresh = await _fresh_balance(bal.id)
        assert fresh.used_days == 6
        assert fresh.total_days == 6
        assert fresh.remaining_days == 0

    async def test_overdraw_refused_when_extension_disabled(
        self, db: AsyncSession, staff, manager,
    ):
        bal = await _seed_balance(db, staff.id, total_days=3, used_days=1)
        leave = await _seed_request(db, staff.id)
        service = LeaveService(db, make_settings(LEAVE_AUTO_EXTEND_ALLOTMENT=False))

        with pytest.raises(FailedPreconditionException, match="Insufficient ANNUAL balance"):
            await service.approve(leave.id, manager.id)
        await db.commit()

        fresh = await _fresh_balance(bal.id)
        assert (fresh.total_days, fresh.used_days) == (3, 1)
        assert (await _fresh_request(leave.id)).status == LeaveStatus.PENDING

    async def test_within_balance_ok_when_extension_disabled(
        self, db: AsyncSession, staff, manager,
    ):
        bal = await _seed_balance(db, staff.id, total_days=10)
        leave = await _seed_request(db, staff.id)
        service = LeaveService(db, make_settings(LEAVE_AUTO_EXTEND_ALLOTMENT=False))

        await service.approve(leave.id, manager.id)
        await db.commit()
        assert (await _fresh_balance(bal.id)).used_days == 5

    async def test_missing_ledger_row_refused_without_side_effects(
        self, db: AsyncSession, staff, manager,
    ):
        leave = await _seed_request(db, staff.id)

        with pytest.raises(FailedPreconditionException, match="No ANNUAL leave balance"):
            await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        await db.commit()

        fresh = await _fresh_request(leave.id)
        assert fresh.status == LeaveStatus.PENDING
        assert fresh.approver_id is None
        rows = (await db.execute(select(LeaveBalance))).scalars().all()
        assert rows == []

    async def test_failed_ledger_write_rolls_back_approval(
        self, db: AsyncSession, staff, manager,
    ):
        bal = await _seed_balance(db, staff.id, total_days=20, used_days=2)
        leave = await _seed_request(db, staff.id)

        def _break_ledger_row(mapper, connection, target):
            # violates ck_leave_balance_used at flush time
            target.used_days = -1

        event.listen(LeaveBalance, "before_update", _break_ledger_row)
        try:
            with pytest.raises(InternalError, match="Failed to approve leave request"):
                await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        finally:
            event.remove(LeaveBalance, "before_update", _break_ledger_row)

        fresh = await _fresh_request(leave.id)
        assert fresh.status == LeaveStatus.PENDING
        assert fresh.approver_id is None
        assert fresh.approved_at is None
        fresh_bal = await _fresh_balance(bal.id)
        assert (fresh_bal.total_days, fresh_bal.used_days) == (20, 2)

    async def test_balance_for_other_year_does_not_count(self, db: AsyncSession, staff, manager):
        await _seed_balance(db, staff.id, year=2025)
        leave = await _seed_request(db, staff.id)
        with pytest.raises(FailedPreconditionException):
            await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)

    @pytest.mark.parametrize(
        "status",
        [LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED],
    )
    async def test_non_pending_cannot_be_approved(self, db: AsyncSession, staff, manager, status):
        bal = await _seed_balance(db, staff.id, total_days=20, used_days=2)
        leave = await _seed_request(db, staff.id, status=status)

        with pytest.raises(FailedPreconditionException) as exc_info:
            await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        assert exc_info.value.detail == f"cannot approve leave with status: {status.value}"
        await db.commit()

        fresh = await _fresh_balance(bal.id)
        assert (fresh.total_days, fresh.used_days) == (20, 2)

    async def test_unknown_request_is_404(self, db: AsyncSession, manager):
        with pytest.raises(NotFoundException):
            await LeaveService(db, TEST_SETTINGS).approve(uuid.uuid4(), manager.id)

    async def test_self_approval_forbidden(self, db: AsyncSession, manager):
        bal = await _seed_balance(db, manager.id)
        leave = await _seed_request(db, manager.id)
        with pytest.raises(ForbiddenException):
            await LeaveService(db, TEST_SETTINGS).approve(leave.id, manager.id)
        await db.commit()
        assert (await _fresh_balance(bal.id)).used_days == 0

    async def test_second_approval_in_new_transaction_refused(self, staff, manager, db):
        """Two approvals of one request: exactly one debit reaches the ledger."""
        bal = await _seed_balance(db, staff.id, total_days=20)
        leave = await _seed_request(db, staff.id)

        async with TestSessionFactory() as first:
            await LeaveService(first, TEST_SETTINGS).approve(leave.id, manager.id)
            await first.commit()

        async with TestSessionFactory() as second:
            with pytest.raises(FailedPreconditionException, match="status: APPROVED"):
                await LeaveService(second, TEST_SETTINGS).approve(leave.id, manager.id)
            await second.rollback()

        assert (await _fresh_balance(bal.id)).used_days == 5

    async def test_reject_after_approve_refused(self, db: AsyncSession, staff, manager):
        await _seed_balance(db, staff.id)
        leave = await _seed_request(db, staff.id)
        service = LeaveService(db, TEST_SETTINGS)
        await service.approve(leave.id, manager.id)

        with pytest.raises(FailedPreconditionException, match="cannot reject leave"):
            await service.reject(leave.id, manager.id)


class TestReject:
    async def test_reject_never_touches_ledger(self, db: AsyncSession, staff, manager):
        bal = await _seed_balance(db, staff.id, total_days=20, used_days=4)
        leave = await _seed_request(db, staff.id)

        result = await LeaveService(db, TEST_SETTINGS).reject(leave.id, manager.id, "Busy period")
        await db.commit()

        assert result.status == LeaveStatus.REJECTED
        assert result.approver_id == manager.id
        assert result.comments == "Busy period"
        assert result.approved_at is not None
        fresh = await _fresh_balance(bal.id)
        assert (fresh.total_days, fresh.used_days) == (20, 4)

    async def test_reject_without_ledger_row(self, db: AsyncSession, staff, manager):
        leave = await _seed_request(db, staff.id)
        result = await LeaveService(db, TEST_SETTINGS).reject(leave.id, manager.id)
        assert result.status == LeaveStatus.REJECTED

    async def test_rejected_request_cannot_be_rejected_again(
        self, db: AsyncSession, staff, manager,
    ):
        leave = await _seed_request(db, staff.id, status=LeaveStatus.REJECTED)
        with pytest.raises(FailedPreconditionException, match="status: REJECTED"):
            await LeaveService(db, TEST_SETTINGS).reject(leave.id, manager.id)

    async def test_self_rejection_forbidden(self, db: AsyncSession, manager):
        leave = await _seed_request(db, manager.id)
        with pytest.raises(ForbiddenException):
            await LeaveService(db, TEST_SETTINGS).reject(leave.id, manager.id)


# ═════════════════════════════════════════════════════════════════════
# Listing and balances
# ═════════════════════════════════════════════════════════════════════


class TestListRequests:
    async def test_newest_first_with_filters(self, db: AsyncSession, staff, manager):
        first = await _seed_request(db, staff.id, reason="first")
        second = await _seed_request(db, staff.id, reason="second", leave_type=LeaveType.SICK)
        await _seed_request(db, manager.id, reason="manager's")

        service = LeaveService(db, TEST_SETTINGS)
        mine = await service.list_requests(employee_id=staff.id)
        assert [r.id for r in mine.data] == [second.id, first.id]

        sick = await service.list_requests(leave_type=LeaveType.SICK)
        assert [r.id for r in sick.data] == [second.id]

        everything = await service.list_requests()
        assert everything.meta.total == 3

    async def test_status_filter(self, db: AsyncSession, staff):
        await _seed_request(db, staff.id)
        approved = await _seed_request(db, staff.id, status=LeaveStatus.APPROVED)

        result = await LeaveService(db, TEST_SETTINGS).list_requests(status=LeaveStatus.APPROVED)
        assert [r.id for r in result.data] == [approved.id]

    async def test_date_window(self, db: AsyncSession, staff):
        march = await _seed_request(db, staff.id, start=date(2026, 3, 2), end=date(2026, 3, 6))
        across = await _seed_request(db, staff.id, start=date(2026, 3, 30), end=date(2026, 4, 2))
        await _seed_request(db, staff.id, start=date(2026, 5, 4), end=date(2026, 5, 5))

        service = LeaveService(db, TEST_SETTINGS)
        in_march = await service.list_requests(
            start_from=date(2026, 3, 1), end_to=date(2026, 3, 31),
        )
        assert [r.id for r in in_march.data] == [march.id]

        until_april = await service.list_requests(end_to=date(2026, 4, 30))
        assert {r.id for r in until_april.data} == {march.id, across.id}

        from_mid_march = await service.list_requests(start_from=date(2026, 3, 15))
        assert from_mid_march.meta.total == 2

    async def test_inverted_date_window_rejected(self, db: AsyncSession):
        with pytest.raises(ValidationException):
            await LeaveService(db, TEST_SETTINGS).list_requests(
                start_from=date(2026, 4, 1), end_to=date(2026, 3, 1),
            )

    async def test_employee_sees_only_own(self, db: AsyncSession, staff, manager):
        own = await _seed_request(db, staff.id)
        await _seed_request(db, manager.id)

        result = await LeaveService(db, TEST_SETTINGS).list_requests(actor=_principal(staff))
        assert [r.id for r in result.data] == [own.id]

        with pytest.raises(ForbiddenException):
            await LeaveService(db, TEST_SETTINGS).list_requests(
                employee_id=manager.id, actor=_principal(staff),
            )


class TestBalances:
    async def test_set_balance_creates_row(self, db: AsyncSession, staff):
        out = await LeaveService(db, TEST_SETTINGS).set_balance(
            LeaveBalanceSet(employee_id=staff.id, leave_type=LeaveType.ANNUAL, year=2026, total_days=25),
        )
        assert (out.total_days, out.used_days, out.remaining_days) == (25, 0, 25)

    async def test_set_balance_resizes_existing_row(self, db: AsyncSession, staff):
        bal = await _seed_balance(db, staff.id, total_days=10, used_days=4)
        out = await LeaveService(db, TEST_SETTINGS).set_balance(
            LeaveBalanceSet(employee_id=staff.id, leave_type=LeaveType.ANNUAL, year=2026, total_days=15),
        )
        assert out.id == bal.id
        assert (out.total_days, out.used_days) == (15, 4)

    async def test_set_balance_below_used_refused(self, db: AsyncSession, staff):
        await _seed_balance(db, staff.id, total_days=10, used_days=4)
        with pytest.raises(FailedPreconditionException):
            await LeaveService(db, TEST_SETTINGS).set_balance(
                LeaveBalanceSet(
                    employee_id=staff.id, leave_type=LeaveType.ANNUAL, year=2026, total_days=3,
                ),
            )

    async def test_get_balance_by_year(self, db: AsyncSession, staff):
        await _seed_balance(db, staff.id, year=2025)
        await _seed_balance(db, staff.id, year=2026, leave_type=LeaveType.SICK, total_days=8)
        await _seed_balance(db, staff.id, year=2026, leave_type=LeaveType.ANNUAL)

        service = LeaveService(db, TEST_SETTINGS)
        rows = await service.get_balance(staff.id, 2026)
        assert {(r.leave_type, r.total_days) for r in rows} == {
            (LeaveType.ANNUAL, 20), (LeaveType.SICK, 8),
        }
        assert len(await service.get_balance(staff.id)) == 3

    async def test_get_balance_of_colleague_forbidden(self, db: AsyncSession, staff, manager):
        with pytest.raises(ForbiddenException):
            await LeaveService(db, TEST_SETTINGS).get_balance(manager.id, actor=_principal(staff))

    def test_remaining_never_negative(self):
        assert LeaveBalance(total_days=2, used_days=5).remaining_days == 0


# ═════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════


class TestLeaveAPI:
    async def test_full_approval_flow(self, client, db, staff, manager):
        await _seed_balance(db, staff.id, total_days=12)

        created = await client.post(
            "/api/v1/leaves",
            json={
                "employee_id": str(staff.id),
                "leave_type": "ANNUAL",
                "start_date": "2026-03-02",
                "end_date": "2026-03-04",
                "reason": "Conference",
            },
            headers=auth_header(staff),
        )
        assert created.status_code == 201
        leave_id = created.json()["id"]
        assert created.json()["days_requested"] == 3
        assert created.json()["status"] == "PENDING"

        approved = await client.post(
            f"/api/v1/leaves/{leave_id}/approve",
            json={"comments": "Approved"},
            headers=auth_header(manager),
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"
        assert approved.json()["approver_id"] == str(manager.id)

        balance = await client.get(
            f"/api/v1/leaves/balances/{staff.id}",
            params={"year": 2026},
            headers=auth_header(staff),
        )
        assert balance.status_code == 200
        [row] = balance.json()
        assert (row["total_days"], row["used_days"], row["remaining_days"]) == (12, 3, 9)

        again = await client.post(
            f"/api/v1/leaves/{leave_id}/approve", headers=auth_header(manager),
        )
        assert again.status_code == 409
        assert again.json()["type"].endswith("/failed-precondition")
        assert again.json()["detail"] == "cannot approve leave with status: APPROVED"

    async def test_employee_cannot_approve(self, client, db, staff, manager):
        leave = await _seed_request(db, manager.id)
        resp = await client.post(
            f"/api/v1/leaves/{leave.id}/approve", headers=auth_header(staff),
        )
        assert resp.status_code == 403

    async def test_approve_without_ledger_row_is_409(self, client, db, staff, manager):
        leave = await _seed_request(db, staff.id)
        resp = await client.post(
            f"/api/v1/leaves/{leave.id}/approve", headers=auth_header(manager),
        )
        assert resp.status_code == 409
        assert (await _fresh_request(leave.id)).status == LeaveStatus.PENDING

    async def test_reject_flow(self, client, db, staff, manager):
        leave = await _seed_request(db, staff.id)
        resp = await client.post(
            f"/api/v1/leaves/{leave.id}/reject",
            json={"comments": "Team offsite"},
            headers=auth_header(manager),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "REJECTED"

    async def test_invalid_dates_are_422(self, client, staff):
        resp = await client.post(
            "/api/v1/leaves",
            json={
                "employee_id": str(staff.id),
                "leave_type": "ANNUAL",
                "start_date": "2026-03-04",
                "end_date": "2026-03-02",
            },
            headers=auth_header(staff),
        )
        assert resp.status_code == 422

    async def test_delete_cancels(self, client, db, staff):
        leave = await _seed_request(db, staff.id)
        resp = await client.delete(f"/api/v1/leaves/{leave.id}", headers=auth_header(staff))
        assert resp.status_code == 200
        assert resp.json()["status"] == "CANCELLED"

        again = await client.delete(f"/api/v1/leaves/{leave.id}", headers=auth_header(staff))
        assert again.status_code == 409

    async def test_list_by_date_window(self, client, db, staff, manager):
        march = await _seed_request(db, staff.id, start=date(2026, 3, 2), end=date(2026, 3, 6))
        await _seed_request(db, staff.id, start=date(2026, 6, 1), end=date(2026, 6, 3))

        resp = await client.get(
            "/api/v1/leaves",
            params={"start_from": "2026-03-01", "end_to": "2026-03-31"},
            headers=auth_header(manager),
        )
        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()["data"]] == [str(march.id)]

    async def test_patch_beyond_max_span_is_422(self, client, db, staff):
        leave = await _seed_request(db, staff.id)
        resp = await client.patch(
            f"/api/v1/leaves/{leave.id}",
            json={"end_date": "2028-03-02"},
            headers=auth_header(staff),
        )
        assert resp.status_code == 422
        assert "end_date" in resp.json()["errors"]

    async def test_patch_pending_request(self, client, db, staff):
        leave = await _seed_request(db, staff.id)
        resp = await client.patch(
            f"/api/v1/leaves/{leave.id}",
            json={"leave_type": "PERSONAL", "end_date": "2026-03-02"},
            headers=auth_header(staff),
        )
        assert resp.status_code == 200
        assert resp.json()["leave_type"] == "PERSONAL"
        assert resp.json()["days_requested"] == 1

    async def test_list_scoped_to_caller(self, client, db, staff, manager):
        await _seed_request(db, staff.id)
        await _seed_request(db, manager.id)

        own = await client.get("/api/v1/leaves", headers=auth_header(staff))
        assert own.json()["meta"]["total"] == 1

        everyone = await client.get("/api/v1/leaves", headers=auth_header(manager))
        assert everyone.json()["meta"]["total"] == 2

        filtered = await client.get(
            "/api/v1/leaves", params={"status": "PENDING", "employee_id": str(staff.id)},
            headers=auth_header(manager),
        )
        assert filtered.json()["meta"]["total"] == 1

    async def test_colleague_request_hidden(self, client, db, staff, manager):
        leave = await _seed_request(db, manager.id)
        resp = await client.get(f"/api/v1/leaves/{leave.id}", headers=auth_header(staff))
        assert resp.status_code == 403

    async def test_set_balance_requires_manager(self, client, staff, manager):
        payload = {
            "employee_id": str(staff.id), "leave_type": "SICK", "year": 2026, "total_days": 10,
        }
        denied = await client.put("/api/v1/leaves/balances", json=payload, headers=auth_header(staff))
        assert denied.status_code == 403

        ok = await client.put("/api/v1/leaves/balances", json=payload, headers=auth_header(manager))
        assert ok.status_code == 200
        assert ok.json()["remaining_days"] == 10
