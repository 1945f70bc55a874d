"""Leave service layer: request lifecycle and the balance ledger.

Business logic:
  - Requests are filed PENDING with an inclusive calendar-day count
  - PENDING → APPROVED debits the (employee, type, year) ledger row in the
    same transaction; PENDING → REJECTED never touches the ledger
  - PENDING → CANCELLED is the deletion path
  - APPROVED, REJECTED and CANCELLED are terminal
  - Ledger rows must be provisioned before a request can be approved
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.schemas import Principal
from hrms.common.constants import EmployeeRole, LeaveStatus, LeaveType
from hrms.common.exceptions import (
    ConflictError,
    FailedPreconditionException,
    ForbiddenException,
    InternalError,
    NotFoundException,
    ValidationException,
)
from hrms.common.pagination import PaginatedResponse
from hrms.config import Settings
from hrms.core_hr.repository import EmployeeRepository
from hrms.database import utcnow
from hrms.leave.models import LeaveBalance, LeaveRequest, inclusive_days
from hrms.leave.repository import LeaveRepository
from hrms.leave.schemas import (
    LeaveBalanceOut,
    LeaveBalanceSet,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    leave_dates_error,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: requests, approvals, balances."""

    def __init__(self, db: AsyncSession, settings: Settings) -> None:
        self.db = db
        self.auto_extend_allotment = settings.LEAVE_AUTO_EXTEND_ALLOTMENT
        self.leaves = LeaveRepository(db)
        self.employees = EmployeeRepository(db)

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _check_actor(actor: Optional[Principal], employee_id: uuid.UUID) -> None:
        """Plain employees may only act on their own leave."""
        if actor is None or actor.is_at_least(EmployeeRole.MANAGER):
            return
        if actor.employee_id != employee_id:
            raise ForbiddenException("You can only manage your own leave.")

    @staticmethod
    def _require_pending(leave: LeaveRequest, action: str) -> None:
        if leave.status != LeaveStatus.PENDING:
            logger.warning(
                "Leave %s refused",
                action,
                extra={"leave_id": str(leave.id), "status": leave.status.value},
            )
            raise FailedPreconditionException(
                f"cannot {action} leave with status: {leave.status.value}",
            )

    async def _get_or_404(self, request_id: uuid.UUID, *, lock: bool = False) -> LeaveRequest:
        leave = await self.leaves.get_request(request_id, lock=lock)
        if leave is None:
            raise NotFoundException("Leave request", request_id)
        return leave

    async def _check_employee(self, employee_id: uuid.UUID) -> None:
        if not await self.employees.exists(employee_id):
            raise NotFoundException("Employee", employee_id)

    async def _flush(self, action: str, request_id: Optional[uuid.UUID] = None) -> None:
        """Flush pending writes; any persistence failure rolls the transaction back."""
        try:
            await self.leaves.flush()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error(
                "Leave %s failed",
                action,
                extra={"leave_id": str(request_id) if request_id else None, "error": str(exc)},
            )
            raise InternalError(f"Failed to {action} leave request.") from exc

    # ─────────────────────────────────────────────────────────────────
    # Requests: CRUD
    # ─────────────────────────────────────────────────────────────────

    async def create_request(
        self,
        data: LeaveRequestCreate,
        actor: Optional[Principal] = None,
    ) -> LeaveRequestOut:
        self._check_actor(actor, data.employee_id)
        await self._check_employee(data.employee_id)

        leave = LeaveRequest(
            employee_id=data.employee_id,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            days_requested=inclusive_days(data.start_date, data.end_date),
            reason=data.reason,
            status=LeaveStatus.PENDING,
        )
        self.db.add(leave)
        await self._flush("create")

        logger.info(
            "Leave requested",
            extra={
                "leave_id": str(leave.id),
                "employee_id": str(leave.employee_id),
                "days": leave.days_requested,
            },
        )
        return LeaveRequestOut.model_validate(leave)

    async def get_request(
        self,
        request_id: uuid.UUID,
        actor: Optional[Principal] = None,
    ) -> LeaveRequestOut:
        leave = await self._get_or_404(request_id)
        self._check_actor(actor, leave.employee_id)
        return LeaveRequestOut.model_validate(leave)

    async def update_request(
        self,
        request_id: uuid.UUID,
        data: LeaveRequestUpdate,
        actor: Optional[Principal] = None,
    ) -> LeaveRequestOut:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationException({"body": ["At least one field must be provided."]})

        leave = await self._get_or_404(request_id, lock=True)
        self._check_actor(actor, leave.employee_id)
        self._require_pending(leave, "update")

        start = changes.get("start_date", leave.start_date)
        end = changes.get("end_date", leave.end_date)
        error = leave_dates_error(start, end)
        if error is not None:
            raise ValidationException({"end_date": [error]})

        for field, value in changes.items():
            setattr(leave, field, value)
        leave.days_requested = inclusive_days(start, end)
        await self._flush("update", leave.id)

        logger.info(
            "Leave updated",
            extra={"leave_id": str(leave.id), "fields": sorted(changes)},
        )
        return LeaveRequestOut.model_validate(leave)

    async def cancel_request(
        self,
        request_id: uuid.UUID,
        actor: Optional[Principal] = None,
    ) -> LeaveRequestOut:
        """Withdraw a PENDING request. Decided requests cannot be cancelled."""
        leave = await self._get_or_404(request_id, lock=True)
        self._check_actor(actor, leave.employee_id)
        self._require_pending(leave, "cancel")

        leave.status = LeaveStatus.CANCELLED
        await self._flush("cancel", leave.id)

        logger.info("Leave cancelled", extra={"leave_id": str(leave.id)})
        return LeaveRequestOut.model_validate(leave)

    async def list_requests(
        self,
        *,
        page: int = 1,
        page_size: int = 10,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveType] = None,
        start_from: Optional[date] = None,
        end_to: Optional[date] = None,
        actor: Optional[Principal] = None,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """Newest first. Plain employees only ever see their own requests.

        *start_from* and *end_to* keep requests lying entirely inside the
        inclusive window; either bound may be omitted.
        """
        if start_from is not None and end_to is not None and start_from > end_to:
            raise ValidationException({"end_to": ["end_to must be on or after start_from."]})
        if actor is not None and not actor.is_at_least(EmployeeRole.MANAGER):
            if employee_id is not None and employee_id != actor.employee_id:
                raise ForbiddenException("You can only view your own leave.")
            employee_id = actor.employee_id

        result = await self.leaves.list_requests(
            page=page,
            page_size=page_size,
            employee_id=employee_id,
            status=status,
            leave_type=leave_type,
            start_from=start_from,
            end_to=end_to,
        )
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveRequestOut.model_validate(r) for r in result.data],
            meta=result.meta,
        )

    # ─────────────────────────────────────────────────────────────────
    # Approval workflow
    # ─────────────────────────────────────────────────────────────────

    async def approve(
        self,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        comments: Optional[str] = None,
    ) -> LeaveRequestOut:
        """PENDING → APPROVED, debiting the ledger row in the same transaction.

        All preconditions are checked before anything is mutated, so a
        refused approval leaves both rows exactly as they were.
        """
        leave = await self._get_or_404(request_id, lock=True)
        self._require_pending(leave, "approve")
        if approver_id == leave.employee_id:
            raise ForbiddenException("You cannot approve your own leave request.")

        balance = await self.leaves.get_balance(
            leave.employee_id, leave.leave_type, leave.year, lock=True,
        )
        if balance is None:
            raise FailedPreconditionException(
                f"No {leave.leave_type.value} leave balance provisioned for "
                f"employee {leave.employee_id} in {leave.year}.",
            )
        if not self.auto_extend_allotment and leave.days_requested > balance.remaining_days:
            raise FailedPreconditionException(
                f"Insufficient {leave.leave_type.value} balance: requested "
                f"{leave.days_requested} day(s), {balance.remaining_days} remaining.",
            )

        leave.status = LeaveStatus.APPROVED
        leave.approver_id = approver_id
        leave.comments = comments
        leave.approved_at = utcnow()

        balance.used_days += leave.days_requested
        if balance.used_days > balance.total_days:
            logger.info(
                "Leave allotment extended",
                extra={
                    "balance_id": str(balance.id),
                    "from_days": balance.total_days,
                    "to_days": balance.used_days,
                },
            )
            balance.total_days = balance.used_days

        await self._flush("approve", leave.id)

        logger.info(
            "Leave approved",
            extra={
                "leave_id": str(leave.id),
                "approver_id": str(approver_id),
                "used_days": balance.used_days,
                "total_days": balance.total_days,
            },
        )
        return LeaveRequestOut.model_validate(leave)

    async def reject(
        self,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        comments: Optional[str] = None,
    ) -> LeaveRequestOut:
        """PENDING → REJECTED. The ledger is never touched."""
        leave = await self._get_or_404(request_id, lock=True)
        self._require_pending(leave, "reject")
        if approver_id == leave.employee_id:
            raise ForbiddenException("You cannot reject your own leave request.")

        leave.status = LeaveStatus.REJECTED
        leave.approver_id = approver_id
        leave.comments = comments
        leave.approved_at = utcnow()
        await self._flush("reject", leave.id)

        logger.info(
            "Leave rejected",
            extra={"leave_id": str(leave.id), "approver_id": str(approver_id)},
        )
        return LeaveRequestOut.model_validate(leave)

    # ─────────────────────────────────────────────────────────────────
    # Ledger
    # ─────────────────────────────────────────────────────────────────

    async def get_balance(
        self,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
        actor: Optional[Principal] = None,
    ) -> list[LeaveBalanceOut]:
        self._check_actor(actor, employee_id)
        await self._check_employee(employee_id)
        rows = await self.leaves.list_balances(employee_id, year)
        return [LeaveBalanceOut.model_validate(row) for row in rows]

    async def set_balance(self, data: LeaveBalanceSet) -> LeaveBalanceOut:
        """Create a ledger row or re-size its allotment."""
        await self._check_employee(data.employee_id)

        balance = await self.leaves.get_balance(
            data.employee_id, data.leave_type, data.year, lock=True,
        )
        if balance is None:
            balance = LeaveBalance(
                employee_id=data.employee_id,
                leave_type=data.leave_type,
                year=data.year,
                total_days=data.total_days,
                used_days=0,
            )
            try:
                await self.leaves.add_balance(balance)
            except IntegrityError:
                await self.db.rollback()
                raise ConflictError(
                    "leave_balance", f"{data.leave_type.value}/{data.year}",
                )
        else:
            if data.total_days < balance.used_days:
                raise FailedPreconditionException(
                    f"total_days ({data.total_days}) cannot be below the "
                    f"{balance.used_days} day(s) already used.",
                )
            balance.total_days = data.total_days
            await self._flush("provision balance for")

        logger.info(
            "Leave balance set",
            extra={
                "employee_id": str(data.employee_id),
                "leave_type": data.leave_type.value,
                "year": data.year,
                "total_days": data.total_days,
            },
        )
        return LeaveBalanceOut.model_validate(balance)
