"""Leave persistence access: requests and the balance ledger.

``lock=True`` reads issue ``SELECT ... FOR UPDATE`` so that concurrent
approvals of the same request serialise on the row lock inside the
request transaction.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import LeaveStatus, LeaveType
from hrms.common.filters import apply_filters
from hrms.common.pagination import PaginatedResponse, paginate
from hrms.leave.models import LeaveBalance, LeaveRequest


class LeaveRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Requests ────────────────────────────────────────────────────

    async def get_request(
        self,
        request_id: uuid.UUID,
        *,
        lock: bool = False,
    ) -> Optional[LeaveRequest]:
        query = select(LeaveRequest).where(LeaveRequest.id == request_id)
        if lock:
            # populate_existing: a locked read must not serve a stale identity-map copy
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def list_requests(
        self,
        *,
        page: int,
        page_size: int,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveType] = None,
        start_from: Optional[date] = None,
        end_to: Optional[date] = None,
    ) -> PaginatedResponse:
        query = select(LeaveRequest)
        query = apply_filters(
            query,
            LeaveRequest,
            {
                "employee_id": employee_id,
                "status": status,
                "leave_type": leave_type,
                "start_date__from": start_from,
                "end_date__to": end_to,
            },
        )
        query = query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id)
        return await paginate(self.db, query, page=page, page_size=page_size)

    # ── Ledger ──────────────────────────────────────────────────────

    async def get_balance(
        self,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
        *,
        lock: bool = False,
    ) -> Optional[LeaveBalance]:
        query = select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type == leave_type,
            LeaveBalance.year == year,
        )
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def list_balances(
        self,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> Sequence[LeaveBalance]:
        query = select(LeaveBalance).where(LeaveBalance.employee_id == employee_id)
        if year is not None:
            query = query.where(LeaveBalance.year == year)
        query = query.order_by(LeaveBalance.year.desc(), LeaveBalance.leave_type)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def add_balance(self, balance: LeaveBalance) -> LeaveBalance:
        self.db.add(balance)
        await self.db.flush()
        return balance

    async def flush(self) -> None:
        await self.db.flush()
