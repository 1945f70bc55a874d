"""Leave router: requests, approve/reject, balances.

All endpoints require authentication. Approval and ledger provisioning
need MANAGER or above; plain employees are limited to their own leave.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_principal, get_settings_dep, require_role
from hrms.auth.schemas import Principal
from hrms.common.constants import EmployeeRole, LeaveStatus, LeaveType
from hrms.common.pagination import PaginatedResponse, PaginationParams
from hrms.config import Settings
from hrms.database import get_db
from hrms.leave.schemas import (
    LeaveBalanceOut,
    LeaveBalanceSet,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
)
from hrms.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])

_manager_or_above = require_role(EmployeeRole.MANAGER)


def get_leave_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
) -> LeaveService:
    return LeaveService(db, settings)


# ── Balances (declared before /{request_id}) ────────────────────────

@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def get_balance(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=1900, le=9999),
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(get_current_principal),
):
    """Ledger rows for an employee, optionally limited to one year."""
    return await service.get_balance(employee_id, year, actor=principal)


@router.put("/balances", response_model=LeaveBalanceOut)
async def set_balance(
    body: LeaveBalanceSet,
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(_manager_or_above),
):
    return await service.set_balance(body)


# ── Requests ────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    body: LeaveRequestCreate,
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.create_request(body, actor=principal)


@router.get("", response_model=PaginatedResponse[LeaveRequestOut])
async def list_leave_requests(
    pagination: PaginationParams = Depends(),
    employee_id: Optional[uuid.UUID] = Query(None),
    leave_status: Optional[LeaveStatus] = Query(None, alias="status"),
    leave_type: Optional[LeaveType] = Query(None),
    start_from: Optional[date] = Query(None, description="Earliest start_date (inclusive)"),
    end_to: Optional[date] = Query(None, description="Latest end_date (inclusive)"),
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(get_current_principal),
):
    """Newest first."""
    return await service.list_requests(
        page=pagination.page,
        page_size=pagination.page_size,
        employee_id=employee_id,
        status=leave_status,
        leave_type=leave_type,
        start_from=start_from,
        end_to=end_to,
        actor=principal,
    )


@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.get_request(request_id, actor=principal)


@router.patch("/{request_id}", response_model=LeaveRequestOut)
async def update_leave_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.update_request(request_id, body, actor=principal)


@router.delete("/{request_id}", response_model=LeaveRequestOut)
async def cancel_leave_request(
    request_id: uuid.UUID,
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(get_current_principal),
):
    """Cancel a PENDING request."""
    return await service.cancel_request(request_id, actor=principal)


# ── Decisions ───────────────────────────────────────────────────────

@router.post("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest = LeaveDecisionRequest(),
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(_manager_or_above),
):
    """Approve a PENDING request and debit the employee's ledger."""
    return await service.approve(request_id, principal.employee_id, body.comments)


@router.post("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest = LeaveDecisionRequest(),
    service: LeaveService = Depends(get_leave_service),
    principal: Principal = Depends(_manager_or_above),
):
    return await service.reject(request_id, principal.employee_id, body.comments)
