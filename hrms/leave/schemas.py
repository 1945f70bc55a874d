"""Leave Pydantic v2 schemas.

Naming convention follows core_hr:
  - *Create / *Update / *Request → request bodies
  - *Out                         → response bodies
"""


import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrms.common.constants import LeaveStatus, LeaveType

MAX_LEAVE_SPAN_DAYS = 365


def leave_dates_error(start_date: date, end_date: date) -> Optional[str]:
    """Why the range cannot be a leave request, or ``None`` when it can."""
    if start_date > end_date:
        return "start_date must be on or before end_date."
    if (end_date - start_date).days >= MAX_LEAVE_SPAN_DAYS:
        return f"Leave request cannot span more than {MAX_LEAVE_SPAN_DAYS} days."
    return None


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create / Update
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload to file a leave request for an employee."""

    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        error = leave_dates_error(self.start_date, self.end_date)
        if error is not None:
            raise ValueError(error)
        return self


class LeaveRequestUpdate(BaseModel):
    """Partial update of a PENDING request. Dates are re-checked by the service against the stored range."""

    leave_type: Optional[LeaveType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=2000)


class LeaveDecisionRequest(BaseModel):
    """Body of approve / reject."""

    comments: Optional[str] = Field(None, max_length=2000)


class LeaveBalanceSet(BaseModel):
    """Provision (or re-size) a ledger row."""

    employee_id: uuid.UUID
    leave_type: LeaveType
    year: int = Field(..., ge=1900, le=9999)
    total_days: int = Field(..., ge=0)


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days_requested: int
    reason: Optional[str] = None
    status: LeaveStatus
    approver_id: Optional[uuid.UUID] = None
    comments: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeaveBalanceOut(BaseModel):
    """Ledger row; ``remaining_days`` is computed, never stored."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    year: int
    total_days: int
    used_days: int
    remaining_days: int
