"""Enums and constants for the HR Management System.

Enum values are the upper-case strings stored in the database and exchanged
on the wire.
"""

from __future__ import annotations

import enum


# ── Employee / Core HR ──────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    TERMINATED = "TERMINATED"
    ON_LEAVE = "ON_LEAVE"


# Employees in these states cannot sign in
LOGIN_BLOCKED_STATUSES = frozenset({EmployeeStatus.INACTIVE, EmployeeStatus.TERMINATED})


# ── Auth / Roles ────────────────────────────────────────────────────

class EmployeeRole(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    HR = "HR"
    ADMIN = "ADMIN"


# Role hierarchy: a higher rank implicitly holds every lower role
ROLE_RANK: dict[EmployeeRole, int] = {
    EmployeeRole.EMPLOYEE: 1,
    EmployeeRole.MANAGER: 2,
    EmployeeRole.HR: 3,
    EmployeeRole.ADMIN: 4,
}


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    EMERGENCY = "EMERGENCY"
    PERSONAL = "PERSONAL"


class LeaveStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# ── Performance ─────────────────────────────────────────────────────

class ReviewPeriod(str, enum.Enum):
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    ANNUAL = "ANNUAL"
    PROBATION = "PROBATION"


class ReviewStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class GoalStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXCEEDED = "EXCEEDED"
    NOT_ACHIEVED = "NOT_ACHIEVED"


# Reviews in these states still accept edits
EDITABLE_REVIEW_STATUSES = frozenset({ReviewStatus.DRAFT, ReviewStatus.SUBMITTED})

MAX_RATING = 5


# ── Misc ────────────────────────────────────────────────────────────

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
REQUEST_ID_HEADER = "X-Request-ID"
