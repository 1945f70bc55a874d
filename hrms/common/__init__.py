"""Common module: shared utilities for the HR Management System."""

from hrms.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    EmployeeRole,
    EmployeeStatus,
    GoalStatus,
    LeaveStatus,
    LeaveType,
    ReviewPeriod,
    ReviewStatus,
)
from hrms.common.exceptions import (
    AppException,
    ConflictError,
    FailedPreconditionException,
    ForbiddenException,
    InternalError,
    NotFoundException,
    UnauthenticatedException,
    ValidationException,
    register_exception_handlers,
)
from hrms.common.filters import apply_filters, apply_search, apply_sorting
from hrms.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Constants / Enums
    "EmployeeRole",
    "EmployeeStatus",
    "GoalStatus",
    "LeaveStatus",
    "LeaveType",
    "ReviewPeriod",
    "ReviewStatus",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "FailedPreconditionException",
    "ForbiddenException",
    "InternalError",
    "NotFoundException",
    "UnauthenticatedException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    "apply_sorting",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
