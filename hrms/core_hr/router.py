"""Core HR router: Employee and Department API endpoints.

Routes:
    /employees                  List, create employees
    /employees/{id}             Get, update, delete employee
    /departments                List, create departments
    /departments/{id}           Get, update, delete department
    /departments/{id}/employees Employees of one department
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_principal, get_settings_dep, require_role
from hrms.auth.schemas import Principal
from hrms.common.constants import EmployeeRole, EmployeeStatus
from hrms.common.pagination import PaginatedResponse, PaginationParams
from hrms.config import Settings
from hrms.core_hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
)
from hrms.core_hr.service import DepartmentService, EmployeeService
from hrms.database import get_db


# ═════════════════════════════════════════════════════════════════════
# Routers + service wiring
# ═════════════════════════════════════════════════════════════════════

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])

_hr_only = require_role(EmployeeRole.HR)


def get_department_service(db: AsyncSession = Depends(get_db)) -> DepartmentService:
    return DepartmentService(db)


def get_employee_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
) -> EmployeeService:
    return EmployeeService(db, settings)


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


@employees_router.get("", response_model=PaginatedResponse[EmployeeResponse])
async def list_employees(
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    department_id: Optional[uuid.UUID] = Query(None, description="Filter by department"),
    employee_status: Optional[EmployeeStatus] = Query(None, alias="status"),
    service: EmployeeService = Depends(get_employee_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.list_employees(
        page=pagination.page,
        page_size=pagination.page_size,
        search=search,
        department_id=department_id,
        status=employee_status,
        sort=pagination.sort,
    )


@employees_router.post("", response_model=EmployeeResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(
    body: EmployeeCreate,
    service: EmployeeService = Depends(get_employee_service),
    principal: Principal = Depends(_hr_only),
):
    return await service.create_employee(body)


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: uuid.UUID,
    service: EmployeeService = Depends(get_employee_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.get_employee(employee_id)


@employees_router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    service: EmployeeService = Depends(get_employee_service),
    principal: Principal = Depends(_hr_only),
):
    return await service.update_employee(employee_id, body)


@employees_router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    employee_id: uuid.UUID,
    service: EmployeeService = Depends(get_employee_service),
    principal: Principal = Depends(_hr_only),
):
    await service.delete_employee(employee_id)


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("", response_model=PaginatedResponse[DepartmentResponse])
async def list_departments(
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, description, or location"),
    service: DepartmentService = Depends(get_department_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.list_departments(
        page=pagination.page,
        page_size=pagination.page_size,
        search=search,
        sort=pagination.sort,
    )


@departments_router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    body: DepartmentCreate,
    service: DepartmentService = Depends(get_department_service),
    principal: Principal = Depends(_hr_only),
):
    return await service.create_department(body)


@departments_router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: uuid.UUID,
    service: DepartmentService = Depends(get_department_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.get_department(department_id)


@departments_router.patch("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    service: DepartmentService = Depends(get_department_service),
    principal: Principal = Depends(_hr_only),
):
    return await service.update_department(department_id, body)


@departments_router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_department(
    department_id: uuid.UUID,
    service: DepartmentService = Depends(get_department_service),
    principal: Principal = Depends(_hr_only),
):
    await service.delete_department(department_id)


@departments_router.get(
    "/{department_id}/employees",
    response_model=PaginatedResponse[EmployeeResponse],
)
async def list_department_employees(
    department_id: uuid.UUID,
    pagination: PaginationParams = Depends(),
    service: EmployeeService = Depends(get_employee_service),
    principal: Principal = Depends(get_current_principal),
):
    return await service.list_by_department(
        department_id, page=pagination.page, page_size=pagination.page_size,
    )
