"""Core HR service layer: async CRUD + business rules for departments and employees.

Uses:
  - ``DepartmentRepository / EmployeeRepository`` from hrms.core_hr.repository
  - ``NotFoundException / ConflictError / FailedPreconditionException``
    from hrms.common.exceptions
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.security import hash_password
from hrms.common.constants import EmployeeStatus
from hrms.common.exceptions import (
    ConflictError,
    FailedPreconditionException,
    InternalError,
    NotFoundException,
    ValidationException,
)
from hrms.common.pagination import PaginatedResponse
from hrms.config import Settings
from hrms.core_hr.models import Department, Employee
from hrms.core_hr.repository import DepartmentRepository, EmployeeRepository
from hrms.core_hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeResponse,
    EmployeeUpdate,
)

logger = logging.getLogger(__name__)

_REQUIRED_EMPLOYEE_FIELDS = ("first_name", "last_name", "email", "status", "role")


def _require_changes(data: Any) -> dict[str, Any]:
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationException({"body": ["At least one field must be provided."]})
    return changes


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Department CRUD. Names are unique; deletion requires an empty department."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.departments = DepartmentRepository(db)
        self.employees = EmployeeRepository(db)

    async def _get_or_404(self, department_id: uuid.UUID) -> Department:
        dept = await self.departments.get(department_id)
        if dept is None:
            raise NotFoundException("Department", department_id)
        return dept

    async def _check_manager(self, manager_id: Optional[uuid.UUID]) -> None:
        if manager_id is not None and not await self.employees.exists(manager_id):
            raise NotFoundException("Employee", manager_id)

    async def _to_response(self, dept: Department) -> DepartmentResponse:
        resp = DepartmentResponse.model_validate(dept)
        resp.employee_count = await self.departments.employee_count(dept.id)
        return resp

    async def create_department(self, data: DepartmentCreate) -> DepartmentResponse:
        if await self.departments.get_by_name(data.name) is not None:
            raise ConflictError("name", data.name)
        await self._check_manager(data.manager_id)

        dept = Department(**data.model_dump())
        try:
            await self.departments.add(dept)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("name", data.name)

        logger.info("Department created", extra={"department_id": str(dept.id)})
        return DepartmentResponse.model_validate(dept)

    async def get_department(self, department_id: uuid.UUID) -> DepartmentResponse:
        return await self._to_response(await self._get_or_404(department_id))

    async def update_department(
        self,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
    ) -> DepartmentResponse:
        dept = await self._get_or_404(department_id)
        changes = _require_changes(data)
        if "name" in changes and changes["name"] is None:
            del changes["name"]

        new_name = changes.get("name")
        if new_name is not None and new_name.lower() != dept.name.lower():
            existing = await self.departments.get_by_name(new_name)
            if existing is not None and existing.id != dept.id:
                raise ConflictError("name", new_name)
        if "manager_id" in changes:
            await self._check_manager(changes["manager_id"])

        for field, value in changes.items():
            setattr(dept, field, value)
        try:
            await self.departments.save(dept)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("name", new_name)

        logger.info(
            "Department updated",
            extra={"department_id": str(dept.id), "fields": sorted(changes)},
        )
        return await self._to_response(dept)

    async def delete_department(self, department_id: uuid.UUID) -> None:
        dept = await self._get_or_404(department_id)
        count = await self.departments.employee_count(dept.id)
        if count:
            logger.warning(
                "Department delete refused",
                extra={"department_id": str(dept.id), "employee_count": count},
            )
            raise FailedPreconditionException(
                f"Department '{dept.name}' still has {count} employee(s).",
            )
        await self.departments.soft_delete(dept)
        logger.info("Department deleted", extra={"department_id": str(dept.id)})

    async def list_departments(
        self,
        *,
        page: int = 1,
        page_size: int = 10,
        search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> PaginatedResponse[DepartmentResponse]:
        result = await self.departments.list(
            page=page, page_size=page_size, search=search, sort=sort,
        )
        counts = await self.departments.employee_counts([d.id for d in result.data])
        data = []
        for dept in result.data:
            resp = DepartmentResponse.model_validate(dept)
            resp.employee_count = counts.get(dept.id, 0)
            data.append(resp)
        return PaginatedResponse[DepartmentResponse](data=data, meta=result.meta)


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Employee CRUD. Email and employee code are unique; deletes are soft."""

    def __init__(self, db: AsyncSession, settings: Settings) -> None:
        self.db = db
        self.settings = settings
        self.employees = EmployeeRepository(db)
        self.departments = DepartmentRepository(db)

    async def _get_or_404(self, employee_id: uuid.UUID) -> Employee:
        emp = await self.employees.get(employee_id)
        if emp is None:
            raise NotFoundException("Employee", employee_id)
        return emp

    async def _check_department(self, department_id: Optional[uuid.UUID]) -> None:
        if department_id is not None and await self.departments.get(department_id) is None:
            raise NotFoundException("Department", department_id)

    async def _flush(self, emp: Employee, *, email: str, code: Optional[str] = None) -> None:
        try:
            await self.employees.save(emp)
        except IntegrityError as exc:
            await self.db.rollback()
            err = str(exc.orig)
            if code is not None and "employee_code" in err:
                raise ConflictError("employee_code", code)
            if "email" in err:
                raise ConflictError("email", email)
            logger.error("Employee write failed", extra={"error": err})
            raise InternalError() from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("Employee write failed", extra={"error": str(exc)})
            raise InternalError() from exc

    async def create_employee(self, data: EmployeeCreate) -> EmployeeResponse:
        if await self.employees.get_by_email(data.email) is not None:
            raise ConflictError("email", data.email)
        if await self.employees.get_by_code(data.employee_code) is not None:
            raise ConflictError("employee_code", data.employee_code)
        await self._check_department(data.department_id)

        fields = data.model_dump(exclude={"password", "address"})
        if data.address is not None:
            fields.update(data.address.model_dump())

        emp = Employee(
            **fields,
            status=EmployeeStatus.ACTIVE,
            password_hash=hash_password(data.password, rounds=self.settings.BCRYPT_ROUNDS),
        )
        self.db.add(emp)
        await self._flush(emp, email=data.email, code=data.employee_code)

        logger.info(
            "Employee created",
            extra={"employee_id": str(emp.id), "employee_code": emp.employee_code},
        )
        return EmployeeResponse.model_validate(emp)

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeResponse:
        return EmployeeResponse.model_validate(await self._get_or_404(employee_id))

    async def update_employee(
        self,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
    ) -> EmployeeResponse:
        emp = await self._get_or_404(employee_id)
        changes = _require_changes(data)

        new_email = changes.get("email")
        if new_email is not None and new_email.lower() != emp.email.lower():
            existing = await self.employees.get_by_email(new_email)
            if existing is not None and existing.id != emp.id:
                raise ConflictError("email", new_email)
        if changes.get("department_id") is not None:
            await self._check_department(changes["department_id"])

        address = changes.pop("address", None)
        if address is not None:
            changes.update({k: v for k, v in address.items() if v is not None})
        # Required columns cannot be cleared
        for field in _REQUIRED_EMPLOYEE_FIELDS:
            if field in changes and changes[field] is None:
                del changes[field]

        for field, value in changes.items():
            setattr(emp, field, value)
        await self._flush(emp, email=new_email or emp.email)

        logger.info(
            "Employee updated",
            extra={"employee_id": str(emp.id), "fields": sorted(changes)},
        )
        return EmployeeResponse.model_validate(emp)

    async def delete_employee(self, employee_id: uuid.UUID) -> None:
        emp = await self._get_or_404(employee_id)
        await self.employees.soft_delete(emp)
        logger.info("Employee deleted", extra={"employee_id": str(emp.id)})

    async def list_employees(
        self,
        *,
        page: int = 1,
        page_size: int = 10,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        status: Optional[EmployeeStatus] = None,
        sort: Optional[str] = None,
    ) -> PaginatedResponse[EmployeeResponse]:
        result = await self.employees.list(
            page=page,
            page_size=page_size,
            search=search,
            department_id=department_id,
            status=status,
            sort=sort,
        )
        return PaginatedResponse[EmployeeResponse](
            data=[EmployeeResponse.model_validate(e) for e in result.data],
            meta=result.meta,
        )

    async def list_by_department(
        self,
        department_id: uuid.UUID,
        *,
        page: int = 1,
        page_size: int = 10,
    ) -> PaginatedResponse[EmployeeResponse]:
        await self._check_department(department_id)
        return await self.list_employees(
            page=page, page_size=page_size, department_id=department_id,
        )
