"""Core HR persistence access: departments and employees.

Repositories only build and run queries. They never commit; the request
session (``hrms.database.get_db``) owns the transaction.
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.common.constants import EmployeeStatus
from hrms.common.filters import apply_filters, apply_search, apply_sorting
from hrms.common.pagination import PaginatedResponse, paginate
from hrms.core_hr.models import Department, Employee
from hrms.database import utcnow


class DepartmentRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, department_id: uuid.UUID) -> Optional[Department]:
        result = await self.db.execute(
            select(Department).where(
                Department.id == department_id,
                Department.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    async def get_by_name(self, name: str) -> Optional[Department]:
        # Includes soft-deleted rows: the name column stays unique
        result = await self.db.execute(
            select(Department).where(func.lower(Department.name) == name.lower())
        )
        return result.scalars().first()

    async def add(self, department: Department) -> Department:
        self.db.add(department)
        await self.db.flush()
        return department

    async def save(self, department: Department) -> Department:
        await self.db.flush()
        await self.db.refresh(department)
        return department

    async def soft_delete(self, department: Department) -> None:
        department.deleted_at = utcnow()
        await self.db.flush()

    async def employee_count(self, department_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Employee.id)).where(
                Employee.department_id == department_id,
                Employee.deleted_at.is_(None),
            )
        )
        return result.scalar_one()

    async def employee_counts(self, department_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]:
        if not department_ids:
            return {}
        result = await self.db.execute(
            select(Employee.department_id, func.count(Employee.id))
            .where(
                Employee.department_id.in_(department_ids),
                Employee.deleted_at.is_(None),
            )
            .group_by(Employee.department_id)
        )
        return {dept_id: count for dept_id, count in result.all()}

    async def list(
        self,
        *,
        page: int,
        page_size: int,
        search: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(Department).where(Department.deleted_at.is_(None))
        query = apply_search(query, Department, search, ["name", "description", "location"])
        query = apply_sorting(query, Department, sort, default=Department.name.asc())
        return await paginate(self.db, query, page=page, page_size=page_size)


class EmployeeRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, employee_id: uuid.UUID) -> Optional[Employee]:
        result = await self.db.execute(
            select(Employee).where(
                Employee.id == employee_id,
                Employee.deleted_at.is_(None),
            )
        )
        return result.scalars().first()

    async def get_by_email(self, email: str) -> Optional[Employee]:
        result = await self.db.execute(
            select(Employee).where(func.lower(Employee.email) == email.lower())
        )
        return result.scalars().first()

    async def get_by_code(self, employee_code: str) -> Optional[Employee]:
        result = await self.db.execute(
            select(Employee).where(Employee.employee_code == employee_code)
        )
        return result.scalars().first()

    async def exists(self, employee_id: uuid.UUID) -> bool:
        return await self.get(employee_id) is not None

    async def save(self, employee: Employee) -> Employee:
        await self.db.flush()
        await self.db.refresh(employee)
        return employee

    async def soft_delete(self, employee: Employee) -> None:
        employee.deleted_at = utcnow()
        employee.status = EmployeeStatus.TERMINATED
        await self.db.flush()

    async def list(
        self,
        *,
        page: int,
        page_size: int,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        status: Optional[EmployeeStatus] = None,
        sort: Optional[str] = None,
    ) -> PaginatedResponse:
        query = select(Employee).where(Employee.deleted_at.is_(None))
        query = apply_filters(
            query,
            Employee,
            {"department_id": department_id, "status": status},
        )
        query = apply_search(
            query, Employee, search, ["first_name", "last_name", "email", "employee_code"],
        )
        query = apply_sorting(query, Employee, sort, default=Employee.created_at.desc())
        return await paginate(self.db, query, page=page, page_size=page_size)
