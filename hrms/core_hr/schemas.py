"""Core HR Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Update  → request bodies (write)
  - *Response          → response bodies (read)
"""


import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from hrms.common.constants import EmployeeRole, EmployeeStatus

_ADDRESS_FIELDS = ("street", "city", "state", "zip_code", "country")


# ═════════════════════════════════════════════════════════════════════
# Shared / embedded
# ═════════════════════════════════════════════════════════════════════


class AddressSchema(BaseModel):
    """Postal address block (flattened into employee columns)."""

    street: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    zip_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    budget: Optional[Decimal] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=255)


class DepartmentUpdate(BaseModel):
    """Partial-update payload for a department (all fields optional)."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    budget: Optional[Decimal] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=255)


class DepartmentResponse(BaseModel):
    """Full department representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    budget: Optional[Decimal] = None
    location: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # Enriched by the service layer
    employee_count: int = 0


# ═════════════════════════════════════════════════════════════════════
# Employee: write schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    """Payload for creating a new employee."""

    employee_code: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(None, max_length=20)
    department_id: Optional[uuid.UUID] = None
    position: Optional[str] = Field(None, max_length=100)
    salary: Optional[Decimal] = Field(None, ge=0)
    hire_date: Optional[date] = None
    address: Optional[AddressSchema] = None
    role: EmployeeRole = EmployeeRole.EMPLOYEE
    # bcrypt only uses the first 72 bytes
    password: str = Field(..., min_length=8, max_length=72)


class EmployeeUpdate(BaseModel):
    """Partial-update payload for an employee (all fields optional)."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, max_length=20)
    department_id: Optional[uuid.UUID] = None
    position: Optional[str] = Field(None, max_length=100)
    salary: Optional[Decimal] = Field(None, ge=0)
    hire_date: Optional[date] = None
    status: Optional[EmployeeStatus] = None
    role: Optional[EmployeeRole] = None
    address: Optional[AddressSchema] = None


# ═════════════════════════════════════════════════════════════════════
# Employee: read schemas
# ═════════════════════════════════════════════════════════════════════


class EmployeeResponse(BaseModel):
    """Full employee profile (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone_number: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    position: Optional[str] = None
    salary: Optional[Decimal] = None
    hire_date: Optional[date] = None
    status: EmployeeStatus
    role: EmployeeRole
    address: Optional[AddressSchema] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _collect_address(cls, data: Any) -> Any:
        """Fold the flat address columns of an ORM row into ``address``."""
        if hasattr(data, "__table__"):
            parts = {name: getattr(data, name) for name in _ADDRESS_FIELDS}
            fields = {name: getattr(data, name) for name in cls.model_fields if name != "address"}
            fields["address"] = parts if any(parts.values()) else None
            return fields
        return data
