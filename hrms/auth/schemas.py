"""Auth Pydantic schemas for request / response validation."""


import uuid

from pydantic import BaseModel, EmailStr, Field

from hrms.common.constants import ROLE_RANK, EmployeeRole


# ── Requests ────────────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


# ── Verified identity ───────────────────────────────────────────────

class Principal(BaseModel):
    """Identity carried by a verified access token."""

    employee_id: uuid.UUID
    employee_code: str
    email: str
    role: EmployeeRole

    def is_at_least(self, role: EmployeeRole) -> bool:
        return ROLE_RANK[self.role] >= ROLE_RANK[role]


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
