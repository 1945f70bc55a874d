"""Auth router: password login, token refresh, current user profile."""


from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.dependencies import get_current_principal, get_settings_dep
from hrms.auth.schemas import LoginRequest, Principal, RefreshRequest, TokenResponse
from hrms.auth.service import AuthService
from hrms.common.rate_limit import LOGIN_RATE_LIMIT, limiter
from hrms.config import Settings
from hrms.core_hr.schemas import EmployeeResponse
from hrms.core_hr.service import EmployeeService
from hrms.database import get_db

router = APIRouter(prefix="", tags=["auth"])


# ── POST /login (public) ────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    return await AuthService(db, settings).login(body.email, body.password)


# ── POST /refresh (public) ──────────────────────────────────────────

@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    return await AuthService(db, settings).refresh(body.refresh_token)


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=EmployeeResponse)
async def me(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    """Profile of the authenticated employee."""
    return await EmployeeService(db, settings).get_employee(principal.employee_id)
