"""Auth dependencies: settings access, token verification, RBAC enforcement."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends, Request

from hrms.auth.schemas import Principal
from hrms.auth.service import TokenService
from hrms.common.constants import EmployeeRole
from hrms.common.exceptions import ForbiddenException
from hrms.common.middleware import extract_bearer_token
from hrms.config import Settings


def get_settings_dep(request: Request) -> Settings:
    """The settings the running app was built with."""
    return request.app.state.settings


def get_token_service(settings: Settings = Depends(get_settings_dep)) -> TokenService:
    return TokenService(settings)


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_principal(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> Principal:
    """Verify the bearer token the pipeline extracted and return its identity."""
    token = getattr(request.state, "access_token", None)
    if token is None:
        # Route mounted on a public path: read the header directly
        token = extract_bearer_token(request.headers.get("Authorization"))
    return tokens.verify(token)


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: EmployeeRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy, e.g. ADMIN can access MANAGER endpoints.
    """

    async def _check(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if not any(principal.is_at_least(role) for role in allowed_roles):
            raise ForbiddenException(
                detail=(
                    f"Role '{principal.role.value}' is not permitted. "
                    f"Required: {[r.value for r in allowed_roles]}."
                ),
            )
        return principal

    return _check
