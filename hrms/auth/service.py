"""Auth service: JWT issue/verify, password login and token refresh."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from hrms.auth.schemas import Principal, TokenResponse
from hrms.auth.security import verify_password
from hrms.common.constants import LOGIN_BLOCKED_STATUSES, EmployeeRole
from hrms.common.exceptions import UnauthenticatedException
from hrms.config import Settings
from hrms.core_hr.models import Employee
from hrms.core_hr.repository import EmployeeRepository
from hrms.database import utcnow

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


# ═════════════════════════════════════════════════════════════════════
# TokenService
# ═════════════════════════════════════════════════════════════════════


class TokenService:
    """HS256 JWTs scoped to this service by issuer and token type."""

    def __init__(self, settings: Settings) -> None:
        self.secret = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.issuer = settings.JWT_ISSUER
        self.access_ttl = timedelta(hours=settings.JWT_EXPIRY_HOURS)
        self.refresh_ttl = timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)

    def _encode(self, employee: Employee, token_type: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(employee.id),
            "employee_code": employee.employee_code,
            "email": employee.email,
            "role": employee.role.value,
            "type": token_type,
            "iss": self.issuer,
            "iat": now,
            "nbf": now,
            "exp": now + ttl,
        }
        if token_type == REFRESH_TOKEN:
            payload["jti"] = uuid.uuid4().hex
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_tokens(self, employee: Employee) -> TokenResponse:
        return TokenResponse(
            access_token=self._encode(employee, ACCESS_TOKEN, self.access_ttl),
            refresh_token=self._encode(employee, REFRESH_TOKEN, self.refresh_ttl),
            expires_in=int(self.access_ttl.total_seconds()),
        )

    def verify(self, token: str, *, expected_type: str = ACCESS_TOKEN) -> Principal:
        """Check signature, issuer, time claims and type; return the identity."""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
            )
        except ExpiredSignatureError:
            raise UnauthenticatedException("Token has expired.")
        except JWTError:
            raise UnauthenticatedException("Invalid token.")

        if payload.get("type") != expected_type:
            raise UnauthenticatedException("Invalid token type.")

        try:
            return Principal(
                employee_id=uuid.UUID(payload["sub"]),
                employee_code=payload["employee_code"],
                email=payload["email"],
                role=EmployeeRole(payload["role"]),
            )
        except (KeyError, ValueError):
            raise UnauthenticatedException("Invalid token claims.")


# ═════════════════════════════════════════════════════════════════════
# AuthService
# ═════════════════════════════════════════════════════════════════════


class AuthService:
    def __init__(self, db: AsyncSession, settings: Settings) -> None:
        self.db = db
        self.tokens = TokenService(settings)
        self.employees = EmployeeRepository(db)

    async def login(self, email: str, password: str) -> TokenResponse:
        """Exchange email + password for a token pair.

        Every failure yields the same error so callers cannot tell which
        emails exist.
        """
        employee = await self.employees.get_by_email(email)
        if (
            employee is None
            or employee.deleted_at is not None
            or employee.status in LOGIN_BLOCKED_STATUSES
            or not verify_password(password, employee.password_hash)
        ):
            logger.warning("Login failed", extra={"email": email})
            raise UnauthenticatedException("Invalid credentials.")

        employee.last_login_at = utcnow()
        await self.db.flush()

        logger.info("Login succeeded", extra={"employee_id": str(employee.id)})
        return self.tokens.issue_tokens(employee)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Issue a fresh pair for a valid refresh token of an active employee."""
        principal = self.tokens.verify(refresh_token, expected_type=REFRESH_TOKEN)
        employee = await self.employees.get(principal.employee_id)
        if employee is None or employee.status in LOGIN_BLOCKED_STATUSES:
            raise UnauthenticatedException("User account is inactive or not found.")
        return self.tokens.issue_tokens(employee)
