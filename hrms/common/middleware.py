"""Request pipeline: request context, access logging, bearer auth, recovery.

``install_pipeline`` adds the middlewares in reverse so that every inbound
call passes through them in this order (outermost first)::

    RequestContext → Logging → Authentication → Recovery → router

Authentication only checks that a well-formed bearer credential is present
and hands the raw token to the routes on ``request.state.access_token``.
Verifying it is left to ``hrms.auth.dependencies``.
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from hrms.common.constants import REQUEST_ID_HEADER
from hrms.common.exceptions import (
    InternalError,
    UnauthenticatedException,
    problem_response,
)
from hrms.common.logging_config import request_id_var

logger = logging.getLogger(__name__)

_MAX_REQUEST_ID_LENGTH = 128


def new_request_id() -> str:
    """``YYYYmmddHHMMSS-<8 hex chars>``, e.g. ``20240101120000-1a2b3c4d``."""
    return f"{datetime.now(timezone.utc):%Y%m%d%H%M%S}-{secrets.token_hex(4)}"


def extract_bearer_token(header: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not header:
        raise UnauthenticatedException("Missing Authorization header.")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer":
        raise UnauthenticatedException("Authorization header must use the Bearer scheme.")
    token = token.strip()
    if not token:
        raise UnauthenticatedException("Bearer token is empty.")
    return token


# ── 1. Request context ──────────────────────────────────────────────

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag the call with a request id, bind it for logging, echo it back."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        request_id = incoming[:_MAX_REQUEST_ID_LENGTH] or new_request_id()
        request.state.request_id = request_id

        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


# ── 2. Access logging ───────────────────────────────────────────────

class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        fields = {
            "method": request.method,
            "path": request.url.path,
            "request_id": request_id_var.get(),
        }
        logger.info("Request started", extra=fields)
        start = time.perf_counter()

        response = await call_next(request)

        fields["status_code"] = response.status_code
        fields["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
        if response.status_code >= 500:
            logger.error("Request failed", extra=fields)
        elif response.status_code >= 400:
            logger.warning("Request failed", extra=fields)
        else:
            logger.info("Request completed", extra=fields)
        return response


# ── 3. Bearer authentication ────────────────────────────────────────

class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Reject calls without a usable bearer credential, except public paths."""

    def __init__(self, app, public_paths: Iterable[str] = ()) -> None:
        super().__init__(app)
        self.public_paths = frozenset(p.rstrip("/") or "/" for p in public_paths)

    def is_public(self, path: str) -> bool:
        path = path.rstrip("/") or "/"
        return path in self.public_paths or any(
            path.startswith(prefix + "/") for prefix in self.public_paths
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or self.is_public(request.url.path):
            return await call_next(request)

        try:
            token = extract_bearer_token(request.headers.get("Authorization"))
        except UnauthenticatedException as exc:
            logger.info(
                "Request rejected: %s",
                exc.detail,
                extra={"method": request.method, "path": request.url.path},
            )
            response = problem_response(exc, request)
            response.headers["WWW-Authenticate"] = "Bearer"
            return response

        request.state.access_token = token
        return await call_next(request)


# ── 4. Fault recovery ───────────────────────────────────────────────

class RecoveryMiddleware(BaseHTTPMiddleware):
    """Turn any exception escaping the handlers into a generic 500."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception recovered",
                extra={"method": request.method, "path": request.url.path},
            )
            return problem_response(InternalError(), request)


# ── Wiring (called from main.py) ────────────────────────────────────

def install_pipeline(app: FastAPI, *, public_paths: Iterable[str]) -> None:
    """Add the pipeline middlewares. Last added runs first."""
    app.add_middleware(RecoveryMiddleware)
    app.add_middleware(AuthenticationMiddleware, public_paths=public_paths)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)
