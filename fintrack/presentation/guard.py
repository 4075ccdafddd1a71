"""
Route guard: the single authentication/authorization gate of the app.

Every request passes through ``RouteGuardMiddleware`` before routing. Paths are
classified as PUBLIC, PROTECTED or SUPERADMIN; API paths (``/api/...``) get JSON
errors, browser navigations get a redirect to the login page or an
access-denied page. The validated identity is stored on
``request.state.identity`` and handed to handlers by the dependencies below.
"""

import logging
import os
from enum import Enum
from typing import Optional
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fintrack.domain.errors import AuthenticationError, AuthorizationError
from fintrack.domain.models.user import Identity, Role
from fintrack.domain.services.auth_service import (
    SESSION_EXPIRE_DAYS,
    SESSION_INVALID,
    has_role,
    inspect_session,
)

logger = logging.getLogger(__name__)

SESSION_COOKIE = "access_token"
LOGIN_PATH = "/login"

PUBLIC_PATHS = (
    LOGIN_PATH,
    "/api/auth/login",
    "/api/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
)
PUBLIC_PREFIXES = ("/static/", "/docs/")
SUPERADMIN_PREFIXES = ("/api/admin", "/admin")


class Access(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    SUPERADMIN = "superadmin"


def _matches_prefix(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def classify_path(path: str) -> Access:
    if path in PUBLIC_PATHS or any(path.startswith(p) for p in PUBLIC_PREFIXES):
        return Access.PUBLIC
    if any(_matches_prefix(path, p) for p in SUPERADMIN_PREFIXES):
        return Access.SUPERADMIN
    return Access.PROTECTED


def is_api_path(path: str) -> bool:
    return _matches_prefix(path, "/api")


def extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


def cookie_secure() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def set_session_cookie(response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        secure=cookie_secure(),
        samesite="lax",
        max_age=SESSION_EXPIRE_DAYS * 24 * 60 * 60,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(
        SESSION_COOKIE, httponly=True, secure=cookie_secure(), samesite="lax"
    )


def access_denied_page() -> HTMLResponse:
    return HTMLResponse(
        "<!doctype html><html><head><title>Access denied</title></head>"
        "<body><h1>Access denied</h1>"
        "<p>Only a superadmin can open this page.</p>"
        '<p><a href="/">Back to dashboard</a></p></body></html>',
        status_code=403,
    )


def _unauthenticated(path: str, clear_cookie: bool):
    if is_api_path(path):
        response = JSONResponse(
            status_code=401, content={"error": "Authentication required"}
        )
    else:
        response = RedirectResponse(f"{LOGIN_PATH}?redirect={quote(path)}")
    if clear_cookie:
        clear_session_cookie(response)
    return response


def _forbidden(path: str):
    if is_api_path(path):
        return JSONResponse(
            status_code=403, content={"error": "Access denied. Superadmin only."}
        )
    return access_denied_page()


class RouteGuardMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        access = classify_path(path)
        token = extract_token(request)
        identity, failure = inspect_session(token) if token else (None, None)
        request.state.identity = identity

        if access == Access.PUBLIC:
            return await call_next(request)

        if identity is None:
            logger.info(
                "Rejected unauthenticated %s %s (%s)",
                request.method,
                path,
                failure or "no token",
            )
            return _unauthenticated(path, clear_cookie=failure == SESSION_INVALID)

        if access == Access.SUPERADMIN and not has_role(identity, Role.SUPERADMIN):
            logger.warning(
                "User %s (%s) denied access to %s",
                identity.user_id,
                identity.role.value,
                path,
            )
            return _forbidden(path)

        return await call_next(request)


def current_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise AuthenticationError("Authentication required")
    return identity


def optional_identity(request: Request) -> Optional[Identity]:
    return getattr(request.state, "identity", None)


def require_superadmin(request: Request) -> Identity:
    identity = current_identity(request)
    if not has_role(identity, Role.SUPERADMIN):
        raise AuthorizationError("Access denied. Superadmin only.")
    return identity
