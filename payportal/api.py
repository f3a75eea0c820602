"""FastAPI adapter that exposes the portal operations as a JSON API."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from functools import partial
from typing import Dict, List, Optional

import anyio
from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import Settings, load_settings
from .errors import (
    DuplicateEmailError,
    InvalidInputError,
    InvalidStatusError,
    NotFoundError,
    PermissionDeniedError,
    PortalError,
    StorageError,
    UnknownAdminError,
    UnknownUserError,
    WrongCredentialError,
)
from .models import (
    ANONYMOUS,
    AuditEntry,
    AuditView,
    AuthenticatedAdmin,
    AuthenticatedUser,
    PaymentStatus,
    Principal,
    User,
)
from .portal import PaymentPortal
from .security import MAX_SECRET_BYTES

logger = logging.getLogger("payportal.api")

SESSION_COOKIE = "payportal_session"
_PRINCIPAL_KEY = "principal"

_ERROR_STATUS = (
    (WrongCredentialError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (DuplicateEmailError, status.HTTP_409_CONFLICT),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (InvalidStatusError, 422),
    (InvalidInputError, 422),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


class UserLoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=320)
    code: str = Field(..., min_length=1, max_length=MAX_SECRET_BYTES)


class AdminLoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=MAX_SECRET_BYTES)


class UserCreateRequest(BaseModel):
    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)
    code: str = Field(..., max_length=MAX_SECRET_BYTES)
    project: Optional[str] = Field(default=None, max_length=200)


class UserUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    project: Optional[str] = Field(default=None, max_length=200)
    code: Optional[str] = Field(default=None, max_length=MAX_SECRET_BYTES)


class StatusChangeRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=64)


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=MAX_SECRET_BYTES)
    new_password: str = Field(..., min_length=1, max_length=MAX_SECRET_BYTES)
    confirm_password: Optional[str] = Field(default=None, max_length=MAX_SECRET_BYTES)

    @model_validator(mode="after")
    def _confirmation_matches(self):  # type: ignore[override]
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("New password and confirmation do not match")
        return self


class StatusResponse(BaseModel):
    name: str
    label: str
    tone: str
    position: int


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    project: Optional[str]
    status: StatusResponse
    created_at: datetime


class AuditEntryResponse(BaseModel):
    id: str
    user_id: str
    admin_email: str
    from_status: Optional[str]
    to_status: str
    at: datetime
    user_name: Optional[str] = None


class StatusChangeResponse(BaseModel):
    changed: bool
    entry: Optional[AuditEntryResponse]
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse
    history: List[AuditEntryResponse]


class PrincipalResponse(BaseModel):
    kind: str
    user_id: Optional[str] = None
    email: Optional[str] = None


def status_to_response(value: PaymentStatus) -> StatusResponse:
    return StatusResponse(name=value.value, label=value.label, tone=value.tone, position=value.position)


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        project=user.project,
        status=status_to_response(user.status),
        created_at=user.created_at,
    )


def entry_to_response(entry: AuditEntry, user_name: Optional[str] = None) -> AuditEntryResponse:
    return AuditEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        admin_email=entry.admin_email,
        from_status=entry.from_status.value if entry.from_status is not None else None,
        to_status=entry.to_status.value,
        at=entry.at,
        user_name=user_name,
    )


def view_to_response(view: AuditView) -> AuditEntryResponse:
    return entry_to_response(view.entry, view.user_name)


def principal_to_response(principal: Principal) -> PrincipalResponse:
    if isinstance(principal, AuthenticatedAdmin):
        return PrincipalResponse(kind="admin", email=principal.email)
    if isinstance(principal, AuthenticatedUser):
        return PrincipalResponse(kind="user", user_id=principal.user_id)
    return PrincipalResponse(kind="anonymous")


def principal_from_session(session: object) -> Principal:
    if not isinstance(session, dict):
        return ANONYMOUS
    raw = session.get(_PRINCIPAL_KEY)
    if not isinstance(raw, dict):
        return ANONYMOUS
    kind = raw.get("kind")
    if kind == "admin" and isinstance(raw.get("email"), str):
        return AuthenticatedAdmin(email=raw["email"])
    if kind == "user" and isinstance(raw.get("user_id"), str):
        return AuthenticatedUser(user_id=raw["user_id"])
    return ANONYMOUS


def _store_principal(request: Request, principal: Principal) -> None:
    request.session.clear()
    payload = principal_to_response(principal).model_dump(exclude_none=True)
    request.session[_PRINCIPAL_KEY] = payload


def _trusted_proxy_hosts() -> list[str] | str:
    raw = os.getenv("PAYPORTAL_TRUSTED_PROXIES")
    if not raw:
        return "127.0.0.1"
    hosts = [item.strip() for item in raw.split(",") if item.strip()]
    return hosts or "127.0.0.1"


def _error_status(exc: PortalError, principal: Principal) -> int:
    if isinstance(exc, PermissionDeniedError) and principal == ANONYMOUS:
        return status.HTTP_401_UNAUTHORIZED
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def create_app(
    *,
    portal: PaymentPortal | None = None,
    settings: Settings | None = None,
    session_secret: Optional[str] = None,
    initialize: bool = False,
) -> FastAPI:
    """Create the JSON API application."""

    if settings is None:
        settings = load_settings()

    if portal is None:
        portal = PaymentPortal.from_settings(settings)
        portal.initialize()
    elif initialize:
        portal.initialize()

    if session_secret is None:
        session_secret = settings.session_secret
    if not session_secret:
        raise RuntimeError("PAYPORTAL_SESSION_SECRET must be configured to serve the portal API")

    app = FastAPI(
        title="Payment Tracking Portal",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=_trusted_proxy_hosts())
    app.state.portal = portal
    app.add_middleware(
        SessionMiddleware,
        secret_key=session_secret,
        session_cookie=SESSION_COOKIE,
        https_only=settings.session_secure,
        same_site="lax",
        max_age=60 * 60 * 8,
    )

    @app.exception_handler(PortalError)
    async def handle_portal_error(request: Request, exc: PortalError) -> JSONResponse:
        principal = principal_from_session(request.scope.get("session"))
        status_code = _error_status(exc, principal)
        if status_code >= 500:
            logger.error("Portal request %s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    def get_portal() -> PaymentPortal:
        return portal

    def get_principal(request: Request) -> Principal:
        return principal_from_session(request.session)

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/statuses", response_model=List[StatusResponse])
    async def list_statuses() -> List[StatusResponse]:
        return [status_to_response(value) for value in PaymentStatus.ordered()]

    @app.get("/session", response_model=PrincipalResponse)
    async def read_session(principal: Principal = Depends(get_principal)) -> PrincipalResponse:
        return principal_to_response(principal)

    @app.post("/login", response_model=PrincipalResponse)
    async def login_user(
        payload: UserLoginRequest,
        request: Request,
        core: PaymentPortal = Depends(get_portal),
    ) -> PrincipalResponse:
        try:
            principal = await anyio.to_thread.run_sync(core.login_user, payload.email, payload.code)
        except (UnknownUserError, WrongCredentialError) as exc:
            raise WrongCredentialError("Invalid email or access code") from exc
        _store_principal(request, principal)
        return principal_to_response(principal)

    @app.post("/admin/login", response_model=PrincipalResponse)
    async def login_admin(
        payload: AdminLoginRequest,
        request: Request,
        core: PaymentPortal = Depends(get_portal),
    ) -> PrincipalResponse:
        try:
            principal = await anyio.to_thread.run_sync(core.login_admin, payload.email, payload.password)
        except (UnknownAdminError, WrongCredentialError) as exc:
            raise WrongCredentialError("Invalid email or password") from exc
        _store_principal(request, principal)
        return principal_to_response(principal)

    @app.post("/signout", status_code=status.HTTP_204_NO_CONTENT)
    async def signout(request: Request) -> Response:
        request.session.clear()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/me", response_model=MeResponse)
    async def read_me(
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> MeResponse:
        if not isinstance(principal, AuthenticatedUser):
            raise PermissionDeniedError("Sign in with your access code to view your status")
        user = core.get_user(principal, user_id=principal.user_id)
        history = core.user_history(principal, principal.user_id)
        return MeResponse(
            user=user_to_response(user),
            history=[entry_to_response(entry, user.name) for entry in history],
        )

    @app.get("/admin/users", response_model=List[UserResponse])
    async def list_users(
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> List[UserResponse]:
        return [user_to_response(user) for user in core.list_users(principal)]

    @app.post("/admin/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    async def create_user(
        payload: UserCreateRequest,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> UserResponse:
        user = await anyio.to_thread.run_sync(
            partial(
                core.create_user,
                principal,
                name=payload.name,
                email=payload.email,
                code=payload.code,
                project=payload.project,
            )
        )
        return user_to_response(user)

    @app.get("/admin/users/{user_id}", response_model=UserResponse)
    async def read_user(
        user_id: str,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> UserResponse:
        return user_to_response(core.get_user(principal, user_id=user_id))

    @app.get("/admin/users/{user_id}/history", response_model=List[AuditEntryResponse])
    async def read_user_history(
        user_id: str,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> List[AuditEntryResponse]:
        return [entry_to_response(entry) for entry in core.user_history(principal, user_id)]

    @app.patch("/admin/users/{user_id}", response_model=UserResponse)
    async def update_user(
        user_id: str,
        payload: UserUpdateRequest,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> UserResponse:
        user = await anyio.to_thread.run_sync(
            partial(
                core.update_user,
                principal,
                user_id,
                name=payload.name,
                email=payload.email,
                project=payload.project,
                code=payload.code,
            )
        )
        return user_to_response(user)

    @app.delete("/admin/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_user(
        user_id: str,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> Response:
        core.delete_user(principal, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/admin/users/{user_id}/status", response_model=StatusChangeResponse)
    async def change_status(
        user_id: str,
        payload: StatusChangeRequest,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> StatusChangeResponse:
        entry = core.set_user_status(principal, user_id, payload.status)
        user = core.get_user(principal, user_id=user_id)
        return StatusChangeResponse(
            changed=entry is not None,
            entry=entry_to_response(entry, user.name) if entry is not None else None,
            user=user_to_response(user),
        )

    @app.get("/admin/audit", response_model=List[AuditEntryResponse])
    async def list_audit(
        limit: Optional[int] = Query(default=None, ge=1, le=500),
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> List[AuditEntryResponse]:
        return [view_to_response(view) for view in core.list_recent_audit(principal, limit)]

    @app.post("/admin/password", status_code=status.HTTP_204_NO_CONTENT)
    async def change_password(
        payload: PasswordChangeRequest,
        principal: Principal = Depends(get_principal),
        core: PaymentPortal = Depends(get_portal),
    ) -> Response:
        await anyio.to_thread.run_sync(
            core.change_admin_password,
            principal,
            payload.current_password,
            payload.new_password,
        )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


__all__ = ["create_app", "principal_from_session", "user_to_response"]
