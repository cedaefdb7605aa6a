"""
Authentication endpoints.

- Email/password registration with an invite code (assigns the team)
- Email/password login
- JWT session management (refresh, logout)
"""

from __future__ import annotations

import uuid
from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    bearer_header,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    is_jwt_revoked,
    request_token,
    revoke_jwt,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.models.user import User
from app.services import invites
from app.services import users as user_service
from lcp_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

MIN_PASSWORD_LENGTH = 8

# Cookie config
COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


# ---------------------------------------------------------------------------
# Email/Password Registration
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    display_name: str = Field(min_length=1, max_length=200)
    invite_code: str = ""


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    role: Role
    team: str = ""
    access_token: str
    message: str


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a contributor. The invite code decides the team."""
    if await user_service.get_user_by_email(session, body.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )

    # Reject a bad code before the user row exists.
    invites.resolve(body.invite_code)

    user = User(
        id=uuid.uuid4(),
        email=body.email,
        password_hash=hash_password(body.password),
        display_name=body.display_name,
        role=Role.CONTRIBUTOR.value,
    )
    team = await invites.assign(session, user, body.invite_code)

    token, _jti = create_jwt(user.id)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("user.registered", user_id=str(user.id), email=body.email, team=team)
    return AuthResponse(
        user_id=str(user.id),
        email=body.email,
        role=Role.CONTRIBUTOR,
        team=team,
        access_token=token,
        message="Registration successful",
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    user = await user_service.get_user_by_email(session, body.email)

    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token, _jti = create_jwt(user.id)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("auth.login_success", user_id=str(user.id), email=body.email)
    return AuthResponse(
        user_id=str(user.id),
        email=user.email,
        role=user.role,
        team=user.team or "",
        access_token=token,
        message="Login successful",
    )


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/refresh")
async def refresh_session(
    request: Request,
    response: Response,
    authorization: Optional[str] = Depends(bearer_header),
):
    """Refresh the current JWT session by issuing a new token."""
    token = request_token(request, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="No active session")

    try:
        payload = decode_jwt(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_jwt_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    # Issue new JWT, revoke old one
    new_token, _new_jti = create_jwt(uuid.UUID(payload["sub"]))
    if jti:
        await revoke_jwt(jti)

    _set_session_cookies(response, new_token, generate_csrf_token())
    return {"message": "Session refreshed", "access_token": new_token}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    authorization: Optional[str] = Depends(bearer_header),
):
    """Invalidate the current session."""
    token = request_token(request, authorization)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = {}  # already invalid, just clear cookies
        if payload.get("jti"):
            await revoke_jwt(payload["jti"])

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}
