"""Authentication routes: register, login, refresh, current user."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, status

from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import UserModel
from vitruvi.subscriptions import subscription_for_plan
from vitruvi.web.auth import (
    AuthContext,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
    hash_password,
    verify_password,
)
from vitruvi.web.schemas import (
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _issue_tokens(user: UserModel) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user.id),
        refresh_token=create_refresh_token(user.id),
    )


async def _authenticate(email: str, password: str) -> TokenResponse:
    async with get_session() as session:
        user = await store.get_user_by_email(session, email)
        if user is None or not verify_password(password, user.password_hash):
            logger.info("login_failed", email=email.strip().lower())
            raise HTTPException(status_code=401, detail="Incorrect email or password")
        if not user.is_active:
            raise HTTPException(status_code=403, detail="User account is disabled")
        await store.record_login(session, user)

    logger.info("login_succeeded", user_id=str(user.id))
    return _issue_tokens(user)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest):
    """Create an account on the free plan."""
    async with get_session() as session:
        if await store.get_user_by_email(session, payload.email):
            raise HTTPException(status_code=400, detail="Email already registered")

        user = await store.create_user(
            session,
            email=payload.email,
            password_hash=hash_password(payload.password),
            name=payload.name,
            phone=payload.phone,
            subscription=subscription_for_plan("free"),
        )
        await session.refresh(user)

    logger.info("user_registered", user_id=str(user.id))
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login_form(username: str = Form(...), password: str = Form(...)):
    """OAuth2-style form login; ``username`` is the email address."""
    return await _authenticate(username, password)


@router.post("/login/json", response_model=TokenResponse)
async def login_json(payload: LoginRequest):
    return await _authenticate(payload.email, payload.password)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(payload: RefreshRequest):
    """Exchange a refresh token for a new token pair."""
    try:
        user_id = decode_token(payload.refresh_token, expected_type="refresh")
    except HTTPException:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    async with get_session() as session:
        user = await store.get_user(session, user_id)

    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def me(auth: AuthContext = Depends(get_current_user)):
    return UserResponse.model_validate(auth.user)


@router.post("/logout")
async def logout():
    """Tokens are stateless; the client discards them."""
    return {"message": "Successfully logged out"}
