"""Authentication for the Vitruvi API.

bcrypt password hashes plus HS256 JWT bearer tokens. Access tokens carry
``type=access``; refresh tokens carry ``type=refresh`` and are only accepted
by the refresh endpoint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
from fastapi import Depends, Header, HTTPException, status
from jose import ExpiredSignatureError, JWTError, jwt

from vitruvi.config import get_config
from vitruvi.db import store
from vitruvi.db.connection import get_session
from vitruvi.db.models import UserModel
from vitruvi.models import PlanTier, Subscription

logger = logging.getLogger(__name__)

BCRYPT_MAX_BYTES = 72


# ============================================================================
# Passwords
# ============================================================================


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode()[:BCRYPT_MAX_BYTES], bcrypt.gensalt(rounds=12))
    return hashed.decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode()[:BCRYPT_MAX_BYTES], password_hash.encode())
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


# ============================================================================
# Tokens
# ============================================================================


def _create_token(user_id: UUID | str, token_type: str, lifetime: timedelta) -> str:
    auth = get_config().auth
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, auth.secret_key, algorithm=auth.algorithm)


def create_access_token(user_id: UUID | str) -> str:
    minutes = get_config().auth.access_token_expire_minutes
    return _create_token(user_id, "access", timedelta(minutes=minutes))


def create_refresh_token(user_id: UUID | str) -> str:
    days = get_config().auth.refresh_token_expire_days
    return _create_token(user_id, "refresh", timedelta(days=days))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str, expected_type: str = "access") -> UUID:
    """Validate a token and return the user id it was issued for.

    Raises:
        HTTPException(401): Expired, malformed, or wrong token type
    """
    auth = get_config().auth
    try:
        payload = jwt.decode(token, auth.secret_key, algorithms=[auth.algorithm])
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError:
        raise _unauthorized("Invalid or expired token")

    if payload.get("type") != expected_type:
        raise _unauthorized("Invalid token type")

    try:
        return UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid token payload")


# ============================================================================
# Request context
# ============================================================================


@dataclass
class AuthContext:
    """Authenticated user for the current request."""

    user: UserModel
    subscription: Subscription

    @property
    def user_id(self) -> UUID:
        return self.user.id


async def get_current_user(authorization: str | None = Header(default=None)) -> AuthContext:
    """FastAPI dependency resolving the bearer token to an active user."""
    if not authorization:
        raise _unauthorized("Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("Invalid authorization header")

    user_id = decode_token(token.strip(), expected_type="access")

    async with get_session() as session:
        user = await store.get_user(session, user_id)

    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")

    return AuthContext(user=user, subscription=Subscription.model_validate(user.subscription or {}))


async def require_scan_available(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
    """Reject analyses once a scan-limited plan has used its allowance."""
    if auth.subscription.scans_exhausted:
        logger.info("Scan limit reached for user %s", auth.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Scan limit reached. Please upgrade your plan.",
        )
    return auth


async def require_premium(auth: AuthContext = Depends(get_current_user)) -> AuthContext:
    """Paid plans only (report generation)."""
    subscription = auth.subscription
    if subscription.plan is PlanTier.FREE and not subscription.has_report_access:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Premium subscription required",
        )
    return auth
