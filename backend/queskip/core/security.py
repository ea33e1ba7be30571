"""Security utilities: JWT tokens and password hashing."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from jwt.exceptions import PyJWTError
from sqlalchemy.orm import Session

from queskip.core.config import settings

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a hash.

    Uses bcrypt's built-in timing-safe comparison.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError as e:
        logger.warning(f"Password verification error: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt()
    ).decode('utf-8')


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token with a unique JTI."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT token. Returns None when invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True}
        )
    except PyJWTError as e:
        logger.debug(f"JWT decode error: {e}")
        return None
    if payload.get("purpose") == "refresh":
        return None
    return payload


def create_refresh_token(data: dict[str, Any]) -> str:
    """Create a long-lived refresh JWT token."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({
        "exp": now + timedelta(days=settings.refresh_token_expire_days),
        "iat": now,
        "jti": secrets.token_urlsafe(16),
        "purpose": "refresh",
    })
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_refresh_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a refresh token. Returns payload or None."""
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            options={"require_exp": True}
        )
    except PyJWTError:
        return None
    if payload.get("purpose") != "refresh":
        return None
    return payload


def revoke_token(db: Session, payload: dict[str, Any]) -> bool:
    """Record a decoded token's JTI so it stops authenticating.

    The caller commits. Returns False for tokens without a JTI.
    """
    from queskip.models.account import RevokedToken

    jti = payload.get("jti")
    if not jti:
        return False
    if db.get(RevokedToken, jti) is None:
        db.add(RevokedToken(
            jti=jti,
            user_id=str(payload.get("sub")),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        ))
    return True


def is_token_revoked(db: Session, jti: str | None) -> bool:
    from queskip.models.account import RevokedToken

    return jti is not None and db.get(RevokedToken, jti) is not None
