"""Authentication and account routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError

from queskip.core.rate_limit import limiter
from queskip.core.rbac import CurrentUser, UserRole
from queskip.core.responses import success_response
from queskip.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    is_token_revoked,
    revoke_token,
    verify_password,
)
from queskip.db.session import DbSession, begin_write
from queskip.models.user import User
from queskip.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger("auth")

router = APIRouter()


def _issue_token(user: User) -> str:
    return create_access_token(
        data={"sub": user.id, "email": user.email, "role": user.role.value}
    )


def _issue_tokens(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        access_token=_issue_token(user),
        refresh_token=create_refresh_token(data={"sub": user.id}),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(request: Request, body: RegisterRequest, db: DbSession):
    """Create a customer account and return an access token."""
    client_ip = request.client.host if request.client else "unknown"
    email = body.email.lower()

    if db.query(User).filter(User.email == email).first():
        logger.warning(f"Registration with existing email {email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )

    user = User(
        email=email,
        password_hash=get_password_hash(body.password),
        full_name=body.full_name.strip(),
        phone_number=body.phone_number,
        role=UserRole.CUSTOMER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )
    db.refresh(user)
    logger.info(f"New user registered: {user.email} (ID: {user.id}) from IP: {client_ip}")

    return success_response(_issue_tokens(user).to_json(), "User registered successfully")


@router.post("/login")
@limiter.limit("5/minute")
def login(request: Request, body: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.email == body.email.lower()).first()

    if not user or not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {body.email} from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {body.email} (ID: {user.id}) from IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    return success_response(_issue_tokens(user).to_json(), "Login successful")


@router.post("/refresh")
@limiter.limit("10/minute")
def refresh(request: Request, body: RefreshRequest, db: DbSession):
    """Exchange a refresh token for a new access token."""
    payload = decode_refresh_token(body.refresh_token)
    user = db.get(User, payload["sub"]) if payload and payload.get("sub") else None

    if (user is None or not user.is_active
            or is_token_revoked(db, payload.get("jti"))):
        logger.warning("Refresh attempt with invalid or revoked token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tokens = TokenResponse(access_token=_issue_token(user))
    return success_response(tokens.to_json(), "Token refreshed successfully")


@router.post("/logout")
def logout(current_user: CurrentUser, db: DbSession, body: LogoutRequest | None = None):
    """Revoke the presented access token and, if given, the refresh token."""
    begin_write(db)
    revoke_token(db, current_user.claims)
    if body is not None and body.refresh_token:
        payload = decode_refresh_token(body.refresh_token)
        if payload is not None and str(payload.get("sub")) == current_user.user_id:
            revoke_token(db, payload)
    db.commit()

    logger.info(f"User logged out: {current_user.email} (ID: {current_user.user_id})")
    return success_response(None, "Logged out successfully")


@router.get("/me")
def get_current_user_info(current_user: CurrentUser, db: DbSession):
    """Get current authenticated user info."""
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return success_response(UserResponse.model_validate(user).to_json())


@router.put("/profile")
def update_profile(body: ProfileUpdate, current_user: CurrentUser, db: DbSession):
    """Update the caller's name or phone number."""
    changes = body.model_dump(exclude_unset=True)
    if changes.get("full_name", "") is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="fullName cannot be null")
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    begin_write(db)
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if "full_name" in changes:
        user.full_name = changes["full_name"].strip()
    if "phone_number" in changes:
        user.phone_number = changes["phone_number"]
    db.commit()
    db.refresh(user)

    logger.info(f"Profile updated for user {user.id}: {sorted(changes)}")
    return success_response(UserResponse.model_validate(user).to_json(), "Profile updated successfully")


@router.post("/change-password")
@limiter.limit("5/minute")
def change_password(request: Request, body: ChangePasswordRequest, current_user: CurrentUser,
                    db: DbSession):
    """Change the caller's password and revoke the token used to do it."""
    begin_write(db)
    user = db.get(User, current_user.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not verify_password(body.current_password, user.password_hash):
        logger.warning(f"Failed password change for user {user.id}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.password_hash = get_password_hash(body.new_password)
    revoke_token(db, current_user.claims)
    db.commit()

    logger.info(f"Password changed for user {user.id}")
    return success_response(None, "Password changed successfully")
