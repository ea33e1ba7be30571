"""Role-Based Access Control (RBAC) utilities."""

from enum import Enum
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status

from queskip.core.security import decode_access_token, is_token_revoked
from queskip.db.session import DbSession


class UserRole(str, Enum):
    """User roles for RBAC."""

    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"


# Role hierarchy: admin > staff > customer
ROLE_HIERARCHY = {
    UserRole.ADMIN: 3,
    UserRole.STAFF: 2,
    UserRole.CUSTOMER: 1,
}


class TokenData:
    """Decoded token data.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        role: The user's role (admin/staff/customer).
        business_id: The business a staff member serves, if any.
        claims: The decoded token payload.
    """

    def __init__(self, user_id: str, email: str, role: UserRole,
                 business_id: Optional[str] = None, claims: Optional[dict] = None):
        self.user_id = user_id
        self.email = email
        self.role = role
        self.business_id = business_id
        self.claims = claims or {}

    def can_manage_business(self, business_id: str) -> bool:
        """Admins manage every business; staff only the one they serve."""
        if self.role == UserRole.ADMIN:
            return True
        return self.role == UserRole.STAFF and self.business_id == business_id


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            return token
    return None


def get_current_user(request: Request, db: DbSession) -> TokenData:
    """Get the current authenticated user from the Authorization header."""
    token = _bearer_token(request)
    payload = decode_access_token(token) if token else None

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required" if token is None else "Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    email = payload.get("email")
    role = payload.get("role")

    if user_id is None or email is None or role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        user_role = UserRole(role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid role in token",
        )

    # Verify user still exists and is active
    from queskip.models.user import User
    user = db.get(User, user_id)
    is_active = user is not None and user.is_active
    business_id = user.business_id if user is not None else None
    revoked = is_token_revoked(db, payload.get("jti"))
    # End the lookup's read transaction before the endpoint runs
    db.rollback()

    if not is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )
    if revoked:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenData(
        user_id=user_id, email=email, role=user_role,
        business_id=business_id, claims=payload,
    )


def require_role(minimum_role: UserRole):
    """Dependency to require a minimum role level."""

    def role_checker(
        current_user: Annotated[TokenData, Depends(get_current_user)]
    ) -> TokenData:
        user_level = ROLE_HIERARCHY.get(current_user.role, 0)
        required_level = ROLE_HIERARCHY.get(minimum_role, 0)

        if user_level < required_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role {minimum_role.value} or higher",
            )
        return current_user

    return role_checker


# Common role dependencies
RequireAdmin = Annotated[TokenData, Depends(require_role(UserRole.ADMIN))]
RequireStaff = Annotated[TokenData, Depends(require_role(UserRole.STAFF))]
CurrentUser = Annotated[TokenData, Depends(get_current_user)]
