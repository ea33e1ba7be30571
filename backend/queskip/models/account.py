"""Per-user account records: preferences and revoked tokens."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from queskip.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


DEFAULT_NOTIFICATION_SETTINGS = {
    "push": True,
    "email": True,
    "queueUpdates": True,
    "promotions": False,
}
DEFAULT_PRIVACY_SETTINGS = {
    "locationSharing": True,
    "profileVisibility": "public",
}
DEFAULT_APP_SETTINGS = {
    "theme": "light",
    "language": "en",
    "autoJoinQueue": False,
}


class UserPreferences(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Client-defined settings blobs, one row per user."""

    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=False,
    )
    notification_settings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    privacy_settings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    app_settings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)


class RevokedToken(Base):
    """JWT IDs that may no longer authenticate (logout, password change)."""

    __tablename__ = "revoked_tokens"

    jti: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
