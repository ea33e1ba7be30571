"""SQLAlchemy models."""

from queskip.models.account import RevokedToken, UserPreferences
from queskip.models.business import Business, BusinessCategory
from queskip.models.queue import ACTIVE_STATUSES, QueueEntryDB, QueueStatus
from queskip.models.review import Review
from queskip.models.subscription import (
    PassStatus,
    PassUsage,
    PlanType,
    SkipPass,
    Subscription,
    SubscriptionStatus,
)
from queskip.models.user import User

__all__ = [
    "ACTIVE_STATUSES",
    "Business",
    "BusinessCategory",
    "PassStatus",
    "PassUsage",
    "PlanType",
    "QueueEntryDB",
    "QueueStatus",
    "RevokedToken",
    "Review",
    "SkipPass",
    "Subscription",
    "SubscriptionStatus",
    "User",
    "UserPreferences",
]
