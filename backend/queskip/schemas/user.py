"""Account schemas: preferences, dashboard and account deletion."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from queskip.schemas.base import CamelModel
from queskip.schemas.business import BusinessSummary
from queskip.schemas.queue import QueueEntryResponse


class PreferencesResponse(CamelModel):
    notification_settings: Dict[str, Any]
    privacy_settings: Dict[str, Any]
    app_settings: Dict[str, Any]


class PreferencesUpdate(CamelModel):
    """Each section present in the body replaces the stored section."""

    notification_settings: Optional[Dict[str, Any]] = None
    privacy_settings: Optional[Dict[str, Any]] = None
    app_settings: Optional[Dict[str, Any]] = None


class DashboardSubscription(CamelModel):
    id: str
    plan_type: str
    end_date: datetime
    available_passes: int


class FavoriteBusiness(BusinessSummary):
    visit_count: int


class DashboardResponse(CamelModel):
    current_queue: Optional[QueueEntryResponse] = None
    recent_activity: List[QueueEntryResponse]
    subscriptions: List[DashboardSubscription]
    favorite_businesses: List[FavoriteBusiness]
    has_active_subscription: bool


class DeleteAccountRequest(CamelModel):
    password: str = Field(..., min_length=1, max_length=128)
    reason: Optional[str] = Field(default=None, max_length=500)
