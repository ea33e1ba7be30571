"""Queue schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Literal, Optional

from pydantic import Field, field_validator

from queskip.models.queue import QueueStatus
from queskip.schemas.base import CamelModel, uuid_string
from queskip.schemas.business import BusinessSummary


class QueueJoinRequest(CamelModel):
    business_id: str

    @field_validator("business_id")
    @classmethod
    def validate_business_id(cls, v: str) -> str:
        return uuid_string(v, "Invalid business ID")


class QueueNotesUpdate(CamelModel):
    notes: Optional[str] = Field(default=None, max_length=500)


class QueueAdvanceRequest(CamelModel):
    status: Literal["notified", "completed", "no_show"]


class QueueEntryResponse(CamelModel):
    id: str
    business_id: str
    user_id: str
    position: int
    estimated_wait_minutes: int
    status: QueueStatus
    joined_at: datetime
    notified_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    business: Optional[BusinessSummary] = None


class WaitEstimateResponse(CamelModel):
    business_id: str
    next_position: int
    estimated_wait_minutes: int
    current_queue_count: int
    max_queue_capacity: int
    is_accepting: bool


class QueueStatsResponse(CamelModel):
    business_id: str
    current_queue_count: int
    max_queue_capacity: int
    average_wait_time: int
    waiting_count: int
    notified_count: int
    completed_today: int
    cancelled_today: int
    status_counts: Dict[str, int]
