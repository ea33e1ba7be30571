"""Subscription and skip pass schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from queskip.models.subscription import PassStatus, PlanType, SubscriptionStatus
from queskip.schemas.base import CamelModel, uuid_string
from queskip.schemas.business import BusinessSummary


class PlanResponse(CamelModel):
    id: str
    name: str
    description: str
    type: PlanType
    price: float
    currency: str
    duration_days: int
    features: List[str]
    original_price: Optional[float] = None
    savings: Optional[float] = None


class PurchaseRequest(CamelModel):
    plan_id: str = Field(..., min_length=1, max_length=50)
    payment_method_id: str = Field(..., min_length=1, max_length=255)


class SubscriptionResponse(CamelModel):
    id: str
    plan_id: str
    plan_type: PlanType
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    amount: float
    currency: str
    cancelled_at: Optional[datetime] = None
    created_at: datetime


class SkipPassResponse(CamelModel):
    id: str
    subscription_id: str
    status: PassStatus
    expires_at: datetime
    used_at: Optional[datetime] = None


class PurchaseResponse(CamelModel):
    subscription: SubscriptionResponse
    skip_pass: Optional[SkipPassResponse] = None


class MySubscriptionsResponse(CamelModel):
    subscriptions: List[SubscriptionResponse]
    passes: List[SkipPassResponse]
    has_active_subscription: bool
    has_available_passes: bool


class UsePassRequest(CamelModel):
    business_id: str
    queue_entry_id: Optional[str] = None

    @field_validator("business_id")
    @classmethod
    def validate_business_id(cls, v: str) -> str:
        return uuid_string(v, "Invalid business ID")

    @field_validator("queue_entry_id")
    @classmethod
    def validate_queue_entry_id(cls, v: Optional[str]) -> Optional[str]:
        return uuid_string(v, "Invalid queue ID") if v is not None else None


class PassUsageResponse(CamelModel):
    id: str
    subscription_id: str
    business_id: str
    queue_entry_id: Optional[str] = None
    plan_type: PlanType
    used_at: datetime
    business: Optional[BusinessSummary] = None


class CancelSubscriptionRequest(CamelModel):
    subscription_id: str
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("subscription_id")
    @classmethod
    def validate_subscription_id(cls, v: str) -> str:
        return uuid_string(v, "Invalid subscription ID")
