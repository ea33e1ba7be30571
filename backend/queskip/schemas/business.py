"""Business directory schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from queskip.models.business import BusinessCategory
from queskip.schemas.base import CamelModel


class BusinessSummary(CamelModel):
    """Business fields embedded in queue responses."""

    id: str
    name: str
    address: str
    phone_number: Optional[str] = None
    category: BusinessCategory


class BusinessResponse(BusinessSummary):
    description: Optional[str] = None
    average_wait_time: int
    current_queue_count: int
    max_queue_capacity: int
    is_active: bool
    average_rating: float = 0
    total_reviews: int = 0
    created_at: datetime


class BusinessCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    address: str = Field(..., min_length=1, max_length=500)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    category: BusinessCategory = BusinessCategory.OTHER
    average_wait_time: int = Field(default=15, ge=0, le=24 * 60)
    max_queue_capacity: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True


class BusinessUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=1, max_length=500)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    category: Optional[BusinessCategory] = None
    average_wait_time: Optional[int] = Field(default=None, ge=0, le=24 * 60)
    max_queue_capacity: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class CategoryResponse(CamelModel):
    key: str
    label: str
