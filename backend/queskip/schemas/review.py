"""Review schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from queskip.models.business import BusinessCategory
from queskip.schemas.base import CamelModel, uuid_string


class ReviewCreate(CamelModel):
    business_id: str
    queue_entry_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("business_id")
    @classmethod
    def validate_business_id(cls, v: str) -> str:
        return uuid_string(v, "Invalid business ID")

    @field_validator("queue_entry_id")
    @classmethod
    def validate_queue_entry_id(cls, v: Optional[str]) -> Optional[str]:
        return uuid_string(v, "Invalid queue ID") if v is not None else None


class ReviewUpdate(CamelModel):
    """Partial update; only fields present in the request body are applied."""

    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


class ReviewAuthor(CamelModel):
    full_name: str


class ReviewedBusiness(CamelModel):
    id: str
    name: str
    address: Optional[str] = None
    category: Optional[BusinessCategory] = None


class ReviewResponse(CamelModel):
    id: str
    business_id: str
    queue_entry_id: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[ReviewAuthor] = None
    business: Optional[ReviewedBusiness] = None
