"""Business directory model."""

from __future__ import annotations

import enum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from queskip.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class BusinessCategory(str, enum.Enum):
    RESTAURANT = "restaurant"
    HOTEL = "hotel"
    CAFE = "cafe"
    RETAIL = "retail"
    HEALTHCARE = "healthcare"
    GOVERNMENT = "government"
    OTHER = "other"


class Business(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A business customers can queue at.

    ``current_queue_count`` caches the number of active queue entries and is
    written only by the queue ledger, inside the transaction that changes
    those entries.
    """

    __tablename__ = "businesses"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[str] = mapped_column(
        String(30), default=BusinessCategory.OTHER.value, nullable=False, index=True,
    )
    average_wait_time: Mapped[int] = mapped_column(Integer, default=15, nullable=False)  # minutes per party
    current_queue_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_queue_capacity: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Review aggregate, recomputed whenever a review changes
    average_rating: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("current_queue_count >= 0", name="ck_businesses_queue_count_non_negative"),
        CheckConstraint("average_wait_time >= 0", name="ck_businesses_average_wait_non_negative"),
        CheckConstraint("max_queue_capacity >= 0", name="ck_businesses_capacity_non_negative"),
    )
