"""Catalog of purchasable plans.

Plans are fixed in code; a purchase records a subscription against the
plan's price without charging anything.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple

from queskip.models.subscription import PlanType


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    description: str
    type: PlanType
    price: Decimal
    duration_days: int
    features: Tuple[str, ...] = field(default_factory=tuple)
    currency: str = "USD"
    original_price: Optional[Decimal] = None

    @property
    def savings(self) -> Optional[Decimal]:
        if self.original_price is None:
            return None
        return self.original_price - self.price


PLANS: Tuple[Plan, ...] = (
    Plan(
        id="one_time_skip",
        name="One Time Q Skip Pass",
        description="Skip the queue once at any business",
        type=PlanType.ONE_TIME,
        price=Decimal("15.00"),
        duration_days=30,
        features=(
            "Skip to front of queue",
            "One-time use",
            "Valid for 30 days",
            "Works at any business",
        ),
    ),
    Plan(
        id="monthly_unlimited",
        name="Monthly Unlimited",
        description="Unlimited queue skips for one month",
        type=PlanType.MONTHLY,
        price=Decimal("29.99"),
        duration_days=30,
        features=(
            "Unlimited queue skips",
            "Monthly subscription",
            "Priority customer support",
            "Early access to new features",
        ),
    ),
    Plan(
        id="yearly_premium",
        name="Yearly Premium",
        description="Unlimited queue skips for one year with savings",
        type=PlanType.YEARLY,
        price=Decimal("299.99"),
        duration_days=365,
        original_price=Decimal("359.88"),
        features=(
            "Unlimited queue skips",
            "Yearly subscription",
            "Priority customer support",
            "Early access to new features",
            "Exclusive premium features",
        ),
    ),
)


def get_plan(plan_id: str) -> Optional[Plan]:
    return next((p for p in PLANS if p.id == plan_id), None)
