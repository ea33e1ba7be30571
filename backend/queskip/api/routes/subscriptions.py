"""Subscription routes - plans, purchases and skip pass redemption.

Purchases are recorded against the plan price; charging a payment method is
left to the client's payment flow.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import func, select, update

from queskip.core.rate_limit import limiter
from queskip.core.rbac import CurrentUser
from queskip.core.responses import paginated_response, success_response
from queskip.db.session import DbSession, begin_write
from queskip.models.business import Business
from queskip.models.queue import QueueEntryDB
from queskip.models.subscription import (
    PassStatus,
    PassUsage,
    PlanType,
    SkipPass,
    Subscription,
    SubscriptionStatus,
)
from queskip.schemas.business import BusinessSummary
from queskip.schemas.subscription import (
    CancelSubscriptionRequest,
    MySubscriptionsResponse,
    PassUsageResponse,
    PlanResponse,
    PurchaseRequest,
    PurchaseResponse,
    SkipPassResponse,
    SubscriptionResponse,
    UsePassRequest,
)
from queskip.services.subscription_plans import PLANS, get_plan

logger = logging.getLogger(__name__)

router = APIRouter()

UNLIMITED_PLAN_TYPES = tuple(t.value for t in PlanType if t.is_unlimited)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def active_subscriptions(db, user_id: str, now: datetime):
    """Uncancelled subscriptions that have not reached their end date."""
    return db.scalars(
        select(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date > now,
        )
        .order_by(Subscription.created_at.desc())
    ).all()


def available_passes(db, user_id: str, now: datetime):
    """Unused, unexpired passes, soonest to expire first."""
    return db.scalars(
        select(SkipPass)
        .where(
            SkipPass.user_id == user_id,
            SkipPass.status == PassStatus.ACTIVE.value,
            SkipPass.expires_at > now,
        )
        .order_by(SkipPass.expires_at.asc())
    ).all()


@router.get("/plans")
def list_plans():
    """Plans available for purchase."""
    return success_response([PlanResponse.model_validate(p).to_json() for p in PLANS])


@router.post("/purchase", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def purchase(request: Request, body: PurchaseRequest, current_user: CurrentUser, db: DbSession):
    """Record a plan purchase. One-time plans also issue a skip pass."""
    plan = get_plan(body.plan_id)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan ID")

    start = _utcnow()
    end = start + timedelta(days=plan.duration_days)

    begin_write(db)
    subscription = Subscription(
        user_id=current_user.user_id,
        plan_id=plan.id,
        plan_type=plan.type.value,
        status=SubscriptionStatus.ACTIVE.value,
        start_date=start,
        end_date=end,
        amount=plan.price,
        currency=plan.currency,
        payment_method_id=body.payment_method_id,
    )
    db.add(subscription)
    db.flush()

    skip_pass: Optional[SkipPass] = None
    if plan.type == PlanType.ONE_TIME:
        skip_pass = SkipPass(
            user_id=current_user.user_id,
            subscription_id=subscription.id,
            status=PassStatus.ACTIVE.value,
            expires_at=end,
        )
        db.add(skip_pass)
    db.commit()
    db.refresh(subscription)
    if skip_pass is not None:
        db.refresh(skip_pass)

    logger.info(
        f"User {current_user.user_id} purchased {plan.id} "
        f"(subscription {subscription.id}, {plan.price} {plan.currency})"
    )
    result = PurchaseResponse(
        subscription=SubscriptionResponse.model_validate(subscription),
        skip_pass=SkipPassResponse.model_validate(skip_pass) if skip_pass else None,
    )
    return success_response(result.to_json(), "Subscription purchased successfully")


@router.get("/my-subscriptions")
def my_subscriptions(current_user: CurrentUser, db: DbSession):
    """The caller's active subscriptions and unused passes."""
    now = _utcnow()
    subscriptions = active_subscriptions(db, current_user.user_id, now)
    passes = available_passes(db, current_user.user_id, now)
    result = MySubscriptionsResponse(
        subscriptions=[SubscriptionResponse.model_validate(s) for s in subscriptions],
        passes=[SkipPassResponse.model_validate(p) for p in passes],
        has_active_subscription=bool(subscriptions),
        has_available_passes=bool(passes),
    )
    return success_response(result.to_json())


@router.post("/use-pass")
def use_pass(body: UsePassRequest, current_user: CurrentUser, db: DbSession):
    """Redeem a skip at a business.

    An active unlimited plan is used before any single-use pass; a pass is
    consumed only when no unlimited plan applies.
    """
    begin_write(db)
    now = _utcnow()
    if db.get(Business, body.business_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    if body.queue_entry_id is not None:
        entry = db.get(QueueEntryDB, body.queue_entry_id)
        if (entry is None or entry.user_id != current_user.user_id
                or entry.business_id != body.business_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid queue ID for this business",
            )

    unlimited = db.scalars(
        select(Subscription)
        .where(
            Subscription.user_id == current_user.user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date > now,
            Subscription.plan_type.in_(UNLIMITED_PLAN_TYPES),
        )
        .order_by(Subscription.end_date.desc())
        .limit(1)
    ).first()

    if unlimited is not None:
        subscription_id, plan_type = unlimited.id, unlimited.plan_type
    else:
        passes = available_passes(db, current_user.user_id, now)
        if not passes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No active passes or subscriptions available",
            )
        skip_pass = passes[0]
        consumed = db.execute(
            update(SkipPass)
            .where(SkipPass.id == skip_pass.id, SkipPass.status == PassStatus.ACTIVE.value)
            .values(status=PassStatus.USED.value, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount == 0:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Skip pass was already used",
            )
        subscription_id, plan_type = skip_pass.subscription_id, PlanType.ONE_TIME.value

    usage = PassUsage(
        user_id=current_user.user_id,
        subscription_id=subscription_id,
        business_id=body.business_id,
        queue_entry_id=body.queue_entry_id,
        plan_type=plan_type,
        used_at=now,
    )
    db.add(usage)
    db.commit()

    logger.info(
        f"User {current_user.user_id} used a {plan_type} skip at business {body.business_id}"
    )
    return success_response(
        {
            "passUsed": True,
            "usageId": usage.id,
            "planType": plan_type,
            "businessId": body.business_id,
            "queueEntryId": body.queue_entry_id,
            "usedAt": now.isoformat(),
        },
        "Skip pass used successfully",
    )


@router.get("/usage-history")
def usage_history(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """Pass and plan redemptions, newest first."""
    total = db.scalar(
        select(func.count()).select_from(PassUsage).where(PassUsage.user_id == current_user.user_id)
    )
    rows = db.execute(
        select(PassUsage, Business)
        .join(Business, Business.id == PassUsage.business_id)
        .where(PassUsage.user_id == current_user.user_id)
        .order_by(PassUsage.used_at.desc(), PassUsage.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    items = []
    for usage, business in rows:
        item = PassUsageResponse.model_validate(usage)
        item.business = BusinessSummary.model_validate(business)
        items.append(item.to_json())
    return paginated_response(items, page, limit, total or 0)


@router.post("/cancel")
def cancel_subscription(body: CancelSubscriptionRequest, current_user: CurrentUser, db: DbSession):
    """Cancel one of the caller's subscriptions and void its unused passes."""
    begin_write(db)
    subscription = db.get(Subscription, body.subscription_id)
    if subscription is None or subscription.user_id != current_user.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    if subscription.status == SubscriptionStatus.CANCELLED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subscription is already cancelled",
        )

    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.cancelled_at = _utcnow()
    subscription.cancellation_reason = body.reason
    db.execute(
        update(SkipPass)
        .where(
            SkipPass.subscription_id == subscription.id,
            SkipPass.status == PassStatus.ACTIVE.value,
        )
        .values(status=PassStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(subscription)

    logger.info(
        f"Subscription {subscription.id} cancelled by {current_user.user_id} "
        f"(reason: {body.reason or 'No reason provided'})"
    )
    return success_response(
        SubscriptionResponse.model_validate(subscription).to_json(),
        "Subscription cancelled successfully",
    )
