"""User account routes - preferences, dashboard and account deletion."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from queskip.api.routes.queues import Ledger, _business_summaries
from queskip.core.rbac import CurrentUser
from queskip.core.responses import success_response
from queskip.core.security import revoke_token, verify_password
from queskip.db.session import DbSession, begin_write
from queskip.models.account import (
    DEFAULT_APP_SETTINGS,
    DEFAULT_NOTIFICATION_SETTINGS,
    DEFAULT_PRIVACY_SETTINGS,
    UserPreferences,
)
from queskip.models.business import Business
from queskip.models.queue import ACTIVE_STATUS_VALUES, QueueEntryDB, QueueStatus
from queskip.models.subscription import PassStatus, SkipPass, Subscription, SubscriptionStatus
from queskip.models.user import User
from queskip.schemas.business import BusinessSummary
from queskip.schemas.queue import QueueEntryResponse
from queskip.schemas.user import (
    DashboardResponse,
    DashboardSubscription,
    DeleteAccountRequest,
    FavoriteBusiness,
    PreferencesResponse,
    PreferencesUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_ACTIVITY_LIMIT = 5
FAVORITE_BUSINESS_LIMIT = 5


def _default_preferences(user_id: str) -> UserPreferences:
    return UserPreferences(
        user_id=user_id,
        notification_settings=dict(DEFAULT_NOTIFICATION_SETTINGS),
        privacy_settings=dict(DEFAULT_PRIVACY_SETTINGS),
        app_settings=dict(DEFAULT_APP_SETTINGS),
    )


def _entry(entry, summaries) -> QueueEntryResponse:
    return QueueEntryResponse.model_validate(entry).model_copy(
        update={"business": summaries.get(entry.business_id)}
    )


def _find_preferences(db, user_id: str):
    return db.scalar(select(UserPreferences).where(UserPreferences.user_id == user_id))


def _get_or_create_preferences(db, user_id: str) -> UserPreferences:
    """Load the caller's preferences, storing the defaults on first access."""
    prefs = _find_preferences(db, user_id)
    if prefs is not None:
        return prefs

    begin_write(db)
    prefs = _find_preferences(db, user_id)
    if prefs is None:
        prefs = _default_preferences(user_id)
        db.add(prefs)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            prefs = _find_preferences(db, user_id)
    return prefs


@router.get("/preferences")
def get_preferences(current_user: CurrentUser, db: DbSession):
    """The caller's notification, privacy and app settings."""
    prefs = _get_or_create_preferences(db, current_user.user_id)
    return success_response(PreferencesResponse.model_validate(prefs).to_json())


@router.put("/preferences")
def update_preferences(body: PreferencesUpdate, current_user: CurrentUser, db: DbSession):
    """Replace any of the caller's settings sections."""
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No preferences to update")

    begin_write(db)
    prefs = _find_preferences(db, current_user.user_id)
    if prefs is None:
        prefs = _default_preferences(current_user.user_id)
        db.add(prefs)
    for field, value in changes.items():
        setattr(prefs, field, value)
    db.commit()
    db.refresh(prefs)

    logger.info(f"Preferences updated for user {current_user.user_id}: {sorted(changes)}")
    return success_response(
        PreferencesResponse.model_validate(prefs).to_json(),
        "Preferences updated successfully",
    )


@router.get("/dashboard")
def get_dashboard(current_user: CurrentUser, ledger: Ledger, db: DbSession):
    """Current queue, recent visits, subscriptions and favourite businesses."""
    user_id = current_user.user_id
    now = datetime.now(timezone.utc)

    current = ledger.current_for_user(user_id)
    recent, _ = ledger.list_for_user(user_id, page=1, limit=RECENT_ACTIVITY_LIMIT)
    summaries = _business_summaries(
        db, [e.business_id for e in recent] + ([current.business_id] if current else []),
    )

    pass_counts = (
        select(SkipPass.subscription_id, func.count().label("available"))
        .where(
            SkipPass.user_id == user_id,
            SkipPass.status == PassStatus.ACTIVE.value,
            SkipPass.expires_at > now,
        )
        .group_by(SkipPass.subscription_id)
        .subquery()
    )
    subscription_rows = db.execute(
        select(Subscription, func.coalesce(pass_counts.c.available, 0))
        .outerjoin(pass_counts, pass_counts.c.subscription_id == Subscription.id)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date > now,
        )
        .order_by(Subscription.end_date.desc())
    ).all()

    visits = func.count(QueueEntryDB.id).label("visit_count")
    favorite_rows = db.execute(
        select(Business, visits)
        .join(QueueEntryDB, QueueEntryDB.business_id == Business.id)
        .where(
            QueueEntryDB.user_id == user_id,
            QueueEntryDB.status == QueueStatus.COMPLETED.value,
        )
        .group_by(Business.id)
        .order_by(visits.desc(), Business.name)
        .limit(FAVORITE_BUSINESS_LIMIT)
    ).all()

    dashboard = DashboardResponse(
        current_queue=_entry(current, summaries) if current else None,
        recent_activity=[_entry(e, summaries) for e in recent],
        subscriptions=[
            DashboardSubscription(
                id=s.id, plan_type=s.plan_type, end_date=s.end_date, available_passes=available,
            )
            for s, available in subscription_rows
        ],
        favorite_businesses=[
            FavoriteBusiness(**BusinessSummary.model_validate(b).model_dump(), visit_count=count)
            for b, count in favorite_rows
        ],
        has_active_subscription=bool(subscription_rows),
    )
    return success_response(dashboard.to_json())


@router.delete("/delete-account")
def delete_account(body: DeleteAccountRequest, current_user: CurrentUser, ledger: Ledger,
                   db: DbSession):
    """Deactivate the caller's account.

    Active queue entries are released first so the lines behind them move
    up. The account row is kept for history with its email freed for reuse.
    """
    user = db.get(User, current_user.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not verify_password(body.password, user.password_hash):
        logger.warning(f"Failed account deletion for user {user.id}: wrong password")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid password")

    active = db.execute(
        select(QueueEntryDB.id, QueueEntryDB.status).where(
            QueueEntryDB.user_id == user.id,
            QueueEntryDB.status.in_(ACTIVE_STATUS_VALUES),
        )
    ).all()
    for entry_id, entry_status in active:
        if entry_status == QueueStatus.WAITING.value:
            ledger.leave(entry_id, current_user.user_id)
        else:
            ledger.advance(entry_id, QueueStatus.NO_SHOW)

    begin_write(db)
    user = db.get(User, current_user.user_id)
    now = datetime.now(timezone.utc)
    user.is_active = False
    user.email = f"{user.email}_deleted_{int(time.time())}"
    db.execute(
        update(Subscription)
        .where(
            Subscription.user_id == user.id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .values(
            status=SubscriptionStatus.CANCELLED.value,
            cancelled_at=now,
            cancellation_reason=body.reason or "Account deleted",
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(SkipPass)
        .where(SkipPass.user_id == user.id, SkipPass.status == PassStatus.ACTIVE.value)
        .values(status=PassStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    revoke_token(db, current_user.claims)
    db.commit()

    logger.info(
        f"Account deleted for user {current_user.user_id} "
        f"(released {len(active)} queue entries, reason: {body.reason or 'No reason provided'})"
    )
    return success_response(None, "Account deleted successfully")
