"""Business directory routes."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import or_

from queskip.core.config import settings
from queskip.core.rbac import RequireAdmin
from queskip.core.responses import paginated_response, success_response
from queskip.db.session import DbSession, begin_write
from queskip.models.business import Business, BusinessCategory
from queskip.schemas.business import (
    BusinessCreate,
    BusinessResponse,
    BusinessUpdate,
    CategoryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def list_businesses(
    db: DbSession,
    category: Optional[BusinessCategory] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    """List active businesses, optionally filtered by category or text search."""
    query = db.query(Business).filter(Business.is_active.is_(True))

    if category:
        query = query.filter(Business.category == category.value)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Business.name.ilike(pattern), Business.description.ilike(pattern)))

    total = query.count()
    businesses = (
        query.order_by(Business.created_at.desc(), Business.name.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    items = [BusinessResponse.model_validate(b).to_json() for b in businesses]
    return paginated_response(items, page, limit, total)


@router.get("/categories")
def get_categories():
    """List business categories."""
    categories = [
        CategoryResponse(key=c.value, label=c.value.capitalize()).to_json()
        for c in BusinessCategory
    ]
    return success_response(categories)


@router.get("/{business_id}")
def get_business(business_id: str, db: DbSession):
    """Get an active business by ID."""
    business = db.query(Business).filter(
        Business.id == business_id, Business.is_active.is_(True)
    ).first()
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")
    return success_response(BusinessResponse.model_validate(business).to_json())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_business(body: BusinessCreate, current_user: RequireAdmin, db: DbSession):
    """Register a business in the directory (admin only)."""
    data = body.model_dump()
    if data["max_queue_capacity"] is None:
        data["max_queue_capacity"] = settings.default_max_queue_capacity
    data["category"] = body.category.value

    business = Business(**data, current_queue_count=0)
    begin_write(db)
    db.add(business)
    db.commit()
    db.refresh(business)
    logger.info(f"Business {business.id} ({business.name}) created by {current_user.user_id}")
    return success_response(BusinessResponse.model_validate(business).to_json(), "Business created")


@router.patch("/{business_id}")
def update_business(business_id: str, body: BusinessUpdate, current_user: RequireAdmin, db: DbSession):
    """Apply a partial update to directory fields (admin only).

    ``current_queue_count`` is owned by the queue ledger and cannot be set here.
    """
    begin_write(db)
    business = db.get(Business, business_id)
    if not business:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    changes = body.model_dump(exclude_unset=True)
    for field in ("name", "address", "average_wait_time", "max_queue_capacity", "is_active", "category"):
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be null",
            )
    if "category" in changes:
        changes["category"] = changes["category"].value

    for field, value in changes.items():
        setattr(business, field, value)

    db.commit()
    db.refresh(business)
    logger.info(f"Business {business_id} updated by {current_user.user_id}: {sorted(changes)}")
    return success_response(BusinessResponse.model_validate(business).to_json(), "Business updated")
