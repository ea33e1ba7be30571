"""Review routes - rate businesses and keep their rating aggregate current."""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from queskip.core.rate_limit import limiter
from queskip.core.rbac import CurrentUser
from queskip.core.responses import paginated_response, success_response
from queskip.db.session import DbSession, begin_write
from queskip.models.business import Business
from queskip.models.queue import QueueEntryDB
from queskip.models.review import Review
from queskip.models.user import User
from queskip.schemas.review import (
    ReviewAuthor,
    ReviewCreate,
    ReviewedBusiness,
    ReviewResponse,
    ReviewUpdate,
)
from queskip.services.queue_ledger import lock_business
from queskip.services.reviews import rating_distribution, recalculate_rating

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize(review: Review, author: Optional[User] = None,
               business: Optional[Business] = None) -> dict:
    response = ReviewResponse.model_validate(review)
    if author is not None:
        response.user = ReviewAuthor.model_validate(author)
    if business is not None:
        response.business = ReviewedBusiness.model_validate(business)
    return response.to_json()


def _own_review(db, review_id: str, user_id: str) -> Review:
    review = db.get(Review, review_id)
    if review is None or review.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_review(request: Request, body: ReviewCreate, current_user: CurrentUser, db: DbSession):
    """Review a business, optionally tied to one of the caller's visits."""
    begin_write(db)
    business = lock_business(db, body.business_id)
    if business is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    existing = db.scalar(
        select(Review.id).where(
            Review.user_id == current_user.user_id, Review.business_id == business.id,
        )
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reviewed this business",
        )

    if body.queue_entry_id is not None:
        entry = db.get(QueueEntryDB, body.queue_entry_id)
        if entry is None or entry.user_id != current_user.user_id or entry.business_id != business.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid queue ID for this business",
            )

    review = Review(
        user_id=current_user.user_id,
        business_id=business.id,
        queue_entry_id=body.queue_entry_id,
        rating=body.rating,
        comment=body.comment,
    )
    db.add(review)
    try:
        recalculate_rating(db, business)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already reviewed this business",
        )
    db.refresh(review)
    db.refresh(business)

    logger.info(
        f"Review {review.id} ({review.rating} stars) created by {current_user.user_id} "
        f"for business {business.id}"
    )
    return success_response(_serialize(review, business=business), "Review created successfully")


@router.get("/business/{business_id}")
def list_business_reviews(
    business_id: str,
    db: DbSession,
    rating: Optional[int] = Query(default=None, ge=1, le=5),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """Reviews of a business, newest first, with the rating distribution."""
    if db.get(Business, business_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business not found")

    conditions = [Review.business_id == business_id]
    if rating is not None:
        conditions.append(Review.rating == rating)

    total = db.scalar(select(func.count()).select_from(Review).where(*conditions))
    rows = db.execute(
        select(Review, User)
        .join(User, User.id == Review.user_id)
        .where(*conditions)
        .order_by(Review.created_at.desc(), Review.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    items = [_serialize(review, author=author) for review, author in rows]
    return paginated_response(
        items, page, limit, total or 0,
        extra={"ratingDistribution": rating_distribution(db, business_id)},
    )


@router.get("/my-reviews")
def list_my_reviews(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """The caller's reviews, newest first."""
    total = db.scalar(
        select(func.count()).select_from(Review).where(Review.user_id == current_user.user_id)
    )
    rows = db.execute(
        select(Review, Business)
        .join(Business, Business.id == Review.business_id)
        .where(Review.user_id == current_user.user_id)
        .order_by(Review.created_at.desc(), Review.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    items: List[dict] = [_serialize(review, business=business) for review, business in rows]
    return paginated_response(items, page, limit, total or 0)


@router.get("/{review_id}")
def get_review(review_id: str, db: DbSession):
    """Get a review with its author and business."""
    row = db.execute(
        select(Review, User, Business)
        .join(User, User.id == Review.user_id)
        .join(Business, Business.id == Review.business_id)
        .where(Review.id == review_id)
    ).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    review, author, business = row
    return success_response(_serialize(review, author=author, business=business))


@router.put("/{review_id}")
def update_review(review_id: str, body: ReviewUpdate, current_user: CurrentUser, db: DbSession):
    """Change the rating or comment of one of the caller's reviews."""
    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")
    if "rating" in changes and changes["rating"] is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="rating cannot be null")

    begin_write(db)
    review = _own_review(db, review_id, current_user.user_id)
    rating_changed = "rating" in changes and changes["rating"] != review.rating
    business = lock_business(db, review.business_id) if rating_changed else None

    for field, value in changes.items():
        setattr(review, field, value)
    if business is not None:
        recalculate_rating(db, business)
    db.commit()
    db.refresh(review)

    logger.info(f"Review {review_id} updated by {current_user.user_id}: {sorted(changes)}")
    return success_response(_serialize(review), "Review updated successfully")


@router.delete("/{review_id}")
def delete_review(review_id: str, current_user: CurrentUser, db: DbSession):
    """Delete one of the caller's reviews."""
    begin_write(db)
    review = _own_review(db, review_id, current_user.user_id)
    business = lock_business(db, review.business_id)

    db.delete(review)
    recalculate_rating(db, business)
    db.commit()

    logger.info(f"Review {review_id} deleted by {current_user.user_id}")
    return success_response(None, "Review deleted successfully")
