"""Business rating aggregate maintenance."""

import logging
from typing import Dict

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from queskip.models.business import Business
from queskip.models.review import Review

logger = logging.getLogger(__name__)


def recalculate_rating(db: Session, business: Business) -> None:
    """Recompute ``average_rating`` and ``total_reviews`` from the reviews table.

    Caller holds the business row lock, so concurrent review writes for the
    same business apply their aggregates one after another.
    """
    db.flush()
    average, count = db.execute(
        select(func.avg(Review.rating), func.count(Review.id))
        .where(Review.business_id == business.id)
    ).one()
    business.average_rating = round(float(average or 0), 2)
    business.total_reviews = count or 0
    logger.debug(
        f"Business {business.id} rating now {business.average_rating} "
        f"over {business.total_reviews} review(s)"
    )


def rating_distribution(db: Session, business_id: str) -> Dict[str, int]:
    """Review count per star value, with every value from 1 to 5 present."""
    distribution = {str(star): 0 for star in range(1, 6)}
    for rating, count in db.execute(
        select(Review.rating, func.count(Review.id))
        .where(Review.business_id == business_id)
        .group_by(Review.rating)
    ):
        distribution[str(rating)] = count
    return distribution
