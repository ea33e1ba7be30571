"""Queue routes - join, leave and track places in a business queue."""

import logging
from typing import Annotated, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from queskip.core.rate_limit import limiter
from queskip.core.rbac import CurrentUser, RequireStaff
from queskip.core.responses import paginated_response, success_response
from queskip.db.session import DbSession
from queskip.models.business import Business
from queskip.models.queue import QueueStatus
from queskip.schemas.business import BusinessSummary
from queskip.schemas.queue import (
    QueueAdvanceRequest,
    QueueEntryResponse,
    QueueJoinRequest,
    QueueNotesUpdate,
    QueueStatsResponse,
    WaitEstimateResponse,
)
from queskip.services.queue_ledger import QueueEntry, QueueLedger

logger = logging.getLogger(__name__)

router = APIRouter()


def get_queue_ledger(db: DbSession) -> QueueLedger:
    return QueueLedger(db)


Ledger = Annotated[QueueLedger, Depends(get_queue_ledger)]


def _business_summaries(db, business_ids: Iterable[str]) -> Dict[str, BusinessSummary]:
    ids = set(business_ids)
    if not ids:
        return {}
    businesses = db.query(Business).filter(Business.id.in_(ids)).all()
    return {b.id: BusinessSummary.model_validate(b) for b in businesses}


def _serialize(entry: QueueEntry, business: Optional[BusinessSummary] = None) -> dict:
    response = QueueEntryResponse.model_validate(entry)
    if business is not None:
        response = response.model_copy(update={"business": business})
    return response.to_json()


def _serialize_many(db, entries: List[QueueEntry]) -> List[dict]:
    summaries = _business_summaries(db, (e.business_id for e in entries))
    return [_serialize(e, summaries.get(e.business_id)) for e in entries]


@router.post("/join", status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def join_queue(request: Request, body: QueueJoinRequest, current_user: CurrentUser,
               ledger: Ledger, db: DbSession):
    """Join a business queue."""
    entry = ledger.join(body.business_id, current_user.user_id)
    summaries = _business_summaries(db, [entry.business_id])
    return success_response(
        _serialize(entry, summaries.get(entry.business_id)),
        "Successfully joined the queue",
    )


@router.get("/my-queues")
def get_my_queues(
    current_user: CurrentUser,
    ledger: Ledger,
    db: DbSession,
    status_filter: Optional[QueueStatus] = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
):
    """List the caller's queue entries, newest first."""
    entries, total = ledger.list_for_user(
        current_user.user_id, status=status_filter, page=page, limit=limit,
    )
    return paginated_response(_serialize_many(db, entries), page, limit, total)


@router.get("/current")
def get_current_queue(current_user: CurrentUser, ledger: Ledger, db: DbSession):
    """Get the caller's active queue entry, if any."""
    entry = ledger.current_for_user(current_user.user_id)
    if entry is None:
        return success_response(None, "No active queue found")
    summaries = _business_summaries(db, [entry.business_id])
    return success_response(_serialize(entry, summaries.get(entry.business_id)))


@router.get("/business/{business_id}/stats")
def get_queue_stats(business_id: str, ledger: Ledger):
    """Queue statistics for a business."""
    stats = ledger.stats(business_id)
    return success_response(QueueStatsResponse.model_validate(stats).to_json())


@router.get("/business/{business_id}/wait-estimate")
def get_wait_estimate(business_id: str, ledger: Ledger):
    """Estimated position and wait for someone joining now."""
    estimate = ledger.estimate(business_id)
    return success_response(WaitEstimateResponse.model_validate(estimate).to_json())


@router.get("/business/{business_id}/active")
def list_active_entries(business_id: str, current_user: RequireStaff, ledger: Ledger):
    """Active entries for a business in position order (staff view)."""
    if not current_user.can_manage_business(business_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not staff of this business")
    entries = ledger.list_active_for_business(business_id)
    return success_response([_serialize(e) for e in entries])


@router.get("/{queue_id}")
def get_queue(queue_id: str, current_user: CurrentUser, ledger: Ledger, db: DbSession):
    """Get one of the caller's queue entries."""
    entry = ledger.get_by_id(queue_id, user_id=current_user.user_id)
    summaries = _business_summaries(db, [entry.business_id])
    return success_response(_serialize(entry, summaries.get(entry.business_id)))


@router.post("/{queue_id}/leave")
def leave_queue(queue_id: str, current_user: CurrentUser, ledger: Ledger):
    """Leave a queue. Only waiting entries can be left."""
    ledger.leave(queue_id, current_user.user_id)
    return success_response(None, "Successfully left the queue")


@router.put("/{queue_id}/notes")
def update_queue_notes(queue_id: str, body: QueueNotesUpdate, current_user: CurrentUser,
                       ledger: Ledger):
    """Update notes on one of the caller's entries."""
    entry = ledger.update_notes(queue_id, current_user.user_id, body.notes)
    return success_response(_serialize(entry), "Queue notes updated successfully")


@router.post("/{queue_id}/advance")
def advance_queue_entry(queue_id: str, body: QueueAdvanceRequest, current_user: RequireStaff,
                        ledger: Ledger):
    """Notify, complete or mark a party as no-show (staff only)."""
    entry = ledger.get_by_id(queue_id)
    if not current_user.can_manage_business(entry.business_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not staff of this business")
    entry = ledger.advance(queue_id, body.status)
    logger.info(f"Staff {current_user.user_id} moved entry {queue_id} to {entry.status.value}")
    return success_response(_serialize(entry), f"Queue entry marked {entry.status.value}")
