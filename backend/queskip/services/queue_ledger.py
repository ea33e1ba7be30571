"""
Queue Ledger
============
Admission, departure and status advance for per-business waiting lines.

The ledger owns two invariants for every business:

1. Active entries (``waiting``/``notified``) hold positions exactly
   ``1..current_queue_count`` with no gaps or duplicates.
2. ``businesses.current_queue_count`` equals the number of active entries.

Every mutating operation runs as one transaction. Operations that change the
active set (join, leave, terminal advance) first lock the business row, which
is the single point of contention per business.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from queskip.core.config import settings
from queskip.db.session import begin_write
from queskip.models.business import Business
from queskip.models.queue import ACTIVE_STATUS_VALUES, QueueEntryDB, QueueStatus

logger = logging.getLogger(__name__)


# ===== Errors =====

class QueueLedgerError(Exception):
    """Base class for ledger failures surfaced to callers."""


class NotFoundError(QueueLedgerError):
    """Business or queue entry does not exist (or is not visible to the caller)."""


class InactiveError(QueueLedgerError):
    """Business is not accepting admissions."""


class FullError(QueueLedgerError):
    """Business queue is at capacity."""


class ConflictError(QueueLedgerError):
    """User already holds an active entry for the business."""


class InvalidStateError(QueueLedgerError):
    """Requested status transition is not allowed from the entry's current status."""


class TransientStoreError(QueueLedgerError):
    """Lock timeout or serialization failure; safe to retry the whole operation."""


# ===== Value types =====

@dataclass(frozen=True)
class QueueEntry:
    """Snapshot of one queue entry as seen at the end of a ledger operation."""

    id: str
    business_id: str
    user_id: str
    position: int
    estimated_wait_minutes: int
    status: QueueStatus
    joined_at: datetime
    notified_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active


@dataclass(frozen=True)
class WaitEstimate:
    business_id: str
    next_position: int
    estimated_wait_minutes: int
    current_queue_count: int
    max_queue_capacity: int
    is_accepting: bool


@dataclass(frozen=True)
class QueueStats:
    business_id: str
    current_queue_count: int
    max_queue_capacity: int
    average_wait_time: int
    waiting_count: int
    notified_count: int
    completed_today: int
    cancelled_today: int
    status_counts: Dict[str, int]


# Allowed transitions for advance(); leave() handles waiting -> cancelled.
ADVANCE_TRANSITIONS: Dict[QueueStatus, frozenset] = {
    QueueStatus.WAITING: frozenset({QueueStatus.NOTIFIED, QueueStatus.NO_SHOW}),
    QueueStatus.NOTIFIED: frozenset({QueueStatus.COMPLETED, QueueStatus.NO_SHOW}),
}


def next_position(current_queue_count: int) -> int:
    """Position assigned to the next admission."""
    return current_queue_count + 1


def estimate_wait_minutes(position: int, average_service_minutes: int) -> int:
    """Linear wait estimate: every party ahead (and this one) takes the average."""
    return max(position, 0) * max(average_service_minutes or 0, 0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_entry(row: QueueEntryDB) -> QueueEntry:
    return QueueEntry(
        id=row.id,
        business_id=row.business_id,
        user_id=row.user_id,
        position=row.position,
        estimated_wait_minutes=row.estimated_wait_minutes,
        status=QueueStatus(row.status),
        joined_at=row.joined_at,
        notified_at=row.notified_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def lock_business(db: Session, business_id: str) -> Optional[Business]:
    """SELECT ... FOR UPDATE on the business row, refreshing any cached copy.

    The business row is the single point of contention for everything that
    rewrites its cached counters.
    """
    if db.get_bind().dialect.name == "postgresql":
        db.execute(
            text(f"SET LOCAL lock_timeout = '{int(settings.queue_lock_timeout_ms)}ms'")
        )
    return db.scalars(
        select(Business)
        .where(Business.id == business_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()


def _transactional(operation):
    """Run a ledger operation as one write transaction.

    Commits on success and rolls back on any failure. An OperationalError
    (lock timeout, serialization failure, busy database) is retried
    immediately, up to ``max_retries`` extra attempts, before surfacing as
    TransientStoreError.
    """

    @functools.wraps(operation)
    def wrapper(self: "QueueLedger", *args, **kwargs):
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                begin_write(self.db)
                result = operation(self, *args, **kwargs)
                self.db.commit()
                return result
            except OperationalError as e:
                self.db.rollback()
                if attempt >= attempts:
                    logger.error(
                        f"{operation.__name__} failed after {attempt} attempt(s): {e}"
                    )
                    raise TransientStoreError(
                        "The queue is busy, please try again"
                    ) from e
                logger.warning(
                    f"{operation.__name__} hit a transient store error "
                    f"(attempt {attempt}/{attempts}), retrying: {e}"
                )
            except Exception:
                self.db.rollback()
                raise

    return wrapper


def _read(operation):
    """Surface store failures during a read as TransientStoreError."""

    @functools.wraps(operation)
    def wrapper(self: "QueueLedger", *args, **kwargs):
        try:
            return operation(self, *args, **kwargs)
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"{operation.__name__} hit a transient store error: {e}")
            raise TransientStoreError("The queue is busy, please try again") from e

    return wrapper


class QueueLedger:
    """Position-ranked waiting lines persisted through a SQLAlchemy session."""

    def __init__(self, db: Session, max_retries: Optional[int] = None):
        self.db = db
        self.max_retries = (
            settings.queue_transient_retries if max_retries is None else max_retries
        )

    # ===== Mutations =====

    @_transactional
    def join(self, business_id: str, user_id: str) -> QueueEntry:
        """Admit ``user_id`` at the back of ``business_id``'s queue.

        Raises:
            NotFoundError: business does not exist.
            InactiveError: business is disabled.
            ConflictError: user already has an active entry there.
            FullError: active count has reached ``max_queue_capacity``.
        """
        business = self._lock_business(business_id)
        if business is None:
            raise NotFoundError("Business not found")
        if not business.is_active:
            raise InactiveError("Business is currently inactive")
        if self._active_row_for(user_id, business_id) is not None:
            raise ConflictError("You are already in queue for this business")

        active_count = business.current_queue_count
        if active_count >= business.max_queue_capacity:
            raise FullError("Queue is full")

        position = next_position(active_count)
        row = QueueEntryDB(
            business_id=business_id,
            user_id=user_id,
            position=position,
            estimated_wait_minutes=estimate_wait_minutes(position, business.average_wait_time),
            status=QueueStatus.WAITING.value,
            joined_at=_utcnow(),
        )
        self.db.add(row)
        business.current_queue_count = active_count + 1

        try:
            self.db.flush()
        except IntegrityError as e:
            # Active-membership unique index
            raise ConflictError("You are already in queue for this business") from e

        logger.info(
            f"User {user_id} joined queue {row.id} at business {business_id} "
            f"(position {position})"
        )
        return _to_entry(row)

    @_transactional
    def leave(self, entry_id: str, requesting_user_id: str) -> None:
        """Cancel the caller's waiting entry and close the gap behind it.

        Raises:
            NotFoundError: entry missing or owned by someone else.
            InvalidStateError: entry is not ``waiting``.
        """
        row = self._get_row(entry_id)
        if row is None or row.user_id != requesting_user_id:
            raise NotFoundError("Queue entry not found")

        business = self._lock_business(row.business_id)
        row = self._get_row(entry_id)
        if QueueStatus(row.status) != QueueStatus.WAITING:
            raise InvalidStateError("Cannot leave queue with current status")

        self._release_slot(business, row, QueueStatus.CANCELLED)
        logger.info(
            f"User {requesting_user_id} left queue {entry_id} at business {row.business_id}"
        )

    @_transactional
    def advance(self, entry_id: str, to_status) -> QueueEntry:
        """Move an entry forward in its lifecycle.

        ``notified`` only touches the entry itself. ``completed`` and
        ``no_show`` end the entry's turn, so they free its slot and compact the
        positions behind it the same way ``leave`` does.

        Raises:
            NotFoundError: entry missing.
            InvalidStateError: transition not allowed (including any move out
                of a terminal status).
        """
        try:
            target = QueueStatus(to_status)
        except ValueError:
            raise InvalidStateError(f"Unknown queue status: {to_status}")

        row = self._get_row(entry_id)
        if row is None:
            raise NotFoundError("Queue entry not found")
        self._check_transition(QueueStatus(row.status), target)

        if target == QueueStatus.NOTIFIED:
            result = self.db.execute(
                update(QueueEntryDB)
                .where(
                    QueueEntryDB.id == entry_id,
                    QueueEntryDB.status == QueueStatus.WAITING.value,
                )
                .values(status=QueueStatus.NOTIFIED.value, notified_at=_utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError("Entry is no longer waiting")
            row = self._get_row(entry_id)
        else:
            business = self._lock_business(row.business_id)
            row = self._get_row(entry_id)
            self._check_transition(QueueStatus(row.status), target)
            self._release_slot(business, row, target)

        logger.info(f"Queue entry {entry_id} advanced to {target.value}")
        return _to_entry(row)

    @_transactional
    def update_notes(self, entry_id: str, user_id: str, notes: Optional[str]) -> QueueEntry:
        """Replace the notes on the caller's entry. Allowed in any status."""
        result = self.db.execute(
            update(QueueEntryDB)
            .where(QueueEntryDB.id == entry_id, QueueEntryDB.user_id == user_id)
            .values(notes=notes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Queue entry not found")

        logger.info(f"Queue notes updated for entry {entry_id} by user {user_id}")
        return _to_entry(self._get_row(entry_id))

    # ===== Reads =====

    @_read
    def estimate(self, business_id: str) -> WaitEstimate:
        """Wait estimate for a user joining now. Unlocked, eventually consistent."""
        business = self._get_business(business_id)
        if business is None:
            raise NotFoundError("Business not found")

        position = next_position(business.current_queue_count)
        return WaitEstimate(
            business_id=business.id,
            next_position=position,
            estimated_wait_minutes=estimate_wait_minutes(position, business.average_wait_time),
            current_queue_count=business.current_queue_count,
            max_queue_capacity=business.max_queue_capacity,
            is_accepting=business.is_active
            and business.current_queue_count < business.max_queue_capacity,
        )

    @_read
    def get_by_id(self, entry_id: str, user_id: Optional[str] = None) -> QueueEntry:
        """Fetch one entry; when ``user_id`` is given it must own the entry."""
        row = self._get_row(entry_id)
        if row is None or (user_id is not None and row.user_id != user_id):
            raise NotFoundError("Queue entry not found")
        return _to_entry(row)

    @_read
    def list_for_user(
        self,
        user_id: str,
        status: Optional[QueueStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[QueueEntry], int]:
        """Page through a user's entries, newest first. Returns (entries, total)."""
        conditions = [QueueEntryDB.user_id == user_id]
        if status is not None:
            conditions.append(QueueEntryDB.status == QueueStatus(status).value)

        total = self.db.scalar(
            select(func.count()).select_from(QueueEntryDB).where(*conditions)
        )
        rows = self.db.scalars(
            select(QueueEntryDB)
            .where(*conditions)
            .order_by(QueueEntryDB.created_at.desc(), QueueEntryDB.joined_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return [_to_entry(r) for r in rows], total or 0

    @_read
    def current_for_user(self, user_id: str) -> Optional[QueueEntry]:
        """The user's most recent active entry, if any."""
        row = self.db.scalars(
            select(QueueEntryDB)
            .where(
                QueueEntryDB.user_id == user_id,
                QueueEntryDB.status.in_(ACTIVE_STATUS_VALUES),
            )
            .order_by(QueueEntryDB.joined_at.desc())
            .limit(1)
        ).first()
        return _to_entry(row) if row else None

    @_read
    def list_active_for_business(self, business_id: str) -> List[QueueEntry]:
        """Active entries of a business ordered by position."""
        if self._get_business(business_id) is None:
            raise NotFoundError("Business not found")

        rows = self.db.scalars(
            select(QueueEntryDB)
            .where(
                QueueEntryDB.business_id == business_id,
                QueueEntryDB.status.in_(ACTIVE_STATUS_VALUES),
            )
            .order_by(QueueEntryDB.position.asc())
        ).all()
        return [_to_entry(r) for r in rows]

    @_read
    def stats(self, business_id: str) -> QueueStats:
        """Queue statistics for a business dashboard."""
        business = self._get_business(business_id)
        if business is None:
            raise NotFoundError("Business not found")

        status_counts = {s.value: 0 for s in QueueStatus}
        for status_value, count in self.db.execute(
            select(QueueEntryDB.status, func.count())
            .where(QueueEntryDB.business_id == business_id)
            .group_by(QueueEntryDB.status)
        ):
            status_counts[status_value] = count

        today_start = _utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        completed_today = self.db.scalar(
            select(func.count()).select_from(QueueEntryDB).where(
                QueueEntryDB.business_id == business_id,
                QueueEntryDB.status == QueueStatus.COMPLETED.value,
                QueueEntryDB.completed_at >= today_start,
            )
        )
        cancelled_today = self.db.scalar(
            select(func.count()).select_from(QueueEntryDB).where(
                QueueEntryDB.business_id == business_id,
                QueueEntryDB.status == QueueStatus.CANCELLED.value,
                QueueEntryDB.cancelled_at >= today_start,
            )
        )

        return QueueStats(
            business_id=business.id,
            current_queue_count=business.current_queue_count,
            max_queue_capacity=business.max_queue_capacity,
            average_wait_time=business.average_wait_time,
            waiting_count=status_counts[QueueStatus.WAITING.value],
            notified_count=status_counts[QueueStatus.NOTIFIED.value],
            completed_today=completed_today or 0,
            cancelled_today=cancelled_today or 0,
            status_counts=status_counts,
        )

    # ===== Internals =====

    def _lock_business(self, business_id: str) -> Optional[Business]:
        return lock_business(self.db, business_id)

    def _get_business(self, business_id: str) -> Optional[Business]:
        return self.db.scalars(
            select(Business)
            .where(Business.id == business_id)
            .execution_options(populate_existing=True)
        ).first()

    def _get_row(self, entry_id: str) -> Optional[QueueEntryDB]:
        return self.db.scalars(
            select(QueueEntryDB)
            .where(QueueEntryDB.id == entry_id)
            .execution_options(populate_existing=True)
        ).first()

    def _active_row_for(self, user_id: str, business_id: str) -> Optional[QueueEntryDB]:
        return self.db.scalars(
            select(QueueEntryDB).where(
                QueueEntryDB.user_id == user_id,
                QueueEntryDB.business_id == business_id,
                QueueEntryDB.status.in_(ACTIVE_STATUS_VALUES),
            )
        ).first()

    @staticmethod
    def _check_transition(current: QueueStatus, target: QueueStatus) -> None:
        if target not in ADVANCE_TRANSITIONS.get(current, frozenset()):
            raise InvalidStateError(
                f"Cannot move queue entry from {current.value} to {target.value}"
            )

    def _release_slot(self, business: Business, row: QueueEntryDB, new_status: QueueStatus) -> None:
        """End an active entry's turn and compact the positions behind it.

        Caller must hold the business row lock.
        """
        removed_position = row.position
        now = _utcnow()

        row.status = new_status.value
        if new_status == QueueStatus.CANCELLED:
            row.cancelled_at = now
        elif new_status == QueueStatus.COMPLETED:
            row.completed_at = now
        self.db.flush()

        self.db.execute(
            update(QueueEntryDB)
            .where(
                QueueEntryDB.business_id == business.id,
                QueueEntryDB.status.in_(ACTIVE_STATUS_VALUES),
                QueueEntryDB.position > removed_position,
            )
            .values(
                position=QueueEntryDB.position - 1,
                estimated_wait_minutes=(QueueEntryDB.position - 1) * business.average_wait_time,
            )
            .execution_options(synchronize_session=False)
        )
        business.current_queue_count = business.current_queue_count - 1
        self.db.flush()
