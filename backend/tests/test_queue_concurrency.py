"""Concurrent joins and leaves against a file-backed SQLite database.

Each worker thread gets its own session and connection, so writers really
contend for the database the way request handlers do.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

from sqlalchemy import select

from queskip.models import Business, QueueEntryDB
from queskip.services.queue_ledger import FullError, QueueLedger

WORKERS = 8


def run_in_threads(fn, args_list):
    barrier = Barrier(len(args_list))

    def call(args):
        barrier.wait()
        try:
            return fn(*args)
        except Exception as e:
            return e

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(call, args_list))


def check_invariants(session_factory, business_id):
    with session_factory() as db:
        business = db.get(Business, business_id)
        rows = db.scalars(
            select(QueueEntryDB)
            .where(
                QueueEntryDB.business_id == business_id,
                QueueEntryDB.status.in_(["waiting", "notified"]),
            )
            .order_by(QueueEntryDB.position)
        ).all()
        assert [r.position for r in rows] == list(range(1, len(rows) + 1))
        assert business.current_queue_count == len(rows)
        for row in rows:
            assert row.estimated_wait_minutes == row.position * business.average_wait_time
        return business, rows


def test_concurrent_joins_respect_capacity(session_factory, seed_crowd):
    capacity = 5
    business_id, user_ids = seed_crowd(capacity=capacity, user_count=WORKERS)

    def join(user_id):
        with session_factory() as db:
            return QueueLedger(db).join(business_id, user_id)

    results = run_in_threads(join, [(u,) for u in user_ids])

    admitted = [r for r in results if not isinstance(r, Exception)]
    refused = [r for r in results if isinstance(r, Exception)]
    assert len(admitted) == min(WORKERS, capacity)
    assert all(isinstance(e, FullError) for e in refused)
    assert sorted(e.position for e in admitted) == list(range(1, capacity + 1))

    business, rows = check_invariants(session_factory, business_id)
    assert business.current_queue_count == capacity


def test_concurrent_duplicate_joins_admit_once(session_factory, seed_crowd):
    business_id, user_ids = seed_crowd(capacity=50, user_count=1)

    def join(user_id):
        with session_factory() as db:
            return QueueLedger(db).join(business_id, user_id)

    results = run_in_threads(join, [(user_ids[0],)] * WORKERS)

    admitted = [r for r in results if not isinstance(r, Exception)]
    assert len(admitted) == 1
    _, rows = check_invariants(session_factory, business_id)
    assert len(rows) == 1


def test_concurrent_leaves_keep_positions_dense(session_factory, seed_crowd):
    business_id, user_ids = seed_crowd(capacity=50, user_count=WORKERS)
    with session_factory() as db:
        ledger = QueueLedger(db)
        entries = [ledger.join(business_id, u) for u in user_ids]

    leaving = entries[::2]

    def leave(entry_id, user_id):
        with session_factory() as db:
            QueueLedger(db).leave(entry_id, user_id)

    results = run_in_threads(leave, [(e.id, e.user_id) for e in leaving])
    assert all(r is None for r in results)

    _, rows = check_invariants(session_factory, business_id)
    assert [r.user_id for r in rows] == [e.user_id for e in entries[1::2]]


def test_mixed_joins_and_leaves(session_factory, seed_crowd):
    business_id, user_ids = seed_crowd(capacity=50, user_count=WORKERS)
    stayers, newcomers = user_ids[: WORKERS // 2], user_ids[WORKERS // 2:]
    with session_factory() as db:
        ledger = QueueLedger(db)
        entries = [ledger.join(business_id, u) for u in stayers]

    def work(kind, arg, user_id):
        with session_factory() as db:
            ledger = QueueLedger(db)
            if kind == "leave":
                return ledger.leave(arg, user_id)
            return ledger.join(arg, user_id)

    jobs = [("leave", e.id, e.user_id) for e in entries[:2]]
    jobs += [("join", business_id, u) for u in newcomers]
    results = run_in_threads(work, jobs)
    assert not any(isinstance(r, Exception) for r in results)

    business, rows = check_invariants(session_factory, business_id)
    assert business.current_queue_count == len(stayers) - 2 + len(newcomers)
