"""Concurrent authenticated requests against a file-backed SQLite database.

Requests go through the full ASGI stack with one session per request, so the
auth lookup, endpoint reads and ledger writes contend the way they do when
served by uvicorn.
"""

import asyncio

import httpx
import pytest
from sqlalchemy import update
from starlette.requests import Request

from queskip.core.rate_limit import limiter
from queskip.core.rbac import get_current_user
from queskip.core.security import create_access_token
from queskip.db.session import begin_write, get_db
from queskip.main import app
from queskip.models import Business
from queskip.services.queue_ledger import QueueLedger

API = "/api/v1/queues"


def bearer(user_id: str, email: str) -> dict:
    token = create_access_token(data={"sub": user_id, "email": email, "role": "customer"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def served_app(session_factory):
    """The application with each request on its own session."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    yield app
    app.dependency_overrides.clear()


async def send_all(application, requests):
    transport = httpx.ASGITransport(app=application)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await asyncio.gather(
            *(client.request(method, url, **kwargs) for method, url, kwargs in requests)
        )


def test_parallel_authenticated_reads(served_app, seed_crowd):
    _, user_ids = seed_crowd(capacity=10, user_count=4)
    requests = [
        ("GET", f"{API}/current", {"headers": bearer(u, f"user{i}@example.com")})
        for i, u in enumerate(user_ids)
    ]

    responses = asyncio.run(send_all(served_app, requests))

    assert [r.status_code for r in responses] == [200] * 4
    assert all(r.json()["data"] is None for r in responses)


def test_parallel_authenticated_joins(served_app, seed_crowd, session_factory):
    business_id, user_ids = seed_crowd(capacity=4, user_count=6)
    requests = [
        ("POST", f"{API}/join", {
            "json": {"businessId": business_id},
            "headers": bearer(u, f"user{i}@example.com"),
        })
        for i, u in enumerate(user_ids)
    ]

    responses = asyncio.run(send_all(served_app, requests))

    codes = sorted(r.status_code for r in responses)
    assert codes == [201] * 4 + [400] * 2
    positions = sorted(r.json()["data"]["position"] for r in responses if r.status_code == 201)
    assert positions == [1, 2, 3, 4]
    with session_factory() as db:
        assert db.get(Business, business_id).current_queue_count == 4


def test_reads_proceed_while_a_writer_holds_the_lock(session_factory, seed_crowd):
    business_id, _ = seed_crowd(capacity=10, user_count=1)

    with session_factory() as writer:
        begin_write(writer)
        writer.execute(
            update(Business).where(Business.id == business_id).values(description="Renovating")
        )
        with session_factory() as reader:
            estimate = QueueLedger(reader).estimate(business_id)
        writer.rollback()

    assert estimate.next_position == 1


def test_auth_lookup_does_not_block_writers(session_factory, seed_crowd):
    business_id, user_ids = seed_crowd(capacity=10, user_count=2)
    request = Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [
            (b"authorization", bearer(user_ids[0], "user0@example.com")["Authorization"].encode()),
        ],
    })

    with session_factory() as request_session:
        token = get_current_user(request, request_session)
        assert token.user_id == user_ids[0]
        assert not request_session.in_transaction()

        with session_factory() as other:
            entry = QueueLedger(other).join(business_id, user_ids[1])
        assert entry.position == 1
