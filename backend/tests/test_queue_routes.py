"""Tests for /api/v1/queues endpoints."""

import pytest
from sqlalchemy.exc import OperationalError

from queskip.core.rbac import UserRole
from queskip.services.queue_ledger import QueueLedger

API = "/api/v1/queues"


def join(client, headers, business_id):
    return client.post(f"{API}/join", json={"businessId": business_id}, headers=headers)


class TestJoinEndpoint:
    def test_join(self, client, auth_headers, test_business):
        response = join(client, auth_headers, test_business.id)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Successfully joined the queue"
        data = body["data"]
        assert data["position"] == 1
        assert data["estimatedWaitMinutes"] == test_business.average_wait_time
        assert data["status"] == "waiting"
        assert data["business"]["name"] == test_business.name

    def test_join_requires_auth(self, client, test_business):
        response = client.post(f"{API}/join", json={"businessId": test_business.id})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_join_invalid_business_id(self, client, auth_headers):
        response = join(client, auth_headers, "not-a-uuid")
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "businessId"

    def test_join_unknown_business(self, client, auth_headers):
        response = join(client, auth_headers, "00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["message"] == "Business not found"

    def test_join_twice_conflicts(self, client, auth_headers, test_business):
        join(client, auth_headers, test_business.id)
        response = join(client, auth_headers, test_business.id)
        assert response.status_code == 409
        assert response.json()["message"] == "You are already in queue for this business"

    def test_join_full(self, client, business_factory, user_factory, auth_headers_for):
        business = business_factory(max_queue_capacity=1)
        first = user_factory("first@example.com")
        second = user_factory("second@example.com")
        assert join(client, auth_headers_for(first), business.id).status_code == 201
        response = join(client, auth_headers_for(second), business.id)
        assert response.status_code == 400
        assert response.json()["message"] == "Queue is full"

    def test_join_inactive(self, client, auth_headers, business_factory):
        business = business_factory(is_active=False)
        response = join(client, auth_headers, business.id)
        assert response.status_code == 400
        assert response.json()["message"] == "Business is currently inactive"


class TestMyQueues:
    def test_list_paginated(self, client, auth_headers, business_factory):
        for name in ("One", "Two", "Three"):
            business = business_factory(name)
            join(client, auth_headers, business.id)

        response = client.get(f"{API}/my-queues?page=1&limit=2", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "totalPages": 2}
        assert all(item["business"] for item in body["data"])

    def test_status_filter(self, client, auth_headers, business_factory):
        left = business_factory("Left")
        stayed = business_factory("Stayed")
        entry_id = join(client, auth_headers, left.id).json()["data"]["id"]
        client.post(f"{API}/{entry_id}/leave", headers=auth_headers)
        join(client, auth_headers, stayed.id)

        response = client.get(f"{API}/my-queues?status=cancelled", headers=auth_headers)
        data = response.json()["data"]
        assert [item["id"] for item in data] == [entry_id]

    def test_invalid_status_filter(self, client, auth_headers):
        response = client.get(f"{API}/my-queues?status=bogus", headers=auth_headers)
        assert response.status_code == 422


class TestCurrentQueue:
    def test_none(self, client, auth_headers):
        response = client.get(f"{API}/current", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"] is None
        assert response.json()["message"] == "No active queue found"

    def test_current(self, client, auth_headers, test_business):
        entry_id = join(client, auth_headers, test_business.id).json()["data"]["id"]
        response = client.get(f"{API}/current", headers=auth_headers)
        assert response.json()["data"]["id"] == entry_id


class TestEntryEndpoints:
    def test_get_own_entry(self, client, auth_headers, test_business):
        entry_id = join(client, auth_headers, test_business.id).json()["data"]["id"]
        response = client.get(f"{API}/{entry_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["business"]["id"] == test_business.id

    def test_get_other_users_entry(self, client, auth_headers, test_business, other_user,
                                   auth_headers_for):
        entry_id = join(client, auth_headers, test_business.id).json()["data"]["id"]
        response = client.get(f"{API}/{entry_id}", headers=auth_headers_for(other_user))
        assert response.status_code == 404

    @pytest.mark.parametrize("method,suffix,payload", [
        ("get", "", None),
        ("put", "/notes", {"notes": "Hello"}),
        ("post", "/leave", None),
    ])
    def test_missing_entry_message(self, client, auth_headers, method, suffix, payload):
        kwargs = {"headers": auth_headers}
        if payload is not None:
            kwargs["json"] = payload
        response = client.request(method.upper(), f"{API}/missing-entry{suffix}", **kwargs)
        assert response.status_code == 404
        assert response.json()["message"] == "Queue entry not found"

    def test_leave(self, client, auth_headers, test_business):
        entry_id = join(client, auth_headers, test_business.id).json()["data"]["id"]
        response = client.post(f"{API}/{entry_id}/leave", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Successfully left the queue"

        again = client.post(f"{API}/{entry_id}/leave", headers=auth_headers)
        assert again.status_code == 400
        assert again.json()["message"] == "Cannot leave queue with current status"

    def test_leave_unknown(self, client, auth_headers):
        response = client.post(f"{API}/does-not-exist/leave", headers=auth_headers)
        assert response.status_code == 404

    def test_update_notes(self, client, auth_headers, test_business):
        entry_id = join(client, auth_headers, test_business.id).json()["data"]["id"]
        response = client.put(
            f"{API}/{entry_id}/notes", json={"notes": "Party of four"}, headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["notes"] == "Party of four"

    def test_notes_too_long(self, client, auth_headers, test_business):
        entry_id = join(client, auth_headers, test_business.id).json()["data"]["id"]
        response = client.put(
            f"{API}/{entry_id}/notes", json={"notes": "x" * 501}, headers=auth_headers,
        )
        assert response.status_code == 422


class TestBusinessQueueViews:
    def test_wait_estimate_is_public(self, client, auth_headers, test_business):
        join(client, auth_headers, test_business.id)
        response = client.get(f"{API}/business/{test_business.id}/wait-estimate")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["nextPosition"] == 2
        assert data["estimatedWaitMinutes"] == 2 * test_business.average_wait_time
        assert data["isAccepting"] is True

    def test_stats_is_public(self, client, auth_headers, test_business):
        join(client, auth_headers, test_business.id)
        response = client.get(f"{API}/business/{test_business.id}/stats")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentQueueCount"] == 1
        assert data["waitingCount"] == 1
        assert data["statusCounts"]["waiting"] == 1

    def test_stats_unknown_business(self, client):
        response = client.get(f"{API}/business/missing/stats")
        assert response.status_code == 404

    def test_active_list_for_staff(self, client, auth_headers, staff_headers, test_business):
        join(client, auth_headers, test_business.id)
        response = client.get(f"{API}/business/{test_business.id}/active", headers=staff_headers)
        assert response.status_code == 200
        assert [item["position"] for item in response.json()["data"]] == [1]

    def test_active_list_forbidden_for_customer(self, client, auth_headers, test_business):
        response = client.get(f"{API}/business/{test_business.id}/active", headers=auth_headers)
        assert response.status_code == 403

    def test_active_list_forbidden_for_other_staff(self, client, business_factory, user_factory,
                                                   auth_headers_for, test_business):
        elsewhere = business_factory("Elsewhere")
        staff = user_factory("elsewhere@example.com", UserRole.STAFF, business_id=elsewhere.id)
        response = client.get(
            f"{API}/business/{test_business.id}/active", headers=auth_headers_for(staff),
        )
        assert response.status_code == 403


class TestAdvanceEndpoint:
    @pytest.fixture
    def entry_id(self, client, auth_headers, test_business):
        return join(client, auth_headers, test_business.id).json()["data"]["id"]

    def test_notify_then_complete(self, client, staff_headers, entry_id, test_business):
        notified = client.post(f"{API}/{entry_id}/advance", json={"status": "notified"},
                               headers=staff_headers)
        assert notified.status_code == 200
        assert notified.json()["data"]["status"] == "notified"
        assert notified.json()["data"]["notifiedAt"] is not None

        completed = client.post(f"{API}/{entry_id}/advance", json={"status": "completed"},
                                headers=staff_headers)
        assert completed.status_code == 200
        assert completed.json()["data"]["status"] == "completed"

        stats = client.get(f"{API}/business/{test_business.id}/stats").json()["data"]
        assert stats["currentQueueCount"] == 0
        assert stats["completedToday"] == 1

    def test_complete_from_waiting_rejected(self, client, staff_headers, entry_id):
        response = client.post(f"{API}/{entry_id}/advance", json={"status": "completed"},
                               headers=staff_headers)
        assert response.status_code == 400

    def test_admin_can_advance(self, client, admin_headers, entry_id):
        response = client.post(f"{API}/{entry_id}/advance", json={"status": "no_show"},
                               headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "no_show"

    def test_customer_cannot_advance(self, client, auth_headers, entry_id):
        response = client.post(f"{API}/{entry_id}/advance", json={"status": "notified"},
                               headers=auth_headers)
        assert response.status_code == 403

    def test_invalid_target_status(self, client, staff_headers, entry_id):
        response = client.post(f"{API}/{entry_id}/advance", json={"status": "cancelled"},
                               headers=staff_headers)
        assert response.status_code == 422

    def test_unknown_entry(self, client, staff_headers):
        response = client.post(f"{API}/missing/advance", json={"status": "notified"},
                               headers=staff_headers)
        assert response.status_code == 404


class TestStoreUnavailable:
    @pytest.fixture
    def locked_reads(self, monkeypatch):
        def busy(self, *args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(QueueLedger, "_get_business", busy)

    @pytest.mark.parametrize("view", ["wait-estimate", "stats"])
    def test_busy_store_is_503(self, client, test_business, locked_reads, view):
        response = client.get(f"{API}/business/{test_business.id}/{view}")
        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "The queue is busy, please try again"
