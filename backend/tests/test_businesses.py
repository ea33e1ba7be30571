"""Tests for /api/v1/businesses endpoints."""

API = "/api/v1/businesses"


class TestListBusinesses:
    def test_lists_active_only(self, client, business_factory):
        business_factory("Open Bistro")
        business_factory("Closed Bistro", is_active=False)

        res = client.get(API)
        assert res.status_code == 200
        body = res.json()
        assert [b["name"] for b in body["data"]] == ["Open Bistro"]
        assert body["pagination"]["total"] == 1

    def test_collection_path_does_not_redirect(self, client, business_factory):
        business_factory("Open Bistro")
        res = client.get(API, follow_redirects=False)
        assert res.status_code == 200
        assert res.json()["success"] is True

    def test_filter_by_category(self, client, business_factory):
        business_factory("Bean There", category="cafe")
        business_factory("Steak House", category="restaurant")

        res = client.get(f"{API}?category=cafe")
        assert [b["name"] for b in res.json()["data"]] == ["Bean There"]

    def test_unknown_category_422(self, client):
        res = client.get(f"{API}?category=spaceport")
        assert res.status_code == 422

    def test_search(self, client, business_factory):
        business_factory("Noodle Bar", description="Hand-pulled noodles")
        business_factory("Burger Joint", description="Smash burgers")

        res = client.get(f"{API}?search=noodle")
        assert [b["name"] for b in res.json()["data"]] == ["Noodle Bar"]

        res = client.get(f"{API}?search=smash")
        assert [b["name"] for b in res.json()["data"]] == ["Burger Joint"]

    def test_pagination(self, client, business_factory):
        for i in range(5):
            business_factory(f"Place {i}")

        res = client.get(f"{API}?page=2&limit=2")
        body = res.json()
        assert len(body["data"]) == 2
        assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "totalPages": 3}


class TestCategories:
    def test_categories(self, client):
        res = client.get(f"{API}/categories")
        assert res.status_code == 200
        keys = [c["key"] for c in res.json()["data"]]
        assert "restaurant" in keys
        assert "government" in keys
        assert {"key": "cafe", "label": "Cafe"} in res.json()["data"]


class TestGetBusiness:
    def test_get(self, client, test_business):
        res = client.get(f"{API}/{test_business.id}")
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["id"] == test_business.id
        assert data["maxQueueCapacity"] == test_business.max_queue_capacity
        assert data["currentQueueCount"] == 0

    def test_inactive_is_hidden(self, client, business_factory):
        business = business_factory(is_active=False)
        res = client.get(f"{API}/{business.id}")
        assert res.status_code == 404

    def test_missing(self, client):
        res = client.get(f"{API}/00000000-0000-0000-0000-000000000000")
        assert res.status_code == 404
        assert res.json()["message"] == "Business not found"


class TestCreateBusiness:
    payload = {
        "name": "Fresh Cuts",
        "address": "9 Barber Row",
        "category": "retail",
        "averageWaitTime": 20,
    }

    def test_admin_creates(self, client, admin_headers):
        res = client.post(API, json=self.payload, headers=admin_headers)
        assert res.status_code == 201
        data = res.json()["data"]
        assert data["name"] == "Fresh Cuts"
        assert data["maxQueueCapacity"] == 50
        assert data["currentQueueCount"] == 0
        assert data["isActive"] is True

    def test_create_does_not_redirect(self, client, admin_headers):
        res = client.post(API, json=self.payload, headers=admin_headers, follow_redirects=False)
        assert res.status_code == 201

    def test_staff_forbidden(self, client, staff_headers):
        res = client.post(API, json=self.payload, headers=staff_headers)
        assert res.status_code == 403

    def test_anonymous_rejected(self, client):
        res = client.post(API, json=self.payload)
        assert res.status_code == 401


class TestUpdateBusiness:
    def test_partial_update(self, client, admin_headers, test_business):
        res = client.patch(
            f"{API}/{test_business.id}",
            json={"maxQueueCapacity": 5},
            headers=admin_headers,
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["maxQueueCapacity"] == 5
        assert data["name"] == "Test Bistro"
        assert data["averageWaitTime"] == 10

    def test_queue_count_not_writable(self, client, admin_headers, auth_headers, test_business):
        client.post("/api/v1/queues/join", json={"businessId": test_business.id}, headers=auth_headers)
        res = client.patch(
            f"{API}/{test_business.id}",
            json={"currentQueueCount": 0, "name": "Renamed"},
            headers=admin_headers,
        )
        assert res.status_code == 200
        data = res.json()["data"]
        assert data["name"] == "Renamed"
        assert data["currentQueueCount"] == 1

    def test_null_required_field_rejected(self, client, admin_headers, test_business):
        res = client.patch(f"{API}/{test_business.id}", json={"name": None}, headers=admin_headers)
        assert res.status_code == 400

    def test_deactivate_blocks_joins(self, client, admin_headers, auth_headers, test_business):
        client.patch(f"{API}/{test_business.id}", json={"isActive": False}, headers=admin_headers)
        res = client.post(
            "/api/v1/queues/join", json={"businessId": test_business.id}, headers=auth_headers,
        )
        assert res.status_code == 400

    def test_missing(self, client, admin_headers):
        res = client.patch(f"{API}/missing", json={"name": "X"}, headers=admin_headers)
        assert res.status_code == 404


class TestHealth:
    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json()["status"] == "healthy"

    def test_ready(self, client):
        res = client.get("/health/ready")
        assert res.status_code == 200
        assert res.json()["checks"]["database"] == "healthy"
