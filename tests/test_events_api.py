import pytest


@pytest.fixture
def owner(api):
    return {"X-User-Id": api.add_user("owner@example.com")}


def _create(api, headers, **overrides):
    body = {
        "title": "Standup",
        "start": "2024-01-01T09:00:00Z",
        "end": "2024-01-01T09:15:00Z",
        "category": "meeting",
    }
    body.update(overrides)
    return api.post("/api/events", json=body, headers=headers)


class TestEventLifecycle:
    """End-to-end create, read, update, list and delete over HTTP."""

    def test_standup_lifecycle(self, api, owner):
        created = _create(api, owner)
        assert created.status_code == 201
        payload = created.json()
        assert payload["status"] == "success"
        assert payload["message"] == "Event created successfully"
        event = payload["data"]["event"]
        assert event["title"] == "Standup"
        assert event["status"] == "active"
        assert event["duration_seconds"] == 900
        event_id = event["id"]

        fetched = api.get(f"/api/events/{event_id}", headers=owner)
        assert fetched.status_code == 200
        assert fetched.json()["data"]["event"]["category"] == "meeting"

        updated = api.put(f"/api/events/{event_id}", json={"location": "Room 4"}, headers=owner)
        assert updated.status_code == 200
        assert updated.json()["data"]["event"]["location"] == "Room 4"
        assert updated.json()["data"]["event"]["title"] == "Standup"

        listed = api.get(
            "/api/events",
            params={"start": "2024-01-01T00:00:00Z", "end": "2024-01-02T00:00:00Z", "search": "stand"},
            headers=owner,
        )
        data = listed.json()["data"]
        assert [e["id"] for e in data["events"]] == [event_id]
        assert data["pagination"]["total_events"] == 1
        assert data["pagination"]["current_page"] == 1

        by_category = api.get("/api/events/category/meeting", headers=owner)
        assert [e["id"] for e in by_category.json()["data"]["events"]] == [event_id]

        deleted = api.delete(f"/api/events/{event_id}", headers=owner)
        assert deleted.status_code == 200
        assert deleted.json() == {"status": "success", "message": "Event deleted successfully"}

        missing = api.get(f"/api/events/{event_id}", headers=owner)
        assert missing.status_code == 404
        assert missing.json() == {"status": "error", "message": "Event not found"}

    def test_events_are_private_to_owner(self, api, owner):
        event_id = _create(api, owner).json()["data"]["event"]["id"]
        other = {"X-User-Id": api.add_user("other@example.com")}

        assert api.get(f"/api/events/{event_id}", headers=other).status_code == 404
        assert api.put(f"/api/events/{event_id}", json={"title": "x"}, headers=other).status_code == 404
        assert api.delete(f"/api/events/{event_id}", headers=other).status_code == 404
        assert api.get("/api/events", headers=other).json()["data"]["events"] == []


class TestValidation:
    """Test request validation errors."""

    def test_end_before_start(self, api, owner):
        response = _create(api, owner, end="2024-01-01T08:00:00Z")

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["message"] == "End time must be after start time"
        assert body["errors"][0]["field"] == "end"

    def test_schema_errors_are_field_level(self, api, owner):
        response = _create(api, owner, title="", category="sports")

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        fields = {e["field"] for e in body["errors"]}
        assert {"title", "category"} <= fields

    def test_bad_status_filter(self, api, owner):
        response = api.get("/api/events", params={"status": "archived"}, headers=owner)
        assert response.status_code == 400

    def test_unknown_category_filter_is_empty(self, api, owner):
        _create(api, owner)
        response = api.get("/api/events", params={"category": "sports"}, headers=owner)

        assert response.status_code == 200
        assert response.json()["data"]["events"] == []

    def test_range_requires_bounds(self, api, owner):
        response = api.get("/api/events/range", params={"start": "2024-01-01"}, headers=owner)

        assert response.status_code == 400
        assert response.json()["message"] == "Start and end dates are required"


class TestAuthentication:
    """Test caller identification."""

    def test_missing_user(self, api):
        response = api.get("/api/events")

        assert response.status_code == 401
        assert response.json() == {"status": "error", "message": "No user selected"}

    def test_unknown_user(self, api):
        assert api.get("/api/events", headers={"X-User-Id": "nobody"}).status_code == 401

    def test_api_key_guard_when_configured(self, api, owner, monkeypatch):
        monkeypatch.setenv("API_KEY", "secret123")

        response = api.get("/api/events", headers=owner)
        assert response.status_code == 401
        assert "api key" in response.json()["message"].lower()

        response = api.get("/api/events", headers={**owner, "X-API-Key": "secret123"})
        assert response.status_code == 200

    def test_profile(self, api, owner):
        response = api.get("/api/users/profile", headers=owner)

        user = response.json()["data"]["user"]
        assert user["email"] == "owner@example.com"
        assert user["email_notifications"] is True


class TestSpecializedRoutes:
    """Test upcoming, range, category and bulk routes."""

    def test_upcoming(self, api, owner):
        _create(api, owner, title="Past", start="2000-01-01T09:00:00Z", end="2000-01-01T10:00:00Z")
        _create(api, owner, title="Future", start="2999-01-01T09:00:00Z", end="2999-01-01T10:00:00Z")

        response = api.get("/api/events/upcoming", headers=owner)
        assert [e["title"] for e in response.json()["data"]["events"]] == ["Future"]

    def test_range(self, api, owner):
        _create(api, owner, title="In range")
        _create(api, owner, title="Out of range", start="2024-02-01T09:00:00Z", end="2024-02-01T10:00:00Z")

        response = api.get(
            "/api/events/range",
            params={"start": "2024-01-01T00:00:00Z", "end": "2024-01-31T00:00:00Z"},
            headers=owner,
        )
        assert [e["title"] for e in response.json()["data"]["events"]] == ["In range"]

    def test_category(self, api, owner):
        _create(api, owner, title="Party", category="birthday")
        _create(api, owner, title="Sync")

        response = api.get("/api/events/category/birthday", headers=owner)
        data = response.json()["data"]
        assert [e["title"] for e in data["events"]] == ["Party"]
        assert data["pagination"]["total_events"] == 1

    def test_bulk_update(self, api, owner):
        ids = [_create(api, owner, title=f"E{i}").json()["data"]["event"]["id"] for i in range(2)]
        other = {"X-User-Id": api.add_user("other@example.com")}
        foreign = _create(api, other).json()["data"]["event"]["id"]

        response = api.put(
            "/api/events/bulk",
            json={"event_ids": ids + [foreign], "updates": {"status": "completed"}},
            headers=owner,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "2 events updated successfully"
        assert body["data"] == {"modified_count": 2}
        assert api.get(f"/api/events/{foreign}", headers=other).json()["data"]["event"]["status"] == "active"

    def test_bulk_update_requires_ids(self, api, owner):
        response = api.put("/api/events/bulk", json={"updates": {"status": "completed"}}, headers=owner)

        assert response.status_code == 400
        assert response.json()["message"] == "Event IDs array is required"
