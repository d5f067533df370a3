"""
Tests for the POST /reflect/{message_id} endpoint.

Tests cover:
- First reflection returns success with the updated count
- Repeat reflection from the same client is rejected without counting
- Voter identity from X-Forwarded-For and from the socket address
- Unknown and malformed message ids
- Storage failures map to 500
- GET /reflections ranking
"""

import pytest

from reflectboard import main
from reflectboard.storage import StorageError


def submit(client, text: str, category: str = None, author: str = None) -> int:
    """Helper to create a message via the API and return its id."""
    body = {"text": text}
    if category is not None:
        body["category"] = category
    if author is not None:
        body["author"] = author

    response = client.post("/messages", json=body)
    assert response.status_code == 201
    return response.json()["id"]


def reflect_as(client, message_id, ip: str):
    """POST /reflect on behalf of a given client address."""
    return client.post(f"/reflect/{message_id}", headers={"X-Forwarded-For": ip})


class TestReflectSuccess:
    """Reflections that get recorded."""

    def test_first_reflection(self, client):
        message_id = submit(client, "Hello world")

        response = reflect_as(client, message_id, "203.0.113.5")

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 1, "message": None}

    def test_scenario_two_voters(self, client):
        message_id = submit(client, "Growth isn't about becoming someone new")

        assert reflect_as(client, message_id, "203.0.113.5").json()["count"] == 1

        again = reflect_as(client, message_id, "203.0.113.5")
        assert again.status_code == 200
        assert again.json() == {"success": False, "count": None, "message": "Already reflected"}

        assert reflect_as(client, message_id, "203.0.113.9").json() == {
            "success": True, "count": 2, "message": None
        }

        message = client.get(f"/messages/{message_id}").json()
        assert message["reflection_count"] == 2

    def test_forwarded_for_uses_first_hop(self, client):
        message_id = submit(client, "Proxied")

        first = client.post(
            f"/reflect/{message_id}",
            headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1"}
        )
        second = client.post(
            f"/reflect/{message_id}",
            headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.2"}
        )

        assert first.json()["success"] is True
        assert second.json()["success"] is False

    def test_falls_back_to_client_address(self, client):
        message_id = submit(client, "Direct")

        # TestClient connects as "testclient"
        first = client.post(f"/reflect/{message_id}")
        second = client.post(f"/reflect/{message_id}")

        assert first.json() == {"success": True, "count": 1, "message": None}
        assert second.json()["message"] == "Already reflected"

    def test_request_id_header(self, client):
        message_id = submit(client, "Traced")

        response = reflect_as(client, message_id, "203.0.113.5")

        assert "X-Request-ID" in response.headers


class TestReflectFailures:
    """Requests that cannot record a reflection."""

    def test_unknown_message_is_404(self, client):
        response = reflect_as(client, 424242, "203.0.113.5")

        assert response.status_code == 404
        assert response.json() == {"success": False, "count": None, "message": "Message not found"}
        assert client.get("/stats").json()["unique_voters"] == 0

    def test_non_integer_id_is_422(self, client):
        response = reflect_as(client, "abc", "203.0.113.5")

        assert response.status_code == 422

    def test_storage_error_is_500(self, client, monkeypatch):
        message_id = submit(client, "Doomed")

        def broken(*args, **kwargs):
            raise StorageError("failed to register reflection")

        monkeypatch.setattr(main, "register_reflection", broken)

        response = reflect_as(client, message_id, "203.0.113.5")

        assert response.status_code == 500
        assert response.json() == {"success": False, "count": None, "message": "Database error"}


class TestRankedReflections:
    """GET /reflections ordering."""

    def test_empty(self, client):
        response = client.get("/reflections")

        assert response.status_code == 200
        assert response.json() == {"data": []}

    def test_ordered_by_count_then_newest(self, client):
        quiet = submit(client, "Quiet one")
        popular = submit(client, "Popular one")
        newer_quiet = submit(client, "Newer quiet one")

        for ip in ("198.51.100.1", "198.51.100.2", "198.51.100.3"):
            reflect_as(client, popular, ip)
        reflect_as(client, quiet, "198.51.100.1")
        reflect_as(client, newer_quiet, "198.51.100.1")

        data = client.get("/reflections").json()["data"]

        assert [m["id"] for m in data] == [popular, newer_quiet, quiet]
        assert [m["reflection_count"] for m in data] == [3, 1, 1]

    @pytest.mark.parametrize("voters", [1, 4])
    def test_total_reflections_on_listing(self, client, voters):
        message_id = submit(client, "Counted")
        for i in range(voters):
            reflect_as(client, message_id, f"192.0.2.{i}")

        assert client.get("/messages").json()["total_reflections"] == voters
