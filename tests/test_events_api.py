"""Tests for the HTTP handlers over the events accessor.

Covers:
- Event create / get / query / update / delete status codes
- RSVP add, list, update and per-user listing
- Proximity search ordering and parameter validation
- Pagination errors mapped to 400
"""


def _payload(**overrides):
    payload = {
        "name": "Picnic",
        "emoji": "🧺",
        "description": "Lunch in the park",
        "host": 5,
        "start_time": "2024-06-01T12:00:00",
        "location": "Park",
        "latitude": 40.0,
        "longitude": -75.0,
        "is_public": True,
        "activities": [1, 2],
        "rsvps": [{"user_id": "u1"}],
    }
    payload.update(overrides)
    return payload


def _create(client, **overrides) -> int:
    resp = client.post("/api/events/", json=_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


class TestEventRoutes:

    def test_create_and_get(self, client):
        resp = client.post("/api/events/", json=_payload())
        assert resp.status_code == 201
        assert resp.json()["message"] == "event created"
        event_id = resp.json()["id"]

        resp = client.get(f"/api/events/{event_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Picnic"
        assert data["start_time"] == "2024-06-01T12:00:00"
        assert data["activities"] == [1, 2]
        assert data["rsvps"][0]["user_id"] == "u1"
        assert data["rsvps"][0]["accepted"] == -1
        assert data["rsvps"][0]["comment"] == ""

    def test_get_missing_or_malformed(self, client):
        assert client.get("/api/events/999").status_code == 404
        assert client.get("/api/events/abc").status_code == 404

    def test_duplicate_activity_conflicts(self, client):
        resp = client.post("/api/events/", json=_payload(activities=[7, 7]))
        assert resp.status_code == 409
        assert client.get("/api/events/").status_code == 404

    def test_list_with_schedule_type(self, client):
        past = _create(client, start_time="2000-01-01T12:00:00")
        upcoming = _create(client, start_time="2999-01-01T12:00:00")

        resp = client.get("/api/events/", params={"type": "upcoming"})
        assert [e["id"] for e in resp.json()] == [upcoming]
        resp = client.get("/api/events/", params={"type": "past"})
        assert [e["id"] for e in resp.json()] == [past]
        resp = client.get("/api/events/")
        assert [e["id"] for e in resp.json()] == [past, upcoming]

    def test_unknown_schedule_type(self, client):
        assert client.get("/api/events/", params={"type": "someday"}).status_code == 422

    def test_list_pages(self, client):
        ids = [_create(client, name=f"Event {n}") for n in range(3)]
        resp = client.get("/api/events/", params={"page_size": 2, "page_number": 2})
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == ids[2:]

    def test_bad_page_number(self, client):
        resp = client.get("/api/events/", params={"page_number": 0})
        assert resp.status_code == 400
        assert "page_number" in resp.json()["message"]

    def test_query_by_ids(self, client):
        first = _create(client)
        _create(client, name="Other")
        resp = client.post("/api/events/query", json={"id": [first, "junk"]})
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == [first]

    def test_query_nothing_matches(self, client):
        assert client.post("/api/events/query", json={"id": ["junk"]}).status_code == 404

    def test_update_replaces_activities(self, client):
        event_id = _create(client)
        resp = client.put(f"/api/events/{event_id}", json=_payload(name="BBQ", activities=[3]))
        assert resp.status_code == 200

        data = client.get(f"/api/events/{event_id}").json()
        assert data["name"] == "BBQ"
        assert data["activities"] == [3]

    def test_update_missing(self, client):
        assert client.put("/api/events/999", json=_payload()).status_code == 404

    def test_partial_update_is_rejected(self, client):
        """A body with only activities must not null out the event's fields."""
        event_id = _create(client)
        resp = client.put(f"/api/events/{event_id}", json={"activities": [3]})
        assert resp.status_code == 422
        missing = {err["loc"][-1] for err in resp.json()["detail"]}
        assert {"name", "host", "location", "latitude", "start_time"} <= missing

        data = client.get(f"/api/events/{event_id}").json()
        assert data["name"] == "Picnic"
        assert data["host"] == 5
        assert data["location"] == "Park"
        assert data["activities"] == [1, 2]

    def test_empty_create_is_rejected(self, client):
        resp = client.post("/api/events/", json={})
        assert resp.status_code == 422
        missing = {err["loc"][-1] for err in resp.json()["detail"]}
        assert {"name", "emoji", "is_public", "activities", "rsvps"} <= missing
        assert client.get("/api/events/").status_code == 404

    def test_null_start_time_is_accepted(self, client):
        event_id = _create(client, start_time=None)
        assert client.get(f"/api/events/{event_id}").json()["start_time"] is None

    def test_delete(self, client):
        event_id = _create(client)
        assert client.delete(f"/api/events/{event_id}").status_code == 204
        assert client.get(f"/api/events/{event_id}").status_code == 404
        assert client.delete(f"/api/events/{event_id}").status_code == 404


class TestRsvpRoutes:

    def test_add_list_and_update(self, client):
        event_id = _create(client)
        resp = client.post(f"/api/events/{event_id}/rsvps", json={
            "rsvps": [{"user_id": "u2", "accepted": 1, "comment": "yes"}],
        })
        assert resp.status_code == 200
        assert resp.json()["message"] == "rsvps sent"

        rsvps = client.get(f"/api/events/{event_id}/rsvps").json()
        assert [(r["user_id"], r["accepted"]) for r in rsvps] == [("u1", -1), ("u2", 1)]

        rsvp_id = rsvps[0]["rsvp_id"]
        resp = client.put(f"/api/events/{event_id}/rsvps/{rsvp_id}", json={
            "user_id": "u1", "accepted": 0, "comment": "can't make it",
        })
        assert resp.status_code == 200

        mine = client.get("/api/rsvps/", params={"user_id": "u1"}).json()
        assert len(mine) == 1
        assert mine[0]["accepted"] == 0
        assert mine[0]["comment"] == "can't make it"

    def test_add_to_missing_event(self, client):
        resp = client.post("/api/events/999/rsvps", json={"rsvps": [{"user_id": "u2"}]})
        assert resp.status_code == 404

    def test_update_missing_rsvp(self, client):
        event_id = _create(client)
        resp = client.put(f"/api/events/{event_id}/rsvps/999", json={"user_id": "u1", "accepted": 1})
        assert resp.status_code == 404

    def test_invalid_acceptance_value(self, client):
        event_id = _create(client)
        resp = client.post(f"/api/events/{event_id}/rsvps", json={"rsvps": [{"user_id": "u2", "accepted": 5}]})
        assert resp.status_code == 422

    def test_user_without_rsvps(self, client):
        _create(client)
        assert client.get("/api/rsvps/", params={"user_id": "nobody"}).status_code == 404
        assert len(client.get("/api/rsvps/").json()) == 1


class TestSearchRoute:

    def test_nearest_first(self, client):
        here = _create(client, name="Here", latitude=40.0, longitude=-75.0)
        nearby = _create(client, name="Nearby", latitude=40.1, longitude=-75.0)
        _create(client, name="Far", latitude=34.0, longitude=-118.0)

        resp = client.get("/api/events/search", params={"latitude": 40.09, "longitude": -75.0, "distance": 10})
        assert resp.status_code == 200
        assert [e["id"] for e in resp.json()] == [nearby, here]

    def test_nothing_nearby(self, client):
        _create(client)
        resp = client.get("/api/events/search", params={"latitude": -40.0, "longitude": 100.0, "distance": 5})
        assert resp.status_code == 404

    def test_invalid_parameters(self, client):
        resp = client.get("/api/events/search", params={"latitude": 40.0, "longitude": -75.0, "distance": 0})
        assert resp.status_code == 400
        resp = client.get("/api/events/search", params={"latitude": 95.0, "longitude": -75.0, "distance": 10})
        assert resp.status_code == 400


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "database": True}
