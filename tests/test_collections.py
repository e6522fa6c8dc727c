"""Tests for recently viewed, compare, favorites and contact logs (app/api/collections.py)."""

import pytest

from app.api.collections import (
    RECENTLY_VIEWED_SESSION_KEY,
    compare_ids,
    remember_viewed,
    toggle_compare,
)
from app.models import ContactLog, Favorite


@pytest.mark.unit
class TestRememberViewed:
    """Tests for remember_viewed()."""

    def test_newest_first_without_duplicates(self):
        session = {}
        remember_viewed(session, {"id": "a", "name": "A"})
        remember_viewed(session, {"id": "b", "name": "B"})
        remember_viewed(session, {"id": "a", "name": "A"})
        assert [e["id"] for e in session[RECENTLY_VIEWED_SESSION_KEY]] == ["a", "b"]

    def test_list_is_capped(self):
        session = {}
        for n in range(8):
            remember_viewed(session, {"id": f"dc-{n}"}, limit=5)
        assert [e["id"] for e in session[RECENTLY_VIEWED_SESSION_KEY]] == ["dc-7", "dc-6", "dc-5", "dc-4", "dc-3"]

    def test_only_compact_fields_are_kept(self):
        session = {}
        remember_viewed(session, {"id": "a", "name": "A", "email": "x@example.com", "coordinates": {"lat": 1}})
        assert session[RECENTLY_VIEWED_SESSION_KEY] == [{"id": "a", "name": "A"}]

    def test_item_without_id_is_ignored(self):
        session = {}
        assert remember_viewed(session, {"name": "Nameless"}) == []
        assert RECENTLY_VIEWED_SESSION_KEY not in session


@pytest.mark.unit
def test_toggle_compare():
    session = {}
    assert toggle_compare(session, "a") == ["a"]
    assert toggle_compare(session, "b") == ["a", "b"]
    assert toggle_compare(session, "a") == ["b"]
    assert compare_ids(session) == ["b"]


@pytest.mark.unit
class TestSessionCollectionEndpoints:
    """Tests for the cookie-backed collection endpoints."""

    def test_recently_viewed_round_trip(self, client):
        assert client.get("/api/recently-viewed").json() == []
        client.post("/api/recently-viewed", json={"id": "dc-1", "name": "Oak", "rating": 4.5})
        assert client.get("/api/recently-viewed").json() == [{"id": "dc-1", "name": "Oak", "rating": 4.5}]

    def test_recently_viewed_requires_id(self, client):
        response = client.post("/api/recently-viewed", json={"name": "Oak"})
        assert response.status_code == 422

    def test_recently_viewed_works_for_guests(self, client, as_guest):
        response = client.post("/api/recently-viewed", json={"id": "dc-1"})
        assert response.status_code == 200

    def test_compare_toggle_and_clear(self, client):
        assert client.post("/api/compare/dc-1").json() == {"ids": ["dc-1"], "selected": True}
        assert client.post("/api/compare/dc-2").json() == {"ids": ["dc-1", "dc-2"], "selected": True}
        assert client.post("/api/compare/dc-1").json() == {"ids": ["dc-2"], "selected": False}
        assert client.get("/api/compare").json() == {"ids": ["dc-2"]}
        assert client.delete("/api/compare").json() == {"ids": []}
        assert client.get("/api/compare").json() == {"ids": []}


@pytest.mark.unit
class TestFavorites:
    """Tests for the favorites endpoints."""

    def test_add_and_list(self, client, db_session):
        response = client.post("/api/favorites", json={"daycare_id": "dc-1", "daycare_name": "Oak"})
        assert response.status_code == 201
        assert response.json()["daycare_id"] == "dc-1"

        favorites = client.get("/api/favorites").json()
        assert [f["daycare_id"] for f in favorites] == ["dc-1"]
        assert db_session.query(Favorite).one().user_id == "parent@example.com"

    def test_duplicate_is_409(self, client):
        client.post("/api/favorites", json={"daycare_id": "dc-1"})
        response = client.post("/api/favorites", json={"daycare_id": "dc-1"})
        assert response.status_code == 409

    def test_newest_first(self, client):
        client.post("/api/favorites", json={"daycare_id": "dc-1"})
        client.post("/api/favorites", json={"daycare_id": "dc-2"})
        assert [f["daycare_id"] for f in client.get("/api/favorites").json()] == ["dc-2", "dc-1"]

    def test_remove(self, client, db_session):
        client.post("/api/favorites", json={"daycare_id": "dc-1"})
        response = client.delete("/api/favorites/dc-1")
        assert response.json() == {"status": "deleted", "daycare_id": "dc-1"}
        assert db_session.query(Favorite).count() == 0

    def test_remove_missing_is_404(self, client):
        assert client.delete("/api/favorites/dc-404").status_code == 404

    def test_favorites_are_per_user(self, client, db_session):
        db_session.add(Favorite(user_id="someone-else", daycare_id="dc-7"))
        db_session.commit()
        assert client.get("/api/favorites").json() == []

    def test_guest_is_refused(self, client, as_guest):
        response = client.post("/api/favorites", json={"daycare_id": "dc-1"})
        assert response.status_code == 401
        assert response.json()["detail"]["login_url"].startswith("/login?redirect=")


@pytest.mark.unit
class TestContactLogs:
    """Tests for the contact log endpoints."""

    def test_add_and_filter(self, client, db_session):
        response = client.post(
            "/api/contact-logs",
            json={"daycare_id": "dc-1", "daycare_name": "Oak", "contact_method": "email", "notes": "Asked about spots"},
        )
        assert response.status_code == 201
        assert response.json()["contact_method"] == "email"
        client.post("/api/contact-logs", json={"daycare_id": "dc-2"})

        logs = client.get("/api/contact-logs?daycare_id=dc-1").json()
        assert [log["notes"] for log in logs] == ["Asked about spots"]
        assert len(client.get("/api/contact-logs").json()) == 2
        assert db_session.query(ContactLog).filter_by(daycare_id="dc-2").one().contact_method == "phone"

    def test_unknown_method_is_422(self, client):
        response = client.post("/api/contact-logs", json={"daycare_id": "dc-1", "contact_method": "pigeon"})
        assert response.status_code == 422

    def test_long_notes_are_422(self, client):
        response = client.post("/api/contact-logs", json={"daycare_id": "dc-1", "notes": "x" * 2001})
        assert response.status_code == 422

    def test_guest_is_refused(self, client, as_guest):
        assert client.get("/api/contact-logs").status_code == 401
