"""Tests for the /parties API endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from backend.api.app import create_app
from backend.db.choices import create_choice
from backend.db.connection import get_connection
from backend.db.migrations import init_db
from backend.db.pages import create_page
from backend.db.stories import create_story


@pytest.fixture()
def conn():
    connection = get_connection(db_path=":memory:")
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def client(conn):
    app = create_app()
    with TestClient(app, raise_server_exceptions=True) as c:
        c.app.state.db = conn
        yield c


@pytest.fixture()
def story(conn) -> dict:
    s = create_story(conn, "Four pages", author_id="author", status="published")
    pages = [create_page(conn, s.id, f"P{i}") for i in range(1, 5)]
    create_choice(conn, pages[0].id, "Next", target_page_id=pages[1].id)
    return {"id": s.id, "pages": [p.id for p in pages]}


def _create_party(client, story_id: str, user_id: str = "reader-1") -> dict:
    resp = client.post("/parties", json={"userId": user_id, "storyId": story_id})
    assert resp.status_code == 201
    return resp.json()


class TestParties:
    def test_create_shape(self, client, story) -> None:
        party = _create_party(client, story["id"])
        assert party["userId"] == "reader-1"
        assert party["storyId"] == story["id"]
        assert party["path"] == []
        assert party["endDate"] is None
        assert party["startDate"] > 0

    def test_create_for_missing_story(self, client) -> None:
        resp = client.post("/parties", json={"userId": "u", "storyId": "nope"})
        assert resp.status_code == 404

    def test_patch_path(self, client, story) -> None:
        party = _create_party(client, story["id"])
        resp = client.patch(f"/parties/{party['id']}", json={"path": story["pages"][:2]})
        assert resp.status_code == 200
        assert resp.json()["path"] == story["pages"][:2]

    def test_patch_end(self, client, story) -> None:
        party = _create_party(client, story["id"])
        ending = story["pages"][-1]
        resp = client.patch(
            f"/parties/{party['id']}", json={"endDate": 99, "endingId": ending}
        )
        assert resp.json()["endDate"] == 99
        assert resp.json()["endingId"] == ending

    def test_patch_shorter_path_rejected(self, client, story) -> None:
        party = _create_party(client, story["id"])
        client.patch(f"/parties/{party['id']}", json={"path": story["pages"][:2]})

        resp = client.patch(f"/parties/{party['id']}", json={"path": story["pages"][:1]})
        assert resp.status_code == 422
        assert "append-only" in resp.json()["detail"]
        assert client.get(f"/parties/{party['id']}").json()["path"] == story["pages"][:2]

    def test_patch_end_cannot_change(self, client, story) -> None:
        party = _create_party(client, story["id"])
        ending = story["pages"][-1]
        client.patch(f"/parties/{party['id']}", json={"endDate": 99, "endingId": ending})

        resp = client.patch(f"/parties/{party['id']}", json={"endDate": 100})
        assert resp.status_code == 422
        resp = client.patch(f"/parties/{party['id']}", json={"endingId": story["pages"][0]})
        assert resp.status_code == 422

        resp = client.patch(f"/parties/{party['id']}", json={"endDate": 99, "endingId": ending})
        assert resp.status_code == 200
        assert resp.json()["endDate"] == 99

    def test_patch_missing(self, client) -> None:
        assert client.patch("/parties/nope", json={"path": []}).status_code == 404

    def test_patch_empty_body(self, client, story) -> None:
        party = _create_party(client, story["id"])
        assert client.patch(f"/parties/{party['id']}", json={}).status_code == 422

    def test_get_and_delete(self, client, story) -> None:
        party = _create_party(client, story["id"])
        assert client.get(f"/parties/{party['id']}").status_code == 200
        assert client.delete(f"/parties/{party['id']}").status_code == 204
        assert client.get(f"/parties/{party['id']}").status_code == 404

    def test_by_user(self, client, story) -> None:
        _create_party(client, story["id"])
        _create_party(client, story["id"], user_id="other")
        parties = client.get("/parties/user/reader-1").json()
        assert [p["userId"] for p in parties] == ["reader-1"]

    def test_by_user_and_story_returns_latest(self, client, story) -> None:
        _create_party(client, story["id"])
        latest = _create_party(client, story["id"])
        resp = client.get(f"/parties/user/reader-1/story/{story['id']}")
        assert resp.status_code == 200
        assert resp.json()["id"] == latest["id"]

    def test_by_user_and_story_none(self, client, story) -> None:
        assert client.get(f"/parties/user/nobody/story/{story['id']}").status_code == 404


class TestProgress:
    def test_fresh_party(self, client, story) -> None:
        party = _create_party(client, story["id"])
        data = client.get(f"/parties/{party['id']}/progress").json()
        assert data == {
            "partyId": party["id"],
            "storyId": story["id"],
            "visitedPages": 0,
            "totalPages": 4,
            "progress": 0,
            "isCompleted": False,
        }

    def test_two_of_four(self, client, story) -> None:
        party = _create_party(client, story["id"])
        client.patch(f"/parties/{party['id']}", json={"path": story["pages"][:2]})
        data = client.get(f"/parties/{party['id']}/progress").json()
        assert data["visitedPages"] == 2
        assert data["progress"] == 50

    def test_missing_party(self, client) -> None:
        assert client.get("/parties/nope/progress").status_code == 404
