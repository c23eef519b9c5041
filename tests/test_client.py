"""Tests for the async HTTP client.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from backend.client import ApiClient
from backend.engine.errors import (
    ChoiceNotFoundError,
    ContentIncompleteError,
    PageNotFoundError,
    PartyNotFoundError,
    PersistenceError,
    StoryNotFoundError,
)
from backend.engine.session import ReaderSession, SessionState

BASE = "http://stories.test"

_PAGE = {"id": "p1", "storyId": "s1", "content": "Start", "isEnding": False}
_END = {"id": "p2", "storyId": "s1", "content": "End", "isEnding": True, "endingLabel": "Fin"}
_CHOICE = {"id": "c1", "pageId": "p1", "text": "Go", "targetPageId": "p2"}


def _party(path: list[str], **extra) -> dict:
    return {
        "id": "party-1",
        "userId": "u1",
        "storyId": "s1",
        "startDate": 1,
        "endDate": None,
        "path": path,
        "endingId": None,
        **extra,
    }


def _body(route: respx.Route) -> dict:
    return json.loads(route.calls.last.request.content)


def _mock_two_page_story() -> None:
    respx.get(f"{BASE}/stories/s1/pages").mock(
        return_value=httpx.Response(200, json=[_PAGE, _END])
    )
    respx.get(f"{BASE}/pages/p1/choices").mock(return_value=httpx.Response(200, json=[_CHOICE]))
    respx.get(f"{BASE}/pages/p2/choices").mock(return_value=httpx.Response(200, json=[]))
    respx.post(f"{BASE}/parties").mock(return_value=httpx.Response(201, json=_party([])))


@pytest.fixture()
async def api():
    client = ApiClient(BASE, timeout=1.0)
    yield client
    await client.aclose()


class TestConstruction:
    def test_empty_base_url_is_fatal(self) -> None:
        with pytest.raises(ValueError, match="base URL"):
            ApiClient("")

    async def test_defaults_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("backend.config.settings.api_base_url", "http://configured.test/")
        async with ApiClient() as client:
            assert client.base_url == "http://configured.test"


class TestRequests:
    async def test_list_pages(self, api: ApiClient) -> None:
        with respx.mock:
            respx.get(f"{BASE}/stories/s1/pages").mock(
                return_value=httpx.Response(200, json=[_PAGE])
            )
            pages = await api.list_pages("s1")

        assert [p.id for p in pages] == ["p1"]
        assert pages[0].story_id == "s1"

    async def test_update_page_sends_camel_case(self, api: ApiClient) -> None:
        with respx.mock:
            route = respx.put(f"{BASE}/pages/p1").mock(
                return_value=httpx.Response(200, json={**_PAGE, "isEnding": True})
            )
            page = await api.update_page("p1", is_ending=True, ending_label="Fin")

        assert page.is_ending
        assert _body(route) == {"isEnding": True, "endingLabel": "Fin"}

    async def test_create_choice(self, api: ApiClient) -> None:
        with respx.mock:
            route = respx.post(f"{BASE}/choices").mock(
                return_value=httpx.Response(201, json=_CHOICE)
            )
            choice = await api.create_choice("p1", "Go", "p2")

        assert choice.target_page_id == "p2"
        assert _body(route) == {"pageId": "p1", "text": "Go", "targetPageId": "p2"}

    async def test_create_choice_empty_text_sends_nothing(self, api: ApiClient) -> None:
        with respx.mock:
            route = respx.post(f"{BASE}/choices")
            with pytest.raises(ContentIncompleteError):
                await api.create_choice("p1", "  ")
            assert not route.called

    async def test_choice_422_is_content_incomplete(self, api: ApiClient) -> None:
        with respx.mock:
            respx.put(f"{BASE}/choices/c1").mock(
                return_value=httpx.Response(422, json={"detail": "Choice text must not be empty"})
            )
            with pytest.raises(ContentIncompleteError, match="must not be empty"):
                await api.update_choice("c1", text="")

    async def test_delete_choice(self, api: ApiClient) -> None:
        with respx.mock:
            route = respx.delete(f"{BASE}/choices/c1").mock(return_value=httpx.Response(204))
            assert await api.delete_choice("c1") is None
            assert route.called

    async def test_progress(self, api: ApiClient) -> None:
        payload = {
            "partyId": "party-1",
            "storyId": "s1",
            "visitedPages": 2,
            "totalPages": 4,
            "progress": 50,
            "isCompleted": False,
        }
        with respx.mock:
            respx.get(f"{BASE}/parties/party-1/progress").mock(
                return_value=httpx.Response(200, json=payload)
            )
            progress = await api.get_progress("party-1")

        assert progress.progress == 50
        assert progress.to_dict() == payload


class TestErrorMapping:
    async def test_story_404(self, api: ApiClient) -> None:
        with respx.mock:
            respx.get(f"{BASE}/stories/x").mock(return_value=httpx.Response(404))
            with pytest.raises(StoryNotFoundError):
                await api.get_story("x")

    async def test_page_404(self, api: ApiClient) -> None:
        with respx.mock:
            respx.put(f"{BASE}/pages/x").mock(return_value=httpx.Response(404))
            with pytest.raises(PageNotFoundError):
                await api.update_page("x", content="a")

    async def test_choice_404(self, api: ApiClient) -> None:
        with respx.mock:
            respx.put(f"{BASE}/choices/x").mock(return_value=httpx.Response(404))
            with pytest.raises(ChoiceNotFoundError):
                await api.update_choice("x", text="a")

    async def test_party_404(self, api: ApiClient) -> None:
        with respx.mock:
            respx.get(f"{BASE}/parties/x").mock(return_value=httpx.Response(404))
            with pytest.raises(PartyNotFoundError):
                await api.get_party("x")

    async def test_server_error_is_persistence_error(self, api: ApiClient) -> None:
        with respx.mock:
            respx.get(f"{BASE}/parties/party-1").mock(return_value=httpx.Response(500, text="boom"))
            with pytest.raises(PersistenceError, match="500") as exc_info:
                await api.get_party("party-1")

        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    async def test_transport_error_is_persistence_error(self, api: ApiClient) -> None:
        with respx.mock:
            respx.get(f"{BASE}/stories/s1").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(PersistenceError) as exc_info:
                await api.get_story("s1")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestSessionOverHttp:
    async def test_play_to_ending(self, api: ApiClient) -> None:
        with respx.mock:
            _mock_two_page_story()
            patch = respx.patch(f"{BASE}/parties/party-1").mock(
                side_effect=[
                    httpx.Response(200, json=_party(["p1"])),
                    httpx.Response(200, json=_party(["p1", "p2"], endDate=50, endingId="p2")),
                ]
            )

            session = await ReaderSession.start(api, "s1", "u1", clock=lambda: 50)
            await session.select_choice("c1")

        assert session.state is SessionState.ENDED
        assert session.party.end_date == 50
        assert patch.call_count == 2
        assert _body(patch) == {"path": ["p1", "p2"], "endDate": 50, "endingId": "p2"}

    async def test_failed_save_keeps_session(self, api: ApiClient) -> None:
        with respx.mock:
            _mock_two_page_story()
            respx.patch(f"{BASE}/parties/party-1").mock(
                side_effect=[
                    httpx.Response(200, json=_party(["p1"])),
                    httpx.Response(503, text="unavailable"),
                ]
            )

            session = await ReaderSession.start(api, "s1", "u1")
            with pytest.raises(PersistenceError):
                await session.select_choice("c1")

        assert session.current_page.id == "p1"
        assert session.path == ["p1"]
        assert session.state is SessionState.READING
