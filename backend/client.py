"""Async HTTP client for the Storyloom REST API.

:class:`ApiClient` implements :class:`backend.engine.repository.StoryRepository`
so a :class:`~backend.engine.session.ReaderSession` or
:class:`~backend.engine.editor.StoryEditor` can run against a remote server
instead of a local database::

    async with ApiClient("http://localhost:8000") as api:
        session = await ReaderSession.start(api, story_id, user_id)

Error mapping:

- HTTP 404 → the not-found error matching the requested resource,
- HTTP 422 on choice text → :class:`ContentIncompleteError`,
- any other HTTP error or transport failure → :class:`PersistenceError`.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from backend.config import settings
from backend.db.models import Choice, Page, Party, Story
from backend.engine.errors import (
    ChoiceNotFoundError,
    ContentIncompleteError,
    PageNotFoundError,
    PartyNotFoundError,
    PersistenceError,
    StoryNotFoundError,
)
from backend.engine.progress import PartyProgress
from backend.observability import get_logger

log = get_logger(__name__)

_NOT_FOUND = {
    "story": StoryNotFoundError,
    "page": PageNotFoundError,
    "choice": ChoiceNotFoundError,
    "party": PartyNotFoundError,
}

_FIELD_NAMES = {
    "is_ending": "isEnding",
    "ending_label": "endingLabel",
    "target_page_id": "targetPageId",
    "end_date": "endDate",
    "ending_id": "endingId",
}


def _camel(fields: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_NAMES.get(k, k): v for k, v in fields.items()}


class ApiClient:
    """Remote :class:`StoryRepository`.

    Args:
        base_url: Server root, e.g. ``http://localhost:8000``.  Defaults to
            ``settings.api_base_url``.
        timeout: Request timeout in seconds.  Defaults to
            ``settings.request_timeout``.
        transport: Optional custom httpx transport.

    Raises:
        ValueError: If no base URL is configured.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        base_url = base_url if base_url is not None else settings.api_base_url
        if not base_url:
            raise ValueError("API base URL is not configured (set STORYLOOM_API_URL)")
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        resource: str,
        resource_id: str,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as exc:
            log.warning("api_transport_error", method=method, url=url, error=str(exc))
            raise PersistenceError(f"{method} {url} failed: {exc}") from exc

        if response.status_code == 404:
            raise _NOT_FOUND[resource](resource_id)
        if response.status_code == 422 and resource == "choice":
            raise ContentIncompleteError(_detail(response))
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.warning(
                "api_error", method=method, url=url, status_code=response.status_code
            )
            raise PersistenceError(
                f"{method} {url} returned {response.status_code}: {_detail(response)}"
            ) from exc

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------------

    async def list_stories(self, status: str = "published") -> list[Story]:
        data = await self._request(
            "GET", "/stories", resource="story", resource_id="", params={"status": status}
        )
        return [Story.from_dict(d) for d in data]

    async def get_story(self, story_id: str) -> Story:
        data = await self._request(
            "GET", f"/stories/{story_id}", resource="story", resource_id=story_id
        )
        return Story.from_dict(data)

    async def update_story(self, story_id: str, **fields: Any) -> Story:
        data = await self._request(
            "PUT",
            f"/stories/{story_id}",
            resource="story",
            resource_id=story_id,
            json=_camel(fields),
        )
        return Story.from_dict(data)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def list_pages(self, story_id: str) -> list[Page]:
        data = await self._request(
            "GET", f"/stories/{story_id}/pages", resource="story", resource_id=story_id
        )
        return [Page.from_dict(d) for d in data]

    async def create_page(
        self, story_id: str, content: str = "", is_ending: bool = False
    ) -> Page:
        data = await self._request(
            "POST",
            "/pages",
            resource="story",
            resource_id=story_id,
            json={"storyId": story_id, "content": content, "isEnding": is_ending},
        )
        return Page.from_dict(data)

    async def update_page(self, page_id: str, **fields: Any) -> Page:
        data = await self._request(
            "PUT",
            f"/pages/{page_id}",
            resource="page",
            resource_id=page_id,
            json=_camel(fields),
        )
        return Page.from_dict(data)

    async def delete_page(self, page_id: str) -> None:
        await self._request("DELETE", f"/pages/{page_id}", resource="page", resource_id=page_id)

    # ------------------------------------------------------------------
    # Choices
    # ------------------------------------------------------------------

    async def list_choices_for_page(self, page_id: str) -> list[Choice]:
        data = await self._request(
            "GET", f"/pages/{page_id}/choices", resource="page", resource_id=page_id
        )
        return [Choice.from_dict(d) for d in data]

    async def list_choices_for_story(self, story_id: str) -> list[Choice]:
        data = await self._request(
            "GET", f"/stories/{story_id}/choices", resource="story", resource_id=story_id
        )
        return [Choice.from_dict(d) for d in data]

    async def create_choice(
        self, page_id: str, text: str, target_page_id: Optional[str] = None
    ) -> Choice:
        if not text or not text.strip():
            raise ContentIncompleteError("Choice text must not be empty")
        data = await self._request(
            "POST",
            "/choices",
            resource="page",
            resource_id=page_id,
            json={"pageId": page_id, "text": text, "targetPageId": target_page_id},
        )
        return Choice.from_dict(data)

    async def update_choice(self, choice_id: str, **fields: Any) -> Choice:
        data = await self._request(
            "PUT",
            f"/choices/{choice_id}",
            resource="choice",
            resource_id=choice_id,
            json=_camel(fields),
        )
        return Choice.from_dict(data)

    async def delete_choice(self, choice_id: str) -> None:
        await self._request(
            "DELETE", f"/choices/{choice_id}", resource="choice", resource_id=choice_id
        )

    # ------------------------------------------------------------------
    # Parties
    # ------------------------------------------------------------------

    async def get_party(self, party_id: str) -> Party:
        data = await self._request(
            "GET", f"/parties/{party_id}", resource="party", resource_id=party_id
        )
        return Party.from_dict(data)

    async def create_party(self, user_id: str, story_id: str) -> Party:
        data = await self._request(
            "POST",
            "/parties",
            resource="story",
            resource_id=story_id,
            json={"userId": user_id, "storyId": story_id},
        )
        return Party.from_dict(data)

    async def update_party(self, party_id: str, **fields: Any) -> Party:
        data = await self._request(
            "PATCH",
            f"/parties/{party_id}",
            resource="party",
            resource_id=party_id,
            json=_camel(fields),
        )
        return Party.from_dict(data)

    async def get_progress(self, party_id: str) -> PartyProgress:
        data = await self._request(
            "GET", f"/parties/{party_id}/progress", resource="party", resource_id=party_id
        )
        return PartyProgress(
            party_id=data["partyId"],
            story_id=data["storyId"],
            visited_pages=data["visitedPages"],
            total_pages=data["totalPages"],
            progress=data["progress"],
            is_completed=data["isCompleted"],
        )


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text
