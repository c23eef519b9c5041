"""Party (reader session) endpoints.

Routes
------
POST   /parties                                 Start a party
GET    /parties/user/{user_id}                  Parties of a user, newest first
GET    /parties/user/{user_id}/story/{story_id} Latest party of a user on a story
GET    /parties/{party_id}                      Fetch a single party
PATCH  /parties/{party_id}                      Update path / endDate / endingId (append-only)
DELETE /parties/{party_id}                      Delete a party
GET    /parties/{party_id}/progress             Visited pages, total pages, percentage
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response

from backend.api.schemas import CamelModel, PartyResponse
from backend.db.pages import list_pages
from backend.db.parties import (
    create_party,
    delete_party,
    get_party,
    latest_party,
    list_parties,
    update_party,
)
from backend.engine.progress import party_progress

router = APIRouter()


class PartyCreate(CamelModel):
    user_id: str
    story_id: str


class PartyUpdate(CamelModel):
    path: Optional[list[str]] = None
    end_date: Optional[int] = None
    ending_id: Optional[str] = None


class ProgressResponse(CamelModel):
    party_id: str
    story_id: str
    visited_pages: int
    total_pages: int
    progress: int
    is_completed: bool


@router.post("", response_model=PartyResponse, status_code=201)
def create(body: PartyCreate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    try:
        party = create_party(conn, user_id=body.user_id, story_id=body.story_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return party.to_dict()


@router.get("/user/{user_id}", response_model=list[PartyResponse])
def user_parties(user_id: str, request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    return [p.to_dict() for p in list_parties(conn, user_id=user_id)]


@router.get("/user/{user_id}/story/{story_id}", response_model=PartyResponse)
def user_story_party(user_id: str, story_id: str, request: Request) -> dict[str, Any]:
    """Most recent party of *user_id* on *story_id*."""
    conn = request.app.state.db
    party = latest_party(conn, user_id, story_id)
    if party is None:
        raise HTTPException(
            status_code=404,
            detail=f"No party for user {user_id!r} on story {story_id!r}",
        )
    return party.to_dict()


@router.get("/{party_id}", response_model=PartyResponse)
def get_one(party_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    party = get_party(conn, party_id)
    if party is None:
        raise HTTPException(status_code=404, detail=f"Party not found: {party_id!r}")
    return party.to_dict()


@router.patch("/{party_id}", response_model=PartyResponse)
def update(party_id: str, body: PartyUpdate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    if get_party(conn, party_id) is None:
        raise HTTPException(status_code=404, detail=f"Party not found: {party_id!r}")
    try:
        party = update_party(conn, party_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return party.to_dict()


@router.delete("/{party_id}")
def remove(party_id: str, request: Request) -> Response:
    conn = request.app.state.db
    delete_party(conn, party_id)
    return Response(status_code=204)


@router.get("/{party_id}/progress", response_model=ProgressResponse)
def progress(party_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    party = get_party(conn, party_id)
    if party is None:
        raise HTTPException(status_code=404, detail=f"Party not found: {party_id!r}")
    page_ids = [p.id for p in list_pages(conn, party.story_id)]
    return party_progress(party, len(page_ids), page_ids).to_dict()
