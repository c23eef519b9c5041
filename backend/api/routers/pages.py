"""Page endpoints.

Routes
------
POST   /pages                     Create a page in a story
GET    /pages/{page_id}           Fetch a single page
PUT    /pages/{page_id}           Update content / ending flag / label / illustration
DELETE /pages/{page_id}           Delete a page (its choices cascade, incoming choices become undeveloped)
GET    /pages/{page_id}/choices   Choices leaving the page
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response

from backend.api.schemas import CamelModel, ChoiceResponse, PageResponse
from backend.db.choices import list_choices_for_page
from backend.db.pages import create_page, delete_page, get_page, update_page

router = APIRouter()


class PageCreate(CamelModel):
    story_id: str
    content: str = ""
    is_ending: bool = False
    ending_label: Optional[str] = None
    illustration: Optional[str] = None


class PageUpdate(CamelModel):
    content: Optional[str] = None
    is_ending: Optional[bool] = None
    ending_label: Optional[str] = None
    illustration: Optional[str] = None


@router.post("", response_model=PageResponse, status_code=201)
def create(body: PageCreate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    try:
        page = create_page(
            conn,
            story_id=body.story_id,
            content=body.content,
            is_ending=body.is_ending,
            ending_label=body.ending_label,
            illustration=body.illustration,
        )
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return page.to_dict()


@router.get("/{page_id}", response_model=PageResponse)
def get_one(page_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    page = get_page(conn, page_id)
    if page is None:
        raise HTTPException(status_code=404, detail=f"Page not found: {page_id!r}")
    return page.to_dict()


@router.put("/{page_id}", response_model=PageResponse)
def update(page_id: str, body: PageUpdate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    try:
        page = update_page(conn, page_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return page.to_dict()


@router.delete("/{page_id}")
def remove(page_id: str, request: Request) -> Response:
    conn = request.app.state.db
    delete_page(conn, page_id)
    return Response(status_code=204)


@router.get("/{page_id}/choices", response_model=list[ChoiceResponse])
def page_choices(page_id: str, request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    if get_page(conn, page_id) is None:
        raise HTTPException(status_code=404, detail=f"Page not found: {page_id!r}")
    return [c.to_dict() for c in list_choices_for_page(conn, page_id)]
