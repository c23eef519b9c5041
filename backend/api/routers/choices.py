"""Choice endpoints.

Routes
------
POST   /choices               Create a choice (``targetPageId`` omitted = undeveloped)
GET    /choices/{choice_id}   Fetch a single choice
PUT    /choices/{choice_id}   Update text / target / condition (``targetPageId: null`` unlinks)
DELETE /choices/{choice_id}   Delete a choice
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response

from backend.api.schemas import CamelModel, ChoiceResponse
from backend.db.choices import create_choice, delete_choice, get_choice, update_choice
from backend.db.pages import get_page

router = APIRouter()


class ChoiceCreate(CamelModel):
    page_id: str
    text: str
    target_page_id: Optional[str] = None
    condition: Optional[str] = None


class ChoiceUpdate(CamelModel):
    text: Optional[str] = None
    target_page_id: Optional[str] = None
    condition: Optional[str] = None


def _check_pages(conn: Any, *page_ids: Optional[str]) -> None:
    for page_id in page_ids:
        if page_id and get_page(conn, page_id) is None:
            raise HTTPException(status_code=404, detail=f"Page not found: {page_id!r}")


@router.post("", response_model=ChoiceResponse, status_code=201)
def create(body: ChoiceCreate, request: Request) -> dict[str, Any]:
    """Create a choice.  Empty text is rejected with 422."""
    conn = request.app.state.db
    _check_pages(conn, body.page_id, body.target_page_id)
    try:
        choice = create_choice(
            conn,
            page_id=body.page_id,
            text=body.text,
            target_page_id=body.target_page_id,
            condition=body.condition,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return choice.to_dict()


@router.get("/{choice_id}", response_model=ChoiceResponse)
def get_one(choice_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    choice = get_choice(conn, choice_id)
    if choice is None:
        raise HTTPException(status_code=404, detail=f"Choice not found: {choice_id!r}")
    return choice.to_dict()


@router.put("/{choice_id}", response_model=ChoiceResponse)
def update(choice_id: str, body: ChoiceUpdate, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    if get_choice(conn, choice_id) is None:
        raise HTTPException(status_code=404, detail=f"Choice not found: {choice_id!r}")
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    _check_pages(conn, updates.get("target_page_id"))
    try:
        choice = update_choice(conn, choice_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return choice.to_dict()


@router.delete("/{choice_id}")
def remove(choice_id: str, request: Request) -> Response:
    conn = request.app.state.db
    delete_choice(conn, choice_id)
    return Response(status_code=204)
