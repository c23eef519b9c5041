"""Story endpoints, plus the per-story graph views.

Routes
------
POST   /stories                     Create a story (draft by default)
GET    /stories                     List stories (?status=published|draft|all, ?author=)
GET    /stories/{story_id}          Fetch a single story
PUT    /stories/{story_id}          Update title / description / status
DELETE /stories/{story_id}          Delete a story (pages, choices, parties cascade)
GET    /stories/{story_id}/pages    All pages in creation order
GET    /stories/{story_id}/choices  All choices of the story
GET    /stories/{story_id}/graph    Root, reading order, back edges, orphans and layout
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request, Response

from backend.api.schemas import CamelModel, ChoiceResponse, PageResponse, StoryResponse
from backend.db.choices import list_choices_for_story
from backend.db.pages import list_pages
from backend.db.stories import create_story, delete_story, get_story, list_stories, update_story
from backend.engine import StoryGraph, build_tree, compute_layout, detect_cycles, resolve_root, traversal_order

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class StoryCreate(CamelModel):
    title: str
    author_id: str
    description: Optional[str] = None
    status: str = "draft"


class StoryUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None


class OrderItem(CamelModel):
    page_id: str
    depth: Optional[int] = None
    orphan: bool = False


class EdgeItem(CamelModel):
    source_id: str
    target_id: str
    choice_id: str
    kind: str


class LayoutItem(CamelModel):
    page_id: str
    parent_id: Optional[str] = None
    parent_choice_id: Optional[str] = None
    x: float
    y: float
    depth: int
    row: int


class GraphResponse(CamelModel):
    story_id: str
    root_id: Optional[str] = None
    order: list[OrderItem]
    edges: list[EdgeItem]
    orphans: list[str]
    layout: list[LayoutItem]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_story(conn: Any, story_id: str) -> None:
    if get_story(conn, story_id) is None:
        raise HTTPException(status_code=404, detail=f"Story not found: {story_id!r}")


def _graph_payload(story_id: str, graph: StoryGraph) -> dict[str, Any]:
    root = resolve_root(graph)
    cycles = detect_cycles(graph, root)
    order = traversal_order(graph, root, cycles)
    tree = build_tree(graph, root.id if root else None, cycles)
    positions = compute_layout(tree, graph=graph)

    return {
        "storyId": story_id,
        "rootId": root.id if root else None,
        "order": [
            {"pageId": e.page_id, "depth": e.depth, "orphan": e.orphan} for e in order
        ],
        "edges": [
            {
                "sourceId": source,
                "targetId": target,
                "choiceId": choice.id,
                "kind": cycles.kind(source, target).value,
            }
            for source, target, choice in graph.edges()
        ],
        "orphans": list(cycles.orphans),
        "layout": [
            {
                "pageId": page_id,
                "parentId": tree[page_id].parent_id,
                "parentChoiceId": tree[page_id].parent_choice_id,
                "x": pos.x,
                "y": pos.y,
                "depth": pos.depth,
                "row": pos.row,
            }
            for page_id, pos in positions.items()
        ],
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=StoryResponse, status_code=201)
def create(body: StoryCreate, request: Request) -> dict[str, Any]:
    """Create a new story."""
    conn = request.app.state.db
    try:
        story = create_story(
            conn,
            title=body.title,
            author_id=body.author_id,
            description=body.description,
            status=body.status,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return story.to_dict()


@router.get("", response_model=list[StoryResponse])
def list_all(
    request: Request,
    status: str = "published",
    author: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Return stories.  Only published stories are listed unless ``status`` says otherwise."""
    conn = request.app.state.db
    try:
        stories = list_stories(conn, status=None if status == "all" else status, author_id=author)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return [s.to_dict() for s in stories]


@router.get("/{story_id}", response_model=StoryResponse)
def get_one(story_id: str, request: Request) -> dict[str, Any]:
    conn = request.app.state.db
    story = get_story(conn, story_id)
    if story is None:
        raise HTTPException(status_code=404, detail=f"Story not found: {story_id!r}")
    return story.to_dict()


@router.put("/{story_id}", response_model=StoryResponse)
def update(story_id: str, body: StoryUpdate, request: Request) -> dict[str, Any]:
    """Update one or more fields on a story."""
    conn = request.app.state.db
    _require_story(conn, story_id)
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=422, detail="No fields provided to update.")
    try:
        story = update_story(conn, story_id, **updates)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return story.to_dict()


@router.delete("/{story_id}")
def remove(story_id: str, request: Request) -> Response:
    """Delete a story together with its pages, choices and parties."""
    conn = request.app.state.db
    delete_story(conn, story_id)
    return Response(status_code=204)


@router.get("/{story_id}/pages", response_model=list[PageResponse])
def story_pages(story_id: str, request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    _require_story(conn, story_id)
    return [p.to_dict() for p in list_pages(conn, story_id)]


@router.get("/{story_id}/choices", response_model=list[ChoiceResponse])
def story_choices(story_id: str, request: Request) -> list[dict[str, Any]]:
    conn = request.app.state.db
    _require_story(conn, story_id)
    return [c.to_dict() for c in list_choices_for_story(conn, story_id)]


@router.get("/{story_id}/graph", response_model=GraphResponse)
def story_graph(story_id: str, request: Request) -> dict[str, Any]:
    """Derived structure of the story for editing and visualisation."""
    conn = request.app.state.db
    _require_story(conn, story_id)
    graph = StoryGraph(list_pages(conn, story_id), list_choices_for_story(conn, story_id))
    return _graph_payload(story_id, graph)
