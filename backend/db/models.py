"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types, and ``to_dict()`` / ``from_dict()``
produce the camelCase JSON shapes used on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

STORY_STATUSES = ("draft", "published")


@dataclass
class Story:
    id: str
    title: str
    author_id: str
    status: str = "draft"
    description: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "authorId": self.author_id,
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Story:
        return cls(
            id=data["id"],
            title=data["title"],
            author_id=data["authorId"],
            status=data.get("status", "draft"),
            description=data.get("description"),
            created_at=data.get("createdAt", 0),
            updated_at=data.get("updatedAt", 0),
        )


@dataclass
class Page:
    """A node of the story graph."""

    id: str
    story_id: str
    content: str = ""
    is_ending: bool = False
    ending_label: Optional[str] = None
    illustration: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "storyId": self.story_id,
            "content": self.content,
            "isEnding": self.is_ending,
            "endingLabel": self.ending_label,
            "illustration": self.illustration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Page:
        return cls(
            id=data["id"],
            story_id=data["storyId"],
            content=data.get("content") or "",
            is_ending=bool(data.get("isEnding", False)),
            ending_label=data.get("endingLabel"),
            illustration=data.get("illustration"),
        )


@dataclass
class Choice:
    """A directed, labelled edge.  ``target_page_id`` is ``None`` while the
    choice is still undeveloped."""

    id: str
    page_id: str
    text: str
    target_page_id: Optional[str] = None
    condition: Optional[str] = None

    @property
    def is_developed(self) -> bool:
        return bool(self.target_page_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pageId": self.page_id,
            "text": self.text,
            "targetPageId": self.target_page_id,
            "condition": self.condition,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Choice:
        return cls(
            id=data["id"],
            page_id=data["pageId"],
            text=data.get("text", ""),
            target_page_id=data.get("targetPageId") or None,
            condition=data.get("condition"),
        )


@dataclass
class Party:
    """One reader's traversal of one story."""

    id: str
    user_id: str
    story_id: str
    start_date: int
    end_date: Optional[int] = None
    path: list[str] = field(default_factory=list)
    ending_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.end_date is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "storyId": self.story_id,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "path": list(self.path),
            "endingId": self.ending_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Party:
        return cls(
            id=data["id"],
            user_id=data["userId"],
            story_id=data["storyId"],
            start_date=data["startDate"],
            end_date=data.get("endDate"),
            path=list(data.get("path") or []),
            ending_id=data.get("endingId"),
        )
