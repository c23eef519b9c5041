"""Shared pydantic base for request/response bodies.

Fields are declared in snake_case and exposed in camelCase on the wire;
request bodies accept either spelling.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoryResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    author_id: str
    status: str
    created_at: int
    updated_at: int


class PageResponse(CamelModel):
    id: str
    story_id: str
    content: str
    is_ending: bool
    ending_label: Optional[str] = None
    illustration: Optional[str] = None


class ChoiceResponse(CamelModel):
    id: str
    page_id: str
    text: str
    target_page_id: Optional[str] = None
    condition: Optional[str] = None


class PartyResponse(CamelModel):
    id: str
    user_id: str
    story_id: str
    start_date: int
    end_date: Optional[int] = None
    path: list[str]
    ending_id: Optional[str] = None
