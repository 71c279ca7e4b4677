"""Session-level memory types: messages, highlights, objectives."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

from northstar.graph.types import utc_now

Role = Literal["user", "assistant"]


def _short_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class Message(BaseModel):
    """A conversation turn."""

    id: str = Field(default_factory=lambda: _short_id("msg"))
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    provider: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Message:
        return cls.model_validate(d)


class HighlightType(StrEnum):
    DECISION = "DECISION"
    BLOCKER = "BLOCKER"
    SOLUTION = "SOLUTION"
    MILESTONE = "MILESTONE"
    USER_MARKED = "USER_MARKED"


class Highlight(BaseModel):
    """An important moment in the conversation."""

    id: str = Field(default_factory=lambda: _short_id("hl"))
    type: HighlightType
    content: str
    message_index: int
    timestamp: datetime = Field(default_factory=utc_now)
    resolved: bool = False


class ObjectiveStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class Objective(BaseModel):
    """A goal the user is working toward, with optional sub-goals."""

    id: str = Field(default_factory=lambda: _short_id("obj"))
    statement: str
    status: ObjectiveStatus = ObjectiveStatus.ACTIVE
    sub_objectives: list[Objective] = Field(default_factory=list)
    related_decisions: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
