"""Node and edge types for the session knowledge graph."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from northstar.errors import ValidationError


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class NodeType(StrEnum):
    """Closed set of conversational entity categories."""

    INTENT = "Intent"
    DECISION = "Decision"
    CODE_ARTIFACT = "CodeArtifact"
    ERROR = "Error"
    SOLUTION = "Solution"
    PREFERENCE = "Preference"


class EdgeType(StrEnum):
    """Directional relationship labels between nodes."""

    LED_TO = "LED_TO"  # Intent/Decision -> whatever followed
    RESOLVED_BY = "RESOLVED_BY"  # Error -> Solution
    IMPLEMENTED_IN = "IMPLEMENTED_IN"  # Decision -> CodeArtifact
    CONFLICTS_WITH = "CONFLICTS_WITH"
    DEPENDS_ON = "DEPENDS_ON"


def as_utc(dt: datetime) -> datetime:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_node_type(value: Any) -> NodeType:
    """Coerce a raw value into a NodeType or raise ValidationError."""
    if isinstance(value, NodeType):
        return value
    try:
        return NodeType(value)
    except ValueError:
        raise ValidationError(f"unknown node type: {value!r}") from None


def parse_edge_type(value: Any) -> EdgeType:
    """Coerce a raw value into an EdgeType or raise ValidationError."""
    if isinstance(value, EdgeType):
        return value
    try:
        return EdgeType(value)
    except ValueError:
        raise ValidationError(f"unknown edge type: {value!r}") from None


def make_node_id(node_type: NodeType) -> str:
    return f"{node_type.value.lower()}-{uuid.uuid4().hex[:12]}"


class GraphNode(BaseModel):
    """Extracted entity. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: NodeType
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("type", mode="before")
    @classmethod
    def _validate_type(cls, value: Any) -> NodeType:
        return parse_node_type(value)

    @field_validator("created_at")
    @classmethod
    def _validate_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_dict(self) -> dict[str, Any]:
        d = self.model_dump(mode="json")
        if not d.get("metadata"):
            d.pop("metadata", None)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GraphNode:
        return cls.model_validate(d)


class GraphEdge(BaseModel):
    """Typed edge. Identity is (source_id, target_id, type)."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    target_id: str
    type: EdgeType
    weight: float = 1.0
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("type", mode="before")
    @classmethod
    def _validate_type(cls, value: Any) -> EdgeType:
        return parse_edge_type(value)

    @field_validator("created_at")
    @classmethod
    def _validate_created_at(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def key(self) -> tuple[str, str, EdgeType]:
        return (self.source_id, self.target_id, self.type)

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite ``node_id``."""
        return self.target_id if node_id == self.source_id else self.source_id

    def to_dict(self) -> dict[str, Any]:
        d = self.model_dump(mode="json")
        # weight=1.0 is the default; only serialize non-default
        if d.get("weight") == 1.0:
            d.pop("weight")
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GraphEdge:
        return cls.model_validate(d)
