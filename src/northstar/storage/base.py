"""Snapshot value and backend protocol shared by all persistence backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from northstar.graph.types import GraphEdge, GraphNode
from northstar.graph.vectors import VectorEntry


@dataclass
class MemorySnapshot:
    """Everything a session persists, detached from the live stores.

    ``state`` holds JSON-compatible session data (message history,
    highlights, objectives, current provider).
    """

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    vectors: list[VectorEntry] = field(default_factory=list)
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.nodes or self.edges or self.vectors or self.state)


@runtime_checkable
class SnapshotBackend(Protocol):
    """Storage medium for session snapshots.

    ``load`` never raises for unreadable data: corrupt state is backed up,
    logged, and reported as an empty snapshot. ``save`` raises
    StorageError when the write fails.
    """

    async def load(self) -> MemorySnapshot: ...

    async def save(self, snapshot: MemorySnapshot) -> None: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...
