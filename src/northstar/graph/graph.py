"""In-memory session knowledge graph.

All queries run against insertion-ordered dicts and adjacency lists.
Persistence is handled separately by the storage backends, which work
from ``snapshot()`` / ``restore()``.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from northstar.errors import ValidationError
from northstar.graph.traversal import bfs_traverse
from northstar.graph.types import EdgeType, GraphEdge, GraphNode, NodeType

logger = logging.getLogger(__name__)

EdgeKey = tuple[str, str, EdgeType]


class EntityStore:
    """Typed node/edge store with traversal.

    Nodes are keyed by id and edges by ``(source_id, target_id, type)``;
    re-adding either replaces in place. Edges may reference nodes that do
    not exist yet. Writers serialize on a single re-entrant lock, and
    readers that need a consistent view across several calls can hold
    ``locked()``.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, GraphNode] = {}
        self._edges: dict[EdgeKey, GraphEdge] = {}
        # node_id -> ordered set of edge keys touching it (either end)
        self._adjacency: defaultdict[str, dict[EdgeKey, None]] = defaultdict(dict)
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator[EntityStore]:
        """Hold the store lock for a multi-read consistent view."""
        with self._lock:
            yield self

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    # -- Mutation --

    def add_node(self, node: GraphNode) -> None:
        """Insert or replace a node by id."""
        if not isinstance(node.type, NodeType):
            raise ValidationError(f"unknown node type: {node.type!r}")
        with self._lock:
            self._nodes[node.id] = node

    def add_edge(self, edge: GraphEdge) -> None:
        """Insert or replace an edge by (source, target, type).

        No referential-integrity check: extraction order is not guaranteed.
        """
        if not isinstance(edge.type, EdgeType):
            raise ValidationError(f"unknown edge type: {edge.type!r}")
        with self._lock:
            key = edge.key
            self._edges[key] = edge
            self._adjacency[edge.source_id][key] = None
            self._adjacency[edge.target_id][key] = None

    def clear(self) -> None:
        """Remove all nodes and edges."""
        with self._lock:
            self._nodes.clear()
            self._edges.clear()
            self._adjacency.clear()

    # -- Queries --

    def get_node(self, node_id: str) -> GraphNode | None:
        return self._nodes.get(node_id)

    def edges_of(self, node_id: str) -> list[GraphEdge]:
        """Edges touching a node in insertion order, either direction."""
        with self._lock:
            keys = self._adjacency.get(node_id)
            if not keys:
                return []
            return [self._edges[k] for k in keys]

    def traverse(
        self,
        start_id: str,
        depth: int = 3,
        type_filter: Iterable[NodeType] | None = None,
    ) -> list[GraphNode]:
        """Walk the undirected adjacency from ``start_id`` up to ``depth`` hops.

        The start node counts as distance 0. Nodes missing from the store
        (dangling edge endpoints) are walked through but not returned.
        """
        allowed = set(type_filter) if type_filter is not None else None
        with self._lock:
            if start_id not in self._nodes:
                return []
            reached = bfs_traverse(start_id, self.edges_of, max_hops=depth)
            results: list[GraphNode] = []
            for r in reached:
                node = self._nodes.get(r.node_id)
                if node is None:
                    continue
                if allowed is not None and node.type not in allowed:
                    continue
                results.append(node)
            return results

    def nodes_by_type(self, node_type: NodeType) -> list[GraphNode]:
        """All nodes of a type, most recently created first.

        Equal timestamps fall back to reverse insertion order.
        """
        with self._lock:
            matching = [n for n in self._nodes.values() if n.type == node_type]
        indexed = list(enumerate(matching))
        indexed.sort(key=lambda item: (item[1].created_at, item[0]), reverse=True)
        return [node for _, node in indexed]

    def intents(self) -> list[GraphNode]:
        return self.nodes_by_type(NodeType.INTENT)

    def decisions(self) -> list[GraphNode]:
        return self.nodes_by_type(NodeType.DECISION)

    def count_by_type(self) -> dict[NodeType, int]:
        counts = {nt: 0 for nt in NodeType}
        with self._lock:
            for node in self._nodes.values():
                counts[node.type] += 1
        return counts

    # -- Snapshots --

    def snapshot(self) -> tuple[list[GraphNode], list[GraphEdge]]:
        """Copy nodes and edges in insertion order."""
        with self._lock:
            return list(self._nodes.values()), list(self._edges.values())

    def restore(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> None:
        """Replace the whole store with the given nodes and edges."""
        with self._lock:
            self.clear()
            for node in nodes:
                self.add_node(node)
            for edge in edges:
                self.add_edge(edge)
        logger.debug(
            "Restored graph with %d nodes, %d edges", self.node_count, self.edge_count
        )
