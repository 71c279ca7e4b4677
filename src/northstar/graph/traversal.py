"""Graph traversal algorithms for multi-hop retrieval."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from northstar.graph.types import EdgeType, GraphEdge

# Returns the edges touching a node, in insertion order
NeighborFn = Callable[[str], Iterable[GraphEdge]]


@dataclass
class TraversalResult:
    """A node reached during traversal."""

    node_id: str
    hops: int  # Shortest distance from the seed
    path: list[tuple[str, str, EdgeType]] = field(default_factory=list)


def bfs_traverse(
    seed_id: str,
    edges_of: NeighborFn,
    max_hops: int = 2,
) -> list[TraversalResult]:
    """BFS over the undirected view of the edge set.

    Edge direction is metadata only: an edge links its endpoints both ways.
    The seed is returned first with hops=0. Each node is visited once, so
    cycles terminate and every reported hop count is a shortest distance.
    """
    if max_hops < 0:
        return []

    visited: set[str] = {seed_id}
    results: list[TraversalResult] = []

    # Queue entries: (node_id, hops, path_of_edge_keys)
    queue: deque[tuple[str, int, list[tuple[str, str, EdgeType]]]] = deque()
    queue.append((seed_id, 0, []))

    while queue:
        node_id, hops, path = queue.popleft()
        results.append(TraversalResult(node_id=node_id, hops=hops, path=path))

        if hops >= max_hops:
            continue

        for edge in edges_of(node_id):
            next_id = edge.other_end(node_id)
            if next_id in visited:
                continue
            visited.add(next_id)
            queue.append((next_id, hops + 1, [*path, edge.key]))

    return results
