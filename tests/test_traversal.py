"""Tests for BFS traversal over edge callbacks."""

from __future__ import annotations

from northstar.graph.traversal import bfs_traverse
from northstar.graph.types import EdgeType, GraphEdge


def _adjacency(*pairs: tuple[str, str]):
    edges: dict[str, list[GraphEdge]] = {}
    for src, tgt in pairs:
        edge = GraphEdge(source_id=src, target_id=tgt, type=EdgeType.LED_TO)
        edges.setdefault(src, []).append(edge)
        edges.setdefault(tgt, []).append(edge)
    return lambda node_id: edges.get(node_id, [])


class TestBfsTraverse:
    def test_seed_only_at_zero_hops(self):
        result = bfs_traverse("a", _adjacency(("a", "b")), max_hops=0)
        assert [(r.node_id, r.hops) for r in result] == [("a", 0)]

    def test_negative_hops_returns_nothing(self):
        assert bfs_traverse("a", _adjacency(("a", "b")), max_hops=-1) == []

    def test_hops_are_shortest_distances(self):
        edges_of = _adjacency(("a", "b"), ("b", "c"), ("a", "c"))
        result = {r.node_id: r.hops for r in bfs_traverse("a", edges_of, max_hops=5)}
        assert result == {"a": 0, "b": 1, "c": 1}

    def test_path_records_edge_keys(self):
        edges_of = _adjacency(("a", "b"), ("b", "c"))
        result = {r.node_id: r for r in bfs_traverse("a", edges_of, max_hops=2)}
        assert result["c"].path == [
            ("a", "b", EdgeType.LED_TO),
            ("b", "c", EdgeType.LED_TO),
        ]

    def test_cycle_visits_once(self):
        edges_of = _adjacency(("a", "b"), ("b", "c"), ("c", "a"))
        result = [r.node_id for r in bfs_traverse("a", edges_of, max_hops=100)]
        assert sorted(result) == ["a", "b", "c"]

    def test_no_node_beyond_max_hops(self):
        chain = [(str(i), str(i + 1)) for i in range(10)]
        result = bfs_traverse("0", _adjacency(*chain), max_hops=3)
        assert max(r.hops for r in result) == 3
        assert [r.node_id for r in result] == ["0", "1", "2", "3"]
