"""Tests for hybrid retrieval and reciprocal rank fusion."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pytest

from northstar.core.tokens import TokenBudget
from northstar.graph.graph import EntityStore
from northstar.graph.types import EdgeType, GraphEdge, GraphNode, NodeType
from northstar.graph.vectors import VectorEntry, VectorIndex
from northstar.memory.retrieval import (
    HybridRetriever,
    RetrievalResult,
    RetrievalSource,
    reciprocal_rank_fusion,
)

from tests.conftest import FAKE_DIMENSIONS, FailingEmbedder, MappedEmbedder

T0 = datetime(2025, 1, 1, tzinfo=UTC)


def _graph(content: str, score: float = 1.0) -> RetrievalResult:
    return RetrievalResult(content, RetrievalSource.GRAPH, score)


def _vector(content: str, score: float = 1.0) -> RetrievalResult:
    return RetrievalResult(content, RetrievalSource.VECTOR, score)


def _add(store: EntityStore, node_id: str, node_type: NodeType, t: int, content: str):
    store.add_node(
        GraphNode(
            id=node_id,
            type=node_type,
            content=content,
            created_at=T0 + timedelta(seconds=t),
        )
    )


@pytest.fixture
def auth_graph() -> EntityStore:
    store = EntityStore()
    _add(store, "i1", NodeType.INTENT, 0, "build auth")
    _add(store, "d1", NodeType.DECISION, 1, "use JWT")
    store.add_edge(GraphEdge(source_id="i1", target_id="d1", type=EdgeType.LED_TO))
    return store


@pytest.fixture
async def auth_vectors() -> VectorIndex:
    embedder = MappedEmbedder(
        {
            "auth": [1.0, 0.0, 0.0],
            "build auth": [0.9, 0.1, 0.0],
            "JWT needs a secret key": [0.8, 0.2, 0.0],
            "unrelated note": [0.0, 0.0, 1.0],
        }
    )
    index = VectorIndex(embedder)
    await index.add("m1", "JWT needs a secret key")
    await index.add("m2", "unrelated note")
    await index.add("m3", "build auth")
    return index


# =============================================================================
# Reciprocal Rank Fusion
# =============================================================================


class TestReciprocalRankFusion:
    def test_doubly_ranked_beats_single_source(self):
        fused = reciprocal_rank_fusion(
            [_graph("both"), _graph("graph only", score=0.9)],
            [_vector("both"), _vector("vector only", score=0.9)],
        )
        scores = {r.content: s for r, s in fused}
        assert fused[0][0].content == "both"
        assert scores["both"] == pytest.approx(2 / 61)
        assert scores["both"] > scores["graph only"]
        assert scores["both"] > scores["vector only"]

    def test_rank_zero_in_both_beats_rank_zero_in_one(self):
        fused = reciprocal_rank_fusion([_graph("a"), _graph("b")], [_vector("a")])
        scores = {r.content: s for r, s in fused}
        assert scores["a"] > 1 / 61

    def test_ties_keep_first_seen_order(self):
        fused = reciprocal_rank_fusion([_graph("g")], [_vector("v")])
        assert [r.content for r, _ in fused] == ["g", "v"]
        assert fused[0][1] == fused[1][1]

    def test_ranks_by_score_not_list_position(self):
        fused = reciprocal_rank_fusion([_graph("low", score=0.1), _graph("high", score=0.9)])
        assert [r.content for r, _ in fused] == ["high", "low"]

    def test_duplicate_keeps_first_seen_result(self):
        fused = reciprocal_rank_fusion([_graph("x")], [_vector("x")])
        assert len(fused) == 1
        assert fused[0][0].source == RetrievalSource.GRAPH

    def test_custom_k(self):
        [(_, score)] = reciprocal_rank_fusion([_graph("x")], k=0)
        assert score == 1.0

    def test_empty(self):
        assert reciprocal_rank_fusion([], []) == []


# =============================================================================
# Graph search
# =============================================================================


class TestGraphSearch:
    def test_intents_scored_by_recency(self, vectors: VectorIndex):
        store = EntityStore()
        _add(store, "old", NodeType.INTENT, 0, "old goal")
        _add(store, "new", NodeType.INTENT, 5, "new goal")
        results = HybridRetriever(store, vectors).graph_search()
        assert [(r.content, r.score) for r in results] == [
            ("new goal", 1.0),
            ("old goal", pytest.approx(0.9)),
        ]
        assert all(r.source == RetrievalSource.GRAPH for r in results)

    def test_traversal_from_latest_intent_only(self, vectors: VectorIndex):
        store = EntityStore()
        _add(store, "i_old", NodeType.INTENT, 0, "old goal")
        _add(store, "d_old", NodeType.DECISION, 1, "old decision")
        _add(store, "i_new", NodeType.INTENT, 2, "new goal")
        _add(store, "d_new", NodeType.DECISION, 3, "new decision")
        _add(store, "f_new", NodeType.CODE_ARTIFACT, 4, "auth.ts")
        store.add_edge(GraphEdge(source_id="i_old", target_id="d_old", type=EdgeType.LED_TO))
        store.add_edge(GraphEdge(source_id="i_new", target_id="d_new", type=EdgeType.LED_TO))
        store.add_edge(
            GraphEdge(source_id="d_new", target_id="f_new", type=EdgeType.IMPLEMENTED_IN)
        )
        results = HybridRetriever(store, vectors).graph_search()
        assert [(r.content, r.score) for r in results] == [
            ("new goal", 1.0),
            ("old goal", pytest.approx(0.9)),
            ("new decision", pytest.approx(0.8)),
            ("auth.ts", pytest.approx(0.75)),
        ]

    def test_traversal_skips_other_types(self, vectors: VectorIndex):
        store = EntityStore()
        _add(store, "i", NodeType.INTENT, 0, "goal")
        _add(store, "p", NodeType.PREFERENCE, 1, "tabs")
        store.add_edge(GraphEdge(source_id="i", target_id="p", type=EdgeType.LED_TO))
        results = HybridRetriever(store, vectors).graph_search()
        assert [r.content for r in results] == ["goal"]

    def test_no_intents(self, vectors: VectorIndex):
        store = EntityStore()
        _add(store, "d", NodeType.DECISION, 0, "use JWT")
        assert HybridRetriever(store, vectors).graph_search() == []


# =============================================================================
# Retrieve
# =============================================================================


class TestRetrieve:
    async def test_auth_scenario(self, auth_graph: EntityStore, auth_vectors: VectorIndex):
        context = await HybridRetriever(auth_graph, auth_vectors).retrieve("auth", 1000)
        items = context.split("\n\n")
        assert "build auth" in items
        assert "use JWT" in items
        assert "JWT needs a secret key" in items
        # "build auth" is ranked first by both lists
        assert items[0] == "build auth"
        assert items == ["build auth", "use JWT", "JWT needs a secret key", "unrelated note"]

    async def test_budget_fills_in_rank_order(
        self, auth_graph: EntityStore, auth_vectors: VectorIndex
    ):
        # build auth = 3 tokens, use JWT = 2, the next item = 6
        context = await HybridRetriever(auth_graph, auth_vectors).retrieve("auth", 5)
        assert context == "build auth\n\nuse JWT"

    async def test_oversized_item_is_skipped_not_blocking(self, store: EntityStore):
        _add(store, "i1", NodeType.INTENT, 0, "fix login")
        _add(store, "i2", NodeType.INTENT, 1, "x" * 400)
        retriever = HybridRetriever(store, VectorIndex(FailingEmbedder()))

        # The 100-token newest intent ranks first but cannot fit
        assert await retriever.retrieve("login", 20) == "fix login"

    async def test_later_items_fill_remaining_budget(
        self, auth_graph: EntityStore, auth_vectors: VectorIndex
    ):
        # build auth (3) + use JWT (2) leave 4; the 6-token item is skipped
        # and "unrelated note" (4) still fits
        context = await HybridRetriever(auth_graph, auth_vectors).retrieve("auth", 9)
        assert context == "build auth\n\nuse JWT\n\nunrelated note"

    async def test_zero_budget_is_empty(
        self, auth_graph: EntityStore, auth_vectors: VectorIndex
    ):
        retriever = HybridRetriever(auth_graph, auth_vectors)
        assert await retriever.retrieve("auth", 0) == ""
        assert await retriever.retrieve("auth", -5) == ""

    async def test_empty_stores(self, store: EntityStore, vectors: VectorIndex):
        assert await HybridRetriever(store, vectors).retrieve("anything", 1000) == ""

    async def test_respects_budget(self, auth_graph: EntityStore, auth_vectors: VectorIndex):
        budget = TokenBudget()
        for limit in (1, 3, 8, 12, 40):
            context = await HybridRetriever(auth_graph, auth_vectors, budget).retrieve(
                "auth", limit
            )
            items = [i for i in context.split("\n\n") if i]
            assert sum(budget.count_tokens(i) for i in items) <= limit

    async def test_vector_k_limits_vector_results(
        self, auth_graph: EntityStore, auth_vectors: VectorIndex
    ):
        retriever = HybridRetriever(auth_graph, auth_vectors, vector_k=1)
        results = await retriever.vector_search("auth")
        assert [r.content for r in results] == ["build auth"]


class TestDegradation:
    async def test_embedding_failure_falls_back_to_graph(
        self, auth_graph: EntityStore, caplog: pytest.LogCaptureFixture
    ):
        vectors = VectorIndex(FailingEmbedder())
        vectors.restore(
            [VectorEntry(id="m1", content="JWT note", embedding=[1.0] * FAKE_DIMENSIONS)]
        )
        with caplog.at_level(logging.WARNING, logger="northstar.memory.retrieval"):
            context = await HybridRetriever(auth_graph, vectors).retrieve("auth", 1000)
        assert context == "build auth\n\nuse JWT"
        assert any(r.getMessage() == "vector_search_unavailable" for r in caplog.records)

    async def test_vector_search_returns_empty_on_failure(self, auth_graph: EntityStore):
        vectors = VectorIndex(FailingEmbedder())
        vectors.restore(
            [VectorEntry(id="m1", content="x", embedding=[1.0] * FAKE_DIMENSIONS)]
        )
        assert await HybridRetriever(auth_graph, vectors).vector_search("q") == []
