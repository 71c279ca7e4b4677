"""Hybrid retrieval: graph traversal + vector search, merged by RRF.

Graph search contributes the session's intents and whatever the latest
intent led to; vector search contributes semantically similar messages.
Reciprocal Rank Fusion merges the two rankings; items are then taken in
rank order, skipping any that no longer fit the token budget.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum

from northstar.core.tokens import TokenBudget
from northstar.errors import EmbeddingUnavailable
from northstar.graph.graph import EntityStore
from northstar.graph.types import NodeType
from northstar.graph.vectors import VectorIndex

logger = logging.getLogger(__name__)

RRF_K = 60
VECTOR_K = 10
GRAPH_DEPTH = 2

# Node types followed out from the latest intent
TRAVERSAL_TYPES = (NodeType.DECISION, NodeType.CODE_ARTIFACT, NodeType.SOLUTION)


class RetrievalSource(StrEnum):
    GRAPH = "graph"
    VECTOR = "vector"


@dataclass
class RetrievalResult:
    """One candidate context item. Ephemeral, never persisted."""

    content: str
    source: RetrievalSource
    score: float


def reciprocal_rank_fusion(
    *ranked_lists: list[RetrievalResult], k: int = RRF_K
) -> list[tuple[RetrievalResult, float]]:
    """Merge ranked lists by summing 1 / (k + rank + 1) per content string.

    Each list is ranked by its own scores (stable, so equal scores keep list
    order). Identical content from several lists accumulates into one entry
    that keeps the first-seen result. Ties in the fused score keep first-seen
    order, so earlier lists win.
    """
    fused: dict[str, tuple[RetrievalResult, float]] = {}
    for results in ranked_lists:
        ranked = sorted(results, key=lambda r: r.score, reverse=True)
        for rank, result in enumerate(ranked):
            rrf = 1.0 / (k + rank + 1)
            existing = fused.get(result.content)
            if existing is None:
                fused[result.content] = (result, rrf)
            else:
                fused[result.content] = (existing[0], existing[1] + rrf)
    return sorted(fused.values(), key=lambda item: item[1], reverse=True)


class HybridRetriever:
    """Stateless pipeline over the graph and vector stores."""

    def __init__(
        self,
        graph: EntityStore,
        vectors: VectorIndex,
        budget: TokenBudget | None = None,
        *,
        rrf_k: int = RRF_K,
        vector_k: int = VECTOR_K,
        graph_depth: int = GRAPH_DEPTH,
    ) -> None:
        self._graph = graph
        self._vectors = vectors
        self._budget = budget or TokenBudget()
        self._rrf_k = rrf_k
        self._vector_k = vector_k
        self._graph_depth = graph_depth

    async def retrieve(self, query: str, token_budget: int) -> str:
        """Budget-fitting context block for ``query``, items split by blank lines."""
        if token_budget <= 0:
            return ""

        graph_results = self.graph_search()
        vector_results = await self.vector_search(query)
        fused = reciprocal_rank_fusion(graph_results, vector_results, k=self._rrf_k)

        selected = self._select_within_budget(
            (result.content for result, _ in fused), token_budget
        )
        logger.debug(
            "Retrieved %d/%d items (graph=%d, vector=%d) within %d tokens",
            len(selected),
            len(fused),
            len(graph_results),
            len(vector_results),
            token_budget,
        )
        return "\n\n".join(selected)

    def _select_within_budget(self, items: Iterable[str], budget: int) -> list[str]:
        # Skip what doesn't fit; a long top-ranked item must not starve the rest.
        selected: list[str] = []
        remaining = budget
        for item in items:
            tokens = self._budget.count_tokens(item)
            if tokens <= remaining:
                selected.append(item)
                remaining -= tokens
        return selected

    def graph_search(self) -> list[RetrievalResult]:
        """Intents by recency, then nodes reachable from the latest intent."""
        with self._graph.locked():
            intents = self._graph.intents()
            connected = (
                self._graph.traverse(
                    intents[0].id, self._graph_depth, type_filter=TRAVERSAL_TYPES
                )
                if intents
                else []
            )

        results = [
            RetrievalResult(node.content, RetrievalSource.GRAPH, 1.0 - idx * 0.1)
            for idx, node in enumerate(intents)
        ]
        results.extend(
            RetrievalResult(node.content, RetrievalSource.GRAPH, 0.8 - idx * 0.05)
            for idx, node in enumerate(connected)
        )
        return results

    async def vector_search(self, query: str) -> list[RetrievalResult]:
        """Nearest stored messages; empty when embeddings are unavailable."""
        try:
            entries = await self._vectors.search(query, self._vector_k)
        except EmbeddingUnavailable as e:
            logger.warning(
                "vector_search_unavailable", extra={"error.message": str(e)}
            )
            return []
        return [
            RetrievalResult(entry.content, RetrievalSource.VECTOR, 1.0 - idx * 0.1)
            for idx, entry in enumerate(entries)
        ]
