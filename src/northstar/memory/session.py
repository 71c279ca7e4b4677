"""Session orchestration: records messages into every memory layer and
assembles provider handoffs from them.

A handoff is the markdown block injected when a conversation moves to a
different provider (or resumes). Sections, in order:

1. Current objectives
2. Highlights (decisions, open issues, milestones)
3. Knowledge-graph summary (latest intents and decisions)
4. Relevant context from hybrid retrieval, or keyword hits as a fallback
5. The immediate conversation

Each section is trimmed to its share of the provider budget.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from northstar.config.models import NorthStarConfig
from northstar.core.tokens import BudgetAllocation
from northstar.errors import EmbeddingUnavailable
from northstar.graph.graph import EntityStore
from northstar.graph.types import NodeType
from northstar.graph.vectors import VectorIndex
from northstar.memory.embeddings import EmbeddingProvider
from northstar.memory.extractor import EntityExtractor
from northstar.memory.highlights import HighlightExtractor
from northstar.memory.immediate import ImmediateContext, format_message
from northstar.memory.keyword import KeywordSearch
from northstar.memory.objectives import ObjectiveTracker
from northstar.memory.retrieval import HybridRetriever
from northstar.memory.types import Message, Role
from northstar.storage.base import MemorySnapshot, SnapshotBackend
from northstar.storage.memory import InMemoryBackend

logger = logging.getLogger(__name__)

HANDOFF_HEADER = (
    "# North Star Context\n\n"
    "You are taking over an existing session. Here is the context summary "
    "needed to continue seamlessly."
)
SUMMARY_INTENTS = 3
SUMMARY_DECISIONS = 5
KEYWORD_FALLBACK_LIMIT = 3
KEYWORD_SNIPPET_CHARS = 150


@dataclass
class ContextHandoff:
    context: str
    token_count: int
    provider: str


class MemorySession:
    """One conversation's memory, across provider switches."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        config: NorthStarConfig | None = None,
        backend: SnapshotBackend | None = None,
    ) -> None:
        self._config = config or NorthStarConfig()
        retrieval = self._config.retrieval

        self.graph = EntityStore()
        self.vectors = VectorIndex(embedder, timeout=self._config.embeddings.timeout)
        self.budget = self._config.budget.build()
        self.extractor = EntityExtractor(
            self.graph, recent_window=retrieval.recent_window
        )
        self.retriever = HybridRetriever(
            self.graph,
            self.vectors,
            self.budget,
            rrf_k=retrieval.rrf_k,
            vector_k=retrieval.vector_k,
            graph_depth=retrieval.graph_depth,
        )
        self.immediate = ImmediateContext(self._config.session.immediate_window)
        self.highlights = HighlightExtractor()
        self.objectives = ObjectiveTracker()
        self.keywords = KeywordSearch()

        self._backend = backend or InMemoryBackend()
        self._messages: list[Message] = []
        self._provider = self._config.session.default_provider
        self._lock = asyncio.Lock()

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    async def record_message(self, role: Role, content: str) -> Message:
        """Feed one conversation turn through every memory layer.

        A failing embedding provider only costs the vector entry; the
        message is still recorded everywhere else.
        """
        async with self._lock:
            message = Message(role=role, content=content, provider=self._provider)
            index = len(self._messages)
            self._messages.append(message)
            self.immediate.add(message)

            self.extractor.process_message(content)
            self.highlights.extract(content, index)
            if role == "user":
                self.objectives.extract(content)
            self.keywords.add(message)

            try:
                await self.vectors.add(message.id, content, {"role": role})
            except EmbeddingUnavailable as e:
                logger.warning(
                    "message_embedding_skipped",
                    extra={"message.id": message.id, "error.message": str(e)},
                )
            return message

    async def build_handoff(self, provider_id: str) -> ContextHandoff:
        """Assemble the context block for ``provider_id`` within its budget."""
        allocation = self.budget.allocate(provider_id)
        parts = [HANDOFF_HEADER]

        objectives = self._objectives_section(allocation)
        if objectives:
            parts.append(objectives)

        highlights = self.budget.fit_to_budget(
            self.highlights.sections(), allocation.highlights
        )
        parts.extend(highlights)

        summary = self._graph_summary_section(allocation)
        if summary:
            parts.append(summary)

        retrieval_budget = allocation.retrieval - self.budget.count_tokens(summary)
        relevant = await self._relevant_section(retrieval_budget)
        if relevant:
            parts.append(relevant)

        immediate = self._immediate_section(allocation)
        if immediate:
            parts.append(immediate)

        context = "\n\n".join(parts)
        handoff = ContextHandoff(
            context=context,
            token_count=self.budget.count_tokens(context),
            provider=provider_id,
        )
        logger.debug(
            "Built handoff for %s: %d/%d tokens",
            provider_id,
            handoff.token_count,
            allocation.total,
        )
        return handoff

    async def switch_provider(self, provider_id: str) -> ContextHandoff | None:
        """Make ``provider_id`` current; returns the handoff it should receive.

        Switching to the current provider is a no-op and returns None.
        """
        if provider_id == self._provider:
            return None
        handoff = await self.build_handoff(provider_id)
        previous, self._provider = self._provider, provider_id
        logger.info(
            "provider_switched",
            extra={
                "provider.from": previous,
                "provider.to": provider_id,
                "handoff.tokens": handoff.token_count,
            },
        )
        return handoff

    def stats(self) -> dict[str, Any]:
        return {
            "nodes": {t.value: n for t, n in self.graph.count_by_type().items()},
            "edges": self.graph.edge_count,
            "vectors": self.vectors.count,
            "messages": len(self._messages),
            "provider": self._provider,
        }

    # -- Persistence --

    async def save(self) -> None:
        nodes, edges = self.graph.snapshot()
        max_saved = self._config.session.max_saved_messages
        snapshot = MemorySnapshot(
            nodes=nodes,
            edges=edges,
            vectors=self.vectors.entries(),
            state={
                "provider": self._provider,
                "messages": [m.to_dict() for m in self._messages[-max_saved:]],
                "highlights": self.highlights.dump(),
                "objectives": self.objectives.dump(),
            },
        )
        await self._backend.save(snapshot)

    async def load(self) -> None:
        """Replace in-memory state with the backend's snapshot.

        An empty or unreadable store leaves the session empty.
        """
        snapshot = await self._backend.load()
        self._reset()
        if snapshot.is_empty:
            return
        try:
            self._restore_state(snapshot.state)
        except (PydanticValidationError, TypeError) as e:
            logger.warning("session_state_invalid", extra={"error.message": str(e)})
            self._reset()
            return
        self.graph.restore(snapshot.nodes, snapshot.edges)
        self.vectors.restore(snapshot.vectors)

    def _restore_state(self, state: dict[str, Any]) -> None:
        messages = [Message.from_dict(d) for d in state.get("messages", [])]
        self.highlights.load(state.get("highlights", []))
        self.objectives.load(state.get("objectives", []))
        self._messages = messages
        for message in messages:
            self.immediate.add(message)
        self.keywords.load(messages)
        self._provider = state.get("provider") or self._config.session.default_provider

    async def clear(self) -> None:
        """Forget everything, in memory and in the backend."""
        async with self._lock:
            self._reset()
            await self._backend.clear()

    async def close(self) -> None:
        await self._backend.close()

    def _reset(self) -> None:
        self.graph.clear()
        self.vectors.clear()
        self.immediate.clear()
        self.highlights.clear()
        self.objectives.clear()
        self.keywords.clear()
        self._messages = []
        self._provider = self._config.session.default_provider

    # -- Handoff sections --

    def _objectives_section(self, allocation: BudgetAllocation) -> str:
        lines = [f"- {o.statement}" for o in self.objectives.current()]
        lines = self.budget.fit_to_budget(lines, allocation.objectives)
        if not lines:
            return ""
        return "## Current Objectives\n" + "\n".join(lines)

    def _graph_summary_section(self, allocation: BudgetAllocation) -> str:
        # Oldest first within the most recent few.
        intents = self.graph.nodes_by_type(NodeType.INTENT)[:SUMMARY_INTENTS][::-1]
        decisions = self.graph.nodes_by_type(NodeType.DECISION)[:SUMMARY_DECISIONS][::-1]

        blocks: list[str] = []
        if intents:
            blocks.append("### Intents\n" + "\n".join(f"- {n.content}" for n in intents))
        if decisions:
            blocks.append(
                "### Key Decisions\n" + "\n".join(f"- {n.content}" for n in decisions)
            )
        blocks = self.budget.fit_to_budget(blocks, allocation.graph)
        if not blocks:
            return ""
        return "## Session Knowledge Graph\n" + "\n".join(blocks)

    async def _relevant_section(self, token_budget: int) -> str:
        query = self._retrieval_query()
        if not query or token_budget <= 0:
            return ""

        retrieved = await self.retriever.retrieve(query, token_budget)
        if retrieved:
            return "## Relevant Context\n" + retrieved

        snippets = [
            f"> {hit.content[:KEYWORD_SNIPPET_CHARS]}"
            for hit in self.keywords.search(query, KEYWORD_FALLBACK_LIMIT)
        ]
        snippets = self.budget.fit_to_budget(snippets, token_budget)
        if not snippets:
            return ""
        return "## Relevant History\n" + "\n".join(snippets)

    def _retrieval_query(self) -> str:
        current = self.objectives.current()
        if current:
            return current[0].statement
        for message in reversed(self._messages):
            if message.role == "user":
                return message.content
        return ""

    def _immediate_section(self, allocation: BudgetAllocation) -> str:
        rendered = [format_message(m) for m in self.immediate.messages()]
        # Keep the newest turns when the window does not fit.
        kept = self.budget.fit_to_budget(reversed(rendered), allocation.immediate)
        if not kept:
            return ""
        return "## Recent Conversation\n" + "\n\n".join(reversed(kept))
