"""Rule-based entity and relation extraction from conversation messages.

Developer prose is short and imperative, so action-verb patterns are a
strong enough signal to build the session graph without a model call.
The rule tables are plain data behind the ``EntityRecognizer`` protocol;
swapping the matching engine does not touch the graph or the retriever.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from northstar.graph.graph import EntityStore
from northstar.graph.types import (
    EdgeType,
    GraphEdge,
    GraphNode,
    NodeType,
    make_node_id,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_RECENT_WINDOW = 10

_FILE_EXT = r"(?:ts|js|py|java|go|rs|cpp|c|h|css|html|json|yaml|yml)"


@dataclass(frozen=True)
class ExtractionRule:
    """Patterns producing nodes of one type. Group 1 is the entity text."""

    node_type: NodeType
    patterns: tuple[re.Pattern[str], ...]


@dataclass(frozen=True)
class RelationRule:
    """Cue phrases that signal an edge type between recent nodes."""

    edge_type: EdgeType
    patterns: tuple[re.Pattern[str], ...]


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


ENTITY_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule(
        NodeType.INTENT,
        _compile(
            r"i want to ((?:build|create|make|implement|develop) .+)",
            r"let's ((?:build|create|make|implement|develop) .+)",
            r"goal is to (.+)",
            r"trying to (.+)",
            r"need to (.+)",
        ),
    ),
    ExtractionRule(
        NodeType.DECISION,
        _compile(
            r"let's use (.+)",
            r"we(?:'ll| will| should) use (.+)",
            r"going with (.+)",
            r"decided on (.+)",
        ),
    ),
    ExtractionRule(
        NodeType.CODE_ARTIFACT,
        _compile(
            rf"\bcreated? ([\w./-]+\.{_FILE_EXT})\b",
            rf"\bfile ([\w./-]+\.{_FILE_EXT})\b",
            rf"\bin ([\w./-]+\.{_FILE_EXT})\b",
        ),
    ),
    ExtractionRule(
        NodeType.ERROR,
        _compile(
            r"error:?\s*(.+)",
            r"exception:?\s*(.+)",
            r"failed:?\s*(.+)",
            r"TypeError:?\s*(.+)",
            r"ReferenceError:?\s*(.+)",
        ),
    ),
    ExtractionRule(
        NodeType.SOLUTION,
        _compile(
            r"fixed by (.+)",
            r"solved by (.+)",
            r"the fix is (.+)",
            r"solution:?\s*(.+)",
        ),
    ),
    ExtractionRule(
        NodeType.PREFERENCE,
        _compile(
            r"prefer (.+)",
            r"like (.+) better",
            r"always use (.+)",
            r"convention is (.+)",
        ),
    ),
)

RELATION_RULES: tuple[RelationRule, ...] = (
    RelationRule(
        EdgeType.LED_TO,
        _compile(r"\bled to\b", r"\bresulted in\b", r"\bcaused\b", r"\bthen\b"),
    ),
    RelationRule(
        EdgeType.RESOLVED_BY,
        _compile(r"\bfixed by\b", r"\bsolved by\b", r"\bresolved by\b"),
    ),
    RelationRule(
        EdgeType.IMPLEMENTED_IN,
        _compile(
            r"\bimplemented in\b",
            r"\badded to\b",
            r"\bcreated in\b",
            r"\bupdated in\b",
        ),
    ),
    RelationRule(
        EdgeType.DEPENDS_ON,
        _compile(r"\bdepends on\b", r"\brequires\b", r"\bneeds\b", r"\bimports\b"),
    ),
)


class EntityRecognizer(Protocol):
    """Matching engine behind the extractor."""

    def recognize(self, text: str) -> list[tuple[NodeType, str]]:
        """Return (type, content) for every entity mention, in rule order."""
        ...

    def relation_cues(self, text: str) -> list[EdgeType]:
        """Return the edge types whose cue phrases appear in ``text``."""
        ...


class RegexRecognizer:
    """Ordered regular-expression rule tables."""

    def __init__(
        self,
        entity_rules: Sequence[ExtractionRule] = ENTITY_RULES,
        relation_rules: Sequence[RelationRule] = RELATION_RULES,
    ) -> None:
        self._entity_rules = tuple(entity_rules)
        self._relation_rules = tuple(relation_rules)

    def recognize(self, text: str) -> list[tuple[NodeType, str]]:
        found: list[tuple[NodeType, str]] = []
        for rule in self._entity_rules:
            for pattern in rule.patterns:
                for match in pattern.finditer(text):
                    content = _first_group(match).strip() or match.group(0).strip()
                    if content:
                        found.append((rule.node_type, content))
        return found

    def relation_cues(self, text: str) -> list[EdgeType]:
        return [
            rule.edge_type
            for rule in self._relation_rules
            if any(p.search(text) for p in rule.patterns)
        ]


def _first_group(match: re.Match[str]) -> str:
    """First non-empty capture group, else the whole match."""
    for group in match.groups():
        if group:
            return group
    return match.group(0)


class _StrictClock:
    """UTC clock that never returns the same instant twice.

    Relation heuristics compare creation times, so nodes extracted in one
    call must be strictly ordered even when the system clock is coarse.
    """

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = utc_now()
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current


class EntityExtractor:
    """Turns message text into graph nodes and edges."""

    def __init__(
        self,
        store: EntityStore,
        recognizer: EntityRecognizer | None = None,
        recent_window: int = DEFAULT_RECENT_WINDOW,
    ) -> None:
        self._store = store
        self._recognizer = recognizer or RegexRecognizer()
        self._recent_window = recent_window
        self._clock = _StrictClock()

    def extract_entities(self, text: str) -> list[GraphNode]:
        """Create one node per entity mention and add them to the store.

        No deduplication: the same phrase matched twice yields two nodes.
        """
        extracted: list[GraphNode] = []
        for node_type, content in self._recognizer.recognize(text):
            node = GraphNode(
                id=make_node_id(node_type),
                type=node_type,
                content=content,
                created_at=self._clock.now(),
            )
            self._store.add_node(node)
            extracted.append(node)
        return extracted

    def extract_relations(self, text: str, recent_nodes: Sequence[GraphNode]) -> None:
        """Add edges between recent nodes.

        Explicit cue phrases link the last two nodes. On top of that, every
        Error is linked to each later Solution and every Decision to each
        CodeArtifact created at or after it. The temporal pass is quadratic
        in the window, which is capped at ``recent_window`` nodes.
        """
        if len(recent_nodes) < 2:
            return

        created = 0
        previous, latest = recent_nodes[-2], recent_nodes[-1]
        for edge_type in self._recognizer.relation_cues(text):
            self._link(previous, latest, edge_type)
            created += 1

        errors = [n for n in recent_nodes if n.type == NodeType.ERROR]
        solutions = [n for n in recent_nodes if n.type == NodeType.SOLUTION]
        for error in errors:
            for solution in solutions:
                if solution.created_at > error.created_at:
                    self._link(error, solution, EdgeType.RESOLVED_BY)
                    created += 1

        decisions = [n for n in recent_nodes if n.type == NodeType.DECISION]
        artifacts = [n for n in recent_nodes if n.type == NodeType.CODE_ARTIFACT]
        for decision in decisions:
            for artifact in artifacts:
                if artifact.created_at >= decision.created_at:
                    self._link(decision, artifact, EdgeType.IMPLEMENTED_IN)
                    created += 1

        if created:
            logger.debug(
                "Inferred %d relations from %d recent nodes",
                created,
                len(recent_nodes),
            )

    def _link(self, source: GraphNode, target: GraphNode, edge_type: EdgeType) -> None:
        self._store.add_edge(
            GraphEdge(source_id=source.id, target_id=target.id, type=edge_type)
        )

    def process_message(self, text: str) -> list[GraphNode]:
        """Extract entities, then infer relations over the recent window."""
        entities = self.extract_entities(text)
        if entities:
            self.extract_relations(text, self.recent_nodes(entities))
            logger.debug(
                "Extracted %d entities: %s",
                len(entities),
                ", ".join(sorted({n.type.value for n in entities})),
            )
        return entities

    def recent_nodes(self, new_entities: Sequence[GraphNode] = ()) -> list[GraphNode]:
        """Most recent nodes across intents, decisions and ``new_entities``.

        Oldest first, at most ``recent_window`` long, each node once.
        """
        pool: dict[str, GraphNode] = {}
        for node in [*self._store.intents(), *self._store.decisions(), *new_entities]:
            pool.setdefault(node.id, node)
        ordered = sorted(pool.values(), key=lambda n: n.created_at)
        return ordered[-self._recent_window :] if self._recent_window > 0 else []
