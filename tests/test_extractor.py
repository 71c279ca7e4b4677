"""Tests for rule-based entity and relation extraction."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from northstar.graph.graph import EntityStore
from northstar.graph.types import EdgeType, GraphNode, NodeType
from northstar.memory.extractor import EntityExtractor, RegexRecognizer

T0 = datetime(2025, 1, 1, tzinfo=UTC)


def _edge_types(store: EntityStore, node_id: str) -> set[tuple[str, str, EdgeType]]:
    return {e.key for e in store.edges_of(node_id)}


def _node(node_id: str, node_type: NodeType, t: int) -> GraphNode:
    return GraphNode(
        id=node_id, type=node_type, content=node_id, created_at=T0 + timedelta(seconds=t)
    )


# =============================================================================
# Entities
# =============================================================================


class TestExtractEntities:
    def test_intent_content_is_first_group(self, store: EntityStore):
        nodes = EntityExtractor(store).extract_entities("I want to build a login page")
        assert [(n.type, n.content) for n in nodes] == [
            (NodeType.INTENT, "build a login page")
        ]
        assert store.node_count == 1

    def test_decision(self, store: EntityStore):
        nodes = EntityExtractor(store).extract_entities("Let's use PostgreSQL")
        assert (NodeType.DECISION, "PostgreSQL") in [(n.type, n.content) for n in nodes]

    def test_code_artifact_filename(self, store: EntityStore):
        nodes = EntityExtractor(store).extract_entities("I created auth.ts for the login")
        assert [(n.type, n.content) for n in nodes] == [
            (NodeType.CODE_ARTIFACT, "auth.ts")
        ]

    def test_error_and_solution(self, store: EntityStore):
        extractor = EntityExtractor(store)
        errors = extractor.extract_entities("Error: token expired")
        solutions = extractor.extract_entities("fixed by refreshing the token")
        assert [(n.type, n.content) for n in errors] == [(NodeType.ERROR, "token expired")]
        assert [(n.type, n.content) for n in solutions] == [
            (NodeType.SOLUTION, "refreshing the token")
        ]

    def test_preference(self, store: EntityStore):
        nodes = EntityExtractor(store).extract_entities("I prefer tabs over spaces")
        assert [(n.type, n.content) for n in nodes] == [
            (NodeType.PREFERENCE, "tabs over spaces")
        ]

    def test_blank_group_falls_back_to_full_match(self, store: EntityStore):
        nodes = EntityExtractor(store).extract_entities("error:  ")
        assert [(n.type, n.content) for n in nodes] == [(NodeType.ERROR, "error:")]
        assert store.node_count == 1

    def test_no_match(self, store: EntityStore):
        assert EntityExtractor(store).extract_entities("hello there") == []
        assert store.node_count == 0

    def test_no_dedup_within_call(self, store: EntityStore):
        text = "need to write tests. need to write tests."
        nodes = EntityExtractor(store).extract_entities(text)
        # The greedy tail swallows the second mention, so one match per line.
        assert len(nodes) == 1
        multi = EntityExtractor(store).extract_entities(
            "need to write tests\nneed to write tests"
        )
        assert [n.content for n in multi] == ["write tests", "write tests"]
        assert multi[0].id != multi[1].id

    def test_creation_times_strictly_increase(self, store: EntityStore):
        nodes = EntityExtractor(store).extract_entities(
            "Error: boom\nfixed by restarting\nsolution: restart"
        )
        times = [n.created_at for n in nodes]
        assert times == sorted(times)
        assert len(set(times)) == len(times)


class TestRecognizer:
    def test_relation_cues_are_word_bounded(self):
        recognizer = RegexRecognizer()
        assert recognizer.relation_cues("please authenticate") == []
        assert recognizer.relation_cues("and then it broke") == [EdgeType.LED_TO]

    def test_multiple_cues(self):
        cues = RegexRecognizer().relation_cues("it depends on redis and was fixed by a retry")
        assert set(cues) == {EdgeType.DEPENDS_ON, EdgeType.RESOLVED_BY}


# =============================================================================
# Relations
# =============================================================================


class TestExtractRelations:
    def test_fewer_than_two_nodes_is_noop(self, store: EntityStore):
        extractor = EntityExtractor(store)
        extractor.extract_relations("led to", [_node("a", NodeType.INTENT, 0)])
        assert store.edge_count == 0

    def test_cue_links_last_two(self, store: EntityStore):
        recent = [
            _node("a", NodeType.INTENT, 0),
            _node("b", NodeType.DECISION, 1),
            _node("c", NodeType.PREFERENCE, 2),
        ]
        EntityExtractor(store).extract_relations("which led to this", recent)
        assert store.edge_count == 1
        assert _edge_types(store, "c") == {("b", "c", EdgeType.LED_TO)}

    def test_error_resolved_by_later_solution_only(self, store: EntityStore):
        recent = [
            _node("s0", NodeType.SOLUTION, 0),
            _node("e1", NodeType.ERROR, 1),
            _node("s2", NodeType.SOLUTION, 2),
        ]
        EntityExtractor(store).extract_relations("", recent)
        assert _edge_types(store, "e1") == {("e1", "s2", EdgeType.RESOLVED_BY)}

    def test_equal_times_not_resolved(self, store: EntityStore):
        recent = [_node("e", NodeType.ERROR, 1), _node("s", NodeType.SOLUTION, 1)]
        EntityExtractor(store).extract_relations("", recent)
        assert store.edge_count == 0

    def test_decision_implemented_in_artifact_at_or_after(self, store: EntityStore):
        recent = [
            _node("f0", NodeType.CODE_ARTIFACT, 0),
            _node("d1", NodeType.DECISION, 1),
            _node("f1", NodeType.CODE_ARTIFACT, 1),
            _node("f2", NodeType.CODE_ARTIFACT, 2),
        ]
        EntityExtractor(store).extract_relations("", recent)
        assert _edge_types(store, "d1") == {
            ("d1", "f1", EdgeType.IMPLEMENTED_IN),
            ("d1", "f2", EdgeType.IMPLEMENTED_IN),
        }


class TestProcessMessage:
    def test_error_then_fix_linked(self, store: EntityStore):
        extractor = EntityExtractor(store)
        error, solution = extractor.process_message(
            "Error: cannot connect to db\nfixed by setting the port"
        )
        assert error.type == NodeType.ERROR
        assert _edge_types(store, error.id) == {
            (error.id, solution.id, EdgeType.RESOLVED_BY)
        }

    def test_errors_do_not_carry_across_messages(self, store: EntityStore):
        extractor = EntityExtractor(store)
        extractor.process_message("Error: cannot connect to db")
        extractor.process_message("the fix is setting the port")
        assert store.edge_count == 0

    def test_decision_then_artifact_linked(self, store: EntityStore):
        extractor = EntityExtractor(store)
        [decision] = extractor.process_message("Let's use JWT")
        [artifact] = extractor.process_message("I created auth.ts")
        assert (decision.id, artifact.id, EdgeType.IMPLEMENTED_IN) in _edge_types(
            store, artifact.id
        )

    def test_recent_window_bounded(self, store: EntityStore):
        extractor = EntityExtractor(store, recent_window=3)
        for i in range(6):
            extractor.process_message(f"Let's use option{i}")
        recent = extractor.recent_nodes()
        assert [n.content for n in recent] == ["option3", "option4", "option5"]

    def test_recent_window_dedups(self, store: EntityStore):
        extractor = EntityExtractor(store)
        [decision] = extractor.process_message("Let's use JWT")
        recent = extractor.recent_nodes([decision])
        assert [n.id for n in recent] == [decision.id]
