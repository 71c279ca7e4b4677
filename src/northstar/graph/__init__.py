"""Session knowledge graph and vector index."""

from northstar.graph.graph import EntityStore
from northstar.graph.types import EdgeType, GraphEdge, GraphNode, NodeType
from northstar.graph.vectors import VectorEntry, VectorIndex, cosine_similarity

__all__ = [
    "EdgeType",
    "EntityStore",
    "GraphEdge",
    "GraphNode",
    "NodeType",
    "VectorEntry",
    "VectorIndex",
    "cosine_similarity",
]
