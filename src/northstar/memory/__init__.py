"""Memory layers, extraction, retrieval and session orchestration."""

from northstar.memory.embeddings import (
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    create_embedding_provider,
)
from northstar.memory.extractor import EntityExtractor
from northstar.memory.retrieval import HybridRetriever, RetrievalResult
from northstar.memory.session import ContextHandoff, MemorySession

__all__ = [
    "ContextHandoff",
    "EmbeddingProvider",
    "EntityExtractor",
    "HybridRetriever",
    "MemorySession",
    "OpenAIEmbeddingProvider",
    "RetrievalResult",
    "create_embedding_provider",
]
