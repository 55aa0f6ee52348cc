"""
Similarity Infrastructure Layer
================================

External service adapters (embedding provider, vector store, LLM) for the
similarity module.
"""

from ticket_assist.similarity.infrastructure.external import (
    EmbeddingProviderAdapter,
    VectorStoreAdapter,
    LLMTextGenerator,
    build_similarity_clients,
    call_with_retry,
)

__all__ = [
    "EmbeddingProviderAdapter",
    "VectorStoreAdapter",
    "LLMTextGenerator",
    "build_similarity_clients",
    "call_with_retry",
]
