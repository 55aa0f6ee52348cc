"""
Similarity Application Layer
=============================

Application layer for the ticket similarity module.

Contains:
- Services: Search orchestration and collaborator interfaces
- DTOs: Data transfer objects for API serialization
"""

from ticket_assist.similarity.application.dto import (
    SimilarTicketRequest,
    BatchSimilarTicketRequest,
    SimilarTicketInfo,
    SimilarTicketsResponse,
    BatchItemResponse,
    BatchSimilarTicketsResponse,
    HealthResponse,
    CapabilitiesResponse,
    build_business_rules,
    parse_csv,
)
from ticket_assist.similarity.application.services import (
    SimilaritySearchService,
    SimilarityClients,
    ServiceState,
    IEmbeddingProvider,
    IVectorStoreClient,
    ITextGenerator,
    validate_ticket_input,
    preprocess_ticket,
)

__all__ = [
    # DTOs
    "SimilarTicketRequest",
    "BatchSimilarTicketRequest",
    "SimilarTicketInfo",
    "SimilarTicketsResponse",
    "BatchItemResponse",
    "BatchSimilarTicketsResponse",
    "HealthResponse",
    "CapabilitiesResponse",
    "build_business_rules",
    "parse_csv",
    # Services
    "SimilaritySearchService",
    "SimilarityClients",
    "ServiceState",
    # Collaborator Interfaces
    "IEmbeddingProvider",
    "IVectorStoreClient",
    "ITextGenerator",
    "validate_ticket_input",
    "preprocess_ticket",
]
