"""
Similarity Domain Layer
=======================

Domain layer for the ticket similarity module.

Contains:
- Entities: Ticket, SimilarityResult, BusinessRules, SearchOptions, SearchOutcome
- Scoring: weighted text encoding, field similarity, score fusion
- Ranking: business rule filtering and rank assignment

This layer is framework-agnostic and contains pure business logic.
"""

from ticket_assist.similarity.domain.entities import (
    Ticket,
    SimilarityResult,
    BusinessRules,
    SearchOptions,
    SearchOutcome,
    Explanation,
    ExplanationPromptBuilder,
    format_timestamp,
)
from ticket_assist.similarity.domain.scoring import (
    encode_ticket,
    calculate_field_similarity,
    jaccard_similarity,
    fuse_scores,
    clamp,
    SEMANTIC_WEIGHT,
    FIELD_WEIGHT,
)
from ticket_assist.similarity.domain.ranking import (
    filter_and_rank,
    apply_business_rules,
)

__all__ = [
    "Ticket",
    "SimilarityResult",
    "BusinessRules",
    "SearchOptions",
    "SearchOutcome",
    "Explanation",
    "ExplanationPromptBuilder",
    "format_timestamp",
    "encode_ticket",
    "calculate_field_similarity",
    "jaccard_similarity",
    "fuse_scores",
    "clamp",
    "SEMANTIC_WEIGHT",
    "FIELD_WEIGHT",
    "filter_and_rank",
    "apply_business_rules",
]
