"""
Business Rule Filter & Ranker
=============================

Narrows scored candidates down to the ranked list returned to callers.

Pipeline, in order: self-exclusion, confidence threshold, allow-lists,
stable descending sort, truncation, rank assignment. An empty list is a
valid outcome.
"""

from dataclasses import replace
from typing import Iterable, List, Optional

from ticket_assist.similarity.domain.entities import BusinessRules, SimilarityResult, Ticket


def exclude_self(results: Iterable[SimilarityResult], query_ticket_id: Optional[str]) -> List[SimilarityResult]:
    """Drop candidates sharing the query's ticket_id (only when the query has one)."""
    if not query_ticket_id:
        return list(results)
    return [r for r in results if r.ticket_id != query_ticket_id]


def filter_by_confidence(results: Iterable[SimilarityResult], min_confidence: float) -> List[SimilarityResult]:
    return [r for r in results if r.confidence_score >= min_confidence]


def apply_business_rules(results: Iterable[SimilarityResult], rules: Optional[BusinessRules]) -> List[SimilarityResult]:
    """Keep only candidates allowed by every non-empty allow-list."""
    filtered = list(results)
    if rules is None:
        return filtered

    if rules.allowed_sources:
        filtered = [r for r in filtered if r.source in rules.allowed_sources]
    if rules.allowed_categories:
        filtered = [r for r in filtered if r.category in rules.allowed_categories]
    if rules.allowed_statuses:
        filtered = [r for r in filtered if r.status in rules.allowed_statuses]
    if rules.allowed_priorities:
        filtered = [r for r in filtered if r.priority in rules.allowed_priorities]
    for name, minimum in rules.min_field_similarities.items():
        filtered = [r for r in filtered if r.field_similarities.get(name, 0.0) >= minimum]

    return filtered


def assign_ranks(results: Iterable[SimilarityResult]) -> List[SimilarityResult]:
    return [
        replace(
            result,
            rank=index,
            confidence_percentage=int(round(result.confidence_score * 100))
        )
        for index, result in enumerate(results, 1)
    ]


def filter_and_rank(
    results: Iterable[SimilarityResult],
    query: Ticket,
    min_confidence: float,
    business_rules: Optional[BusinessRules],
    max_results: int
) -> List[SimilarityResult]:
    """
    Run the full filter/rank pipeline.

    Args:
        results: Scored candidates in vector store order
        query: The ticket that was searched for
        min_confidence: Inclusive confidence threshold
        business_rules: Optional allow-lists
        max_results: Maximum number of results to keep

    Returns:
        New list with ``rank`` 1..N and ``confidence_percentage`` set
    """
    filtered = exclude_self(results, query.ticket_id)
    filtered = filter_by_confidence(filtered, min_confidence)
    filtered = apply_business_rules(filtered, business_rules)

    # sorted() is stable, so ties keep the vector store order
    ordered = sorted(filtered, key=lambda r: r.confidence_score, reverse=True)

    return assign_ranks(ordered[:max(0, max_results)])
