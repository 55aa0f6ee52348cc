"""
Similarity Application DTOs
============================

Data Transfer Objects for the similarity API layer.

Pydantic models for request/response serialization. Length limits are not
enforced here: the service validates tickets itself so that every violation
is reported together, whichever entry point is used.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from ticket_assist.similarity.domain import (
    BusinessRules,
    Explanation,
    SearchOutcome,
    SimilarityResult,
)


# ========== Request DTOs ==========

class SimilarTicketRequest(BaseModel):
    """Request model for a similarity search."""
    ticket_id: Optional[str] = Field(None, description="ID of the query ticket, excluded from results")
    source: Optional[str] = Field(None, description="System of origin, e.g. ServiceNow")
    short_description: Optional[str] = Field(None, description="Short summary (5-500 chars)")
    description: Optional[str] = Field(None, description="Full description (10-5000 chars)")
    category: Optional[str] = Field(None, description="Ticket category")

    def to_ticket_input(self) -> Dict[str, Any]:
        return self.model_dump()


class BatchSimilarTicketRequest(BaseModel):
    """Request model for a batch similarity search."""
    tickets: List[SimilarTicketRequest] = Field(..., min_length=1, max_length=50)


def parse_csv(value: Optional[str]) -> List[str]:
    """Split a comma separated query parameter, dropping blank entries."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def build_business_rules(
    allowed_sources: Optional[str] = None,
    allowed_categories: Optional[str] = None,
    allowed_statuses: Optional[str] = None,
    allowed_priorities: Optional[str] = None
) -> BusinessRules:
    return BusinessRules(
        allowed_sources=parse_csv(allowed_sources),
        allowed_categories=parse_csv(allowed_categories),
        allowed_statuses=parse_csv(allowed_statuses),
        allowed_priorities=parse_csv(allowed_priorities),
    )


# ========== Response DTOs ==========

class FieldSimilarities(BaseModel):
    short_description: float = Field(..., ge=0.0, le=1.0)
    description: float = Field(..., ge=0.0, le=1.0)
    category: float = Field(..., ge=0.0, le=1.0)
    source: float = Field(..., ge=0.0, le=1.0)


class SimilarTicketInfo(BaseModel):
    """One ranked similar ticket."""
    ticket_id: Optional[str] = None
    source: Optional[str] = None
    short_description: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    impact: Optional[str] = None
    urgency: Optional[str] = None
    opened_time: Optional[str] = None
    closed_time: Optional[str] = None
    resolved_time: Optional[str] = None
    assigned_to: Optional[str] = None
    assignment_group: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[Any] = None
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    semantic_score: float
    field_similarities: FieldSimilarities
    rank: int = Field(..., ge=1)
    confidence_percentage: int = Field(..., ge=0, le=100)

    @classmethod
    def from_domain(cls, result: SimilarityResult) -> "SimilarTicketInfo":
        data = result.to_dict()
        for name in ("ticket_id", "source", "short_description", "description", "category",
                     "subcategory", "status", "priority", "impact", "urgency",
                     "assigned_to", "assignment_group", "company", "location"):
            if data[name] is not None and not isinstance(data[name], str):
                data[name] = str(data[name])
        return cls(**data)


class QueryEcho(BaseModel):
    ticket_id: Optional[str] = None
    source: Optional[str] = None
    short_description: Optional[str] = None
    category: Optional[str] = None


class ExplanationInfo(BaseModel):
    summary: str
    key_similarities: List[str] = []

    @classmethod
    def from_domain(cls, explanation: Explanation) -> "ExplanationInfo":
        return cls(summary=explanation.summary, key_similarities=list(explanation.key_similarities))


class DebugInfo(BaseModel):
    candidates_considered: int
    query_text_length: int


class ResponseMetadata(BaseModel):
    processing_time_ms: int
    timestamp: str


class SimilarTicketsResponse(BaseModel):
    """Response model for a successful similarity search."""
    success: bool = True
    message: str
    query: QueryEcho
    total_results: int
    min_confidence_threshold: float
    results: List[SimilarTicketInfo]
    metadata: ResponseMetadata
    explanation: Optional[ExplanationInfo] = None
    debug: Optional[DebugInfo] = None

    @classmethod
    def from_outcome(cls, outcome: SearchOutcome, timestamp: str, debug: bool = False) -> "SimilarTicketsResponse":
        query = outcome.query
        return cls(
            message=outcome.message,
            query=QueryEcho(
                ticket_id=query.ticket_id,
                source=query.source,
                short_description=query.short_description,
                category=query.category
            ),
            total_results=outcome.total_results,
            min_confidence_threshold=outcome.min_confidence_threshold,
            results=[SimilarTicketInfo.from_domain(r) for r in outcome.results],
            metadata=ResponseMetadata(
                processing_time_ms=outcome.processing_time_ms,
                timestamp=timestamp
            ),
            explanation=ExplanationInfo.from_domain(outcome.explanation) if outcome.explanation else None,
            debug=DebugInfo(
                candidates_considered=outcome.candidates_considered,
                query_text_length=outcome.query_text_length
            ) if debug else None
        )


class BatchItemResponse(BaseModel):
    input_ticket: Dict[str, Any]
    success: bool
    result: Optional[SimilarTicketsResponse] = None
    error: Optional[str] = None


class BatchSimilarTicketsResponse(BaseModel):
    success: bool = True
    message: str
    batch_results: List[BatchItemResponse]
    total_processed: int
    successful: int
    failed: int


class HealthResponse(BaseModel):
    status: str
    state: str
    components: Dict[str, Any]
    timestamp: str


class CapabilitiesResponse(BaseModel):
    supported_fields: List[str]
    required_fields: List[str]
    field_weights: Dict[str, float]
    min_confidence_threshold: float
    max_results: int
    top_k: int
    text_limits: Dict[str, Dict[str, int]]
    provider: str
