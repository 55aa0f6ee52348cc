"""
Similarity Controllers (API Routes)
====================================

FastAPI routes for ticket similarity endpoints.

Controllers delegate to the SimilaritySearchService created at startup.
Application exceptions are turned into structured failures by the handlers
registered in ``main``.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from ticket_assist.similarity.application import (
    SimilaritySearchService,
    SimilarTicketRequest,
    SimilarTicketsResponse,
    BatchSimilarTicketRequest,
    BatchItemResponse,
    BatchSimilarTicketsResponse,
    HealthResponse,
    CapabilitiesResponse,
    build_business_rules,
)
from ticket_assist.similarity.domain import SearchOptions
from ticket_assist.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Ticket Similarity"])


# ========== Example payloads for Swagger ==========

SIMILAR_REQUEST_EXAMPLE = {
    "ticket_id": "INC0012345",
    "source": "ServiceNow",
    "short_description": "email not sending",
    "description": "Outlook fails to send emails with timeout error",
    "category": "Email"
}

SIMILAR_RESPONSE_EXAMPLE = {
    "success": True,
    "message": "Found 1 similar tickets above 70% confidence",
    "query": {
        "ticket_id": "INC0012345",
        "source": "ServiceNow",
        "short_description": "email not sending",
        "category": "Email"
    },
    "total_results": 1,
    "min_confidence_threshold": 0.7,
    "results": [
        {
            "ticket_id": "INC0009876",
            "source": "ServiceNow",
            "short_description": "emails not sending from outlook",
            "description": "Outlook send fails with a timeout error",
            "category": "Email",
            "status": "Resolved",
            "confidence_score": 0.86,
            "semantic_score": 0.95,
            "field_similarities": {
                "short_description": 0.6,
                "description": 0.44,
                "category": 1.0,
                "source": 1.0
            },
            "rank": 1,
            "confidence_percentage": 86
        }
    ],
    "metadata": {"processing_time_ms": 412, "timestamp": "2026-01-01T00:00:00+00:00"}
}


# ========== Dependencies ==========

def get_similarity_service(request: Request) -> SimilaritySearchService:
    """Get the similarity service built by the app factory."""
    service = getattr(request.app.state, "similarity_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Similarity service not available"
        )
    return service


def get_search_options(
    explain: bool = Query(False, description="Ask the LLM to explain the top matches"),
    debug: bool = Query(False, description="Include scoring diagnostics"),
    allowed_sources: Optional[str] = Query(None, description="Comma separated source allow-list"),
    allowed_categories: Optional[str] = Query(None, description="Comma separated category allow-list"),
    allowed_statuses: Optional[str] = Query(None, description="Comma separated status allow-list"),
    allowed_priorities: Optional[str] = Query(None, description="Comma separated priority allow-list")
) -> SearchOptions:
    return SearchOptions(
        business_rules=build_business_rules(
            allowed_sources, allowed_categories, allowed_statuses, allowed_priorities
        ),
        debug=debug,
        explain=explain
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ========== Route Handlers ==========

@router.post(
    "/similar",
    response_model=SimilarTicketsResponse,
    summary="Find tickets similar to a new ticket",
    description="""
    Find historical tickets related to the submitted one.

    The ticket is embedded, its nearest neighbours are fetched from the
    vector store, and each candidate is scored by fusing the semantic score
    (70%) with field-level agreement (30%). Candidates below the configured
    confidence threshold are dropped; the rest are ranked.

    **Query options**: `allowed_sources`, `allowed_categories`,
    `allowed_statuses`, `allowed_priorities` (comma separated), `explain`,
    `debug`.

    Zero matches is a successful response with an empty `results` list.
    """,
    responses={
        200: {
            "description": "Search completed",
            "content": {"application/json": {"example": SIMILAR_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Validation failed, every violation is listed"},
        502: {"description": "Embedding provider or vector store failed"},
        503: {"description": "Service could not be initialized"}
    }
)
async def find_similar_tickets(
    payload: SimilarTicketRequest,
    options: SearchOptions = Depends(get_search_options),
    service: SimilaritySearchService = Depends(get_similarity_service)
):
    logger.info(
        "Finding similar tickets",
        extra={
            "has_ticket_id": payload.ticket_id is not None,
            "explain": options.explain,
            "business_rules": not options.business_rules.is_empty
        }
    )

    outcome = await service.search(payload.to_ticket_input(), options)
    return SimilarTicketsResponse.from_outcome(outcome, _now(), debug=options.debug)


@router.post(
    "/similar/batch",
    response_model=BatchSimilarTicketsResponse,
    summary="Find similar tickets for several tickets",
    description="Runs one search per ticket in order. Failures are reported per ticket."
)
async def find_similar_tickets_batch(
    payload: BatchSimilarTicketRequest,
    options: SearchOptions = Depends(get_search_options),
    service: SimilaritySearchService = Depends(get_similarity_service)
):
    tickets = [ticket.to_ticket_input() for ticket in payload.tickets]
    outcomes = await service.search_batch(tickets, options)

    items = []
    for item in outcomes:
        if item["success"]:
            items.append(BatchItemResponse(
                input_ticket=item["input_ticket"],
                success=True,
                result=SimilarTicketsResponse.from_outcome(item["outcome"], _now(), debug=options.debug)
            ))
        else:
            items.append(BatchItemResponse(
                input_ticket=item["input_ticket"],
                success=False,
                error=item["error"].message
            ))

    successful = sum(1 for item in items if item.success)
    return BatchSimilarTicketsResponse(
        message=f"Processed {len(items)} tickets in batch",
        batch_results=items,
        total_processed=len(items),
        successful=successful,
        failed=len(items) - successful
    )


@router.get(
    "/similarity/health",
    response_model=HealthResponse,
    summary="Similarity service health",
    responses={503: {"description": "A collaborator is unavailable"}}
)
async def check_health(service: SimilaritySearchService = Depends(get_similarity_service)):
    health = await service.health_check()
    status_code = status.HTTP_200_OK if health["status"] == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=HealthResponse(**health).model_dump())


@router.get(
    "/similarity/capabilities",
    response_model=CapabilitiesResponse,
    summary="Describe the similarity configuration"
)
async def get_capabilities(service: SimilaritySearchService = Depends(get_similarity_service)):
    return CapabilitiesResponse(**service.get_capabilities())


# Export router for inclusion in main app
similarity_router = router
