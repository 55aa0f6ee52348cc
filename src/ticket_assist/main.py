"""
Ticket Assist - Main Application
================================

Support-ticket assistant backend: similarity search over historical tickets.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, scoring and ranking
- Infrastructure: LLM / embedding provider, Milvus vector store
"""

from contextlib import asynccontextmanager
from functools import partial
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from ticket_assist.config import Settings, settings as default_settings
from ticket_assist.core import ApplicationException
from ticket_assist.shared.api.middleware import (
    CorrelationIDMiddleware,
    MetricsMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
    request_validation_exception_handler,
)
from ticket_assist.shared.infrastructure.grafana import init_grafana_exporter
from ticket_assist.shared.infrastructure.logging import setup_logging, get_logger
from ticket_assist.similarity.application import SimilaritySearchService
from ticket_assist.similarity.application.services import ClientFactory
from ticket_assist.similarity.infrastructure import build_similarity_clients
from ticket_assist.similarity.interfaces import similarity_router

logger = get_logger(__name__)


def create_app(
    client_factory: Optional[ClientFactory] = None,
    config: Optional[Settings] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        client_factory: Builds the search collaborators; defaults to the
            configured LLM provider and Milvus
        config: Settings to use instead of the environment-loaded ones
    """
    config = config or default_settings
    factory = client_factory or partial(build_similarity_clients, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        Application lifespan manager.

        STARTUP:
        1. Setup structured logging
        2. Initialize Grafana exporter (optional)
        3. Warm up the similarity service

        A failed initialization does not stop the server; the service retries
        on the next request.
        """
        setup_logging(config.log_level, config.environment)
        logger.info("Starting Ticket Assist", extra={
            "version": config.app_version,
            "environment": config.environment
        })

        if config.grafana_host and config.grafana_api_key and config.grafana_instance_id:
            init_grafana_exporter(
                host=config.grafana_host,
                api_key=config.grafana_api_key,
                instance_id=config.grafana_instance_id,
                config=config
            )

        service = app.state.similarity_service
        try:
            await service.initialize()
        except ApplicationException as e:
            logger.warning(f"Similarity service not initialized - running in degraded mode: {e.message}")

        logger.info("Ticket Assist started")

        yield  # Application runs here

        logger.info("Ticket Assist shutdown complete")

    app = FastAPI(
        title="Ticket Assist API",
        description="""
    ## Ticket Similarity Search

    Finds historical support tickets related to a new one and returns a
    ranked, filtered and explainable result set.

    **Endpoints:**
    - `POST /tickets/similar` - Find similar tickets
    - `POST /tickets/similar/batch` - Batch similarity search
    - `GET /tickets/similarity/health` - Collaborator health
    - `GET /tickets/similarity/capabilities` - Scoring configuration

    **Scoring:** confidence = 70% semantic similarity (vector store) +
    30% weighted field agreement (Jaccard on descriptions, exact match on
    category and source).
    """,
        version=config.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.similarity_service = SimilaritySearchService(factory, config)

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(similarity_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Liveness check with the similarity service state."""
        service = getattr(request.app.state, "similarity_service", None)
        return {
            "status": "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "checks": {
                "similarity_service": service.state.value if service else "not_created"
            }
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Ticket Assist",
            "version": config.app_version,
            "docs": "/docs",
            "health": "/health",
            "endpoints": [
                "POST /tickets/similar - Find similar tickets",
                "POST /tickets/similar/batch - Batch similarity search",
                "GET /tickets/similarity/health - Similarity health",
                "GET /tickets/similarity/capabilities - Scoring configuration"
            ]
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticket_assist.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.environment == "development",
        log_level="info"
    )
