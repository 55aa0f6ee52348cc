"""
Similarity Application Services
================================

Orchestrates the similarity search pipeline:

    query ticket -> weighted text -> embedding -> nearest neighbours
        -> field similarity + score fusion -> filter & rank -> (explanation)

The service object is built once per process and shared by all requests.
Its only mutable state is the lazily acquired collaborator handles, which
are set exactly once under a lock and read-only afterwards.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ticket_assist.config import (
    Settings,
    REQUIRED_FIELDS,
    OPTIONAL_FIELDS,
    SIMILARITY_FIELDS,
    settings as default_settings,
)
from ticket_assist.core import (
    ApplicationException,
    ExplanationException,
    InitializationException,
    ValidationException,
)
from ticket_assist.infrastructure.llm import MalformedResponse, parse_llm_json
from ticket_assist.shared.infrastructure.grafana import get_grafana_exporter
from ticket_assist.shared.infrastructure.logging import get_logger, log_latency
from ticket_assist.similarity.domain import (
    Explanation,
    ExplanationPromptBuilder,
    SearchOptions,
    SearchOutcome,
    SimilarityResult,
    Ticket,
    calculate_field_similarity,
    clamp,
    encode_ticket,
    filter_and_rank,
    fuse_scores,
)

logger = get_logger(__name__)

TicketInput = Union[Ticket, Mapping[str, Any]]


# ========== Collaborator Interfaces ==========

class IEmbeddingProvider(ABC):
    """Turns text into a fixed-length vector."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed a single text."""


class IVectorStoreClient(ABC):
    """Nearest-neighbour lookup over stored ticket vectors."""

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int, metric_type: str) -> bool:
        """Create the collection if absent."""

    @abstractmethod
    async def search(self, name: str, vector: List[float], top_k: int) -> List[Any]:
        """Return hits exposing ``score`` and ``payload``, best first."""

    @abstractmethod
    async def count(self, name: str) -> int:
        """Number of stored vectors."""


class ITextGenerator(ABC):
    """LLM text generation used for explanations."""

    @abstractmethod
    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Generate text for a prompt."""


@dataclass
class SimilarityClients:
    """Collaborator handles acquired during initialization."""
    embedding_provider: IEmbeddingProvider
    vector_store: IVectorStoreClient
    text_generator: Optional[ITextGenerator] = None
    provider_name: str = "unknown"


ClientFactory = Callable[[], SimilarityClients]


class ServiceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


# ========== Input handling ==========

def _as_dict(ticket: TicketInput) -> Dict[str, Any]:
    if isinstance(ticket, Ticket):
        return ticket.to_dict()
    return dict(ticket)


def validate_ticket_input(ticket: TicketInput, config: Optional[Settings] = None) -> List[str]:
    """
    Check a query ticket and return every violation found.

    An empty list means the ticket is valid.
    """
    config = config or default_settings
    data = _as_dict(ticket)
    errors: List[str] = []

    for name in REQUIRED_FIELDS:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors.append(f"Field '{name}' is required")
        elif not isinstance(value, str):
            errors.append(f"Field '{name}' must be a string")

    for name in OPTIONAL_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            errors.append(f"Field '{name}' must be a string")

    for name, limit in config.validation.text_limits().items():
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            continue
        length = len(value.strip())
        if length < limit.min:
            errors.append(f"{name} must be at least {limit.min} characters")
        if length > limit.max:
            errors.append(f"{name} must be no more than {limit.max} characters")

    return errors


def preprocess_ticket(ticket: TicketInput) -> Ticket:
    """Trim the similarity fields of a validated query ticket."""
    data = _as_dict(ticket)
    for name in SIMILARITY_FIELDS:
        if isinstance(data.get(name), str):
            data[name] = data[name].strip()
    return Ticket.from_mapping(data)


# ========== Application Service ==========

class SimilaritySearchService:
    """
    Finds historical tickets similar to a new one.

    ``initialize`` is idempotent and safe under concurrency: concurrent
    first callers wait on one lock and only the first one acquires the
    clients and creates the collection. A failed initialization leaves the
    service uninitialized so the next call retries.
    """

    def __init__(self, client_factory: ClientFactory, config: Optional[Settings] = None):
        self._client_factory = client_factory
        self._config = config or default_settings
        self._clients: Optional[SimilarityClients] = None
        self._state = ServiceState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ServiceState.READY

    async def initialize(self) -> None:
        """
        Acquire collaborator handles and make sure the collection exists.

        Raises:
            InitializationException: If any step fails
        """
        if self.is_ready:
            return

        async with self._init_lock:
            if self.is_ready:
                return

            vector_db = self._config.vector_db
            logger.info("Initializing similarity search service", extra={
                "collection": vector_db.collection_name,
                "vector_size": vector_db.vector_size,
                "field_weight_total": round(self._config.text_processing.field_weights.total, 4)
            })

            try:
                clients = self._client_factory()
                await clients.vector_store.ensure_collection(
                    vector_db.collection_name,
                    vector_db.vector_size,
                    vector_db.metric_type
                )
            except ApplicationException as e:
                logger.error("Similarity search service initialization failed", extra={"error": e.message})
                raise InitializationException(
                    f"Failed to initialize similarity search: {e.message}",
                    {"cause": type(e).__name__}
                ) from e
            except Exception as e:
                logger.error("Similarity search service initialization failed", extra={"error": str(e)})
                raise InitializationException(
                    f"Failed to initialize similarity search: {e}",
                    {"cause": type(e).__name__}
                ) from e

            self._clients = clients
            self._state = ServiceState.READY
            logger.info("Similarity search service initialized", extra={
                "provider": clients.provider_name,
                "explanations_enabled": clients.text_generator is not None
            })

    async def _ready_clients(self) -> SimilarityClients:
        await self.initialize()
        return self._clients

    def _score_hit(self, query: Ticket, hit: Any) -> SimilarityResult:
        """Project a raw hit into a scored result; absent payload fields become None."""
        candidate = Ticket.from_mapping(hit.payload or {})
        semantic_score = clamp(hit.score)
        similarities = calculate_field_similarity(query, candidate)
        confidence = fuse_scores(
            similarities,
            semantic_score,
            self._config.text_processing.field_weights
        )
        return SimilarityResult(
            ticket=candidate,
            semantic_score=round(semantic_score, 2),
            field_similarities=similarities,
            confidence_score=round(confidence, 2),
        )

    async def search(
        self,
        query_ticket: TicketInput,
        options: Optional[SearchOptions] = None
    ) -> SearchOutcome:
        """
        Find tickets similar to ``query_ticket``.

        Raises:
            ValidationException: With every violation, before any external call
            InitializationException: If clients or the collection are unavailable
            ExternalServiceException: If embedding or vector search fails
        """
        options = options or SearchOptions()
        start_time = time.perf_counter()

        errors = validate_ticket_input(query_ticket, self._config)
        if errors:
            raise ValidationException(errors)

        query = preprocess_ticket(query_ticket)
        clients = await self._ready_clients()

        vector_db = self._config.vector_db
        text_processing = self._config.text_processing
        query_text = encode_ticket(
            query,
            text_processing.field_weights,
            text_processing.repeat_multiplier
        )
        logger.debug("Encoded query ticket", extra={"query_text_length": len(query_text)})

        with log_latency(logger, "embedding", text_length=len(query_text)):
            vector = await clients.embedding_provider.embed(query_text)

        with log_latency(logger, "vector_search", collection=vector_db.collection_name, top_k=vector_db.top_k):
            hits = await clients.vector_store.search(vector_db.collection_name, vector, vector_db.top_k)

        scored = [self._score_hit(query, hit) for hit in hits]
        response = self._config.response
        ranked = filter_and_rank(
            scored,
            query,
            response.min_confidence_score,
            options.business_rules,
            response.max_results
        )

        processing_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info("Similarity search finished", extra={
            "ticket_id": query.ticket_id,
            "candidates": len(hits),
            "total_results": len(ranked),
            "min_confidence": response.min_confidence_score,
            "processing_time_ms": processing_time_ms
        })

        exporter = get_grafana_exporter()
        if exporter and exporter.is_enabled():
            await exporter.export_search_metrics(processing_time_ms, len(hits), len(ranked))

        outcome = SearchOutcome(
            query=query,
            results=ranked,
            min_confidence_threshold=response.min_confidence_score,
            candidates_considered=len(hits),
            processing_time_ms=processing_time_ms,
            query_text_length=len(query_text),
        )

        if options.explain and ranked:
            outcome.explanation = await self.explain(query, ranked)

        return outcome

    async def explain(
        self,
        query_ticket: TicketInput,
        results: List[SimilarityResult]
    ) -> Optional[Explanation]:
        """
        Ask the LLM why the top results match the query.

        Best effort: any failure is logged and yields None, never an error.
        """
        if not results:
            return None

        query = query_ticket if isinstance(query_ticket, Ticket) else preprocess_ticket(query_ticket)

        try:
            clients = await self._ready_clients()
            if clients.text_generator is None:
                return None

            text = await asyncio.wait_for(
                clients.text_generator.generate(
                    ExplanationPromptBuilder.build_prompt(query, results),
                    ExplanationPromptBuilder.get_system_prompt()
                ),
                timeout=self._config.external_call_timeout_seconds
            )

            parsed = parse_llm_json(text)
            if isinstance(parsed, MalformedResponse):
                raise ExplanationException(
                    "LLM returned malformed explanation",
                    {"raw_preview": parsed.raw_text[:200]}
                )
            summary = parsed.data.get("summary")
            if not isinstance(summary, str) or not summary.strip():
                raise ExplanationException("Explanation has no summary")

            key_similarities = parsed.data.get("key_similarities") or []
            return Explanation(
                summary=summary.strip(),
                key_similarities=[str(item) for item in key_similarities if item]
            )
        except Exception as e:
            logger.warning("Similarity explanation unavailable", extra={
                "ticket_id": query.ticket_id,
                "error_type": type(e).__name__,
                "error": str(e)
            })
            return None

    async def search_batch(
        self,
        tickets: List[TicketInput],
        options: Optional[SearchOptions] = None
    ) -> List[Dict[str, Any]]:
        """Search for each ticket in turn, recording per-ticket failures."""
        outcomes: List[Dict[str, Any]] = []
        for ticket in tickets:
            try:
                outcome = await self.search(ticket, options)
            except ApplicationException as e:
                outcomes.append({"input_ticket": _as_dict(ticket), "success": False, "error": e})
                continue
            outcomes.append({"input_ticket": _as_dict(ticket), "success": True, "outcome": outcome})
        return outcomes

    async def health_check(self) -> Dict[str, Any]:
        """Check embedding and vector store. Never raises."""
        components: Dict[str, Any] = {}
        status = "healthy"
        try:
            clients = await self._ready_clients()
            await clients.embedding_provider.embed("test query")
            components["embeddings"] = "healthy"
            count = await clients.vector_store.count(self._config.vector_db.collection_name)
            components["vector_store"] = f"healthy ({count} documents)"
            components["llm"] = "healthy" if clients.text_generator else "not_initialized"
        except ApplicationException as e:
            status = "unhealthy"
            components["error"] = e.message
        except Exception as e:
            logger.error("Similarity health check failed", extra={
                "error_type": type(e).__name__,
                "error": str(e)
            })
            status = "unhealthy"
            components["error"] = f"{type(e).__name__}: {e}"

        return {
            "status": status,
            "state": self._state.value,
            "components": components,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    def get_capabilities(self) -> Dict[str, Any]:
        """Describe what the service accepts and how it scores."""
        config = self._config
        return {
            "supported_fields": REQUIRED_FIELDS + OPTIONAL_FIELDS,
            "required_fields": list(REQUIRED_FIELDS),
            "field_weights": config.text_processing.field_weights.as_dict(),
            "min_confidence_threshold": config.response.min_confidence_score,
            "max_results": config.response.max_results,
            "top_k": config.vector_db.top_k,
            "text_limits": {
                name: {"min": limit.min, "max": limit.max}
                for name, limit in config.validation.text_limits().items()
            },
            "provider": self._clients.provider_name if self._clients else config.llm_provider,
        }
