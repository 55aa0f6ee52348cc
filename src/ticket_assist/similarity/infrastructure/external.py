"""
Similarity External Service Adapters
=====================================

Adapters for external services (embedding provider, vector store, LLM) used
by the similarity module.

Implements the interfaces defined in the application layer on top of the
concrete infrastructure clients, adding a deadline to every call and a
bounded exponential-backoff retry for embedding and vector store calls.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, Type, TypeVar

from ticket_assist.config import Settings, settings as default_settings
from ticket_assist.core import (
    EmbeddingException,
    ExternalServiceException,
    LLMException,
    VectorStoreException,
)
from ticket_assist.infrastructure.llm import ILLMClient, create_llm_client
from ticket_assist.infrastructure.vectorstore import IVectorStore, MilvusVectorStore, SearchHit
from ticket_assist.shared.infrastructure.logging import get_logger
from ticket_assist.similarity.application.services import (
    IEmbeddingProvider,
    ITextGenerator,
    IVectorStoreClient,
    SimilarityClients,
)

logger = get_logger(__name__)

T = TypeVar("T")


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    timeout: float,
    max_retries: int,
    backoff: float,
    error_cls: Type[ExternalServiceException]
) -> T:
    """
    Await ``operation()`` with a deadline, retrying transient failures.

    Timeouts and ``ExternalServiceException`` are retried up to
    ``max_retries`` times, sleeping ``backoff * 2**attempt`` in between.
    Other exceptions propagate immediately.

    Raises:
        ExternalServiceException: The last failure once retries are exhausted
    """
    last_error: Optional[ExternalServiceException] = None

    for attempt in range(max_retries + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = error_cls(f"{name} timed out after {timeout}s", {"attempt": attempt + 1})
        except ExternalServiceException as e:
            last_error = e

        logger.warning(
            f"{name} failed",
            extra={
                "attempt": attempt + 1,
                "max_attempts": max_retries + 1,
                "error": last_error.message
            }
        )

        if attempt < max_retries:
            await asyncio.sleep(backoff * (2 ** attempt))

    raise last_error


class EmbeddingProviderAdapter(IEmbeddingProvider):
    """
    Adapter that wraps the infrastructure LLM client for embeddings.

    Implements the application layer IEmbeddingProvider interface.
    """

    def __init__(self, client: ILLMClient, config: Optional[Settings] = None):
        self._client = client
        self._config = config or default_settings

    async def embed(self, text: str) -> List[float]:
        result = await call_with_retry(
            lambda: self._client.generate_embedding(text),
            name="embedding",
            timeout=self._config.external_call_timeout_seconds,
            max_retries=self._config.external_call_max_retries,
            backoff=self._config.external_call_backoff_seconds,
            error_cls=EmbeddingException
        )
        if not result.embedding:
            raise EmbeddingException("Embedding provider returned an empty vector")
        expected = self._config.vector_db.vector_size
        if len(result.embedding) != expected:
            raise EmbeddingException(
                f"Embedding has {len(result.embedding)} dimensions, collection expects {expected}",
                {"model": result.model}
            )
        return result.embedding


class VectorStoreAdapter(IVectorStoreClient):
    """
    Adapter that wraps the infrastructure vector store.

    Implements the application layer IVectorStoreClient interface.
    """

    def __init__(self, store: IVectorStore, config: Optional[Settings] = None):
        self._store = store
        self._config = config or default_settings

    async def _call(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await call_with_retry(
            operation,
            name=name,
            timeout=self._config.external_call_timeout_seconds,
            max_retries=self._config.external_call_max_retries,
            backoff=self._config.external_call_backoff_seconds,
            error_cls=VectorStoreException
        )

    async def ensure_collection(self, name: str, dimension: int, metric_type: str) -> bool:
        return await self._call(
            "ensure_collection",
            lambda: self._store.ensure_collection(name, dimension, metric_type)
        )

    async def search(self, name: str, vector: List[float], top_k: int) -> List[SearchHit]:
        return await self._call("vector_search", lambda: self._store.search(name, vector, top_k))

    async def count(self, name: str) -> int:
        return await self._call("collection_count", lambda: self._store.count(name))


class LLMTextGenerator(ITextGenerator):
    """
    Adapter that wraps the infrastructure LLM client for explanations.

    Not retried: explanations are optional and callers degrade on failure.
    """

    def __init__(self, client: ILLMClient, config: Optional[Settings] = None):
        self._client = client
        self._config = config or default_settings

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = await self._client.chat_completion(
            messages=messages,
            temperature=self._config.llm_temperature,
            max_tokens=self._config.llm_max_tokens,
            operation="similarity_explanation"
        )
        if not response.content:
            raise LLMException("Empty completion")
        return response.content


def build_similarity_clients(config: Optional[Settings] = None) -> SimilarityClients:
    """
    Create the production collaborators from settings.

    Raises:
        ConfigurationException: If the selected LLM provider has no API key
    """
    config = config or default_settings
    llm_client = create_llm_client(config)

    return SimilarityClients(
        embedding_provider=EmbeddingProviderAdapter(llm_client, config),
        vector_store=VectorStoreAdapter(MilvusVectorStore(config=config), config),
        text_generator=LLMTextGenerator(llm_client, config),
        provider_name=llm_client.provider
    )
