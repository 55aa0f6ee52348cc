"""Shared fakes and fixtures for the similarity tests."""
import asyncio
from typing import List, Optional
from unittest.mock import MagicMock

import pytest

from ticket_assist.config import Settings
from ticket_assist.infrastructure.vectorstore import SearchHit
from ticket_assist.similarity.application.services import (
    IEmbeddingProvider,
    ITextGenerator,
    IVectorStoreClient,
    SimilarityClients,
    SimilaritySearchService,
)


QUERY_TICKET = {
    "ticket_id": "INC0012345",
    "source": "ServiceNow",
    "short_description": "email not sending",
    "description": "Outlook fails to send emails with timeout error",
    "category": "Email",
}


class FakeEmbeddingProvider(IEmbeddingProvider):
    def __init__(self, vector: Optional[List[float]] = None, error: Optional[Exception] = None):
        self.vector = vector or [0.1] * 8
        self.error = error
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error:
            raise self.error
        return list(self.vector)


class FakeVectorStore(IVectorStoreClient):
    def __init__(self, hits: Optional[List[SearchHit]] = None, error: Optional[Exception] = None):
        self.hits = hits or []
        self.error = error
        self.ensure_calls = []
        self.search_calls = []

    async def ensure_collection(self, name: str, dimension: int, metric_type: str) -> bool:
        # yield so concurrent initializers really interleave
        await asyncio.sleep(0)
        self.ensure_calls.append((name, dimension, metric_type))
        return True

    async def search(self, name: str, vector: List[float], top_k: int) -> List[SearchHit]:
        self.search_calls.append((name, vector, top_k))
        if self.error:
            raise self.error
        return list(self.hits)

    async def count(self, name: str) -> int:
        if self.error:
            raise self.error
        return len(self.hits)


class FakeTextGenerator(ITextGenerator):
    def __init__(self, response: str = "", error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.prompts.append((prompt, system_prompt))
        if self.error:
            raise self.error
        return self.response


def make_hit(score: float, **payload) -> SearchHit:
    """Stored ticket hit; unspecified similarity fields copy the query ticket."""
    data = {
        "source": QUERY_TICKET["source"],
        "short_description": QUERY_TICKET["short_description"],
        "description": QUERY_TICKET["description"],
        "category": QUERY_TICKET["category"],
        "status": "Resolved",
    }
    data.update(payload)
    return SearchHit(score=score, payload=data, id=data.get("ticket_id"))


@pytest.fixture
def config():
    return Settings(_env_file=None, llm_provider="mock", environment="development")


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def text_generator():
    return FakeTextGenerator(
        '{"summary": "Both tickets report Outlook send timeouts.", '
        '"key_similarities": ["Outlook send failure", "Timeout error"]}'
    )


@pytest.fixture
def clients(embedding_provider, vector_store, text_generator):
    return SimilarityClients(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        text_generator=text_generator,
        provider_name="fake",
    )


@pytest.fixture
def client_factory(clients):
    return MagicMock(return_value=clients)


@pytest.fixture
def service(client_factory, config):
    return SimilaritySearchService(client_factory, config)
