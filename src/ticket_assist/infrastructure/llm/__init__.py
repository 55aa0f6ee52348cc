"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (Z.AI, OpenAI) providing a clean interface for the
two operations the similarity engine needs: text embeddings and chat
completions.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the application layer depends on
abstractions, not concrete implementations.
"""

import asyncio
import hashlib
import json
import math
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from openai import AsyncOpenAI
from zai import ZaiClient

from ticket_assist.config import Settings, settings as default_settings
from ticket_assist.core import LLMException, EmbeddingException, ConfigurationException
from ticket_assist.shared.infrastructure.grafana import get_grafana_exporter


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


# ========== JSON response parsing ==========

@dataclass(frozen=True)
class ParsedResponse:
    """LLM output that decoded to a JSON object."""
    data: dict


@dataclass(frozen=True)
class MalformedResponse:
    """LLM output that could not be decoded; the raw text is kept."""
    raw_text: str


LLMJsonResult = Union[ParsedResponse, MalformedResponse]

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def parse_llm_json(text: Optional[str]) -> LLMJsonResult:
    """
    Decode a JSON object from LLM output.

    Tries, in order and once each: the whole text, the first fenced code
    block, and the span between the first ``{`` and the last ``}``.
    """
    raw = text or ""
    candidates = [raw.strip()]

    fenced = _FENCED_BLOCK.search(raw)
    if fenced:
        candidates.append(fenced.group(1).strip())

    start, end = raw.find("{"), raw.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw[start:end + 1])

    for candidate in candidates:
        if not candidate:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return ParsedResponse(data)

    return MalformedResponse(raw)


# ========== Clients ==========

class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    provider: str = "unknown"

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.1,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


async def _export_metrics(result: ChatCompletionResult, operation: str) -> None:
    exporter = get_grafana_exporter()
    if exporter and exporter.is_enabled():
        await exporter.export_llm_metrics(
            model=result.model,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
            latency_ms=result.latency_ms,
            operation=operation
        )


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    The SDK is synchronous, so calls run in a worker thread to keep the
    event loop free for concurrent searches.
    """

    provider = "zai"

    def __init__(self, api_key: Optional[str] = None, config: Optional[Settings] = None):
        config = config or default_settings
        self._api_key = api_key or config.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = config.llm_model
        self._embedding_model = config.embedding_model
        self._dimension = config.vector_db.vector_size

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using Z.AI embedding model.

        Raises:
            EmbeddingException: If embedding generation fails
        """
        try:
            response = await asyncio.to_thread(
                self._client.embeddings.create,
                model=self._embedding_model,
                input=text,
                dimensions=self._dimension
            )
            embedding = list(response.data[0].embedding)
        except Exception as e:
            raise EmbeddingException(f"Embedding generation failed: {e}")

        return EmbeddingResult(embedding=embedding, model=self._embedding_model)

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.1,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using GLM.

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            raise LLMException(f"Chat completion failed: {e}")

        usage = getattr(response, "usage", None)
        result = ChatCompletionResult(
            content=content,
            model=self._model,
            # Z.AI may omit token usage, fall back to a size estimate
            prompt_tokens=getattr(usage, "prompt_tokens", None) or len(str(messages)),
            completion_tokens=getattr(usage, "completion_tokens", None) or len(content),
            latency_ms=int((time.perf_counter() - start_time) * 1000)
        )
        await _export_metrics(result, operation)
        return result


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models.

    Provides async wrapper around OpenAI SDK operations.
    """

    provider = "openai"

    def __init__(self, api_key: Optional[str] = None, config: Optional[Settings] = None):
        config = config or default_settings
        self._api_key = api_key or config.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        # Deadlines and retries are applied by the caller
        self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)
        self._model = config.llm_model
        self._embedding_model = config.embedding_model
        self._dimension = config.vector_db.vector_size

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using OpenAI embedding model.

        Raises:
            EmbeddingException: If embedding generation fails
        """
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text,
                dimensions=self._dimension
            )
            embedding = list(response.data[0].embedding)
        except Exception as e:
            raise EmbeddingException(f"Embedding generation failed: {e}")

        return EmbeddingResult(embedding=embedding, model=self._embedding_model)

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.1,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
            result = ChatCompletionResult(
                content=response.choices[0].message.content or "",
                model=self._model,
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                latency_ms=int((time.perf_counter() - start_time) * 1000)
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {e}")

        await _export_metrics(result, operation)
        return result


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local development and tests.

    Embeddings are deterministic feature-hashed bag-of-words vectors, so
    texts sharing vocabulary land close to each other without any API call.
    """

    provider = "mock"

    def __init__(self, dimension: Optional[int] = None):
        self._dimension = dimension or default_settings.vector_db.vector_size

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        vector = [0.0] * self._dimension
        for token in text.lower().split():
            digest = hashlib.sha256(token.encode()).digest()
            index = int.from_bytes(digest[:4], "big") % self._dimension
            vector[index] += 1.0 if digest[4] % 2 == 0 else -1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm:
            vector = [v / norm for v in vector]
        return EmbeddingResult(embedding=vector, model="mock-embedding")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.1,
        max_tokens: int = 800,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return a canned explanation in the expected JSON shape."""
        mock_response: dict[str, Any] = {
            "summary": "Mock: the tickets describe the same symptom in the same category.",
            "key_similarities": [
                "Matching problem description",
                "Same category and source system"
            ]
        }
        content = f"```json\n{json.dumps(mock_response, indent=2)}\n```"

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=0
        )


def create_llm_client(config: Optional[Settings] = None) -> ILLMClient:
    """
    Build the LLM client selected by ``llm_provider``.

    Raises:
        ConfigurationException: If the provider's API key is missing
    """
    config = config or default_settings
    if config.llm_provider == "mock":
        return MockLLMClient(config.vector_db.vector_size)
    if config.llm_provider == "openai":
        return OpenAILLMClient(config=config)
    return ZAIILLMClient(config=config)
