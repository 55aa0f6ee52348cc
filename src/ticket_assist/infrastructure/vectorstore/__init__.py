"""
Vector Store Infrastructure
============================

Milvus vector store implementation for nearest-neighbour ticket lookup.

The index itself is treated as an opaque oracle: given a vector it returns
the K closest stored tickets with a similarity score and their payload.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pymilvus import MilvusClient

from ticket_assist.config import Settings, settings as default_settings
from ticket_assist.core import VectorStoreException
from ticket_assist.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SearchHit:
    """One nearest neighbour returned by the vector store."""
    score: float
    payload: Dict[str, Any] = field(default_factory=dict)
    id: Optional[Any] = None


class IVectorStore(ABC):
    """
    Interface for vector store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int, metric_type: str = "COSINE") -> bool:
        """Create the collection if absent. Returns True when it was created."""

    @abstractmethod
    async def search(self, name: str, vector: List[float], top_k: int) -> List[SearchHit]:
        """Return the ``top_k`` nearest stored vectors, best first."""

    @abstractmethod
    async def count(self, name: str) -> int:
        """Number of entities stored in the collection."""


class MilvusVectorStore(IVectorStore):
    """
    Milvus / Zilliz Cloud implementation of the vector store.

    ``pymilvus.MilvusClient`` is synchronous; every call is pushed to a
    worker thread. The client itself is created lazily on first use.
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        token: Optional[str] = None,
        config: Optional[Settings] = None
    ):
        config = config or default_settings
        self._uri = uri or config.vector_db.uri
        self._token = token if token is not None else config.vector_db.token
        self._client: Optional[MilvusClient] = None

    def _get_client(self) -> MilvusClient:
        if self._client is None:
            try:
                self._client = MilvusClient(uri=self._uri, token=self._token)
            except Exception as e:
                raise VectorStoreException(f"Failed to connect to Milvus: {e}", {"uri": self._uri})
        return self._client

    async def ensure_collection(self, name: str, dimension: int, metric_type: str = "COSINE") -> bool:
        """
        Create the collection with the given dimension and metric if absent.

        Raises:
            VectorStoreException: If the check or creation fails
        """
        try:
            client = await asyncio.to_thread(self._get_client)
            if await asyncio.to_thread(client.has_collection, name):
                logger.info("Collection already exists", extra={"collection": name})
                return False

            logger.info(
                "Creating collection",
                extra={"collection": name, "dimension": dimension, "metric_type": metric_type}
            )
            await asyncio.to_thread(
                client.create_collection,
                collection_name=name,
                dimension=dimension,
                metric_type=metric_type
            )
            return True
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Failed to ensure collection '{name}': {e}")

    async def search(self, name: str, vector: List[float], top_k: int) -> List[SearchHit]:
        """
        Search for the nearest stored tickets.

        Raises:
            VectorStoreException: If search fails
        """
        try:
            client = await asyncio.to_thread(self._get_client)
            results = await asyncio.to_thread(
                client.search,
                collection_name=name,
                data=[vector],
                limit=top_k,
                output_fields=["*"]
            )
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Search failed: {e}", {"collection": name})

        hits: List[SearchHit] = []
        if results and len(results) > 0:
            for hit in results[0]:
                entity = dict(hit.get("entity") or {})
                entity.pop("vector", None)
                hits.append(SearchHit(
                    score=float(hit["distance"]),
                    payload=entity,
                    id=hit.get("id")
                ))
        return hits

    async def count(self, name: str) -> int:
        """
        Number of stored tickets.

        Raises:
            VectorStoreException: If the stats call fails
        """
        try:
            client = await asyncio.to_thread(self._get_client)
            stats = await asyncio.to_thread(client.get_collection_stats, name)
        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Failed to read collection stats: {e}")
        return int(stats.get("row_count", 0))
