"""Tests for the Milvus vector store."""
from unittest.mock import MagicMock, patch

import pytest

from ticket_assist.core import VectorStoreException
from ticket_assist.infrastructure.vectorstore import MilvusVectorStore, SearchHit


@pytest.fixture
def milvus():
    with patch("ticket_assist.infrastructure.vectorstore.MilvusClient") as client_cls:
        yield client_cls


@pytest.fixture
def store(milvus, config):
    return MilvusVectorStore(uri="http://milvus:19530", token="secret", config=config)


class TestMilvusVectorStore:
    """MilvusClient calls and projection of raw results."""

    @pytest.mark.asyncio
    async def test_client_is_created_lazily_once(self, milvus, store):
        milvus.return_value.get_collection_stats.return_value = {"row_count": 1}

        milvus.assert_not_called()
        await store.count("rcaresolved")
        await store.count("rcaresolved")

        milvus.assert_called_once_with(uri="http://milvus:19530", token="secret")

    @pytest.mark.asyncio
    async def test_ensure_collection_creates_when_missing(self, milvus, store):
        client = milvus.return_value
        client.has_collection.return_value = False

        created = await store.ensure_collection("rcaresolved", 768, "COSINE")

        assert created is True
        client.create_collection.assert_called_once_with(
            collection_name="rcaresolved", dimension=768, metric_type="COSINE"
        )

    @pytest.mark.asyncio
    async def test_ensure_collection_skips_existing(self, milvus, store):
        client = milvus.return_value
        client.has_collection.return_value = True

        created = await store.ensure_collection("rcaresolved", 768, "COSINE")

        assert created is False
        client.create_collection.assert_not_called()

    @pytest.mark.asyncio
    async def test_ensure_collection_wraps_errors(self, milvus, store):
        milvus.return_value.has_collection.side_effect = RuntimeError("connection reset")

        with pytest.raises(VectorStoreException) as exc_info:
            await store.ensure_collection("rcaresolved", 768, "COSINE")

        assert "connection reset" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_search_projects_hits(self, milvus, store):
        client = milvus.return_value
        client.search.return_value = [[
            {"id": 7, "distance": 0.91, "entity": {"ticket_id": "INC7", "category": "Email", "vector": [0.1, 0.2]}},
            {"id": 8, "distance": 0.55},
        ]]

        hits = await store.search("rcaresolved", [0.3, 0.4], 20)

        assert hits == [
            SearchHit(score=0.91, payload={"ticket_id": "INC7", "category": "Email"}, id=7),
            SearchHit(score=0.55, payload={}, id=8),
        ]
        client.search.assert_called_once_with(
            collection_name="rcaresolved", data=[[0.3, 0.4]], limit=20, output_fields=["*"]
        )

    @pytest.mark.asyncio
    async def test_search_does_not_mutate_stored_entity(self, milvus, store):
        entity = {"ticket_id": "INC7", "vector": [0.1]}
        milvus.return_value.search.return_value = [[{"id": 7, "distance": 0.9, "entity": entity}]]

        await store.search("rcaresolved", [0.3], 5)

        assert "vector" in entity

    @pytest.mark.asyncio
    async def test_search_with_no_results(self, milvus, store):
        milvus.return_value.search.return_value = []

        assert await store.search("rcaresolved", [0.3], 5) == []

    @pytest.mark.asyncio
    async def test_search_wraps_errors(self, milvus, store):
        milvus.return_value.search.side_effect = RuntimeError("dimension mismatch")

        with pytest.raises(VectorStoreException) as exc_info:
            await store.search("rcaresolved", [0.3], 5)

        assert exc_info.value.details == {"collection": "rcaresolved"}

    @pytest.mark.asyncio
    async def test_count(self, milvus, store):
        milvus.return_value.get_collection_stats.return_value = {"row_count": "42"}

        assert await store.count("rcaresolved") == 42
        milvus.return_value.get_collection_stats.assert_called_once_with("rcaresolved")

    @pytest.mark.asyncio
    async def test_connection_failure(self, milvus, store):
        milvus.side_effect = RuntimeError("unreachable")

        with pytest.raises(VectorStoreException) as exc_info:
            await store.count("rcaresolved")

        assert "Failed to connect to Milvus" in exc_info.value.message
