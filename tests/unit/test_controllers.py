"""Tests for the similarity HTTP endpoints."""
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from ticket_assist.core import VectorStoreException
from ticket_assist.main import create_app

from tests.unit.conftest import QUERY_TICKET, make_hit


@pytest.fixture
def app(client_factory, config):
    return create_app(client_factory=client_factory, config=config)


@pytest.fixture
def http(app):
    with TestClient(app) as client:
        yield client


class TestFindSimilar:
    """POST /tickets/similar"""

    def test_success(self, http, vector_store):
        vector_store.hits = [
            make_hit(0.9, ticket_id="INC9", closed_time={"$date": "2024-02-02T09:00:00Z"}),
            make_hit(0.4, ticket_id="INC8"),
        ]

        response = http.post("/tickets/similar", json=QUERY_TICKET)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Found 1 similar tickets above 70% confidence"
        assert body["total_results"] == 1
        assert body["min_confidence_threshold"] == 0.7
        assert body["query"]["ticket_id"] == "INC0012345"
        result = body["results"][0]
        assert result["ticket_id"] == "INC9"
        assert result["rank"] == 1
        assert result["confidence_score"] == 0.93
        assert result["field_similarities"]["category"] == 1.0
        assert result["closed_time"] == "2024-02-02T09:00:00Z"
        assert result["assigned_to"] is None
        assert "processing_time_ms" in body["metadata"]
        assert body["explanation"] is None
        assert body["debug"] is None
        assert "X-Correlation-ID" in response.headers

    def test_validation_errors_are_listed(self, http, client_factory):
        response = http.post("/tickets/similar", json={"short_description": "abc", "category": "Email"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Validation failed"
        assert body["error"]["type"] == "ValidationException"
        assert set(body["error"]["errors"]) == {
            "Field 'source' is required",
            "Field 'description' is required",
            "short_description must be at least 5 characters",
        }

    def test_malformed_body(self, http):
        response = http.post("/tickets/similar", json=dict(QUERY_TICKET, category=42))

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert any(error.startswith("category") for error in body["error"]["errors"])

    def test_allow_list_with_no_match_is_success(self, http, vector_store):
        vector_store.hits = [make_hit(0.95, ticket_id="A")]

        response = http.post("/tickets/similar?allowed_categories=Network,Hardware", json=QUERY_TICKET)

        assert response.status_code == 200
        body = response.json()
        assert body["results"] == []
        assert body["message"] == "0 results found above threshold"

    def test_explain_and_debug(self, http, vector_store):
        vector_store.hits = [make_hit(0.95, ticket_id="A")]

        response = http.post("/tickets/similar?explain=true&debug=true", json=QUERY_TICKET)

        body = response.json()
        assert body["explanation"]["summary"] == "Both tickets report Outlook send timeouts."
        assert body["debug"]["candidates_considered"] == 1
        assert body["debug"]["query_text_length"] > 0

    def test_vector_store_failure(self, http, vector_store):
        vector_store.error = VectorStoreException("connection refused")

        response = http.post("/tickets/similar", json=QUERY_TICKET)

        assert response.status_code == 502
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Failed to find similar tickets"
        assert body["error"]["type"] == "VectorStoreException"

    def test_initialization_failure(self, config):
        app = create_app(client_factory=MagicMock(side_effect=RuntimeError("no milvus")), config=config)

        with TestClient(app) as client:
            response = client.post("/tickets/similar", json=QUERY_TICKET)

        assert response.status_code == 503
        assert response.json()["error"]["type"] == "InitializationException"


class TestBatch:
    """POST /tickets/similar/batch"""

    def test_mixed_batch(self, http, vector_store):
        vector_store.hits = [make_hit(0.95, ticket_id="A")]

        response = http.post("/tickets/similar/batch", json={"tickets": [QUERY_TICKET, {"category": "Email"}]})

        assert response.status_code == 200
        body = response.json()
        assert body["total_processed"] == 2
        assert body["successful"] == 1
        assert body["failed"] == 1
        assert body["batch_results"][0]["result"]["total_results"] == 1
        assert "Field 'source' is required" in body["batch_results"][1]["error"]

    def test_empty_batch_rejected(self, http):
        response = http.post("/tickets/similar/batch", json={"tickets": []})

        assert response.status_code == 400


class TestHealthAndCapabilities:
    def test_similarity_health(self, http, vector_store):
        vector_store.hits = [make_hit(0.9)]

        response = http.get("/tickets/similarity/health")

        assert response.status_code == 200
        assert response.json()["components"]["vector_store"] == "healthy (1 documents)"

    def test_similarity_health_unavailable(self, http, vector_store):
        vector_store.error = VectorStoreException("down")

        response = http.get("/tickets/similarity/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_capabilities(self, http):
        response = http.get("/tickets/similarity/capabilities")

        assert response.status_code == 200
        body = response.json()
        assert body["required_fields"] == ["source", "short_description", "description", "category"]
        assert body["top_k"] == 20

    def test_liveness(self, http):
        response = http.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["similarity_service"] == "ready"
