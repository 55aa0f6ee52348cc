"""Tests for settings loading and validation."""
import pytest
from pydantic import ValidationError

from ticket_assist.config import FieldWeights, Settings, TextLimit, VectorDBSettings


class TestDefaults:
    def test_similarity_defaults(self):
        config = Settings(_env_file=None)

        assert config.vector_db.collection_name == "rcaresolved"
        assert config.vector_db.vector_size == 768
        assert config.vector_db.top_k == 20
        assert config.response.min_confidence_score == 0.7
        assert config.response.max_results == 5
        assert config.text_processing.field_weights.as_dict() == {
            "short_description": 0.35, "description": 0.35, "category": 0.20, "source": 0.10,
        }
        assert config.validation.short_description.min == 5
        assert config.validation.description.max == 5000

    def test_weights_total(self):
        assert FieldWeights().total == pytest.approx(1.0)


class TestEnvironment:
    """Nested settings from environment variables."""

    def test_nested_overrides(self, monkeypatch):
        monkeypatch.setenv("VECTOR_DB__TOP_K", "30")
        monkeypatch.setenv("RESPONSE__MIN_CONFIDENCE_SCORE", "0.8")
        monkeypatch.setenv("TEXT_PROCESSING__FIELD_WEIGHTS__CATEGORY", "0.25")

        config = Settings(_env_file=None)

        assert config.vector_db.top_k == 30
        assert config.response.min_confidence_score == 0.8
        assert config.text_processing.field_weights.category == 0.25
        assert config.text_processing.field_weights.source == 0.10

    def test_invalid_threshold_fails_fast(self, monkeypatch):
        monkeypatch.setenv("RESPONSE__MIN_CONFIDENCE_SCORE", "1.5")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestValidation:
    """Invalid configuration is rejected at load time."""

    def test_unknown_weight_field(self):
        with pytest.raises(ValidationError):
            FieldWeights(priority=0.1)

    def test_weight_out_of_range(self):
        with pytest.raises(ValidationError):
            FieldWeights(category=1.5)

    def test_metric_type(self):
        assert VectorDBSettings(metric_type="ip").metric_type == "IP"
        with pytest.raises(ValidationError):
            VectorDBSettings(metric_type="HAMMING")

    def test_text_limit_bounds(self):
        with pytest.raises(ValidationError):
            TextLimit(min=10, max=5)

    def test_llm_provider(self):
        assert Settings(_env_file=None, llm_provider="MOCK").llm_provider == "mock"
        with pytest.raises(ValidationError):
            Settings(_env_file=None, llm_provider="groq")

    def test_environment(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, environment="qa")
