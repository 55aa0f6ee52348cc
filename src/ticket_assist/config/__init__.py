"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Settings are grouped into typed sections (vector store, response shaping,
text processing, validation) and validated when the process starts, so an
invalid weight or threshold fails fast instead of at the first search.

Nested values are read from the environment with a ``__`` delimiter, e.g.
``VECTOR_DB__TOP_K=30`` or ``TEXT_PROCESSING__FIELD_WEIGHTS__CATEGORY=0.25``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator, model_validator
from functools import lru_cache
from typing import Dict, List, Optional


# ========== Field names ==========

class TicketField:
    """Ticket fields that take part in similarity scoring."""
    SHORT_DESCRIPTION = "short_description"
    DESCRIPTION = "description"
    CATEGORY = "category"
    SOURCE = "source"


SIMILARITY_FIELDS = [
    TicketField.SHORT_DESCRIPTION,
    TicketField.DESCRIPTION,
    TicketField.CATEGORY,
    TicketField.SOURCE,
]
TEXT_FIELDS = [TicketField.SHORT_DESCRIPTION, TicketField.DESCRIPTION]
CATEGORICAL_FIELDS = [TicketField.CATEGORY, TicketField.SOURCE]

REQUIRED_FIELDS = [
    TicketField.SOURCE,
    TicketField.SHORT_DESCRIPTION,
    TicketField.DESCRIPTION,
    TicketField.CATEGORY,
]
OPTIONAL_FIELDS = ["ticket_id"]

RESULT_FIELDS = [
    "ticket_id", "source", "short_description", "description", "category",
    "subcategory", "status", "priority", "impact", "urgency",
    "opened_time", "closed_time", "resolved_time",
    "assigned_to", "assignment_group", "company", "location", "tags",
]


# ========== Settings sections ==========

class FieldWeights(BaseModel):
    """
    Per-field weights used for text encoding and score fusion.

    The set of fields is closed. Weights are independent scale factors and do
    not have to sum to 1, although they conventionally do.
    """
    short_description: float = Field(default=0.35, ge=0.0, le=1.0)
    description: float = Field(default=0.35, ge=0.0, le=1.0)
    category: float = Field(default=0.20, ge=0.0, le=1.0)
    source: float = Field(default=0.10, ge=0.0, le=1.0)

    model_config = {"extra": "forbid", "frozen": True}

    def items(self) -> List[tuple]:
        """Return (field, weight) pairs in declaration order."""
        return [(name, getattr(self, name)) for name in SIMILARITY_FIELDS]

    def as_dict(self) -> Dict[str, float]:
        return dict(self.items())

    @property
    def total(self) -> float:
        return sum(weight for _, weight in self.items())


class VectorDBSettings(BaseModel):
    """Vector store (Milvus / Zilliz Cloud) settings."""
    uri: str = Field(default="http://localhost:19530", description="Milvus URI")
    token: str = Field(default="", description="Milvus / Zilliz Cloud API token")
    collection_name: str = Field(default="rcaresolved", min_length=1)
    vector_size: int = Field(default=768, ge=1, description="Embedding dimension")
    top_k: int = Field(default=20, ge=1, le=1000, description="Candidate pool before filtering")
    metric_type: str = Field(default="COSINE", description="Distance metric for new collections")

    @field_validator("metric_type")
    @classmethod
    def validate_metric_type(cls, v: str) -> str:
        allowed = {"COSINE", "IP", "L2"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"metric_type must be one of {allowed}")
        return v


class ResponseSettings(BaseModel):
    """Shaping of the ranked result list."""
    min_confidence_score: float = Field(default=0.7, ge=0.0, le=1.0)
    max_results: int = Field(default=5, ge=1, le=100)


class TextProcessingSettings(BaseModel):
    """Weighted text encoding settings."""
    field_weights: FieldWeights = Field(default_factory=FieldWeights)
    repeat_multiplier: int = Field(default=10, ge=1)


class TextLimit(BaseModel):
    """Inclusive character length bounds for a text field."""
    min: int = Field(ge=0)
    max: int = Field(ge=1)

    @model_validator(mode="after")
    def check_bounds(self) -> "TextLimit":
        if self.min > self.max:
            raise ValueError("min must not exceed max")
        return self


class ValidationSettings(BaseModel):
    """Input validation limits for query tickets."""
    short_description: TextLimit = Field(default_factory=lambda: TextLimit(min=5, max=500))
    description: TextLimit = Field(default_factory=lambda: TextLimit(min=10, max=5000))

    def text_limits(self) -> Dict[str, TextLimit]:
        return {
            TicketField.SHORT_DESCRIPTION: self.short_description,
            TicketField.DESCRIPTION: self.description,
        }


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ticket-similarity-service", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Similarity engine ==========
    vector_db: VectorDBSettings = Field(default_factory=VectorDBSettings)
    response: ResponseSettings = Field(default_factory=ResponseSettings)
    text_processing: TextProcessingSettings = Field(default_factory=TextProcessingSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)

    # ========== External call resilience ==========
    external_call_timeout_seconds: float = Field(
        default=30.0,
        description="Deadline for a single embedding or vector store call",
        gt=0,
        le=300
    )
    external_call_max_retries: int = Field(
        default=2,
        description="Retries after the first failed attempt",
        ge=0,
        le=10
    )
    external_call_backoff_seconds: float = Field(
        default=0.5,
        description="Base delay for exponential backoff between retries",
        ge=0
    )

    # ========== LLM Settings ==========
    llm_provider: str = Field(
        default="zai",
        description="LLM / embedding provider: zai, openai or mock"
    )
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    llm_model: str = Field(default="glm-4.7", description="Model for explanations")
    embedding_model: str = Field(default="embedding-3", description="Embedding model")
    llm_temperature: float = Field(
        default=0.1,
        description="Low temperature keeps explanations consistent",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(default=800, ge=1, le=8000)

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(default=None, description="Grafana OTLP gateway URL")
    grafana_api_key: Optional[str] = Field(default=None, description="Grafana API key")
    grafana_instance_id: Optional[str] = Field(default=None, description="Grafana instance ID")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        allowed = {"zai", "openai", "mock"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
