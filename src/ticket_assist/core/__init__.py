"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from ticket_assist.core.exceptions import (
    ApplicationException,
    ValidationException,
    ConfigurationException,
    InitializationException,
    ExternalServiceException,
    LLMException,
    EmbeddingException,
    VectorStoreException,
    ExplanationException,
)

__all__ = [
    "ApplicationException",
    "ValidationException",
    "ConfigurationException",
    "InitializationException",
    "ExternalServiceException",
    "LLMException",
    "EmbeddingException",
    "VectorStoreException",
    "ExplanationException",
]
