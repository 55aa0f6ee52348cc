"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import List, Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationException(ApplicationException):
    """
    Exception for input validation errors.

    Carries every violation found, not only the first one.
    """

    def __init__(self, errors: List[str], details: Optional[dict] = None):
        self.errors = list(errors)
        super().__init__(
            f"Validation failed: {', '.join(self.errors)}",
            details or {"errors": self.errors}
        )


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class InitializationException(ApplicationException):
    """
    Exception when backing clients or the vector collection cannot be set up.

    The caller may retry; the service stays uninitialized after this error.
    """


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Exception for LLM API failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class EmbeddingException(ExternalServiceException):
    """Exception for embedding generation failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Embedding Provider", message, details)


class VectorStoreException(ExternalServiceException):
    """Exception for vector store failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Vector Store", message, details)


class ExplanationException(ApplicationException):
    """Exception raised while generating a similarity explanation."""
