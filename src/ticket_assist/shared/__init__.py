"""
Shared Kernel Module
====================

Shared infrastructure (logging, metrics, API middleware) used by the
similarity bounded context and the application entry point.

DO NOT add similarity business logic to the shared kernel.
"""

__version__ = "1.0.0"
