"""
Similarity Interfaces Layer
============================

Interface adapters (controllers) for the ticket similarity module.
"""

from ticket_assist.similarity.interfaces.controllers import similarity_router

__all__ = ["similarity_router"]
