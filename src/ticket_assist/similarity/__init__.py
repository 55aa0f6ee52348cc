"""
Similarity Module
=================

Bounded context for finding historical tickets related to a new one.

Responsibilities:
- Encode tickets into weighted text for embedding
- Retrieve nearest neighbours from the vector store
- Fuse semantic and field-level similarity into one confidence score
- Filter, rank and optionally explain the matches
"""

__version__ = "1.0.0"
