"""
Infrastructure Layer
=====================

Clients for the external collaborators of the similarity engine:
- LLM / embedding providers
- Milvus vector store
"""
