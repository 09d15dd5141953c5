"""
Semantic: sentence-transformers embeddings for content chunks (all-MiniLM-L6-v2, 384-dim).
"""

from .embedding_service import EmbeddingService

__all__ = ["EmbeddingService"]
