"""
Embedding Service - vector embeddings for content chunks.

Uses sentence-transformers (all-MiniLM-L6-v2 by default, 384 dimensions).
The model is loaded on first use so imports and non-embedding imports of
a document stay fast.
"""

from __future__ import annotations

from loguru import logger

from config import get_settings
from ceprep.errors import EmbeddingUnavailable


class EmbeddingService:
    """
    Generate semantic embeddings for chunk text.

    Example:
        >>> service = EmbeddingService()
        >>> vector = service.embed("Balance billing is prohibited for HMO members.")
        >>> len(vector)  # 384
    """

    def __init__(self, model_name: str | None = None):
        settings = get_settings()
        self.model_name = model_name or settings.embedding_model
        self._model = None

    @property
    def model(self):
        """Lazy load the model on first use (downloaded from HuggingFace Hub on first run)."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, text: str) -> list[float]:
        """Embed one text. Raises EmbeddingUnavailable when the model cannot run."""
        if not text.strip():
            raise EmbeddingUnavailable("cannot embed empty text")
        try:
            vector = self.model.encode(text, convert_to_numpy=True)
        except Exception as e:  # Model download/inference errors surface as one type
            raise EmbeddingUnavailable(f"{self.model_name}: {e}") from e
        return vector.tolist()
