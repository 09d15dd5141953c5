"""
Sentence-based chunker for lesson content.

Splits lesson markdown into overlapping, token-bounded passages for
retrieval. A chunk is closed when the next sentence would push it past
the token target; the last two sentences of the closed chunk seed the
next one so context carries across the boundary.

Token counts use the 4-characters-per-token estimate throughout.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from config import get_settings
from ceprep.content.sections import strip_quiz_sections
from ceprep.errors import EmbeddingUnavailable

if TYPE_CHECKING:
    from ceprep.db.storage import Storage

SENTENCE_BOUNDARY = re.compile(r"((?<=[.!?])\s+)")
HEADING_LINE = re.compile(r"^#+\s+(.+)$", re.MULTILINE)
PAGE_REF = re.compile(r"Page\s+(\d+)", re.IGNORECASE)


def estimate_tokens(text: str) -> int:
    """Rough estimate: 1 token per 4 characters."""
    return math.ceil(len(text) / 4)


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


@dataclass
class ContentChunk:
    """A retrieval passage cut from one lesson."""

    lesson_id: str
    text: str
    token_count: int = 0
    headings: list[str] = field(default_factory=list)
    page_ref: int | None = None
    embedding: list[float] | None = None

    def __post_init__(self):
        """Derive token count, headings and page reference from the text."""
        self.token_count = estimate_tokens(self.text)
        if not self.headings:
            self.headings = [m.group(1).strip() for m in HEADING_LINE.finditer(self.text)]
        if self.page_ref is None:
            match = PAGE_REF.search(self.text)
            self.page_ref = int(match.group(1)) if match else None


class ContentChunker:
    """
    Split lesson text into overlapping chunks, optionally embedding each one.

    Example:
        >>> chunker = ContentChunker(target_tokens=600)
        >>> chunks = chunker.chunk(lesson.content)
    """

    def __init__(
        self,
        embedder: Embedder | None = None,
        target_tokens: int | None = None,
        overlap_sentences: int | None = None,
    ):
        settings = get_settings()
        self.embedder = embedder
        self.target_tokens = target_tokens or settings.chunk_target_tokens
        self.overlap_sentences = (
            overlap_sentences if overlap_sentences is not None else settings.chunk_overlap_sentences
        )

    def chunk(self, text: str, lesson_id: str = "") -> list[ContentChunk]:
        """Split text into chunks (no embeddings)."""
        return [ContentChunk(lesson_id=lesson_id, text=t) for t in self.split(text)]

    def split(self, text: str) -> list[str]:
        """Return chunk texts. Separators between sentences are kept verbatim."""
        if not text or not text.strip():
            return []

        sentences = self._sentences(text)
        chunks: list[str] = []
        current: list[tuple[str, str]] = []
        current_tokens = 0

        for sentence, sep in sentences:
            sentence_tokens = estimate_tokens(sentence)
            if current and current_tokens + sentence_tokens > self.target_tokens:
                chunks.append(self._render(current))
                carried = current[-self.overlap_sentences :] if self.overlap_sentences else []
                current = carried + [(sentence, sep)]
                current_tokens = estimate_tokens(self._render(current))
            else:
                current.append((sentence, sep))
                current_tokens += sentence_tokens

        if current:
            chunks.append(self._render(current))
        return [c for c in chunks if c]

    def chunk_lesson(self, lesson_id: str, content: str) -> list[ContentChunk]:
        """Chunk a lesson, without its quiz sections, and attach embeddings where the embedder allows."""
        chunks = self.chunk(strip_quiz_sections(content), lesson_id=lesson_id)
        if self.embedder is not None:
            for chunk in chunks:
                chunk.embedding = self._embed(chunk.text)
        return chunks

    def save_chunks(self, storage: Storage, lesson_id: str, chunks: list[ContentChunk]) -> int:
        """Replace the lesson's stored chunks with these."""
        saved = storage.replace_chunks(lesson_id, chunks)
        logger.debug(f"Saved {saved} chunks for lesson {lesson_id}")
        return saved

    def _embed(self, text: str) -> list[float] | None:
        try:
            vector = self.embedder.embed(text)
            if not vector:
                raise EmbeddingUnavailable("empty embedding returned")
            return list(vector)
        except Exception as e:  # Embedding is optional - any failure leaves the chunk unembedded
            logger.warning(f"Failed to generate embedding: {e}")
            return None

    @staticmethod
    def _sentences(text: str) -> list[tuple[str, str]]:
        parts = SENTENCE_BOUNDARY.split(text.strip())
        # re.split with a capture group alternates sentence, separator, sentence, ...
        pairs = []
        for i in range(0, len(parts), 2):
            sep = parts[i + 1] if i + 1 < len(parts) else ""
            if parts[i]:
                pairs.append((parts[i], sep))
        return pairs

    @staticmethod
    def _render(sentences: list[tuple[str, str]]) -> str:
        return "".join(s + sep for s, sep in sentences).strip()
