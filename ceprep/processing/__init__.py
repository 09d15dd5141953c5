"""
Processing: split lesson content into overlapping retrieval chunks.
"""

from .chunker import ContentChunk, ContentChunker, estimate_tokens

__all__ = ["ContentChunker", "ContentChunk", "estimate_tokens"]
