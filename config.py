"""
Configuration settings for the ceprep ingestion pipeline.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///ceprep.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level written to stderr",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (rotated at 10 MB)",
    )

    # ========================================
    # AI Content Generation (Gemini)
    # ========================================
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key for flashcard generation",
    )
    ai_model: str = Field(
        default="gemini-1.5-pro",
        description="Primary model for flashcard generation",
    )
    ai_fallback_model: str = Field(
        default="gemini-1.5-flash",
        description="Cheaper model tried once when the primary times out or hits quota",
    )
    ai_temperature: float = Field(default=0.3, ge=0.0, le=2.0)

    # ========================================
    # Embeddings (sentence-transformers)
    # ========================================
    embedding_enabled: bool = Field(
        default=False,
        description="Attach vector embeddings to content chunks during import",
    )
    embedding_model: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence transformer model name",
    )

    # ========================================
    # Import Pipeline
    # ========================================
    chunk_target_tokens: int = Field(
        default=600,
        description="Token target at which a content chunk is closed",
    )
    chunk_overlap_sentences: int = Field(
        default=2,
        description="Sentences carried from a closed chunk into the next one",
    )
    import_flashcard_limit: int = Field(
        default=100,
        description="Maximum marker-pattern flashcards created per import",
    )
    system_user_id: str = Field(
        default="system",
        description="Owner of flashcards created during import",
    )

    # ========================================
    # Lesson Checkpoints
    # ========================================
    reading_tokens_per_minute: int = Field(default=180)
    reading_gate_cap_minutes: int = Field(default=2)
    microquiz_max_questions: int = Field(default=8)
    quiz_passing_score: int = Field(default=70, ge=0, le=100)
    reflection_min_chars: int = Field(default=50)

    # ========================================
    # Flashcards (SM-2)
    # ========================================
    flashcard_default_ease: float = Field(default=2.5)
    flashcard_max_generated: int = Field(
        default=60,
        description="Default cap for AI-generated flashcards per request",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
