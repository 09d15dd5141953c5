"""Database layer: engine/session helpers, ORM models and the Storage repository."""
