"""Declarative base and shared column helpers."""

from __future__ import annotations

import uuid

from sqlalchemy.orm import DeclarativeBase


def new_id() -> str:
    """Primary keys are uuid4 strings so SQLite and PostgreSQL share one schema."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass
