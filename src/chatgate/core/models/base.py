"""SQLAlchemy declarative base for all ORM models."""

from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Shared declarative base for all chatgate models."""

    # Native UUID on PostgreSQL, CHAR(32) on SQLite.
    type_annotation_map = {
        uuid.UUID: sa.Uuid(as_uuid=True),
    }
