"""Declarative base shared by all Disambiguator models."""

from typing import Any

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on PostgreSQL, plain JSON on every other backend
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSONType,
    }
