"""Merge model: the append-only audit trail of node merges."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from disambiguator.models.base import Base
from disambiguator.models.enums import MergedBy


class Merge(Base):
    """Immutable record that one node was folded into another.

    Rows are inserted once by merge_nodes and never updated or deleted.
    comparison_id is a plain column so merge history survives the
    comparison being reopened and cancelled.
    """

    __tablename__ = "merges"

    merge_id: Mapped[UUID] = mapped_column(primary_key=True)

    absorbed_node: Mapped[str] = mapped_column(String(255), index=True)
    """The node that no longer stands alone."""

    canonical_node: Mapped[str] = mapped_column(String(255), index=True)
    """The node that remains."""

    comparison_id: Mapped[UUID] = mapped_column(index=True)
    """The Comparison that authorized this merge."""

    merged_by: Mapped[MergedBy] = mapped_column(default=MergedBy.USER)

    merged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
