"""Comparison model for node disambiguation attempts."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Float, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from disambiguator.models.base import Base
from disambiguator.models.enums import Confidence, UserDecision

# Attribute snapshot: arbitrary keys, scalar values (partial data is normal)
NodeInfo = dict[str, str | int | float | bool | None]


class Comparison(Base):
    """An open or resolved disambiguation attempt between exactly two nodes.

    node_a/node_b are always stored in canonical order (node_a < node_b), so
    an unordered pair maps to at most one row. The unique constraint lets the
    database reject a second row for the same pair under a race.

    Scoring fields (similarity_score, reasoning, confidence) start unset and
    are populated at most once by analyze_comparison, or wholesale by the
    identity fast-path.
    """

    __tablename__ = "comparisons"
    __table_args__ = (
        UniqueConstraint("node_a", "node_b", name="uq_comparisons_node_pair"),
    )

    comparison_id: Mapped[UUID] = mapped_column(primary_key=True)

    node_a: Mapped[str] = mapped_column(String(255), index=True)
    """Smaller node identifier of the pair."""

    node_b: Mapped[str] = mapped_column(String(255), index=True)
    """Larger node identifier of the pair."""

    similarity_score: Mapped[float | None] = mapped_column(Float)
    """0.0-1.0, higher means more likely the same entity."""

    reasoning: Mapped[str | None] = mapped_column(Text)
    confidence: Mapped[Confidence | None] = mapped_column()

    user_decision: Mapped[UserDecision] = mapped_column(
        default=UserDecision.PENDING, index=True
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    node_a_info: Mapped[dict[str, Any] | None] = mapped_column()
    """Attribute snapshot for node_a that the decision was based on."""

    node_b_info: Mapped[dict[str, Any] | None] = mapped_column()
    """Attribute snapshot for node_b that the decision was based on."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    @property
    def is_scored(self) -> bool:
        return self.similarity_score is not None

    @property
    def nodes(self) -> tuple[str, str]:
        return self.node_a, self.node_b
