"""Merge recorder: turns a confirmed "same" decision into an immutable Merge."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from disambiguator.errors import InvalidKeepNodeError, NotFoundError, WrongDecisionError
from disambiguator.models.comparison import Comparison
from disambiguator.models.enums import MergedBy, UserDecision
from disambiguator.models.merge import Merge

logger = logging.getLogger(__name__)


class MergeService:
    """Owns the append-only Merge log.

    merge_nodes only records the authoritative (absorbed, canonical) pair.
    Re-pointing the absorbed node's edges is the graph engine's job; callers
    apply it after a successful merge.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def merge_nodes(
        self,
        comparison_id: UUID,
        keep_node: str,
        *,
        merged_by: MergedBy = MergedBy.USER,
    ) -> UUID:
        """Record that the other node of a "same" comparison folds into keep_node.

        The comparison row is locked (where the backend supports it) while the
        decision is re-checked and the merge inserted, so a concurrent reopen
        cannot slip between check and write.

        Returns:
            The new merge ID.

        Raises:
            NotFoundError: No such comparison.
            WrongDecisionError: user_decision is not "same".
            InvalidKeepNodeError: keep_node is not one of the pair.
        """
        async with self._session_factory() as session:
            stmt = (
                select(Comparison)
                .where(Comparison.comparison_id == comparison_id)
                .with_for_update()
            )
            comparison = (await session.execute(stmt)).scalar_one_or_none()
            if comparison is None:
                raise NotFoundError(comparison_id)

            if comparison.user_decision is not UserDecision.SAME:
                raise WrongDecisionError(comparison_id, comparison.user_decision.value)

            if keep_node not in comparison.nodes:
                raise InvalidKeepNodeError(keep_node, comparison.node_a, comparison.node_b)

            absorbed = comparison.node_b if keep_node == comparison.node_a else comparison.node_a

            merge = Merge(
                merge_id=uuid4(),
                absorbed_node=absorbed,
                canonical_node=keep_node,
                comparison_id=comparison_id,
                merged_by=merged_by,
                merged_at=datetime.now(UTC),
            )
            session.add(merge)
            await session.commit()

        logger.info(
            "Merged %s into %s (comparison %s, by %s)",
            absorbed, keep_node, comparison_id, merged_by.value,
        )
        return merge.merge_id

    async def get_merges_for_node(self, node: str) -> list[Merge]:
        """All merges in which a node was absorbed or kept."""
        stmt = (
            select(Merge)
            .where(or_(Merge.absorbed_node == node, Merge.canonical_node == node))
            .order_by(Merge.merged_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
