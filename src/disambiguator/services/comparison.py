"""Comparison lifecycle: create, score, confirm and cancel node-pair comparisons.

State machine per Comparison:

    nonexistent -> pending            (compare_nodes)
    pending     -> same | different   (confirm_comparison)
    same | different -> pending       (compare_nodes with new evidence)
    pending     -> nonexistent        (cancel_comparison)

Scoring fields are an orthogonal, monotonic sub-state (unset -> set).

Each public operation is one unit of work: it opens its own session, commits
only on success, and never holds a session across the external scoring call.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from disambiguator.clients.scoring import Scorer
from disambiguator.errors import (
    AlreadyDecidedError,
    ConcurrentUpdateError,
    InvalidDecisionError,
    InvalidPairError,
    MissingInfoError,
    NoSimilarityError,
    NotCancellableError,
    NotFoundError,
    ScoringError,
)
from disambiguator.matching.identity import (
    FAST_PATH_REASONING,
    FAST_PATH_SCORE,
    is_identity_match,
)
from disambiguator.matching.prefilter import PrefilterThresholds, has_string_similarity
from disambiguator.models.comparison import Comparison, NodeInfo
from disambiguator.models.enums import Confidence, UserDecision

logger = logging.getLogger(__name__)

# Find-or-create attempts before giving up on concurrent writers
_WRITE_ATTEMPTS = 3


@dataclass(frozen=True)
class CanonicalPair:
    """A node pair in canonical order, each snapshot travelling with its node."""

    node_a: str
    node_b: str
    node_a_info: NodeInfo | None = None
    node_b_info: NodeInfo | None = None


def canonical_pair(
    node_a: str,
    node_b: str,
    node_a_info: Mapping[str, Any] | None = None,
    node_b_info: Mapping[str, Any] | None = None,
) -> CanonicalPair:
    """Order a pair so node_a < node_b. The single key used for every pair lookup.

    Snapshots are copied so stored evidence never aliases caller data.
    """
    info_a = dict(node_a_info) if node_a_info is not None else None
    info_b = dict(node_b_info) if node_b_info is not None else None
    if node_a <= node_b:
        return CanonicalPair(node_a, node_b, info_a, info_b)
    return CanonicalPair(node_b, node_a, info_b, info_a)


def parse_decision(decision: UserDecision | str) -> UserDecision:
    """Accept only "same" or "different"."""
    try:
        verdict = UserDecision(decision)
    except ValueError:
        raise InvalidDecisionError(decision) from None
    if verdict is UserDecision.PENDING:
        raise InvalidDecisionError(decision)
    return verdict


class ComparisonService:
    """Owns the Comparison entity and its state machine.

    Usage:
        service = ComparisonService(async_session_factory, ScoringClient.from_settings())
        comparison_id = await service.compare_nodes("u1", "u2", info_1, info_2)
        await service.analyze_comparison(comparison_id)
        await service.confirm_comparison(comparison_id, "same")
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scorer: Scorer | None = None,
        *,
        thresholds: PrefilterThresholds | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._scorer = scorer
        self._thresholds = thresholds or PrefilterThresholds()

    # ── Actions ──────────────────────────────────────────────────────────────

    async def compare_nodes(
        self,
        node_a: str,
        node_b: str,
        node_a_info: Mapping[str, Any] | None = None,
        node_b_info: Mapping[str, Any] | None = None,
    ) -> UUID:
        """Create or refresh the Comparison for an unordered node pair.

        Scoring is NOT performed here; call analyze_comparison for that.

        Returns:
            The comparison ID (the same ID for either argument order).

        Raises:
            InvalidPairError: node_a == node_b.
            NoSimilarityError: The pre-filter rejected the pair and no
                comparison exists for it yet. Nothing is created.
            ConcurrentUpdateError: Concurrent writers kept changing the row.
        """
        if node_a == node_b:
            raise InvalidPairError(node_a)

        pair = canonical_pair(node_a, node_b, node_a_info, node_b_info)

        if is_identity_match(pair.node_a_info, pair.node_b_info):
            logger.debug("Identity fast-path matched for (%s, %s)", pair.node_a, pair.node_b)
            return await self._write(pair, fast_path=True)

        if (
            pair.node_a_info is not None
            and pair.node_b_info is not None
            and not has_string_similarity(pair.node_a_info, pair.node_b_info, self._thresholds)
        ):
            async with self._session_factory() as session:
                existing = await self._find_by_pair(session, pair.node_a, pair.node_b)
            if existing is not None:
                logger.debug(
                    "Pre-filter rejected (%s, %s); keeping existing comparison %s",
                    pair.node_a, pair.node_b, existing.comparison_id,
                )
                return existing.comparison_id
            raise NoSimilarityError()

        return await self._write(pair, fast_path=False)

    async def analyze_comparison(self, comparison_id: UUID) -> None:
        """Score a comparison with the external scorer, at most once.

        A no-op when the comparison is already scored. Never changes
        user_decision. On ScoringError the comparison stays unscored so the
        caller can retry later.

        Raises:
            NotFoundError: No such comparison.
            MissingInfoError: Either attribute snapshot is absent.
            ScoringError: The scorer failed or none is configured.
        """
        async with self._session_factory() as session:
            comparison = await session.get(Comparison, comparison_id)
            if comparison is None:
                raise NotFoundError(comparison_id)
            if comparison.is_scored:
                logger.debug("Comparison %s already scored, skipping", comparison_id)
                return
            if comparison.node_a_info is None or comparison.node_b_info is None:
                raise MissingInfoError()
            info_a = comparison.node_a_info
            info_b = comparison.node_b_info

        if self._scorer is None:
            raise ScoringError("No scoring client configured")

        try:
            result = await self._scorer.score(info_a, info_b)
        except ScoringError as e:
            logger.warning("Scoring failed for comparison %s: %s", comparison_id, e)
            raise

        async with self._session_factory() as session:
            stmt = (
                update(Comparison)
                .where(Comparison.comparison_id == comparison_id)
                .where(Comparison.similarity_score.is_(None))
                .values(
                    similarity_score=result.similarity_score,
                    confidence=result.confidence,
                    reasoning=result.reasoning,
                )
            )
            written = (await session.execute(stmt)).rowcount
            await session.commit()

            if written == 0:
                # Either cancelled meanwhile, or a concurrent call scored it first
                if await session.get(Comparison, comparison_id) is None:
                    raise NotFoundError(comparison_id)
                logger.debug("Comparison %s was scored concurrently", comparison_id)
                return

        logger.info(
            "Scored comparison %s: %.2f (%s)",
            comparison_id, result.similarity_score, result.confidence.value,
        )

    async def confirm_comparison(
        self,
        comparison_id: UUID,
        decision: UserDecision | str,
    ) -> None:
        """Record the user's verdict on a pending comparison.

        The write is conditional on user_decision still being pending, so of
        two concurrent confirmations exactly one succeeds.

        Raises:
            InvalidDecisionError: decision is not "same" or "different".
            NotFoundError: No such comparison.
            AlreadyDecidedError: The comparison is no longer pending.
        """
        verdict = parse_decision(decision)

        async with self._session_factory() as session:
            stmt = (
                update(Comparison)
                .where(Comparison.comparison_id == comparison_id)
                .where(Comparison.user_decision == UserDecision.PENDING)
                .values(user_decision=verdict, confirmed_at=datetime.now(UTC))
            )
            if (await session.execute(stmt)).rowcount == 0:
                comparison = await session.get(Comparison, comparison_id)
                if comparison is None:
                    raise NotFoundError(comparison_id)
                raise AlreadyDecidedError(comparison_id, comparison.user_decision.value)
            await session.commit()

        logger.info("Confirmed comparison %s as %s", comparison_id, verdict.value)

    async def cancel_comparison(self, comparison_id: UUID) -> None:
        """Delete a pending comparison outright (no tombstone).

        Raises:
            NotFoundError: No such comparison.
            NotCancellableError: The comparison is no longer pending.
        """
        async with self._session_factory() as session:
            stmt = (
                delete(Comparison)
                .where(Comparison.comparison_id == comparison_id)
                .where(Comparison.user_decision == UserDecision.PENDING)
            )
            if (await session.execute(stmt)).rowcount == 0:
                comparison = await session.get(Comparison, comparison_id)
                if comparison is None:
                    raise NotFoundError(comparison_id)
                raise NotCancellableError(comparison_id, comparison.user_decision.value)
            await session.commit()

        logger.info("Cancelled comparison %s", comparison_id)

    # ── Queries ──────────────────────────────────────────────────────────────

    async def get_comparison(self, node_a: str, node_b: str) -> list[Comparison]:
        """The comparison for a pair, in either argument order."""
        pair = canonical_pair(node_a, node_b)
        async with self._session_factory() as session:
            comparison = await self._find_by_pair(session, pair.node_a, pair.node_b)
        return [comparison] if comparison is not None else []

    async def get_comparisons_for_node(self, node: str) -> list[Comparison]:
        """All comparisons involving a node on either side."""
        stmt = (
            select(Comparison)
            .where(or_(Comparison.node_a == node, Comparison.node_b == node))
            .order_by(Comparison.created_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_pending_comparisons(self) -> list[Comparison]:
        stmt = (
            select(Comparison)
            .where(Comparison.user_decision == UserDecision.PENDING)
            .order_by(Comparison.created_at)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_comparison_details(self, comparison_id: UUID) -> list[Comparison]:
        """Full comparison record, including reasoning and snapshots."""
        async with self._session_factory() as session:
            comparison = await session.get(Comparison, comparison_id)
        return [comparison] if comparison is not None else []

    # ── Internals ────────────────────────────────────────────────────────────

    async def _find_by_pair(
        self,
        session: AsyncSession,
        node_a: str,
        node_b: str,
    ) -> Comparison | None:
        stmt = select(Comparison).where(
            Comparison.node_a == node_a,
            Comparison.node_b == node_b,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def _write(self, pair: CanonicalPair, *, fast_path: bool) -> UUID:
        """Atomic find-or-create on the canonical pair.

        The insert runs under the unique (node_a, node_b) constraint, and the
        update is conditional on the decision that was read. Losing either
        race (a concurrent insert, confirm or cancel) sends the next attempt
        back through the lookup, so it acts on the row as it now stands.

        Raises:
            ConcurrentUpdateError: The row kept changing under every attempt.
        """
        attempt = 0
        while True:
            attempt += 1
            async with self._session_factory() as session:
                existing = await self._find_by_pair(session, pair.node_a, pair.node_b)
                if existing is not None:
                    if await self._update_existing(session, existing, pair, fast_path=fast_path):
                        await session.commit()
                        logger.info(
                            "Updated comparison %s for (%s, %s)",
                            existing.comparison_id, pair.node_a, pair.node_b,
                        )
                        return existing.comparison_id

                    await session.rollback()
                    if attempt >= _WRITE_ATTEMPTS:
                        raise ConcurrentUpdateError(pair.node_a, pair.node_b)
                    logger.debug(
                        "Comparison %s changed since it was read, retrying",
                        existing.comparison_id,
                    )
                    continue

                comparison = self._new_comparison(pair, fast_path=fast_path)
                session.add(comparison)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    if attempt >= _WRITE_ATTEMPTS:
                        raise ConcurrentUpdateError(pair.node_a, pair.node_b) from e
                    logger.debug(
                        "Lost insert race for (%s, %s), retrying",
                        pair.node_a, pair.node_b,
                    )
                    continue

                logger.info(
                    "Created comparison %s for (%s, %s)%s",
                    comparison.comparison_id, pair.node_a, pair.node_b,
                    " via identity fast-path" if fast_path else "",
                )
                return comparison.comparison_id

    def _new_comparison(self, pair: CanonicalPair, *, fast_path: bool) -> Comparison:
        comparison = Comparison(
            comparison_id=uuid4(),
            node_a=pair.node_a,
            node_b=pair.node_b,
            node_a_info=pair.node_a_info,
            node_b_info=pair.node_b_info,
            user_decision=UserDecision.PENDING,
            created_at=datetime.now(UTC),
        )
        if fast_path:
            comparison.similarity_score = FAST_PATH_SCORE
            comparison.confidence = Confidence.HIGH
            comparison.reasoning = FAST_PATH_REASONING
        return comparison

    async def _update_existing(
        self,
        session: AsyncSession,
        existing: Comparison,
        pair: CanonicalPair,
        *,
        fast_path: bool,
    ) -> bool:
        """Replace snapshots and reopen the decision, if the row is as it was read.

        Returns:
            False when the row was deleted or its decision changed since the read.
        """
        # Snapshots are always replaced so stale evidence never lingers
        values: dict[str, Any] = {
            "node_a_info": pair.node_a_info,
            "node_b_info": pair.node_b_info,
            "user_decision": UserDecision.PENDING,
            "confirmed_at": None,
        }
        if fast_path:
            # Wholesale replacement is the one case where scores are overwritten
            values.update(
                similarity_score=FAST_PATH_SCORE,
                confidence=Confidence.HIGH,
                reasoning=FAST_PATH_REASONING,
            )

        previous = existing.user_decision
        stmt = (
            update(Comparison)
            .where(Comparison.comparison_id == existing.comparison_id)
            .where(Comparison.user_decision == previous)
            .values(**values)
        )
        if (await session.execute(stmt)).rowcount == 0:
            return False

        if previous is not UserDecision.PENDING:
            logger.info(
                "Reopening comparison %s (was %s)",
                existing.comparison_id, previous.value,
            )
        return True
