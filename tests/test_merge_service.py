"""Tests for the merge recorder."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from disambiguator.errors import InvalidKeepNodeError, NotFoundError, WrongDecisionError
from disambiguator.models.enums import MergedBy
from disambiguator.services import ComparisonService, MergeService

if TYPE_CHECKING:
    from uuid import UUID

    from conftest import MakePerson


async def decided(
    service: ComparisonService,
    make_person: MakePerson,
    decision: str,
    node_a: str = "u1",
    node_b: str = "u2",
) -> UUID:
    comparison_id = await service.compare_nodes(node_a, node_b, make_person(), make_person())
    await service.confirm_comparison(comparison_id, decision)
    return comparison_id


class TestMergeNodes:
    async def test_records_absorbed_and_canonical(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "same")

        merge_id = await merge_service.merge_nodes(comparison_id, "u1")

        [merge] = await merge_service.get_merges_for_node("u2")
        assert merge.merge_id == merge_id
        assert merge.absorbed_node == "u2"
        assert merge.canonical_node == "u1"
        assert merge.comparison_id == comparison_id
        assert merge.merged_by is MergedBy.USER
        assert merge.merged_at is not None

    async def test_keep_node_b(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "same")
        await merge_service.merge_nodes(comparison_id, "u2")

        [merge] = await merge_service.get_merges_for_node("u2")
        assert (merge.absorbed_node, merge.canonical_node) == ("u1", "u2")

    async def test_system_merge(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "same")
        await merge_service.merge_nodes(comparison_id, "u1", merged_by=MergedBy.SYSTEM)

        [merge] = await merge_service.get_merges_for_node("u1")
        assert merge.merged_by is MergedBy.SYSTEM

    async def test_not_found(self, merge_service: MergeService) -> None:
        with pytest.raises(NotFoundError):
            await merge_service.merge_nodes(uuid4(), "u1")

    async def test_different_decision_rejected(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "different")

        with pytest.raises(WrongDecisionError, match='"different"'):
            await merge_service.merge_nodes(comparison_id, "u1")
        assert await merge_service.get_merges_for_node("u1") == []

    async def test_pending_rejected(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
    ) -> None:
        comparison_id = await comparison_service.compare_nodes("u1", "u2")

        with pytest.raises(WrongDecisionError, match='"pending"'):
            await merge_service.merge_nodes(comparison_id, "u1")

    async def test_keep_node_outside_pair(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "same")

        with pytest.raises(InvalidKeepNodeError, match="u9"):
            await merge_service.merge_nodes(comparison_id, "u9")
        assert await merge_service.get_merges_for_node("u1") == []

    async def test_reopened_comparison_cannot_merge(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "same")
        # New evidence reopens the decision
        await comparison_service.compare_nodes("u1", "u2", make_person(), make_person())

        with pytest.raises(WrongDecisionError):
            await merge_service.merge_nodes(comparison_id, "u1")

    async def test_merge_leaves_comparison_untouched(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        comparison_id = await decided(comparison_service, make_person, "same")
        await merge_service.merge_nodes(comparison_id, "u1")

        [comparison] = await comparison_service.get_comparison_details(comparison_id)
        assert comparison.user_decision.value == "same"


class TestGetMergesForNode:
    async def test_empty(self, merge_service: MergeService) -> None:
        assert await merge_service.get_merges_for_node("nobody") == []

    async def test_matches_either_role(
        self,
        comparison_service: ComparisonService,
        merge_service: MergeService,
        make_person: MakePerson,
    ) -> None:
        first = await decided(comparison_service, make_person, "same", "a", "b")
        second = await decided(comparison_service, make_person, "same", "b", "c")
        await merge_service.merge_nodes(first, "b")
        await merge_service.merge_nodes(second, "c")

        merges = await merge_service.get_merges_for_node("b")
        assert [(m.absorbed_node, m.canonical_node) for m in merges] == [("a", "b"), ("b", "c")]
        assert len(await merge_service.get_merges_for_node("a")) == 1
