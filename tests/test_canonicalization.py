"""Tests for ingestion-time canonicalization of imported connections."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from disambiguator.sync import CanonicalizationSync, ImportedConnection


def connection(id: str, profile_url: str | None = None, **extra) -> ImportedConnection:
    data = {"id": id, **extra}
    if profile_url is not None:
        data["profileUrl"] = profile_url
    return ImportedConnection.model_validate(data)


def make_sync(connections: list[ImportedConnection], source: str = "linkedin"):
    pipeline = AsyncMock()
    pipeline.get_account_user.return_value = "owner-1"
    pipeline.get_connections.return_value = connections
    graph = AsyncMock()
    return CanonicalizationSync(pipeline, graph, source=source), pipeline, graph


class TestImportedConnection:
    def test_alias_and_extra_fields(self) -> None:
        conn = connection("c1", "linkedin.com/in/jdoe", firstName="John")
        assert conn.profile_url == "linkedin.com/in/jdoe"
        assert conn.model_extra == {"firstName": "John"}

    def test_profile_url_optional(self) -> None:
        assert connection("c1").profile_url is None


class TestFindCanonical:
    def test_returns_earlier_sibling_with_same_identifier(self) -> None:
        siblings = [
            connection("c1", "https://www.linkedin.com/in/jdoe"),
            connection("c2", "linkedin.com/in/jdoe/"),
        ]
        assert CanonicalizationSync.find_canonical(siblings[1], siblings) == "c1"

    def test_first_matching_sibling_wins(self) -> None:
        siblings = [
            connection("c1", "linkedin.com/in/other"),
            connection("c2", "linkedin.com/in/jdoe"),
            connection("c3", "www.linkedin.com/in/jdoe"),
            connection("c4", "http://linkedin.com/in/JDoe"),
        ]
        assert CanonicalizationSync.find_canonical(siblings[3], siblings) == "c2"

    def test_no_match_returns_self(self) -> None:
        siblings = [
            connection("c1", "linkedin.com/in/alice"),
            connection("c2", "linkedin.com/in/bob"),
        ]
        assert CanonicalizationSync.find_canonical(siblings[1], siblings) == "c2"

    @pytest.mark.parametrize("url", [None, ""])
    def test_without_identifier_returns_self(self, url: str | None) -> None:
        siblings = [connection("c1", url), connection("c2", url)]
        assert CanonicalizationSync.find_canonical(siblings[1], siblings) == "c2"

    def test_ignores_itself(self) -> None:
        only = connection("c1", "linkedin.com/in/jdoe")
        assert CanonicalizationSync.find_canonical(only, [only]) == "c1"


class TestOnConnectionAdded:
    async def test_forwards_canonical_sibling(self) -> None:
        sync, pipeline, graph = make_sync([
            connection("c1", "linkedin.com/in/jdoe"),
            connection("c2", "https://linkedin.com/in/jdoe"),
        ])

        forwarded = await sync.on_connection_added("acct-1", "c2")

        assert forwarded == "c1"
        pipeline.get_account_user.assert_awaited_once_with("acct-1")
        pipeline.get_connections.assert_awaited_once_with("acct-1")
        graph.add_node_to_network.assert_awaited_once_with("owner-1", "c1", "linkedin")

    async def test_forwards_new_connection_when_unique(self) -> None:
        sync, _, graph = make_sync([
            connection("c1", "linkedin.com/in/alice"),
            connection("c2", "linkedin.com/in/bob"),
        ])

        assert await sync.on_connection_added("acct-1", "c2") == "c2"
        graph.add_node_to_network.assert_awaited_once_with("owner-1", "c2", "linkedin")

    async def test_unknown_connection_forwarded_as_is(self) -> None:
        sync, _, graph = make_sync([connection("c1", "linkedin.com/in/alice")])

        assert await sync.on_connection_added("acct-1", "c9") == "c9"
        graph.add_node_to_network.assert_awaited_once_with("owner-1", "c9", "linkedin")

    async def test_custom_source(self) -> None:
        sync, _, graph = make_sync([connection("c1")], source="csv")

        await sync.on_connection_added("acct-1", "c1")
        graph.add_node_to_network.assert_awaited_once_with("owner-1", "c1", "csv")

    async def test_never_applies_merges(self) -> None:
        sync, _, graph = make_sync([
            connection("c1", "linkedin.com/in/jdoe"),
            connection("c2", "linkedin.com/in/jdoe"),
        ])

        await sync.on_connection_added("acct-1", "c2")
        graph.apply_merge.assert_not_awaited()
