"""Ingestion-time dedup of imported connections by exact profile identifier.

When the import pipeline reports a new connection, the sync decides which
node the graph engine should receive: an earlier sibling carrying the same
normalized profile identifier (the canonical node), or the new connection
itself. It never creates a Comparison or a Merge.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from disambiguator.config import settings
from disambiguator.matching.identity import normalize_profile_url

logger = logging.getLogger(__name__)


class ImportedConnection(BaseModel):
    """A connection record as produced by the import pipeline.

    Only the ID and profile URL matter here; any other attributes ride along.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    profile_url: str | None = Field(default=None, alias="profileUrl")


class ImportPipeline(Protocol):
    """Read side of the connection-import pipeline."""

    async def get_account_user(self, account: str) -> str:
        """The owner of an imported account."""
        ...

    async def get_connections(self, account: str) -> Sequence[ImportedConnection]:
        """Every connection imported so far for an account, the new one included."""
        ...


class GraphEngine(Protocol):
    """Write side of the graph storage engine."""

    async def add_node_to_network(self, owner: str, node: str, source: str) -> None:
        """Record that node belongs to owner's network via source."""
        ...

    async def apply_merge(self, absorbed: str, canonical: str) -> None:
        """Re-point the absorbed node's edges onto the canonical node.

        Invoked by callers after MergeService.merge_nodes succeeds; never
        chained automatically.
        """
        ...


class CanonicalizationSync:
    """Forwards the canonical node for each newly imported connection."""

    def __init__(
        self,
        import_pipeline: ImportPipeline,
        graph: GraphEngine,
        *,
        source: str | None = None,
    ) -> None:
        self._import_pipeline = import_pipeline
        self._graph = graph
        self._source = source or settings.import_source

    async def on_connection_added(self, account: str, connection: str) -> str:
        """Handle a "connection added" event.

        Returns:
            The node ID forwarded to the graph engine.
        """
        owner = await self._import_pipeline.get_account_user(account)
        connections = await self._import_pipeline.get_connections(account)

        new_connection = next((c for c in connections if c.id == connection), None)
        if new_connection is None:
            logger.debug("Connection %s not among siblings of %s; forwarding as-is", connection, account)
            canonical = connection
        else:
            canonical = self.find_canonical(new_connection, connections)

        if canonical != connection:
            logger.info(
                "Connection %s duplicates %s by profile URL; forwarding %s",
                connection, canonical, canonical,
            )

        await self._graph.add_node_to_network(owner, canonical, self._source)
        return canonical

    @staticmethod
    def find_canonical(
        new_connection: ImportedConnection,
        siblings: Sequence[ImportedConnection],
    ) -> str:
        """First sibling sharing the new connection's profile identifier, else the new one."""
        identifier = normalize_profile_url(new_connection.profile_url)
        if not identifier:
            return new_connection.id

        for sibling in siblings:
            if sibling.id == new_connection.id:
                continue
            if normalize_profile_url(sibling.profile_url) == identifier:
                return sibling.id
        return new_connection.id
