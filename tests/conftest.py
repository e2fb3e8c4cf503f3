"""Shared pytest fixtures for Disambiguator tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from disambiguator.clients.scoring import ScoreResult
from disambiguator.models import Base, Confidence
from disambiguator.services import ComparisonService, MergeService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class StubScorer:
    """Deterministic stand-in for the external scoring service."""

    def __init__(
        self,
        result: ScoreResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result or ScoreResult(
            similarity_score=0.82,
            confidence=Confidence.HIGH,
            reasoning="Same name and employer.",
        )
        self.error = error
        self.calls: list[tuple[Mapping[str, Any], Mapping[str, Any]]] = []

    async def score(
        self,
        node_a_info: Mapping[str, Any],
        node_b_info: Mapping[str, Any],
    ) -> ScoreResult:
        self.calls.append((node_a_info, node_b_info))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so concurrent sessions get real connections.

    Tables are created up front; the file disappears with tmp_path.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'disambiguator_test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def stub_scorer() -> StubScorer:
    return StubScorer()


@pytest.fixture
def comparison_service(
    session_factory: async_sessionmaker[AsyncSession],
    stub_scorer: StubScorer,
) -> ComparisonService:
    return ComparisonService(session_factory, stub_scorer)


@pytest.fixture
def merge_service(session_factory: async_sessionmaker[AsyncSession]) -> MergeService:
    return MergeService(session_factory)


MakePerson = Callable[..., dict[str, Any]]


@pytest.fixture
def make_person() -> MakePerson:
    """Factory fixture for attribute snapshots shaped like imported connections."""

    def _make(
        *,
        first_name: str | None = "John",
        last_name: str | None = "Smith",
        company: str | None = "Acme Corp",
        location: str | None = "Boston, MA",
        profile_url: str | None = None,
        **extra: Any,
    ) -> dict[str, Any]:
        info: dict[str, Any] = {
            "firstName": first_name,
            "lastName": last_name,
            "currentCompany": company,
            "location": location,
        }
        if profile_url is not None:
            info["profileUrl"] = profile_url
        info.update(extra)
        return {k: v for k, v in info.items() if v is not None}

    return _make
