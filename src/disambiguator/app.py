"""FastAPI application exposing the disambiguation engine."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from disambiguator import __version__
from disambiguator.clients.scoring import Scorer, ScoringClient
from disambiguator.db import get_session_factory, init_db
from disambiguator.errors import (
    AlreadyDecidedError,
    ConcurrentUpdateError,
    DisambiguationError,
    NotCancellableError,
    NotFoundError,
    ScoringError,
    WrongDecisionError,
)
from disambiguator.models import Confidence, MergedBy, NodeInfo, UserDecision
from disambiguator.services import ComparisonService, MergeService

# Anything not listed is a validation/evidence error (400)
ERROR_STATUS: dict[type[DisambiguationError], int] = {
    NotFoundError: 404,
    AlreadyDecidedError: 409,
    ConcurrentUpdateError: 409,
    NotCancellableError: 409,
    WrongDecisionError: 409,
    ScoringError: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    await init_db()
    yield


app = FastAPI(
    title="Disambiguator",
    description="Entity disambiguation and merge decisions for network graphs",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(DisambiguationError)
async def disambiguation_error_handler(request: Request, exc: DisambiguationError) -> JSONResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        400,
    )
    return JSONResponse(status_code=status, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests use the same {"error": message} body as engine errors."""
    message = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=422, content={"error": message})


# ── Schemas ──────────────────────────────────────────────────────────────────


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CompareRequest(CamelModel):
    node_a: str
    node_b: str
    node_a_info: NodeInfo | None = None
    node_b_info: NodeInfo | None = None


class ConfirmRequest(CamelModel):
    # Validated by the service so bad values get the engine's error message
    user_decision: str


class MergeRequest(CamelModel):
    keep_node: str


class ComparisonCreated(CamelModel):
    comparison: UUID


class MergeCreated(CamelModel):
    merge: UUID


class ComparisonOut(CamelModel):
    comparison_id: UUID
    node_a: str
    node_b: str
    similarity_score: float | None = None
    reasoning: str | None = None
    confidence: Confidence | None = None
    user_decision: UserDecision
    confirmed_at: datetime | None = None
    created_at: datetime | None = None
    node_a_info: dict[str, Any] | None = None
    node_b_info: dict[str, Any] | None = None


class MergeOut(CamelModel):
    merge_id: UUID
    absorbed_node: str
    canonical_node: str
    comparison_id: UUID
    merged_at: datetime | None = None
    merged_by: MergedBy


# ── Dependencies ─────────────────────────────────────────────────────────────


@lru_cache
def get_scorer() -> Scorer:
    """Scoring client built once from settings."""
    return ScoringClient.from_settings()


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_comparison_service(
    session_factory: SessionFactory,
    scorer: Annotated[Scorer, Depends(get_scorer)],
) -> ComparisonService:
    return ComparisonService(session_factory, scorer)


def get_merge_service(session_factory: SessionFactory) -> MergeService:
    return MergeService(session_factory)


Comparisons = Annotated[ComparisonService, Depends(get_comparison_service)]
Merges = Annotated[MergeService, Depends(get_merge_service)]


# ── Routes ───────────────────────────────────────────────────────────────────


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.post("/comparisons", response_model=ComparisonCreated)
async def compare_nodes(body: CompareRequest, service: Comparisons) -> ComparisonCreated:
    comparison_id = await service.compare_nodes(
        body.node_a, body.node_b, body.node_a_info, body.node_b_info
    )
    return ComparisonCreated(comparison=comparison_id)


@app.get("/comparisons", response_model=list[ComparisonOut])
async def get_comparison(
    node_a: Annotated[str, Query(alias="nodeA")],
    node_b: Annotated[str, Query(alias="nodeB")],
    service: Comparisons,
) -> list[ComparisonOut]:
    """Comparison for a node pair, in either order."""
    return [ComparisonOut.model_validate(c) for c in await service.get_comparison(node_a, node_b)]


@app.get("/comparisons/pending", response_model=list[ComparisonOut])
async def get_pending_comparisons(service: Comparisons) -> list[ComparisonOut]:
    return [ComparisonOut.model_validate(c) for c in await service.get_pending_comparisons()]


@app.get("/comparisons/{comparison_id}", response_model=list[ComparisonOut])
async def get_comparison_details(comparison_id: UUID, service: Comparisons) -> list[ComparisonOut]:
    return [
        ComparisonOut.model_validate(c)
        for c in await service.get_comparison_details(comparison_id)
    ]


@app.post("/comparisons/{comparison_id}/analyze")
async def analyze_comparison(comparison_id: UUID, service: Comparisons) -> dict[str, str]:
    await service.analyze_comparison(comparison_id)
    return {}


@app.post("/comparisons/{comparison_id}/confirm")
async def confirm_comparison(
    comparison_id: UUID, body: ConfirmRequest, service: Comparisons
) -> dict[str, str]:
    await service.confirm_comparison(comparison_id, body.user_decision)
    return {}


@app.delete("/comparisons/{comparison_id}")
async def cancel_comparison(comparison_id: UUID, service: Comparisons) -> dict[str, str]:
    await service.cancel_comparison(comparison_id)
    return {}


@app.post("/comparisons/{comparison_id}/merge", response_model=MergeCreated)
async def merge_nodes(comparison_id: UUID, body: MergeRequest, service: Merges) -> MergeCreated:
    merge_id = await service.merge_nodes(comparison_id, body.keep_node)
    return MergeCreated(merge=merge_id)


@app.get("/nodes/{node}/comparisons", response_model=list[ComparisonOut])
async def get_comparisons_for_node(node: str, service: Comparisons) -> list[ComparisonOut]:
    return [ComparisonOut.model_validate(c) for c in await service.get_comparisons_for_node(node)]


@app.get("/nodes/{node}/merges", response_model=list[MergeOut])
async def get_merges_for_node(node: str, service: Merges) -> list[MergeOut]:
    return [MergeOut.model_validate(m) for m in await service.get_merges_for_node(node)]
