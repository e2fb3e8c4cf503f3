"""Integration with the import pipeline and the graph engine."""

from disambiguator.sync.canonicalization import (
    CanonicalizationSync,
    GraphEngine,
    ImportedConnection,
    ImportPipeline,
)

__all__ = [
    "CanonicalizationSync",
    "GraphEngine",
    "ImportPipeline",
    "ImportedConnection",
]
