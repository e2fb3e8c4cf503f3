"""Database models for Disambiguator."""

from disambiguator.models.base import Base
from disambiguator.models.comparison import Comparison, NodeInfo
from disambiguator.models.enums import Confidence, MergedBy, UserDecision
from disambiguator.models.merge import Merge

__all__ = [
    "Base",
    "Comparison",
    "Confidence",
    "Merge",
    "MergedBy",
    "NodeInfo",
    "UserDecision",
]
