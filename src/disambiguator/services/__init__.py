"""Business logic services for Disambiguator."""

from disambiguator.services.comparison import (
    CanonicalPair,
    ComparisonService,
    canonical_pair,
    parse_decision,
)
from disambiguator.services.merge import MergeService

__all__ = [
    "CanonicalPair",
    "ComparisonService",
    "MergeService",
    "canonical_pair",
    "parse_decision",
]
