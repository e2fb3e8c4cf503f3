"""Clients for external services."""

from disambiguator.clients.scoring import ScoreResult, Scorer, ScoringClient, parse_score_response

__all__ = [
    "ScoreResult",
    "Scorer",
    "ScoringClient",
    "parse_score_response",
]
