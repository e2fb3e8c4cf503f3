"""Deterministic matching rules that run before any external scoring.

Submodules:
- prefilter: cheap string-similarity gate over attribute snapshots
- identity: exact external-identifier match (profile URL fast-path)
"""

from disambiguator.matching.identity import (
    FAST_PATH_REASONING,
    is_identity_match,
    normalize_profile_url,
    profile_identifier,
)
from disambiguator.matching.prefilter import (
    PrefilterThresholds,
    has_string_similarity,
    string_similarity,
)

__all__ = [
    "FAST_PATH_REASONING",
    "PrefilterThresholds",
    "has_string_similarity",
    "is_identity_match",
    "normalize_profile_url",
    "profile_identifier",
    "string_similarity",
]
