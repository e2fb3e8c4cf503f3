"""Cheap string-similarity pre-filter.

Decides whether a pair of attribute snapshots is worth a Comparison at all.
Pure: no I/O, no state. Works over whatever fields are present; a field
missing from either side is simply skipped.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from disambiguator.config import settings

# Containment ("jon" in "jonathan") counts as a strong match
CONTAINMENT_SCORE = 0.7

FIRST_NAME_KEY = "firstName"
LAST_NAME_KEY = "lastName"
COMPANY_KEYS = ("currentCompany", "company")
LOCATION_KEY = "location"


@dataclass(frozen=True)
class PrefilterThresholds:
    """Per-field thresholds. A pair passes if ANY field strictly exceeds its own."""

    full_name: float = settings.prefilter_full_name_threshold
    name_part: float = settings.prefilter_name_part_threshold
    attribute: float = settings.prefilter_attribute_threshold


def _normalize(value: Any) -> str:
    if value is None or value is False:
        return ""
    return str(value).lower().strip()


def string_similarity(a: str, b: str) -> float:
    """Positional character-match ratio with a containment shortcut.

    Returns 1.0 for equal strings, CONTAINMENT_SCORE when one contains the
    other, else the share of aligned positions holding the same character,
    divided by the longer length. Empty input scores 0.0.
    """
    s1 = _normalize(a)
    s2 = _normalize(b)
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return CONTAINMENT_SCORE

    matches = sum(1 for c1, c2 in zip(s1, s2) if c1 == c2)
    return matches / max(len(s1), len(s2))


def _full_name(info: Mapping[str, Any]) -> str:
    parts = [info.get(FIRST_NAME_KEY), info.get(LAST_NAME_KEY)]
    return " ".join(str(p) for p in parts if p).lower()


def _field(info: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = _normalize(info.get(key))
        if value:
            return value
    return ""


def _exceeds(a: str, b: str, threshold: float) -> bool:
    return bool(a) and bool(b) and string_similarity(a, b) > threshold


def has_string_similarity(
    info_a: Mapping[str, Any] | None,
    info_b: Mapping[str, Any] | None,
    thresholds: PrefilterThresholds | None = None,
) -> bool:
    """True if the snapshots share enough lexical overlap to warrant comparison."""
    if not info_a or not info_b:
        return False
    t = thresholds or PrefilterThresholds()

    checks = [
        (_full_name(info_a), _full_name(info_b), t.full_name),
        (_field(info_a, FIRST_NAME_KEY), _field(info_b, FIRST_NAME_KEY), t.name_part),
        (_field(info_a, LAST_NAME_KEY), _field(info_b, LAST_NAME_KEY), t.name_part),
        (_field(info_a, *COMPANY_KEYS), _field(info_b, *COMPANY_KEYS), t.attribute),
        (_field(info_a, LOCATION_KEY), _field(info_b, LOCATION_KEY), t.attribute),
    ]
    return any(_exceeds(a, b, threshold) for a, b, threshold in checks)
