"""Identity fast-path: exact match on a normalized external profile identifier."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

PROFILE_URL_KEY = "profileUrl"

FAST_PATH_SCORE = 1.0
FAST_PATH_REASONING = (
    "Both nodes have the same LinkedIn profile URL, confirming they are the same person."
)

_SCHEME_RE = re.compile(r"^https?://")
_WWW_RE = re.compile(r"^www\.")
_HANDLE_RE = re.compile(r"linkedin\.com/in/([^/?]+)")


def normalize_profile_url(url: str | None) -> str:
    """Reduce a profile URL to a comparable identifier.

    Strips scheme and leading "www.", then extracts the handle segment of a
    LinkedIn /in/ URL. URLs of any other shape are returned stripped.

    Examples:
        "https://www.linkedin.com/in/jdoe" -> "jdoe"
        "linkedin.com/in/jdoe/" -> "jdoe"
        "HTTP://LinkedIn.com/in/JDoe?trk=x" -> "jdoe"
        "https://example.com/people/7" -> "example.com/people/7"
        "" / None -> ""
    """
    if not url:
        return ""

    normalized = url.lower().strip()
    normalized = _SCHEME_RE.sub("", normalized)
    normalized = _WWW_RE.sub("", normalized)

    match = _HANDLE_RE.search(normalized)
    if match:
        return match.group(1)
    return normalized


def profile_identifier(info: Mapping[str, Any] | None) -> str:
    """Normalized profile identifier of a snapshot, or "" if it has none."""
    if not info:
        return ""
    url = info.get(PROFILE_URL_KEY)
    if not isinstance(url, str):
        return ""
    return normalize_profile_url(url)


def is_identity_match(
    info_a: Mapping[str, Any] | None,
    info_b: Mapping[str, Any] | None,
) -> bool:
    """True when both snapshots carry the same non-empty profile identifier."""
    if info_a is None or info_b is None:
        return False
    id_a = profile_identifier(info_a)
    id_b = profile_identifier(info_b)
    return bool(id_a) and id_a == id_b
