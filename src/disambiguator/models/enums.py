"""Enumerations for the Disambiguator data model."""

from enum import Enum


class UserDecision(str, Enum):
    """Human verdict on a Comparison.

    Transitions only PENDING -> SAME or PENDING -> DIFFERENT. A fresh
    compare_nodes call may reopen a decided comparison back to PENDING.
    """

    PENDING = "pending"
    SAME = "same"
    DIFFERENT = "different"


class Confidence(str, Enum):
    """Confidence tier reported by the scorer."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MergedBy(str, Enum):
    """Who authorized a Merge."""

    SYSTEM = "system"  # Fast-path automatic merges
    USER = "user"  # Human-confirmed merges
