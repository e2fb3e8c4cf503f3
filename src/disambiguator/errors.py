"""Exception hierarchy for Disambiguator operations.

Every failure is scoped to the single operation that raised it and leaves
storage unchanged. Messages are stable and human-readable; the HTTP layer
returns them verbatim.
"""


class DisambiguationError(Exception):
    """Base exception for all engine errors."""


# ── Validation ───────────────────────────────────────────────────────────────


class InvalidPairError(DisambiguationError):
    """Raised when the same node is given twice."""

    def __init__(self, node: str) -> None:
        super().__init__(f"node_a and node_b must be different (both are {node}).")


class InvalidDecisionError(DisambiguationError):
    """Raised when a decision is not one of "same" or "different"."""

    def __init__(self, decision: object) -> None:
        super().__init__(f'userDecision must be either "same" or "different", got {decision!r}.')


class InvalidKeepNodeError(DisambiguationError):
    """Raised when keep_node is not one of the comparison's nodes."""

    def __init__(self, keep_node: str, node_a: str, node_b: str) -> None:
        super().__init__(
            f"keepNode {keep_node} must be either nodeA ({node_a}) or nodeB ({node_b}) "
            "from the comparison."
        )


# ── State preconditions ──────────────────────────────────────────────────────


class NotFoundError(DisambiguationError):
    """Raised when a comparison does not exist."""

    def __init__(self, comparison_id: object) -> None:
        super().__init__(f"Comparison with ID {comparison_id} not found.")


class AlreadyDecidedError(DisambiguationError):
    """Raised when confirming a comparison that is no longer pending."""

    def __init__(self, comparison_id: object, decision: str) -> None:
        super().__init__(
            f"Comparison {comparison_id} already has a decision ({decision}). "
            "Cannot confirm again."
        )


class NotCancellableError(DisambiguationError):
    """Raised when cancelling a comparison that is no longer pending."""

    def __init__(self, comparison_id: object, decision: str) -> None:
        super().__init__(
            f'Cannot cancel comparison {comparison_id}: userDecision is "{decision}", '
            'but "pending" is required.'
        )


class WrongDecisionError(DisambiguationError):
    """Raised when merging a comparison whose decision is not "same"."""

    def __init__(self, comparison_id: object, decision: str) -> None:
        super().__init__(
            f'Cannot merge nodes: comparison {comparison_id} has userDecision "{decision}", '
            'but "same" is required.'
        )


class ConcurrentUpdateError(DisambiguationError):
    """Raised when a comparison keeps changing underneath a re-compare."""

    def __init__(self, node_a: str, node_b: str) -> None:
        super().__init__(
            f"Comparison for ({node_a}, {node_b}) was modified concurrently. Try again."
        )


# ── Evidence ─────────────────────────────────────────────────────────────────


class NoSimilarityError(DisambiguationError):
    """Raised when the pre-filter rejects a pair that has no comparison yet."""

    def __init__(self) -> None:
        super().__init__(
            "No string similarity detected. Nodes are too different to warrant comparison."
        )


class MissingInfoError(DisambiguationError):
    """Raised when analysis is requested without both attribute snapshots."""

    def __init__(self) -> None:
        super().__init__("Cannot analyze comparison: node information not available.")


# ── External dependencies ────────────────────────────────────────────────────


class ScoringError(DisambiguationError):
    """Raised when the external scoring service cannot produce a result.

    Recoverable: the comparison stays unscored and the caller may retry.
    """
