"""Error kinds raised by Canopy services."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from canopy.services.aggregation import PropagationReport


class CanopyError(RuntimeError):
    """Base exception for all Canopy service failures."""


class NotFoundError(CanopyError):
    """Raised when a referenced node does not exist."""

    def __init__(self, node_id: int | None, message: str | None = None) -> None:
        self.node_id = node_id
        super().__init__(message or f"Node {node_id} not found")


class InvalidTransitionError(CanopyError):
    """Raised when a status change conflicts with the node's current state.

    These are reported to the caller and never retried.
    """

    def __init__(self, node_id: int, current: str, target: str) -> None:
        self.node_id = node_id
        self.current = current
        self.target = target
        super().__init__(f"Node {node_id} cannot move from {current!r} to {target!r}")


class StoreError(CanopyError):
    """Raised when the underlying content store fails a read or write."""


class GuardRejectedError(CanopyError):
    """Raised when a submission fails the flood or duplicate check."""

    FLOOD = "flood"
    DUPLICATE = "duplicate"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        if reason == self.FLOOD:
            message = "Slow down; you move too fast."
        else:
            message = "Duplicate reply detected; it looks as though you've already said that."
        super().__init__(message)


class PropagationError(CanopyError):
    """Raised when an ancestor walk stops on a store failure.

    ``report`` lists the ancestors that were written before the failure so the
    caller can decide whether to retry the whole walk.
    """

    def __init__(self, report: PropagationReport) -> None:
        self.report = report
        super().__init__(report.summary())
