"""Business logic services for the Canopy application."""

from .aggregation import AggregationEngine, PropagationReport
from .dispatcher import DispatchResult, ReplyDispatcher, TrashAction
from .guard import SubmissionCandidate, SubmissionGuard
from .locks import NodeLockRegistry
from .revisions import RevisionLogService
from .status import StatusService
from .subscriptions import SubscriptionService

__all__ = [
    "AggregationEngine", "PropagationReport",
    "DispatchResult", "ReplyDispatcher", "TrashAction",
    "SubmissionCandidate", "SubmissionGuard",
    "NodeLockRegistry",
    "RevisionLogService",
    "StatusService",
    "SubscriptionService",
]
