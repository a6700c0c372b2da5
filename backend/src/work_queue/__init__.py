"""Durable work queue: work items, relation graph and store retry"""

from .retry import StoreUnavailableError, run_in_transaction
from .service import (
    WorkQueueStore,
    WorkItemNotFoundError,
    RelationRestrictError,
)
from .relations import RelationGraphStore, RelationConflictError

__all__ = [
    "StoreUnavailableError",
    "run_in_transaction",
    "WorkQueueStore",
    "WorkItemNotFoundError",
    "RelationRestrictError",
    "RelationGraphStore",
    "RelationConflictError",
]
